"""Services package."""

from src.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryProfileStore,
    InMemoryRecordStore,
    ProfileStoreInterface,
    RecordCoercionError,
    RecordNotFoundError,
    RecordStoreInterface,
    StorageError,
    StoreUnavailableError,
    Subscription,
)

__all__ = [
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryProfileStore",
    "InMemoryRecordStore",
    "ProfileStoreInterface",
    "RecordCoercionError",
    "RecordNotFoundError",
    "RecordStoreInterface",
    "StorageError",
    "StoreUnavailableError",
    "Subscription",
]

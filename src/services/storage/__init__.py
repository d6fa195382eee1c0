"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the shared backend; the in-memory stores back tests and
local runs.
"""

from src.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ProfileStoreInterface,
    RecordCoercionError,
    RecordNotFoundError,
    RecordStoreInterface,
    StorageError,
    StoreUnavailableError,
)
from src.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsProfileStore,
    GoogleSheetsRecordStore,
)
from src.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryProfileStore,
    InMemoryRecordStore,
)
from src.services.storage.subscription import Subscription

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ProfileStoreInterface",
    "RecordStoreInterface",
    "Subscription",
    # Exceptions
    "DuplicateError",
    "RecordCoercionError",
    "RecordNotFoundError",
    "StorageError",
    "StoreUnavailableError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsProfileStore",
    "GoogleSheetsRecordStore",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryProfileStore",
    "InMemoryRecordStore",
]

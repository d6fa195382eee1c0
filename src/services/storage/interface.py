"""
Abstract Storage Interface

DESIGN DECISION: The ledger engine talks to persistence only through
these interfaces. That lets us:
1. Swap Google Sheets for another backend without touching the engine
2. Use in-memory storage for testing and local development
3. Keep the engine decoupled from transport and query language

The record surface is exactly four operations: subscribe, create,
update and delete. The profile surface is get, create, append and
remove. The engine performs no other store operations.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent
from src.models.expense import ExpenseDraft, ExpenseUpdate
from src.models.profile import UserProfile
from src.services.storage.subscription import Subscription


class RecordStoreInterface(ABC):
    """
    Abstract interface for expense record storage.

    Implementations must coerce whatever they hold into ExpenseRecord
    before delivering it to a subscription.
    """

    @abstractmethod
    async def subscribe(self, owner_id: str) -> Subscription:
        """
        Open a live subscription to one owner's records.

        The current record list is delivered as the first snapshot, and a
        new full snapshot follows every change to that owner's records.

        Raises:
            StorageError: If the subscription cannot be opened
        """
        pass

    @abstractmethod
    async def create(self, owner_id: str, draft: ExpenseDraft) -> str:
        """
        Create a record owned by owner_id.

        The store assigns the id and the created_at timestamp.

        Returns:
            The new record's id

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(self, record_id: str, changes: ExpenseUpdate) -> None:
        """
        Apply a partial update. The store sets a new updated_at.

        Raises:
            RecordNotFoundError: If no record has this id
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, record_id: str) -> None:
        """
        Delete a record. Deleting an absent id is not an error.

        Raises:
            StorageError: If the write fails
        """
        pass


class ProfileStoreInterface(ABC):
    """Abstract interface for user profile storage."""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserProfile]:
        """Return the profile, or None if it does not exist."""
        pass

    @abstractmethod
    async def create(self, user_id: str) -> UserProfile:
        """
        Create an empty profile.

        Raises:
            DuplicateError: If the profile already exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def append_connection(self, user_id: str, target_id: str) -> None:
        """
        Append target_id to user_id's connections (no-op if present).

        Raises:
            RecordNotFoundError: If user_id has no profile
        """
        pass

    @abstractmethod
    async def remove_connection(self, user_id: str, target_id: str) -> None:
        """Remove target_id from user_id's connections if present."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StoreUnavailableError(StorageError):
    """Could not connect to storage backend."""
    pass


class RecordCoercionError(StorageError):
    """A stored document could not be coerced into a typed model."""
    pass

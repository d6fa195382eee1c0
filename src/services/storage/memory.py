"""
In-Memory Storage Implementation

Process-local stores that follow the abstract interfaces. Used for tests
and for running the app without a Google Sheets backend.

Subscribers are notified synchronously from inside each mutation, so a
snapshot is queued on every affected subscription before the mutating
coroutine returns.
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent
from src.models.expense import ExpenseDraft, ExpenseRecord, ExpenseUpdate
from src.models.profile import UserProfile
from src.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ProfileStoreInterface,
    RecordNotFoundError,
    RecordStoreInterface,
)
from src.services.storage.subscription import Subscription


logger = structlog.get_logger(__name__)


class InMemoryRecordStore(RecordStoreInterface):
    """Expense records held in a dict, keyed by id."""

    def __init__(self):
        self._records: dict[str, ExpenseRecord] = {}
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)
        self._last_created_at: Optional[datetime] = None

    def _next_timestamp(self) -> datetime:
        """Server clock, forced strictly increasing."""
        now = datetime.now(timezone.utc)
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        return now

    def _snapshot(self, owner_id: str) -> list[ExpenseRecord]:
        return [r for r in self._records.values() if r.owner_id == owner_id]

    def _notify(self, owner_id: str) -> None:
        snapshot = self._snapshot(owner_id)
        for subscription in list(self._subscriptions.get(owner_id, [])):
            subscription.deliver(snapshot)

    def _release(self, subscription: Subscription) -> None:
        listeners = self._subscriptions.get(subscription.owner_id, [])
        if subscription in listeners:
            listeners.remove(subscription)
        if not listeners:
            self._subscriptions.pop(subscription.owner_id, None)

    def active_subscription_count(self, owner_id: Optional[str] = None) -> int:
        """Number of open listeners, for one owner or overall."""
        if owner_id is not None:
            return len(self._subscriptions.get(owner_id, []))
        return sum(len(subs) for subs in self._subscriptions.values())

    def get_record(self, record_id: str) -> Optional[ExpenseRecord]:
        return self._records.get(record_id)

    async def subscribe(self, owner_id: str) -> Subscription:
        subscription = Subscription(owner_id, on_close=self._release)
        self._subscriptions[owner_id].append(subscription)
        subscription.deliver(self._snapshot(owner_id))
        logger.debug("subscription_opened", owner_id=owner_id)
        return subscription

    async def create(self, owner_id: str, draft: ExpenseDraft) -> str:
        record = ExpenseRecord.from_draft(
            draft,
            record_id=uuid4().hex,
            owner_id=owner_id,
            created_at=self._next_timestamp(),
        )
        self._records[record.id] = record
        self._notify(owner_id)
        return record.id

    async def update(self, record_id: str, changes: ExpenseUpdate) -> None:
        existing = self._records.get(record_id)
        if existing is None:
            raise RecordNotFoundError(f"Expense not found: {record_id}")
        updated_at = max(datetime.now(timezone.utc), existing.created_at)
        self._records[record_id] = existing.with_changes(changes.changes(), updated_at)
        self._notify(existing.owner_id)

    async def delete(self, record_id: str) -> None:
        existing = self._records.pop(record_id, None)
        if existing is not None:
            self._notify(existing.owner_id)


class InMemoryProfileStore(ProfileStoreInterface):
    """User profiles held in a dict, keyed by user id."""

    def __init__(self, profiles: Optional[list[UserProfile]] = None):
        self._profiles: dict[str, UserProfile] = {
            p.user_id: p for p in (profiles or [])
        }

    async def get(self, user_id: str) -> Optional[UserProfile]:
        profile = self._profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def create(self, user_id: str) -> UserProfile:
        if user_id in self._profiles:
            raise DuplicateError(f"Profile already exists: {user_id}")
        profile = UserProfile(user_id=user_id)
        self._profiles[user_id] = profile
        return profile.model_copy(deep=True)

    async def append_connection(self, user_id: str, target_id: str) -> None:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise RecordNotFoundError(f"Profile not found: {user_id}")
        if target_id not in profile.connections:
            profile.connections.append(target_id)

    async def remove_connection(self, user_id: str, target_id: str) -> None:
        profile = self._profiles.get(user_id)
        if profile is not None and target_id in profile.connections:
            profile.connections.remove(target_id)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]

"""
Shared fixtures for Together Budget tests.

No network calls: stores are the in-memory implementations, with
subclasses that fail on demand to exercise error paths.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest

from src.audit import AuditLogger
from src.models import (
    ExpenseCategory,
    ExpenseDraft,
    ExpenseRecord,
    SessionContext,
    UserProfile,
)
from src.services.storage import (
    InMemoryAuditStorage,
    InMemoryProfileStore,
    InMemoryRecordStore,
    StoreUnavailableError,
)


BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_draft(
    amount_primary: str = "100.00",
    amount_secondary: str = "267.00",
    category: ExpenseCategory = ExpenseCategory.FOOD,
    day: date = date(2024, 1, 15),
    description: Optional[str] = "Lunch",
) -> ExpenseDraft:
    return ExpenseDraft(
        date=day,
        category=category,
        description=description,
        amount_primary=Decimal(amount_primary),
        amount_secondary=Decimal(amount_secondary),
    )


def make_record(
    record_id: str,
    day: date,
    category: ExpenseCategory = ExpenseCategory.FOOD,
    amount_primary: str = "0",
    amount_secondary: str = "0",
    owner_id: str = "alice",
    created_offset: int = 0,
    description: Optional[str] = None,
) -> ExpenseRecord:
    created_at = BASE_TIME + timedelta(minutes=created_offset)
    return ExpenseRecord(
        id=record_id,
        owner_id=owner_id,
        date=day,
        category=category,
        description=description,
        amount_primary=Decimal(amount_primary),
        amount_secondary=Decimal(amount_secondary),
        created_at=created_at,
        updated_at=created_at,
    )


class FailingRecordStore(InMemoryRecordStore):
    """In-memory record store whose operations can be made to fail."""

    def __init__(self):
        super().__init__()
        self.fail_subscribe = False
        self.fail_create = False
        self.fail_update = False
        self.fail_delete = False

    async def subscribe(self, owner_id):
        if self.fail_subscribe:
            raise StoreUnavailableError("subscribe failed")
        return await super().subscribe(owner_id)

    async def create(self, owner_id, draft):
        if self.fail_create:
            raise StoreUnavailableError("create failed")
        return await super().create(owner_id, draft)

    async def update(self, record_id, changes):
        if self.fail_update:
            raise StoreUnavailableError("update failed")
        return await super().update(record_id, changes)

    async def delete(self, record_id):
        if self.fail_delete:
            raise StoreUnavailableError("delete failed")
        return await super().delete(record_id)


class FailingProfileStore(InMemoryProfileStore):
    """In-memory profile store that records writes and can fail on demand."""

    def __init__(self, profiles=None):
        super().__init__(profiles)
        self.fail_get = False
        self.fail_create = False
        self.fail_append = False
        self.writes: list[tuple] = []

    async def get(self, user_id):
        if self.fail_get:
            raise StoreUnavailableError("get failed")
        return await super().get(user_id)

    async def create(self, user_id):
        if self.fail_create:
            raise StoreUnavailableError("create failed")
        self.writes.append(("create", user_id))
        return await super().create(user_id)

    async def append_connection(self, user_id, target_id):
        if self.fail_append:
            raise StoreUnavailableError("append failed")
        self.writes.append(("append", user_id, target_id))
        return await super().append_connection(user_id, target_id)

    async def remove_connection(self, user_id, target_id):
        self.writes.append(("remove", user_id, target_id))
        return await super().remove_connection(user_id, target_id)


@pytest.fixture
def session() -> SessionContext:
    return SessionContext(user_id="alice")


@pytest.fixture
def record_store() -> FailingRecordStore:
    return FailingRecordStore()


@pytest.fixture
def profile_store() -> FailingProfileStore:
    return FailingProfileStore([
        UserProfile(user_id="alice"),
        UserProfile(user_id="bob"),
        UserProfile(user_id="carol"),
    ])


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)

"""
Ledger View

The locally held, continuously updated copy of one identity's expense
records.

GUARANTEES:
- At most one store subscription is open per view. Switching identity
  closes the old subscription (and waits for its consumer to finish)
  before the new one is opened.
- Records of the previous identity are discarded the moment a switch
  starts; the view is empty until the new identity's first snapshot.
- Every snapshot REPLACES the held records and is re-sorted by
  created_at, newest first.
- Create, update and delete are only allowed on the session user's own
  ledger, whatever the store itself would permit.

Create and update never touch local state; the next snapshot brings the
change. Delete removes the record locally first and puts it back if the
store call fails.
"""

import asyncio
from typing import Callable, Optional

import structlog

from src.ledger.currency import CurrencyConverter, apply_update_policy
from src.ledger.errors import (
    NotFoundError,
    ReadOnlyLedgerError,
    StoreError,
    ValidationError,
)
from src.models.expense import (
    AmountUpdatePolicy,
    ExpenseDraft,
    ExpenseRecord,
    ExpenseUpdate,
)
from src.models.profile import SessionContext
from src.services.storage import (
    RecordNotFoundError,
    RecordStoreInterface,
    StorageError,
    Subscription,
)


logger = structlog.get_logger(__name__)

Listener = Callable[[tuple[ExpenseRecord, ...]], None]


class LedgerView:
    """Live, sorted view of one identity's records."""

    def __init__(
        self,
        store: RecordStoreInterface,
        session: SessionContext,
        converter: Optional[CurrencyConverter] = None,
        update_policy: AmountUpdatePolicy = AmountUpdatePolicy.ALLOW_DRIFT,
    ):
        self._store = store
        self._session = session
        self._converter = converter or CurrencyConverter()
        self._update_policy = update_policy

        self._viewing_identity: Optional[str] = None
        self._records: tuple[ExpenseRecord, ...] = ()
        self._subscription: Optional[Subscription] = None
        self._consumer: Optional[asyncio.Task] = None
        self._synced = asyncio.Event()
        self._waiters: list[asyncio.Future] = []
        self._listeners: list[Listener] = []
        self._switch_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def session(self) -> SessionContext:
        return self._session

    @property
    def viewing_identity(self) -> Optional[str]:
        return self._viewing_identity

    @property
    def is_own_ledger(self) -> bool:
        return self._viewing_identity == self._session.user_id

    @property
    def is_open(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    @property
    def records(self) -> tuple[ExpenseRecord, ...]:
        return self._records

    def get(self, record_id: str) -> Optional[ExpenseRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def add_listener(self, listener: Listener) -> None:
        """Call `listener` with the held records after every change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_records(self, records: tuple[ExpenseRecord, ...]) -> None:
        self._records = records
        for listener in list(self._listeners):
            try:
                listener(records)
            except Exception:
                logger.exception("ledger_listener_failed")

    # -------------------------------------------------------------------------
    # Subscription lifecycle
    # -------------------------------------------------------------------------

    async def open(self, identity: Optional[str] = None) -> None:
        """
        Start viewing `identity` (default: the session user).

        Any previous subscription is torn down first.

        Raises:
            ValidationError: If identity is empty
            StoreError: If the store cannot open the subscription
        """
        identity = (identity or self._session.user_id).strip()
        if not identity:
            raise ValidationError("Viewing identity cannot be empty")

        async with self._switch_lock:
            await self._teardown()
            self._viewing_identity = identity
            try:
                subscription = await self._store.subscribe(identity)
            except StorageError as e:
                logger.error("subscription_failed", identity=identity, error=str(e))
                raise StoreError(f"Could not load expenses: {e}") from e

            self._subscription = subscription
            self._consumer = asyncio.get_running_loop().create_task(
                self._consume(subscription)
            )
            logger.debug("ledger_view_opened", identity=identity)

    async def switch_to(self, identity: str) -> None:
        """Alias of open() for an explicit identity."""
        await self.open(identity)

    async def close(self) -> None:
        """Release the subscription. The view keeps its identity but holds nothing."""
        async with self._switch_lock:
            await self._teardown()

    async def _teardown(self) -> None:
        subscription, consumer = self._subscription, self._consumer
        self._subscription = None
        self._consumer = None
        self._synced.clear()
        if self._records:
            self._set_records(())

        if subscription is not None:
            subscription.close()
        if consumer is not None and consumer is not asyncio.current_task():
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass

    async def _consume(self, subscription: Subscription) -> None:
        async for snapshot in subscription:
            if subscription is not self._subscription:
                break
            self._apply_snapshot(subscription.owner_id, snapshot)

    def _apply_snapshot(self, owner_id: str, snapshot: tuple[ExpenseRecord, ...]) -> None:
        own = [r for r in snapshot if r.owner_id == owner_id]
        if len(own) != len(snapshot):
            logger.warning(
                "foreign_records_dropped",
                identity=owner_id,
                dropped=len(snapshot) - len(own),
            )
        own.sort(key=lambda r: r.created_at, reverse=True)
        self._set_records(tuple(own))
        self._synced.set()

        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(self._records)

    async def wait_until_synced(self) -> tuple[ExpenseRecord, ...]:
        """Wait for the first snapshot of the current identity."""
        await self._synced.wait()
        return self._records

    def next_snapshot(self) -> asyncio.Future:
        """
        Future resolved with the records after the next applied snapshot.

        Registered immediately, so it can be taken before a mutation:

            pending = view.next_snapshot()
            await view.create(draft)
            records = await pending
        """
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        return waiter

    # -------------------------------------------------------------------------
    # Mutations (own ledger only)
    # -------------------------------------------------------------------------

    def _require_own_ledger(self, operation: str) -> None:
        if not self.is_own_ledger:
            logger.warning(
                "mutation_rejected",
                operation=operation,
                user_id=self._session.user_id,
                viewing_identity=self._viewing_identity,
            )
            raise ReadOnlyLedgerError(
                f"Cannot {operation} expenses while viewing another user's ledger"
            )

    async def create(self, draft: ExpenseDraft) -> str:
        """
        Create an expense owned by the session user.

        Returns:
            The id assigned by the store
        """
        self._require_own_ledger("create")
        try:
            return await self._store.create(self._session.user_id, draft)
        except StorageError as e:
            logger.error("expense_create_failed", error=str(e))
            raise StoreError(f"Could not save expense: {e}") from e

    async def update(self, record_id: str, changes: ExpenseUpdate) -> ExpenseUpdate:
        """
        Apply a partial update, subject to the amount update policy.

        Returns:
            The update actually sent to the store
        """
        self._require_own_ledger("update")
        if changes.is_empty:
            raise ValidationError("Nothing to update")
        if self.get(record_id) is None:
            raise NotFoundError(f"Expense not found: {record_id}")

        resolved = apply_update_policy(changes, self._converter, self._update_policy)
        try:
            await self._store.update(record_id, resolved)
        except RecordNotFoundError as e:
            raise NotFoundError(f"Expense not found: {record_id}") from e
        except StorageError as e:
            logger.error("expense_update_failed", record_id=record_id, error=str(e))
            raise StoreError(f"Could not update expense: {e}") from e
        return resolved

    async def delete(self, record_id: str) -> None:
        """
        Delete an expense, removing it locally before the store confirms.

        On store failure the record is restored at its previous position.
        """
        self._require_own_ledger("delete")
        previous = self._records
        index = next((i for i, r in enumerate(previous) if r.id == record_id), None)
        if index is None:
            raise NotFoundError(f"Expense not found: {record_id}")

        self._set_records(previous[:index] + previous[index + 1:])
        try:
            await self._store.delete(record_id)
        except StorageError as e:
            logger.error("expense_delete_failed", record_id=record_id, error=str(e))
            # Roll back unless a newer snapshot already replaced the records.
            if self._records == previous[:index] + previous[index + 1:]:
                self._set_records(previous)
            raise StoreError(f"Could not delete expense: {e}") from e

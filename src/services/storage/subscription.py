"""
Live snapshot subscriptions.

A Subscription is the consumer's handle on a store's push notifications
for one owner. Each delivery is the FULL current record list for that
owner; consumers replace their view with it rather than merging.

    subscription = await store.subscribe(owner_id)
    async for snapshot in subscription:
        ...
    subscription.close()

Closing is idempotent, stops iteration, drops anything still queued and
tells the store to release its listener.
"""

import asyncio
from typing import Callable, Iterable, Optional

import structlog

from src.models.expense import ExpenseRecord


logger = structlog.get_logger(__name__)

_CLOSED = object()


class Subscription:
    """Cancelable async iterator of record snapshots for one owner."""

    def __init__(
        self,
        owner_id: str,
        on_close: Optional[Callable[["Subscription"], None]] = None,
    ):
        self.owner_id = owner_id
        self._on_close = on_close
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, records: Iterable[ExpenseRecord]) -> bool:
        """
        Push a snapshot to the consumer. Called by the store.

        Returns False (and drops the snapshot) once the subscription is closed.
        """
        if self._closed:
            return False
        self._queue.put_nowait(tuple(records))
        return True

    def close(self) -> None:
        """Stop deliveries and release the store-side listener."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            on_close, self._on_close = self._on_close, None
            on_close(self)
        logger.debug("subscription_closed", owner_id=self.owner_id)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> tuple[ExpenseRecord, ...]:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self._closed:
            raise StopAsyncIteration
        return item

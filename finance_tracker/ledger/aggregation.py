"""
Aggregation Engine

Keeps the balance and per-category expense totals in step with the ledger
and publishes every new Aggregate to subscribers.

DESIGN DECISION: Every commit triggers a full recomputation over the whole
snapshot. An upsert can change a record's kind, category and amount at
once; undoing the old contribution incrementally is where drift creeps in.
A personal ledger is small and human-paced, so O(n) per write is fine.

Subscribers get the current Aggregate immediately, then every later one
in commit order. Nothing is dropped or merged: each subscription has its
own unbounded queue.
"""

import asyncio
from typing import Optional

import structlog

from finance_tracker.ledger.store import LedgerSnapshot, LedgerStore
from finance_tracker.models.transaction import Aggregate


logger = structlog.get_logger(__name__)

_CLOSED = object()


class AggregateSubscription:
    """
    A replayed-then-live stream of Aggregate values.

    Usage:
        async with engine.subscribe() as updates:
            async for aggregate in updates:
                ...
    """

    def __init__(self, engine: "AggregationEngine"):
        self._engine = engine
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._exhausted = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _push(self, aggregate: Aggregate) -> None:
        if not self._closed:
            self._queue.put_nowait(aggregate)

    async def get(self) -> Aggregate:
        """
        Wait for the next Aggregate.

        Raises:
            StopAsyncIteration: The subscription was closed and drained
        """
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._exhausted = True
            raise StopAsyncIteration
        return item

    def get_nowait(self) -> Optional[Aggregate]:
        """The next queued Aggregate, or None if nothing is waiting."""
        if self._exhausted:
            return None
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if item is _CLOSED:
            self._exhausted = True
            return None
        return item

    def close(self) -> None:
        """Stop receiving updates. Already-queued values can still be read."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        self._engine._unsubscribe(self)

    def __aiter__(self) -> "AggregateSubscription":
        return self

    async def __anext__(self) -> Aggregate:
        return await self.get()

    async def __aenter__(self) -> "AggregateSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class AggregationEngine:
    """
    Derives Aggregates from LedgerStore commits and broadcasts them.

    Attach it to a store before or after the store is opened; either
    way the first Aggregate reflects the full loaded ledger.
    """

    def __init__(self):
        self._current = Aggregate()
        self._has_commit = False
        self._subscriptions: list[AggregateSubscription] = []
        self._store: Optional[LedgerStore] = None

    @property
    def current(self) -> Aggregate:
        """The most recently computed Aggregate."""
        return self._current

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def attach(self, store: LedgerStore) -> None:
        """Start following a store's commits."""
        if self._store is store:
            return
        if self._store is not None:
            self.detach()
        self._store = store
        store.add_commit_listener(self._on_commit)
        if store.is_open:
            self._on_commit(store.all(), store.revision)

    def detach(self) -> None:
        """Stop following the current store."""
        if self._store is not None:
            self._store.remove_commit_listener(self._on_commit)
            self._store = None

    def _on_commit(self, snapshot: LedgerSnapshot, revision: int) -> None:
        aggregate = Aggregate.from_transactions(snapshot, revision=revision)
        self._current = aggregate
        self._has_commit = True
        for subscription in list(self._subscriptions):
            subscription._push(aggregate)
        logger.debug(
            "aggregate_recomputed",
            revision=revision,
            balance=aggregate.balance,
            subscribers=len(self._subscriptions),
        )

    def subscribe(self) -> AggregateSubscription:
        """
        Open a new subscription.

        The current Aggregate is queued before this returns, so no commit
        can land between the replay and the live feed. Before the store
        has opened there is nothing to replay; the first value is then the
        loaded ledger at revision 0.
        """
        subscription = AggregateSubscription(self)
        if self._has_commit:
            subscription._push(self._current)
        self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: AggregateSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def close(self) -> None:
        """Detach from the store and end every subscription."""
        self.detach()
        for subscription in list(self._subscriptions):
            subscription.close()

"""
Tests for AggregationEngine

The engine recomputes from the full snapshot on every commit and
publishes each Aggregate to every subscriber, replay first.
"""

import asyncio
from itertools import permutations

import pytest

from conftest import FlakyStorage, make_txn
from finance_tracker.ledger import AggregationEngine, LedgerStore, StorageFailure
from finance_tracker.models import Aggregate, TransactionKind


EXPENSE = TransactionKind.EXPENSE
INCOME = TransactionKind.INCOME


def drain(subscription) -> list[Aggregate]:
    """Everything queued on a subscription right now."""
    items = []
    while (item := subscription.get_nowait()) is not None:
        items.append(item)
    return items


async def replay(operations, preloaded=()):
    """Apply (op, arg) pairs to a fresh store and engine."""
    store = LedgerStore(FlakyStorage(list(preloaded)))
    engine = AggregationEngine()
    engine.attach(store)
    await store.open()
    for op, arg in operations:
        if op == "upsert":
            await store.upsert(arg)
        else:
            await store.delete_by_id(arg)
    return store, engine


# Inserts, a replacement of t1 and deletes, including one of t2
MIXED_OPERATIONS = [
    ("upsert", make_txn("t1", 100, EXPENSE, "Food")),
    ("upsert", make_txn("t2", 500, INCOME, "Salary")),
    ("upsert", make_txn("t1", 150, EXPENSE, "Transport")),
    ("delete", "t2"),
    ("upsert", make_txn("t3", 40, EXPENSE, "Food")),
]

# Every operation touches a different id, so the final snapshot is the same in any order
PRELOADED = [
    make_txn("t0", 20, EXPENSE, "Food"),
    make_txn("t9", 70, EXPENSE, "Bills"),
]
INDEPENDENT_OPERATIONS = [
    ("upsert", make_txn("a", 100, EXPENSE, "Food")),
    ("upsert", make_txn("b", 500, INCOME, "Salary")),
    ("upsert", make_txn("t0", 60, EXPENSE, "Transport")),
    ("delete", "t9"),
]


class TestLedgerScenarios:
    """Balance and category spend through insert, edit and delete."""

    @pytest.mark.asyncio
    async def test_insert_edit_delete(self, store, engine):
        await store.open()
        t1 = make_txn("t1", 100, EXPENSE, "Food")

        await store.upsert(t1)
        await store.upsert(make_txn("t2", 500, INCOME, "Salary"))
        assert engine.current.balance == 400.0
        assert engine.current.category_spend["Food"] == 100.0

        await store.upsert(t1.copy_with(amount=150))
        assert engine.current.balance == 350.0
        assert engine.current.category_spend["Food"] == 150.0

        await store.delete_by_id("t2")
        assert engine.current.balance == -150.0
        assert engine.current.revision == 4

    @pytest.mark.asyncio
    async def test_category_change_moves_spend(self, store, engine):
        await store.open()
        await store.upsert(make_txn("t1", 80, EXPENSE, "Food"))
        await store.upsert(make_txn("t1", 80, EXPENSE, "Transport"))
        assert engine.current.category_spend == {"Transport": 80.0}

    @pytest.mark.asyncio
    async def test_kind_change_moves_between_totals(self, store, engine):
        await store.open()
        await store.upsert(make_txn("t1", 80, EXPENSE, "Other"))
        await store.upsert(make_txn("t1", 80, INCOME, "Other"))
        assert engine.current.balance == 80.0
        assert engine.current.category_spend == {}

    @pytest.mark.asyncio
    async def test_failed_write_does_not_recompute(self, store, engine, storage):
        await store.open()
        await store.upsert(make_txn("t1", 100, EXPENSE, "Food"))
        before = engine.current

        storage.fail_puts = True
        with pytest.raises(StorageFailure):
            await store.upsert(make_txn("t2", 50, EXPENSE, "Food"))

        assert engine.current is before


class TestAttach:
    """Tests for attaching to stores in different states."""

    @pytest.mark.asyncio
    async def test_attach_after_open_reflects_loaded_ledger(self):
        storage = FlakyStorage([
            make_txn("t1", 100, EXPENSE, "Food"),
            make_txn("t2", 300, INCOME, "Salary"),
        ])
        store = LedgerStore(storage)
        await store.open()

        engine = AggregationEngine()
        engine.attach(store)
        assert engine.current.balance == 200.0
        assert engine.current.transaction_count == 2

    @pytest.mark.asyncio
    async def test_attach_before_open_reflects_loaded_ledger(self):
        storage = FlakyStorage([make_txn("t1", 40, EXPENSE, "Bills")])
        store = LedgerStore(storage)
        engine = AggregationEngine()
        engine.attach(store)
        assert engine.current == Aggregate()

        await store.open()
        assert engine.current.category_spend == {"Bills": 40.0}

    @pytest.mark.asyncio
    async def test_detach_stops_updates(self, store, engine):
        await store.open()
        engine.detach()
        await store.upsert(make_txn("t1", 100, EXPENSE, "Food"))
        assert engine.current.transaction_count == 0


class TestSubscriptions:
    """Tests for replay-then-live subscriptions."""

    @pytest.mark.asyncio
    async def test_subscriber_gets_current_value_first(self, store, engine):
        await store.open()
        await store.upsert(make_txn("t1", 100, EXPENSE, "Food"))

        subscription = engine.subscribe()
        first = await subscription.get()
        assert first.revision == 1
        assert first.category_spend == {"Food": 100.0}

    @pytest.mark.asyncio
    async def test_every_commit_delivered_in_order(self, store, engine):
        await store.open()
        subscription = engine.subscribe()

        for i in range(1, 6):
            await store.upsert(make_txn(f"t{i}", i * 10, EXPENSE, "Food"))

        revisions = [aggregate.revision for aggregate in drain(subscription)]
        assert revisions == [0, 1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_subscribers_are_independent(self, store, engine):
        await store.open()
        early = engine.subscribe()
        await store.upsert(make_txn("t1", 10, EXPENSE, "Food"))
        late = engine.subscribe()
        await store.upsert(make_txn("t2", 10, EXPENSE, "Food"))

        assert [a.revision for a in drain(early)] == [0, 1, 2]
        assert [a.revision for a in drain(late)] == [1, 2]

    @pytest.mark.asyncio
    async def test_live_update_wakes_waiting_subscriber(self, store, engine):
        await store.open()
        subscription = engine.subscribe()
        await subscription.get()

        waiter = asyncio.create_task(subscription.get())
        await asyncio.sleep(0)
        assert not waiter.done()

        await store.upsert(make_txn("t1", 25, EXPENSE, "Transport"))
        aggregate = await asyncio.wait_for(waiter, timeout=1)
        assert aggregate.category_spend == {"Transport": 25.0}

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self, store, engine):
        await store.open()
        subscription = engine.subscribe()
        await store.upsert(make_txn("t1", 25, EXPENSE, "Food"))
        subscription.close()

        seen = [aggregate.revision async for aggregate in subscription]
        assert seen == [0, 1]
        assert subscription.closed
        assert engine.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_context_manager_unsubscribes(self, store, engine):
        await store.open()
        async with engine.subscribe() as subscription:
            assert engine.subscriber_count == 1
            await subscription.get()
        assert engine.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_engine_close_ends_all_subscriptions(self, store, engine):
        await store.open()
        a = engine.subscribe()
        b = engine.subscribe()
        engine.close()

        assert a.closed and b.closed
        await a.get()
        with pytest.raises(StopAsyncIteration):
            await a.get()
        await store.upsert(make_txn("t1", 25, EXPENSE, "Food"))
        assert drain(b) == [Aggregate()]


class TestOrderIndependence:
    """The aggregate always matches the final snapshot, whatever the order."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("order", list(permutations(range(len(MIXED_OPERATIONS)))), ids=str)
    async def test_aggregate_matches_final_snapshot(self, order):
        store, engine = await replay([MIXED_OPERATIONS[i] for i in order])

        snapshot = store.all()
        income = sum(t.amount for t in snapshot if t.kind is INCOME)
        expense = sum(t.amount for t in snapshot if t.kind is EXPENSE)
        assert engine.current.balance == pytest.approx(income - expense)
        assert engine.current == Aggregate.from_transactions(snapshot, revision=store.revision)

    @pytest.mark.asyncio
    async def test_independent_operations_agree_in_every_order(self):
        results = set()
        for order in permutations(INDEPENDENT_OPERATIONS):
            _, engine = await replay(order, preloaded=PRELOADED)
            aggregate = engine.current
            results.add((round(aggregate.balance, 9), tuple(sorted(aggregate.category_spend.items()))))

        assert results == {(340.0, (("Food", 100.0), ("Transport", 60.0)))}


class TestReplayBeforeOpen:
    """Subscribing before the store opens."""

    @pytest.mark.asyncio
    async def test_first_value_is_loaded_ledger(self):
        store = LedgerStore(FlakyStorage([make_txn("t1", 40, EXPENSE, "Bills")]))
        engine = AggregationEngine()
        engine.attach(store)
        subscription = engine.subscribe()
        assert subscription.get_nowait() is None

        await store.open()
        await store.upsert(make_txn("t2", 10, EXPENSE, "Food"))

        values = drain(subscription)
        assert [a.revision for a in values] == [0, 1]
        assert values[0].category_spend == {"Bills": 40.0}

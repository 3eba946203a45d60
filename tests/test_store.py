import json

from taxpal.domain import Budget, Snapshot, Transaction
from taxpal.storage import BUDGETS_KEY, TRANSACTIONS_KEY, MemoryStorage
from taxpal.store import CacheStore


def make_store():
    return CacheStore(MemoryStorage())


def test_starts_empty():
    assert make_store().get_data() == Snapshot()


def test_update_budgets_notifies_once_with_new_list():
    store = make_store()
    seen = []
    store.subscribe(seen.append)

    budgets = [Budget("b1", "Rent", 1000.0, "2025-06"), Budget("b2", "Food", 300.0)]
    store.update_budgets(budgets)

    assert len(seen) == 1
    assert list(seen[0].budgets) == budgets


def test_update_budgets_round_trip():
    store = make_store()
    budgets = [Budget("b1", "Rent", 1000.0, "2025-06", "flat")]
    store.update_budgets(budgets)
    assert list(store.get_data().budgets) == budgets


def test_updates_persist_their_slice_only():
    store = make_store()
    store.update_budgets([Budget("b1", "Rent", 1000.0)])
    assert json.loads(store.storage.get_item(BUDGETS_KEY)) == [
        {"id": "b1", "category": "Rent", "amount": 1000.0, "month": None, "description": ""}
    ]
    assert store.storage.get_item(TRANSACTIONS_KEY) is None

    store.update_transactions([Transaction("t1", "Pay", 10.0, "Salary", "2025-06-01", "Income")])
    stored = json.loads(store.storage.get_item(TRANSACTIONS_KEY))
    assert stored[0]["id"] == "t1"
    assert stored[0]["type"] == "Income"


def test_update_keeps_other_slice():
    store = make_store()
    store.update_transactions([Transaction("t1", amount=5.0)])
    store.update_budgets([Budget("b1", "Rent", 10.0)])
    snap = store.get_data()
    assert [t.id for t in snap.transactions] == ["t1"]
    assert [b.id for b in snap.budgets] == ["b1"]


def test_refresh_does_not_persist_but_notifies_once():
    store = make_store()
    seen = []
    store.subscribe(seen.append)
    store.refresh(transactions=[Transaction("t1")], budgets=[Budget("b1", "Rent", 1.0)])
    assert len(seen) == 1
    assert store.storage.get_item(TRANSACTIONS_KEY) is None
    assert store.storage.get_item(BUDGETS_KEY) is None


def test_mappings_are_normalized():
    store = make_store()
    store.update_budgets([{"_id": "b9", "category": "Fun", "budget": "75"}])
    (budget,) = store.get_data().budgets
    assert budget == Budget("b9", "Fun", 75.0)


def test_none_clears_slice():
    store = make_store()
    store.update_budgets([Budget("b1", "Rent", 1.0)])
    store.update_budgets(None)
    assert store.get_data().budgets == ()


def test_snapshots_are_replaced_not_mutated():
    store = make_store()
    before = store.get_data()
    store.update_transactions([Transaction("t1")])
    assert before.transactions == ()
    assert store.get_data() is not before


def test_unsubscribed_view_stops_receiving():
    store = make_store()
    seen = []
    sub = store.subscribe(seen.append)
    store.update_budgets([])
    sub()
    store.update_budgets([])
    assert len(seen) == 1


def test_persist_failure_still_updates_and_notifies():
    class Broken(MemoryStorage):
        def set_item(self, key, value):
            raise OSError("read-only")

    store = CacheStore(Broken())
    seen = []
    store.subscribe(seen.append)
    store.update_budgets([Budget("b1", "Rent", 1.0)])
    assert len(seen) == 1
    assert store.get_data().budgets[0].id == "b1"


def test_entries_that_are_not_records_are_skipped():
    store = make_store()
    seen = []
    store.subscribe(seen.append)

    store.update_budgets(["Rent", {"id": "b1", "category": "Rent", "amount": 5}])
    store.update_transactions([None, 3, Transaction("t1", amount=-2.0)])

    assert store.get_data().budgets == (Budget("b1", "Rent", 5.0),)
    assert [t.id for t in store.get_data().transactions] == ["t1"]
    assert [b["id"] for b in json.loads(store.storage.get_item(BUDGETS_KEY))] == ["b1"]
    assert len(seen) == 2

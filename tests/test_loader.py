import json

import pytest

from taxpal.domain import Budget, Transaction
from taxpal.errors import RemoteUnavailable
from taxpal.loader import Loader, content_id, local_id
from taxpal.storage import BUDGETS_KEY, TRANSACTIONS_KEY, FileStorage, MemoryStorage
from taxpal.store import CacheStore


class FakeRemote:
    def __init__(self, transactions=None, budgets=None, created=None, fail=False):
        self.transactions = transactions or []
        self.budgets = budgets or []
        self.created = created
        self.fail = fail
        self.calls = []

    def _maybe_fail(self, name):
        self.calls.append(name)
        if self.fail:
            raise RemoteUnavailable("offline")

    async def list_transactions(self):
        self._maybe_fail("list_transactions")
        return self.transactions

    async def create_transaction(self, record):
        self._maybe_fail("create_transaction")
        return self.created

    async def list_budgets(self):
        self._maybe_fail("list_budgets")
        return self.budgets

    async def create_budget(self, record):
        self._maybe_fail("create_budget")
        return self.created

    async def delete_budget(self, budget_id):
        self._maybe_fail(f"delete_budget:{budget_id}")


def make_tx(id, amount=-10.0, date="2025-06-01"):
    return Transaction(id=id, description="x", amount=amount, category="Food", date=date, type=None)


def make_loader(storage=None, remote=None, ids=None):
    store = CacheStore(storage or MemoryStorage())
    counter = iter(ids or [f"local-{n}" for n in range(100)])
    return Loader(store, remote, id_factory=lambda: next(counter))


def persisted(*txs):
    return json.dumps([t.to_record() for t in txs])


@pytest.mark.asyncio
async def test_failing_remote_falls_back_to_persisted_transactions():
    saved = (make_tx("t1"), make_tx("t2", 25.0))
    loader = make_loader(MemoryStorage({TRANSACTIONS_KEY: persisted(*saved)}), FakeRemote(fail=True))

    result = await loader.load_transactions()

    assert result == saved
    assert loader.store.get_data().transactions == saved


@pytest.mark.asyncio
async def test_no_remote_reads_local_copy():
    saved = (make_tx("t1"),)
    loader = make_loader(MemoryStorage({TRANSACTIONS_KEY: persisted(*saved)}))
    assert await loader.load_transactions() == saved


@pytest.mark.asyncio
async def test_nothing_anywhere_gives_empty_cache():
    loader = make_loader(remote=FakeRemote(fail=True))
    seen = []
    loader.store.subscribe(seen.append)
    assert await loader.load_transactions() == ()
    assert loader.store.get_data().transactions == ()
    assert len(seen) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["{not json", '{"a": 1}', "42"])
async def test_corrupt_local_state_is_treated_as_empty(raw):
    loader = make_loader(MemoryStorage({TRANSACTIONS_KEY: raw, BUDGETS_KEY: raw}))
    assert await loader.load_transactions() == ()
    assert loader.load_budgets() == ()


@pytest.mark.asyncio
async def test_remote_success_replaces_cache_without_persisting():
    remote = FakeRemote(transactions=[
        {"_id": "r1", "description": "Pay", "amount": "1200", "category": "Salary", "type": "Income"},
        "garbage",
        {"description": "no id", "amount": -5},
    ])
    storage = MemoryStorage({TRANSACTIONS_KEY: persisted(make_tx("old"))})
    loader = make_loader(storage, remote)

    result = await loader.load_transactions()

    assert result[0].id == "r1"
    assert result[1].id == content_id({"description": "no id", "amount": -5})
    assert result[0].amount == 1200.0
    assert loader.store.get_data().transactions == result
    assert json.loads(storage.get_item(TRANSACTIONS_KEY))[0]["id"] == "old"


@pytest.mark.asyncio
async def test_add_transaction_offline_gets_local_id_and_is_prepended():
    loader = make_loader(MemoryStorage({TRANSACTIONS_KEY: persisted(make_tx("t1"))}), FakeRemote(fail=True))
    await loader.load_transactions()
    seen = []
    loader.store.subscribe(seen.append)

    added = await loader.add_transaction({"description": "Coffee", "amount": -4, "category": "Food"})

    assert added.id == "local-0"
    assert [t.id for t in loader.store.get_data().transactions] == ["local-0", "t1"]
    assert json.loads(loader.storage.get_item(TRANSACTIONS_KEY))[0]["id"] == "local-0"
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_add_transaction_uses_server_record():
    remote = FakeRemote(created={"_id": "srv-7"})
    loader = make_loader(remote=remote)

    added = await loader.add_transaction(Transaction("", "Salary", 3000.0, "Salary", "2025-06-01", "Income"))

    assert added.id == "srv-7"
    assert added.description == "Salary"
    assert added.amount == 3000.0
    assert loader.store.get_data().transactions == (added,)


@pytest.mark.asyncio
async def test_add_transaction_keeps_caller_id_when_server_returns_nothing():
    loader = make_loader(remote=FakeRemote(created=None))
    added = await loader.add_transaction(make_tx("mine"))
    assert added.id == "mine"


@pytest.mark.asyncio
async def test_local_ids_do_not_collide():
    loader = make_loader(ids=["local-1", "local-1", "local-1"])
    first = await loader.add_transaction({"amount": 1})
    second = await loader.add_transaction({"amount": 2})
    assert first.id == "local-1"
    assert second.id == "local-1-1"


def test_load_budgets_reads_local_storage():
    raw = json.dumps([{"id": "b1", "category": "Rent", "budget": 900, "month": "2025-06"}])
    loader = make_loader(MemoryStorage({BUDGETS_KEY: raw}))
    assert loader.load_budgets() == (Budget("b1", "Rent", 900.0, "2025-06"),)
    assert loader.store.get_data().budgets == (Budget("b1", "Rent", 900.0, "2025-06"),)


@pytest.mark.asyncio
async def test_fetch_budgets_prefers_remote_and_persists():
    remote = FakeRemote(budgets=[{"id": "rb", "category": "Food", "amount": 50}])
    loader = make_loader(remote=remote)
    assert await loader.fetch_budgets() == (Budget("rb", "Food", 50.0),)
    assert json.loads(loader.storage.get_item(BUDGETS_KEY))[0]["id"] == "rb"


@pytest.mark.asyncio
async def test_fetch_budgets_falls_back_to_local():
    raw = json.dumps([{"id": "b1", "category": "Rent", "amount": 1}])
    loader = make_loader(MemoryStorage({BUDGETS_KEY: raw}), FakeRemote(fail=True))
    assert [b.id for b in await loader.fetch_budgets()] == ["b1"]


@pytest.mark.asyncio
async def test_add_and_remove_budget_offline():
    remote = FakeRemote(fail=True)
    loader = make_loader(remote=remote)

    created = await loader.add_budget({"category": "Travel", "amount": 400, "month": "2025-07"})
    assert created.id == "local-0"
    assert loader.store.get_data().budgets == (created,)

    assert await loader.remove_budget("local-0") is True
    assert loader.store.get_data().budgets == ()
    assert "delete_budget:local-0" in remote.calls
    assert json.loads(loader.storage.get_item(BUDGETS_KEY)) == []


@pytest.mark.asyncio
async def test_remove_unknown_budget():
    loader = make_loader()
    seen = []
    loader.store.subscribe(seen.append)
    assert await loader.remove_budget("nope") is False
    assert seen == []


def test_local_id_is_time_based():
    assert local_id().startswith("local-")
    assert local_id()[len("local-"):].isdigit()


@pytest.mark.asyncio
async def test_undecodable_local_files_load_as_empty(tmp_path):
    (tmp_path / "tp_transactions.json").write_bytes(b"\xff\xfe[garbage")
    (tmp_path / "tp_budgets.json").write_bytes(b"\xff\xfe[garbage")
    loader = make_loader(FileStorage(tmp_path))
    assert await loader.load_transactions() == ()
    assert loader.load_budgets() == ()


@pytest.mark.asyncio
async def test_records_without_id_keep_the_same_id_across_loads():
    raw = json.dumps([
        {"description": "cash", "amount": -4},
        {"description": "cash", "amount": -4},
        {"id": "t1", "amount": 2},
    ])
    loader = make_loader(MemoryStorage({TRANSACTIONS_KEY: raw}))

    first = [t.id for t in await loader.load_transactions()]
    second = [t.id for t in await loader.load_transactions()]

    assert first == second
    assert first[0].startswith("local-")
    assert first[1] == first[0] + "-1"
    assert first[2] == "t1"

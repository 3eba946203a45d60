import hashlib
import json
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple, Union

from taxpal.aggregate import as_transaction
from taxpal.budgets import as_budget
from taxpal.domain import Budget, Transaction
from taxpal.errors import RemoteUnavailable, StorageError
from taxpal.functional import find_budget
from taxpal.remote import RemoteClient
from taxpal.storage import BUDGETS_KEY, TRANSACTIONS_KEY, read_json_list
from taxpal.store import CacheStore

logger = logging.getLogger(__name__)


def local_id() -> str:
    return f"local-{int(time.time() * 1000)}"


def content_id(record: Mapping[str, Any]) -> str:
    """Stable id for a stored record that never received one."""
    payload = json.dumps(record, sort_keys=True, default=str)
    return "local-" + hashlib.sha1(payload.encode("utf-8")).hexdigest()[:12]


def _unused(base: str, taken) -> str:
    candidate = base
    n = 1
    while candidate in taken:
        candidate = f"{base}-{n}"
        n += 1
    return candidate


class Loader:
    """Moves records between the remote API, local storage and the cache.

    Every record entering the cache goes through ``from_record`` here, so
    the rest of the engine only ever sees canonical ``Transaction`` and
    ``Budget`` instances. Remote and storage failures degrade to local or
    empty data and are never raised to the caller.
    """

    def __init__(
        self,
        store: CacheStore,
        remote: Optional[RemoteClient] = None,
        id_factory: Callable[[], str] = local_id,
    ):
        self.store = store
        self.storage = store.storage
        self.remote = remote
        self._id_factory = id_factory

    def _fresh_id(self) -> str:
        snapshot = self.store.get_data()
        taken = {t.id for t in snapshot.transactions} | {b.id for b in snapshot.budgets}
        return _unused(self._id_factory(), taken)

    def _ingest(self, records: Iterable[Any], factory) -> tuple:
        # id-less records get an id derived from their content, so repeated
        # loads of the same data agree without writing it back
        items = []
        assigned = set()
        for record in records:
            if not isinstance(record, Mapping):
                logger.warning("skipping malformed record %r", record)
                continue
            item = factory(record)
            if not item.id:
                item = replace(item, id=_unused(content_id(record), assigned))
            assigned.add(item.id)
            items.append(item)
        return tuple(items)

    def _read_local(self, key: str) -> list:
        try:
            return read_json_list(self.storage, key)
        except StorageError as exc:
            logger.warning("ignoring corrupt local state: %s", exc)
            return []

    async def load_transactions(self) -> Tuple[Transaction, ...]:
        if self.remote is not None:
            try:
                records = await self.remote.list_transactions()
            except RemoteUnavailable as exc:
                logger.warning("remote transactions unavailable, using local copy: %s", exc)
            else:
                txs = self._ingest(records, Transaction.from_record)
                self.store.refresh(transactions=txs)
                logger.info("loaded %d transactions from remote", len(txs))
                return txs

        txs = self._ingest(self._read_local(TRANSACTIONS_KEY), Transaction.from_record)
        self.store.refresh(transactions=txs)
        logger.info("loaded %d transactions from local storage", len(txs))
        return txs

    def load_budgets(self) -> Tuple[Budget, ...]:
        budgets = self._ingest(self._read_local(BUDGETS_KEY), Budget.from_record)
        self.store.refresh(budgets=budgets)
        return budgets

    async def fetch_budgets(self) -> Tuple[Budget, ...]:
        """Pull budgets from the remote API into local storage, else load locally."""
        if self.remote is not None:
            try:
                records = await self.remote.list_budgets()
            except RemoteUnavailable as exc:
                logger.warning("remote budgets unavailable, using local copy: %s", exc)
            else:
                budgets = self._ingest(records, Budget.from_record)
                self.store.update_budgets(budgets)
                return budgets
        return self.load_budgets()

    async def add_transaction(self, tx: Union[Transaction, Mapping[str, Any]]) -> Transaction:
        draft = as_transaction(tx)
        created = draft
        if self.remote is not None:
            try:
                body = await self.remote.create_transaction(draft.to_record())
            except RemoteUnavailable as exc:
                logger.warning("transaction kept local only: %s", exc)
            else:
                if body:
                    created = Transaction.from_record({**draft.to_record(), **body})
        if not created.id:
            created = replace(created, id=self._fresh_id())

        # read the cache after the await so concurrent changes are kept
        current = self.store.get_data().transactions
        self.store.update_transactions((created,) + current)
        logger.info("added transaction %s", created.id)
        return created

    async def add_budget(self, budget: Union[Budget, Mapping[str, Any]]) -> Budget:
        draft = as_budget(budget)
        created = draft
        if self.remote is not None:
            try:
                body = await self.remote.create_budget(draft.to_record())
            except RemoteUnavailable as exc:
                logger.warning("budget kept local only: %s", exc)
            else:
                if body:
                    created = Budget.from_record({**draft.to_record(), **body})
        if not created.id:
            created = replace(created, id=self._fresh_id())

        current = self.store.get_data().budgets
        self.store.update_budgets((created,) + current)
        return created

    async def remove_budget(self, budget_id: str) -> bool:
        if self.remote is not None:
            try:
                await self.remote.delete_budget(budget_id)
            except RemoteUnavailable as exc:
                logger.warning("remote delete of budget %s failed: %s", budget_id, exc)

        current = self.store.get_data().budgets
        removed = find_budget(current, budget_id).map(
            lambda found: self.store.update_budgets(b for b in current if b.id != found.id)
        )
        if removed.is_none():
            logger.info("budget %s not in cache", budget_id)
        return removed.is_some()

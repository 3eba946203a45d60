import logging
from typing import Iterable, Optional

from taxpal.aggregate import transactions_of
from taxpal.budgets import budgets_of
from taxpal.domain import Snapshot
from taxpal.events import Listener, Notifier, Subscription
from taxpal.storage import BUDGETS_KEY, TRANSACTIONS_KEY, KeyValueStorage, write_json

logger = logging.getLogger(__name__)


class CacheStore:
    """Owner of the in-memory transactions/budgets snapshot.

    Every mutating call replaces the affected slice, optionally persists it,
    and notifies subscribers exactly once before returning.
    """

    def __init__(self, storage: KeyValueStorage, notifier: Optional[Notifier] = None):
        self.storage = storage
        self.notifier = notifier or Notifier()
        self._snapshot = Snapshot()

    def get_data(self) -> Snapshot:
        return self._snapshot

    def subscribe(self, listener: Listener) -> Subscription:
        return self.notifier.subscribe(listener)

    def update_transactions(self, transactions: Iterable) -> Snapshot:
        return self._commit(transactions=transactions or (), persist=True)

    def update_budgets(self, budgets: Iterable) -> Snapshot:
        return self._commit(budgets=budgets or (), persist=True)

    def refresh(
        self, transactions: Optional[Iterable] = None, budgets: Optional[Iterable] = None
    ) -> Snapshot:
        """Replace slices with freshly loaded data without writing them back."""
        return self._commit(transactions=transactions, budgets=budgets, persist=False)

    def _commit(
        self,
        transactions: Optional[Iterable] = None,
        budgets: Optional[Iterable] = None,
        persist: bool = True,
    ) -> Snapshot:
        current = self._snapshot
        txs = current.transactions if transactions is None else tuple(transactions_of(transactions))
        bgs = current.budgets if budgets is None else tuple(budgets_of(budgets))
        self._snapshot = Snapshot(transactions=txs, budgets=bgs)

        if persist:
            if transactions is not None:
                write_json(self.storage, TRANSACTIONS_KEY, [t.to_record() for t in txs])
            if budgets is not None:
                write_json(self.storage, BUDGETS_KEY, [b.to_record() for b in bgs])

        logger.debug(
            "cache now holds %d transactions, %d budgets", len(txs), len(bgs)
        )
        self.notifier.notify(self._snapshot)
        return self._snapshot

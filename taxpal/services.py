from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Tuple, Union

from taxpal.aggregate import SeriesBundle, aggregate
from taxpal.budgets import budget_category_totals, budget_totals, with_spend
from taxpal.domain import BudgetSpend, PeriodMode, Snapshot
from taxpal.events import Subscription
from taxpal.filters import top_expense_categories
from taxpal.store import CacheStore
from taxpal.summary import PeriodSummary, summarize


@dataclass(frozen=True)
class DashboardView:
    mode: PeriodMode
    series: SeriesBundle
    summary: PeriodSummary
    budgets: Tuple[BudgetSpend, ...]
    budget_totals: Dict[str, float]
    budget_categories: Dict[str, float]
    top_categories: Tuple[Tuple[str, float], ...]


class DashboardService:
    """Facade turning a cache snapshot into what a dashboard page displays.

    clock: zero-argument callable returning the current time. Every view built
    by one ``build`` call uses a single reading of it.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now, top_k: int = 5):
        self.clock = clock
        self.top_k = top_k

    def build(self, snapshot: Snapshot, mode: Union[PeriodMode, str] = PeriodMode.MONTH) -> DashboardView:
        now = self.clock()
        mode = PeriodMode.coerce(mode)
        spends = with_spend(snapshot.budgets, snapshot.transactions, now)
        return DashboardView(
            mode=mode,
            series=aggregate(snapshot.transactions, mode, now),
            summary=summarize(snapshot.transactions, now),
            budgets=spends,
            budget_totals=budget_totals(spends),
            budget_categories=budget_category_totals(snapshot.budgets),
            top_categories=tuple(top_expense_categories(snapshot.transactions, self.top_k)),
        )

    def attach(
        self,
        store: CacheStore,
        on_view: Callable[[DashboardView], None],
        mode: Union[PeriodMode, str] = PeriodMode.MONTH,
    ) -> Subscription:
        """Rebuild the view on every cache change and hand it to ``on_view``."""

        def _listener(snapshot: Snapshot) -> None:
            on_view(self.build(snapshot, mode))

        return store.subscribe(_listener)

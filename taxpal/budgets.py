import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from taxpal.aggregate import transactions_of
from taxpal.domain import Budget, BudgetSpend, Nature, Transaction, month_key

logger = logging.getLogger(__name__)


def as_budget(item: Union[Budget, Mapping[str, Any]]) -> Budget:
    if isinstance(item, Budget):
        return item
    return Budget.from_record(item)


def budgets_of(items: Iterable) -> Iterator[Budget]:
    """Canonical budgets from ``items``, skipping entries that are not records."""
    for item in items:
        if isinstance(item, (Budget, Mapping)):
            yield as_budget(item)
        else:
            logger.warning("skipping malformed budget %r", item)


def budget_status(amount: float, spent: float) -> str:
    remaining = amount - spent
    if spent > amount:
        return f"Overbudget by: ${abs(remaining):.2f}"
    return f"Remaining by: ${abs(remaining):.2f}"


def _matches(budget: Budget, tx: Transaction, now: datetime) -> bool:
    category = budget.category.strip().lower()
    if not category or tx.nature is not Nature.EXPENSE:
        return False
    if tx.category.strip().lower() != category:
        return False
    moment = tx.moment(now)
    if moment is None:
        return False
    month = (budget.month or "").strip()
    return not month or month_key(moment) == month


def spend_for(budget: Budget, transactions: Iterable[Transaction], now: datetime) -> BudgetSpend:
    spent = sum((tx.magnitude for tx in transactions if _matches(budget, tx, now)), 0.0)
    return BudgetSpend(
        id=budget.id,
        category=budget.category,
        amount=budget.amount,
        month=budget.month,
        description=budget.description,
        spent=spent,
        remaining=budget.amount - spent,
        status=budget_status(budget.amount, spent),
    )


def with_spend(
    budgets: Iterable, transactions: Iterable, now: Optional[datetime] = None
) -> Tuple[BudgetSpend, ...]:
    """Attach spent, remaining and status to every budget.

    Only expense transactions of the same category (case-insensitive,
    trimmed) count, restricted to the budget month when one is set.
    Undated transactions count as ``now``; unreadable dates never match.
    Inputs are left untouched.
    """
    now = now or datetime.now()
    txs = tuple(transactions_of(transactions))
    return tuple(spend_for(b, txs, now) for b in budgets_of(budgets))


def budget_category_totals(budgets: Iterable) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for budget in budgets_of(budgets):
        name = budget.category or "Uncategorized"
        totals[name] = totals.get(name, 0.0) + budget.amount
    return totals


def budget_totals(spends: Iterable[BudgetSpend]) -> Dict[str, float]:
    total_budget = 0.0
    total_spent = 0.0
    for s in spends:
        total_budget += s.amount
        total_spent += s.spent
    return {
        "total_budget": total_budget,
        "total_spent": total_spent,
        "total_remaining": total_budget - total_spent,
    }

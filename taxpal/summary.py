import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from taxpal.aggregate import aggregate
from taxpal.domain import PeriodMode

TAX_RATE = 0.03


@dataclass(frozen=True)
class PeriodSummary:
    monthly_income: float
    monthly_expenses: float
    previous_income: float
    previous_expenses: float
    income_change: Optional[int]   # percent vs previous month, None without history
    expense_change: Optional[int]
    savings_rate: int
    estimated_tax: int


def _round(value: float) -> int:
    return math.floor(value + 0.5)


def percent_change(current: float, previous: float) -> Optional[int]:
    if previous <= 0:
        return None
    return _round((current - previous) / previous * 100)


def summarize(transactions: Iterable, now: datetime) -> PeriodSummary:
    """Summary cards for the month of ``now`` compared with the month before."""
    series = aggregate(transactions, PeriodMode.MONTH, now)
    income, expenses = series.income[-1], series.expense[-1]
    prev_income, prev_expenses = series.income[-2], series.expense[-2]

    savings = _round((income - expenses) / income * 100) if income > 0 else 0
    return PeriodSummary(
        monthly_income=income,
        monthly_expenses=expenses,
        previous_income=prev_income,
        previous_expenses=prev_expenses,
        income_change=percent_change(income, prev_income),
        expense_change=percent_change(expenses, prev_expenses),
        savings_rate=savings,
        estimated_tax=_round(income * TAX_RATE),
    )

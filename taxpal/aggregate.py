import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Iterator, Mapping, Tuple, Union

import pandas as pd

from taxpal.domain import Nature, PeriodMode, Transaction, parse_date

logger = logging.getLogger(__name__)

MONTH_WINDOW = 12
QUARTER_LABELS = ("Q1", "Q2", "Q3", "Q4")


@dataclass(frozen=True)
class SeriesBundle:
    labels: Tuple[str, ...]
    income: Tuple[float, ...]
    expense: Tuple[float, ...]

    @property
    def income_total(self) -> float:
        return sum(self.income)

    @property
    def expense_total(self) -> float:
        return sum(self.expense)


def as_transaction(item: Union[Transaction, Mapping[str, Any]]) -> Transaction:
    if isinstance(item, Transaction):
        return item
    return Transaction.from_record(item)


def transactions_of(items: Iterable) -> Iterator[Transaction]:
    """Canonical transactions from ``items``, skipping entries that are not records."""
    for item in items:
        if isinstance(item, (Transaction, Mapping)):
            yield as_transaction(item)
        else:
            logger.warning("skipping malformed transaction %r", item)


def current_time(now: Any) -> datetime:
    current = parse_date(now)
    if current is None:
        raise TypeError(f"now must be a date or datetime, got {now!r}")
    return current


def _frame(transactions: Iterable, now: datetime) -> pd.DataFrame:
    rows = []
    for tx in transactions_of(transactions):
        if tx.nature is Nature.UNKNOWN:
            continue
        moment = tx.moment(now)
        if moment is None:
            continue
        rows.append({"when": moment, "nature": tx.nature.value, "magnitude": tx.magnitude})
    frame = pd.DataFrame(rows, columns=["when", "nature", "magnitude"])
    frame["when"] = pd.to_datetime(frame["when"])
    return frame


def _series(frame: pd.DataFrame, nature: Nature, size: int) -> Tuple[float, ...]:
    picked = frame.loc[frame["nature"] == nature.value]
    sums = picked.groupby("bucket")["magnitude"].sum()
    return tuple(float(sums.get(i, 0.0)) for i in range(size))


def aggregate(transactions: Iterable, mode: Union[PeriodMode, str], now: datetime) -> SeriesBundle:
    """Bucket income and expense magnitudes by calendar period.

    Month and Year modes cover the twelve months ending with the month of
    ``now``, oldest first. Quarter mode covers Q1..Q4 of the year of ``now``.
    Transactions without a date count as ``now``; unreadable dates and
    unclassifiable transactions are left out. Empty buckets stay at zero.
    """
    current = current_time(now)
    frame = _frame(transactions, current)

    if PeriodMode.coerce(mode) is PeriodMode.QUARTER:
        labels = QUARTER_LABELS
        frame = frame.loc[frame["when"].dt.year == current.year]
        frame = frame.assign(bucket=(frame["when"].dt.month - 1) // 3)
    else:
        months = pd.period_range(end=pd.Period(current, freq="M"), periods=MONTH_WINDOW, freq="M")
        labels = tuple(p.strftime("%b") for p in months)
        months_ago = (current.year - frame["when"].dt.year) * 12 + (current.month - frame["when"].dt.month)
        frame = frame.assign(bucket=(MONTH_WINDOW - 1) - months_ago)
        frame = frame.loc[(frame["bucket"] >= 0) & (frame["bucket"] < MONTH_WINDOW)]

    size = len(labels)
    return SeriesBundle(
        labels=labels,
        income=_series(frame, Nature.INCOME, size),
        expense=_series(frame, Nature.EXPENSE, size),
    )

from collections import defaultdict
from datetime import date, datetime
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple

from taxpal.domain import Nature, Transaction

Predicate = Callable[[Transaction], bool]


def iter_transactions(trans: Iterable[Transaction], pred: Predicate) -> Iterator[Transaction]:
    for t in trans:
        if pred(t):
            yield t


def by_text(query: str) -> Predicate:
    needle = query.strip().lower()

    def _filter(t: Transaction) -> bool:
        return any(needle in field.lower() for field in (t.description, t.merchant, t.category, t.notes))

    return _filter


def by_date_range(start: Optional[date], end: Optional[date], now: datetime) -> Predicate:
    # both bounds inclusive, compared by calendar day
    def _filter(t: Transaction) -> bool:
        moment = t.moment(now)
        if moment is None:
            return False
        day = moment.date()
        if start is not None and day < start:
            return False
        if end is not None and day > end:
            return False
        return True

    return _filter


def by_nature(nature: Nature) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.nature is nature

    return _filter


def filter_transactions(
    trans: Iterable[Transaction],
    now: datetime,
    query: str = "",
    start: Optional[date] = None,
    end: Optional[date] = None,
    nature: Optional[Nature] = None,
) -> Tuple[Transaction, ...]:
    predicates = []
    if query.strip():
        predicates.append(by_text(query))
    if start is not None or end is not None:
        predicates.append(by_date_range(start, end, now))
    if nature is not None:
        predicates.append(by_nature(nature))
    return tuple(iter_transactions(trans, lambda t: all(p(t) for p in predicates)))


def top_expense_categories(trans: Iterable[Transaction], k: int) -> Iterator[Tuple[str, float]]:
    totals_by_category: Dict[str, float] = defaultdict(float)

    for t in iter_transactions(trans, by_nature(Nature.EXPENSE)):
        totals_by_category[t.category.strip() or "Uncategorized"] += t.magnitude

    ordered = sorted(totals_by_category.items(), key=lambda item: item[1], reverse=True)

    for name, total in ordered[: max(0, k)]:
        yield name, total

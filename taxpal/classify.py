from typing import Any, Mapping, Union

from taxpal.domain import Nature, Transaction, parse_amount

INCOME_MARKERS = ("credit", "deposit")
EXPENSE_MARKERS = ("debit", "withdraw")


def _field(tx: Union[Transaction, Mapping[str, Any]], name: str) -> Any:
    if isinstance(tx, Mapping):
        return tx.get(name)
    return getattr(tx, name, None)


def classify(tx: Union[Transaction, Mapping[str, Any], None]) -> Nature:
    """Decide whether a transaction is income, expense or unknown.

    An explicit ``type`` hint always wins over the sign of ``amount``.
    """
    if tx is None:
        return Nature.UNKNOWN

    hint = str(_field(tx, "type") or "").strip().lower()
    if hint.startswith("inc") or any(m in hint for m in INCOME_MARKERS):
        return Nature.INCOME
    if hint.startswith("exp") or any(m in hint for m in EXPENSE_MARKERS):
        return Nature.EXPENSE

    amount = parse_amount(_field(tx, "amount"))
    if amount is not None:
        if amount > 0:
            return Nature.INCOME
        if amount < 0:
            return Nature.EXPENSE
    return Nature.UNKNOWN


def is_income(tx) -> bool:
    return classify(tx) is Nature.INCOME


def is_expense(tx) -> bool:
    return classify(tx) is Nature.EXPENSE

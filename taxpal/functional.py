from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Generic, Iterable, Mapping, TypeVar

from taxpal.domain import Budget, Transaction, parse_amount

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass

    def is_none(self) -> bool:
        return not self.is_some()


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    def is_left(self) -> bool:
        return not self.is_right()

    @abstractmethod
    def get_error(self) -> E:
        pass


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Right(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def get_error(self) -> E:
        raise ValueError("Cannot get error from Right")

    def __repr__(self) -> str:
        return f"Right({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Left(self._error)

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def find_budget(budgets: Iterable[Budget], budget_id: str) -> Maybe[Budget]:
    for budget in budgets:
        if budget.id == budget_id:
            return Some(budget)
    return Nothing()


def _parsed_amount(form: Mapping[str, Any]) -> Either[dict, float]:
    amount = parse_amount(form.get("amount"))
    if amount is None:
        return Left({
            "error": "amount_not_numeric",
            "message": f"Amount {form.get('amount')!r} is not a number",
            "amount": form.get("amount"),
        })
    return Right(amount)


def validate_draft(form: Mapping[str, Any], now: datetime) -> Either[dict, Transaction]:
    """Turn a transaction form into an unsaved transaction.

    The amount is stored signed: positive for ``Income``, negative for
    anything else. A missing date becomes ``now``.
    """
    description = str(form.get("description") or "").strip()
    if not description:
        return Left({
            "error": "description_required",
            "message": "Please provide a description",
        })

    tx_type = str(form.get("type") or "Income").strip()
    sign = 1 if tx_type == "Income" else -1
    return _parsed_amount(form).map(lambda amount: Transaction(
        id="",
        description=description,
        amount=abs(amount) * sign,
        category=str(form.get("category") or "").strip(),
        date=str(form.get("date") or "").strip() or now.isoformat(),
        type=tx_type,
        notes=str(form.get("notes") or ""),
        merchant=str(form.get("merchant") or "").strip(),
    ))

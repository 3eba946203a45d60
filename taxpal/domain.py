from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from functools import cached_property
from typing import Any, Mapping, Optional, Tuple

import pandas as pd


class Nature(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    UNKNOWN = "unknown"


class PeriodMode(str, Enum):
    MONTH = "Month"
    QUARTER = "Quarter"
    YEAR = "Year"

    @classmethod
    def coerce(cls, value: Any) -> "PeriodMode":
        # anything unrecognised is read as the monthly view
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for mode in cls:
            if mode.value.lower() == text:
                return mode
        return cls.MONTH


def parse_amount(value: Any) -> Optional[float]:
    """Return ``value`` as a float, or None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def parse_date(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 value into a naive datetime.

    Timezone-aware inputs are converted to UTC before the zone is dropped.
    Returns None for anything pandas cannot read.
    """
    if not isinstance(value, (datetime, date, str)):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        if isinstance(value, str):
            stamp = pd.to_datetime(value.strip(), errors="coerce")
        else:
            stamp = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(stamp):
        return None
    if stamp.tzinfo is not None:
        stamp = stamp.tz_convert(None)
    return stamp.to_pydatetime()


def month_key(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = str(value)
    return text if text.strip() else None


def _record_id(record: Mapping[str, Any]) -> Optional[str]:
    for key in ("id", "_id"):
        raw = record.get(key)
        if raw is not None and str(raw).strip():
            return str(raw)
    return None


@dataclass(frozen=True)
class Transaction:
    id: str
    description: str = ""
    amount: Optional[float] = None  # sign is not guaranteed, see nature
    category: str = ""
    date: Optional[str] = None      # ISO-8601 text as received
    type: Optional[str] = None      # free-text hint such as "Income" or "debit"
    notes: str = ""
    merchant: str = ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any], fallback_id: str = "") -> "Transaction":
        return cls(
            id=_record_id(record) or fallback_id,
            description=_text(record.get("description")),
            amount=parse_amount(record.get("amount")),
            category=_text(record.get("category")),
            date=_optional_text(record.get("date")),
            type=_optional_text(record.get("type")),
            notes=_text(record.get("notes")),
            merchant=_text(record.get("merchant")),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount": self.amount,
            "category": self.category,
            "date": self.date,
            "type": self.type,
            "notes": self.notes,
            "merchant": self.merchant,
        }

    @cached_property
    def nature(self) -> Nature:
        # decided once per record; the instance is immutable
        from taxpal.classify import classify

        return classify(self)

    @property
    def magnitude(self) -> float:
        return abs(self.amount or 0.0)

    def moment(self, now: datetime) -> Optional[datetime]:
        """When the transaction happened: ``now`` if undated, None if unreadable."""
        if self.date is None:
            return now
        return parse_date(self.date)


@dataclass(frozen=True)
class Budget:
    id: str
    category: str
    amount: float          # ceiling
    month: Optional[str] = None  # "YYYY-MM"
    description: str = ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any], fallback_id: str = "") -> "Budget":
        ceiling = parse_amount(record.get("budget")) or parse_amount(record.get("amount")) or 0.0
        return cls(
            id=_record_id(record) or fallback_id,
            category=_text(record.get("category")),
            amount=ceiling,
            month=_optional_text(record.get("month")),
            description=_text(record.get("description")),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "amount": self.amount,
            "month": self.month,
            "description": self.description,
        }


@dataclass(frozen=True)
class BudgetSpend:
    """A budget with its derived consumption fields."""

    id: str
    category: str
    amount: float
    month: Optional[str]
    description: str
    spent: float
    remaining: float
    status: str

    @property
    def over_budget(self) -> bool:
        return self.spent > self.amount

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "amount": self.amount,
            "month": self.month,
            "description": self.description,
            "spent": self.spent,
            "remaining": self.remaining,
            "status": self.status,
        }


@dataclass(frozen=True)
class Snapshot:
    transactions: Tuple[Transaction, ...] = field(default_factory=tuple)
    budgets: Tuple[Budget, ...] = field(default_factory=tuple)

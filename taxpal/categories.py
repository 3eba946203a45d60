import logging
from typing import Iterable, List

from taxpal.budgets import budgets_of
from taxpal.errors import StorageError
from taxpal.functional import Either, Left, Right
from taxpal.storage import CATEGORIES_KEY, KeyValueStorage, read_json_list, write_json

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = ("Salary", "Rent", "Groceries", "Utilities", "Other")


def _unique(names: Iterable) -> List[str]:
    seen = []
    for name in names:
        if isinstance(name, str) and name and name not in seen:
            seen.append(name)
    return seen


def stored_categories(storage: KeyValueStorage) -> List[str]:
    try:
        return _unique(read_json_list(storage, CATEGORIES_KEY))
    except StorageError as exc:
        logger.warning("ignoring stored categories: %s", exc)
        return []


def load_categories(storage: KeyValueStorage, budgets: Iterable = ()) -> List[str]:
    """Stored names, then names used by budgets, then the defaults."""
    from_budgets = [b.category for b in budgets_of(budgets)]
    combined = _unique([*stored_categories(storage), *from_budgets, *DEFAULT_CATEGORIES])
    return combined or list(DEFAULT_CATEGORIES)


def merge_budget_categories(storage: KeyValueStorage, categories: List[str], budgets: Iterable) -> List[str]:
    """Add categories introduced by budgets, persisting only when something is new."""
    combined = _unique([*categories, *(b.category for b in budgets_of(budgets))])
    if len(combined) != len(categories):
        write_json(storage, CATEGORIES_KEY, combined)
    return combined


def _new_name(categories: List[str], name: str) -> Either[dict, str]:
    trimmed = (name or "").strip()
    if not trimmed:
        return Left({"error": "category_empty", "message": "Category name is empty"})
    if trimmed in categories:
        return Left({"error": "category_exists", "message": "Category exists", "category": trimmed})
    return Right(trimmed)


def _saved(storage: KeyValueStorage, categories: List[str]) -> List[str]:
    write_json(storage, CATEGORIES_KEY, categories)
    return categories


def add_category(storage: KeyValueStorage, categories: List[str], name: str) -> Either[dict, List[str]]:
    return _new_name(categories, name).map(lambda trimmed: _saved(storage, [*categories, trimmed]))


def remove_category(storage: KeyValueStorage, categories: List[str], name: str) -> List[str]:
    return _saved(storage, [c for c in categories if c != name])

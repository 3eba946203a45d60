"""Best-effort local key-value persistence.

Values are text (JSON documents in practice), addressed by short keys, the
way a browser's local storage is used by the dashboard pages.
"""

import hashlib
import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from taxpal.errors import StorageError

logger = logging.getLogger(__name__)

TRANSACTIONS_KEY = "tp_transactions"
BUDGETS_KEY = "tp_budgets"
CATEGORIES_KEY = "tp_categories"

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStorage(ABC):

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass

    def changed_keys(self) -> List[str]:
        """Keys written by someone else since the last call."""
        return []


class MemoryStorage(KeyValueStorage):

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage(KeyValueStorage):
    """One file per key under ``root``.

    Several processes may share a directory; ``changed_keys`` reports
    writes that did not come from this instance.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._seen: Dict[str, str] = self._fingerprints()

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"invalid storage key: {key!r}")
        return self.root / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(key, f"unreadable file: {exc}") from exc

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp, path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise
        self._seen[key] = _digest(value.encode("utf-8"))

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
        self._seen.pop(key, None)

    def _fingerprints(self) -> Dict[str, str]:
        prints = {}
        for path in self.root.glob("*.json"):
            try:
                prints[path.stem] = _digest(path.read_bytes())
            except OSError:
                continue
        return prints

    def changed_keys(self) -> List[str]:
        current = self._fingerprints()
        changed = sorted(
            key for key in set(current) | set(self._seen)
            if current.get(key) != self._seen.get(key)
        )
        self._seen = current
        return changed


def _digest(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def read_json(storage: KeyValueStorage, key: str, default: Any = None) -> Any:
    raw = storage.get_item(key)
    if raw is None or not raw.strip():
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageError(key, f"unreadable JSON ({exc.msg})") from exc


def read_json_list(storage: KeyValueStorage, key: str) -> List[Any]:
    value = read_json(storage, key, default=[])
    if not isinstance(value, list):
        raise StorageError(key, f"expected a JSON array, got {type(value).__name__}")
    return value


def write_json(storage: KeyValueStorage, key: str, value: Any) -> bool:
    """Persist ``value``; failures are logged and reported as False."""
    try:
        storage.set_item(key, json.dumps(value))
    except (OSError, TypeError, ValueError):
        logger.warning("could not persist %s", key, exc_info=True)
        return False
    return True

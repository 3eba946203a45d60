import inspect
import itertools
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, NamedTuple

from taxpal.domain import Snapshot

__all__ = [
    'Event', 'EventBus', 'Notifier', 'Subscription',
    'TRANSACTIONS_CHANGED', 'BUDGETS_CHANGED',
]

logger = logging.getLogger(__name__)

TRANSACTIONS_CHANGED = "tp_transactions_changed"
BUDGETS_CHANGED = "tp_budgets_changed"

Listener = Callable[[Snapshot], None]
Handler = Callable[["Event", dict], Any]


class Subscription:
    """Handle returned by ``subscribe``; calling it more than once is harmless."""

    def __init__(self, release: Callable[[], None]):
        self._release = release
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._release()

    __call__ = unsubscribe


class Notifier:
    """Synchronous fan-out of cache snapshots to independent listeners."""

    def __init__(self):
        self._listeners: Dict[int, Listener] = {}
        self._ids = itertools.count()

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Subscription:
        token = next(self._ids)
        self._listeners[token] = listener
        return Subscription(lambda: self._listeners.pop(token, None))

    def notify(self, snapshot: Snapshot) -> int:
        delivered = 0
        # copy: listeners may unsubscribe while being notified
        for listener in list(self._listeners.values()):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("snapshot listener %r failed", listener)
                continue
            delivered += 1
        return delivered


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


class EventBus:
    """Named in-process change signals."""

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> Subscription:
        self._subscribers.setdefault(name, []).append(handler)
        return Subscription(lambda: self.unsubscribe(name, handler))

    def publish(self, name: str, payload: dict | None = None) -> List[Any]:
        if name not in self._subscribers:
            return []

        payload = payload or {}
        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )

        results = []
        for handler in list(self._subscribers[name]):
            try:
                result = handler(event, payload)
            except Exception:
                logger.exception("handler %r for %s failed", handler, name)
                continue
            results.append(result)
        return results

    async def emit(self, name: str, payload: dict | None = None) -> List[Any]:
        """Publish and await whatever coroutines the handlers returned."""
        results = []
        for result in self.publish(name, payload):
            if inspect.isawaitable(result):
                try:
                    result = await result
                except Exception:
                    logger.exception("async handler for %s failed", name)
                    continue
            results.append(result)
        return results

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)

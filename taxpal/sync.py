import asyncio
import logging
from typing import List, Optional

from taxpal.events import BUDGETS_CHANGED, TRANSACTIONS_CHANGED, Event, EventBus
from taxpal.loader import Loader
from taxpal.storage import BUDGETS_KEY, TRANSACTIONS_KEY

logger = logging.getLogger(__name__)

WATCHED_KEYS = (TRANSACTIONS_KEY, BUDGETS_KEY)


class SyncController:
    """Re-runs the loader when data changes outside the current view.

    Two sources are handled: named signals published on the in-process
    ``EventBus`` and writes to shared storage made by other processes.
    Overlapping reloads are not cancelled; whichever finishes last wins.
    """

    def __init__(self, loader: Loader, bus: Optional[EventBus] = None):
        self.loader = loader
        self.bus = bus or EventBus()
        self._subscriptions = [
            self.bus.subscribe(TRANSACTIONS_CHANGED, self._on_transactions_changed),
            self.bus.subscribe(BUDGETS_CHANGED, self._on_budgets_changed),
        ]

    def _on_transactions_changed(self, event: Event, payload: dict):
        return self.loader.load_transactions()

    def _on_budgets_changed(self, event: Event, payload: dict):
        return self.loader.load_budgets()

    async def signal(self, name: str) -> None:
        await self.bus.emit(name)

    async def poll_storage(self) -> List[str]:
        """Reload everything if another writer touched a watched key."""
        changed = [key for key in self.loader.storage.changed_keys() if key in WATCHED_KEYS]
        if changed:
            logger.info("storage changed elsewhere: %s", ", ".join(changed))
            await self.loader.load_transactions()
            self.loader.load_budgets()
        return changed

    async def watch(self, interval: float, stop: asyncio.Event) -> None:
        while not stop.is_set():
            await self.poll_storage()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

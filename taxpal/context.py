import asyncio
import logging
from typing import Optional

from taxpal.config import Settings, configure_logging, get_settings
from taxpal.domain import Snapshot
from taxpal.events import EventBus
from taxpal.loader import Loader
from taxpal.remote import RemoteClient
from taxpal.storage import FileStorage, KeyValueStorage
from taxpal.store import CacheStore
from taxpal.sync import SyncController

logger = logging.getLogger(__name__)


class TaxpalContext:
    """Explicitly constructed engine: one store, its loader and sync wiring.

    Pages receive this object (or its ``store``) instead of reaching for a
    module-level singleton. ``start`` performs the initial load and ``close``
    tears everything down.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        remote: Optional[RemoteClient] = None,
        bus: Optional[EventBus] = None,
        poll_interval: float = 2.0,
    ):
        self.storage = storage
        self.remote = remote
        self.store = CacheStore(storage)
        self.loader = Loader(self.store, remote)
        self.sync = SyncController(self.loader, bus)
        self.poll_interval = poll_interval
        self._stop = asyncio.Event()
        self._watcher: Optional[asyncio.Task] = None

    @classmethod
    def create(cls, settings: Optional[Settings] = None) -> "TaxpalContext":
        settings = settings or get_settings()
        configure_logging(settings.log_level)
        remote = None
        if settings.api_base_url:
            remote = RemoteClient(settings.api_base_url, timeout=settings.api_timeout_secs)
        return cls(
            FileStorage(settings.data_dir),
            remote=remote,
            poll_interval=settings.poll_interval_secs,
        )

    async def start(self, watch: bool = False) -> Snapshot:
        await self.loader.load_transactions()
        self.loader.load_budgets()
        if watch and self._watcher is None:
            self._stop.clear()
            self._watcher = asyncio.create_task(self.sync.watch(self.poll_interval, self._stop))
        return self.store.get_data()

    async def close(self) -> None:
        self._stop.set()
        if self._watcher is not None:
            await self._watcher
            self._watcher = None
        self.sync.close()
        if self.remote is not None:
            self.remote.close()
        logger.debug("context closed")

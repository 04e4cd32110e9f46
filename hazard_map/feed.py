import asyncio
import logging
from typing import Callable, Optional

from .errors import FeedError
from .models import MarkerSet

logger = logging.getLogger(__name__)


class EventFeed:
    """Live view of the remote collection as whole MarkerSets.

    One subscription per feed. Snapshots arrive on the store's listener
    thread and are handed to the subscriber on the event loop that called
    `subscribe`. Marker order is whatever the backend sends.
    """

    def __init__(self, store):
        self.store = store
        self.snapshots = 0
        self._handle = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._on_markers: Optional[Callable[[MarkerSet], None]] = None
        self._loaded = asyncio.Event()
        self._closed = False

    @property
    def loaded(self) -> bool:
        return self._loaded.is_set()

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, on_markers: Callable[[MarkerSet], None]) -> None:
        if self._closed:
            raise FeedError("feed already closed")
        if self._handle is not None:
            raise FeedError("feed already subscribed")
        self._loop = asyncio.get_running_loop()
        self._on_markers = on_markers
        self._handle = self.store.listen(self._on_documents)
        logger.info("subscribed to %s", getattr(self.store, "name", "events"))

    def _on_documents(self, documents) -> None:
        # listener thread
        markers = MarkerSet.from_snapshot(documents)
        try:
            self._loop.call_soon_threadsafe(self._deliver, markers)
        except RuntimeError:
            logger.debug("event loop closed, dropping snapshot")

    def _deliver(self, markers: MarkerSet) -> None:
        if self._closed:
            return
        self.snapshots += 1
        self._on_markers(markers)
        if not self._loaded.is_set():
            logger.info("initial snapshot: %d events", len(markers))
            self._loaded.set()

    async def wait_loaded(self) -> None:
        await self._loaded.wait()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.unsubscribe()
            logger.info("unsubscribed from %s", getattr(self.store, "name", "events"))

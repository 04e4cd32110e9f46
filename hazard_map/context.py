"""
Application context
===================

`AppContext` is created once per process and owns only what every visitor
shares: the event store, the anonymous Firebase identity and the single feed
subscription. Each browser session gets a `SessionContext` with its own
viewport, dialogs, legend state and permission/position pipeline; the shared
feed pushes every snapshot to all attached session presenters.

The core is single-threaded: every method here runs on one asyncio loop.
For the Streamlit surface that loop lives on a `LoopThread` and the script
thread talks to it only through `Runtime.call` / `Runtime.invoke`.
"""

import asyncio
import logging
import threading
import weakref
from typing import Coroutine, Optional, Tuple

from .backend import AnonymousAuth, FirestoreEventStore, init_firebase
from .config import Settings
from .device import BrowserDevice, detect_platform
from .dialogs import CategorySelector, ConfirmDialog
from .errors import AuthenticationFailure, HazardMapError
from .feed import EventFeed
from .interaction import InteractionController
from .models import Coordinate, MarkerSet
from .notices import NoticeBoard
from .permissions import select_permission_gate
from .position import PositionProvider, locate
from .presenter import MapPresenter

logger = logging.getLogger(__name__)


class _TaskOwner:
    closed = False

    def __init__(self):
        self._tasks = set()

    def spawn(self, coro: Coroutine) -> Optional[asyncio.Task]:
        if self.closed:
            coro.close()
            return None
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background task failed", exc_info=exc)

    async def _cancel_tasks(self) -> None:
        tasks = [t for t in self._tasks if not t.done()]
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class AppContext(_TaskOwner):
    """Process-wide state: store, anonymous identity, the one feed subscription."""

    def __init__(self, settings: Settings, store, auth):
        super().__init__()
        self.settings = settings
        self.store = store
        self.auth = auth
        self.feed = EventFeed(store)
        self.markers: Optional[MarkerSet] = None
        self._views = weakref.WeakSet()
        self._sessions = weakref.WeakSet()
        self.started = False

    # ---------------- lifecycle ----------------
    async def start(self) -> None:
        if self.started:
            return
        self.started = True
        self.feed.subscribe(self._broadcast)
        self.spawn(self._sign_in())

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.feed.close()
        for session in list(self._sessions):
            await session.close()
        await self._cancel_tasks()
        logger.info("context closed")

    async def _sign_in(self) -> None:
        try:
            await self.auth.sign_in_anonymously()
        except AuthenticationFailure as e:
            logger.error("%s", e)

    # ---------------- feed fan-out ----------------
    def _broadcast(self, markers: MarkerSet) -> None:
        self.markers = markers
        for view in list(self._views):
            view.apply_snapshot(markers)

    def attach(self, presenter: MapPresenter) -> None:
        self._views.add(presenter)
        if self.markers is not None:
            presenter.apply_snapshot(self.markers)

    def detach(self, presenter: MapPresenter) -> None:
        self._views.discard(presenter)

    def release(self, session: "SessionContext") -> None:
        self.detach(session.presenter)
        self._sessions.discard(session)

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    # ---------------- sessions ----------------
    def open_session(self, device, notifier,
                     platform: Tuple[str, Optional[int]] = ("web", None)) -> "SessionContext":
        if self.closed:
            raise HazardMapError("context is closed")
        session = SessionContext(self, device, notifier, platform)
        self._sessions.add(session)
        session.start()
        return session


class SessionContext(_TaskOwner):
    """One visitor: viewport, dialogs, legend and the location pipeline."""

    def __init__(self, app: AppContext, device, notifier, platform: Tuple[str, Optional[int]]):
        super().__init__()
        self.app = app
        self.device = device
        self.notifier = notifier
        self.platform = platform

        self.selector = CategorySelector()
        self.confirm = ConfirmDialog()
        self.controller = InteractionController(app.store, self.selector, self.confirm)
        self.presenter = MapPresenter(self.controller, app.settings.default_region)
        self.gate = select_permission_gate(platform[0], platform[1], device, notifier)
        self.provider = PositionProvider(device, app.settings.position)

    def start(self) -> None:
        logger.info("session on %s (gate: %s)", self.platform[0], type(self.gate).__name__)
        self.app.attach(self.presenter)
        self.spawn(self._locate())

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.app.release(self)
        self.selector.dismiss()
        self.confirm.dismiss()
        close_device = getattr(self.device, "close", None)
        if close_device is not None:
            close_device()
        await self._cancel_tasks()

    async def _locate(self) -> None:
        coordinate = await locate(self.gate, self.provider)
        if coordinate is not None and not self.closed:
            logger.info("framing map at %.5f, %.5f", coordinate.latitude, coordinate.longitude)
            self.presenter.apply_position(coordinate)

    # ---------------- gestures (call on the loop) ----------------
    def long_press(self, latitude: float, longitude: float) -> None:
        self.spawn(self.presenter.on_long_press(Coordinate(float(latitude), float(longitude))))

    def callout_press(self, event_id: str) -> None:
        self.spawn(self.presenter.on_callout_press(event_id))


class LoopThread:
    """A private asyncio loop running on a daemon thread."""

    def __init__(self, name: str = "hazard-map-loop"):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "LoopThread":
        self._thread.start()
        return self

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_forever()
        finally:
            self.loop.close()

    def submit(self, coro):
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(self, fn, *args) -> None:
        self.loop.call_soon_threadsafe(fn, *args)

    def stop(self, timeout: float = 5.0) -> None:
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout)


class Runtime:
    """AppContext + the thread its loop runs on, for synchronous surfaces."""

    def __init__(self, context: AppContext, loop_thread: LoopThread):
        self.context = context
        self.loop_thread = loop_thread
        self._stopped = False

    @classmethod
    def launch(cls, context: AppContext) -> "Runtime":
        loop_thread = LoopThread().start()
        loop_thread.submit(context.start()).result(timeout=30)
        return cls(context, loop_thread)

    def call(self, fn, *args) -> None:
        self.loop_thread.call(fn, *args)

    def invoke(self, fn, *args, timeout: float = 5.0):
        """Run `fn` on the loop, give spawned tasks one step, and return its result."""
        async def _invoke():
            result = fn(*args)
            await asyncio.sleep(0)
            return result
        return self.loop_thread.submit(_invoke()).result(timeout)

    def open_session(self, device, notifier, platform=("web", None)) -> SessionContext:
        return self.invoke(self.context.open_session, device, notifier, platform)

    def open_browser_session(self, user_agent: Optional[str] = None) -> SessionContext:
        settings = self.context.settings
        platform = (settings.platform, None) if settings.platform else detect_platform(user_agent)
        return self.open_session(BrowserDevice(settings.position), NoticeBoard(), platform)

    def shutdown(self, timeout: float = 10.0) -> None:
        if self._stopped:
            return
        self._stopped = True
        try:
            self.loop_thread.submit(self.context.close()).result(timeout=timeout)
        finally:
            self.loop_thread.stop()


def build_context(settings: Settings) -> AppContext:
    """Wire the Firebase-backed process context for the web surface."""
    db = init_firebase(settings)
    return AppContext(settings, store=FirestoreEventStore(db, settings.collection), auth=AnonymousAuth())

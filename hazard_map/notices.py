"""User-facing notices.

Core code (running on the event loop) posts notices here; the surface drains
them on its own thread and shows toasts or blocking alerts. Alert actions are
handed back to the loop to run.
"""

import asyncio
import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

TOAST = "toast"
ALERT = "alert"

_ids = itertools.count(1)
_background = set()


@dataclass(frozen=True)
class NoticeAction:
    label: str
    callback: Optional[Callable[[], Any]] = None

    def run(self) -> None:
        """Invoke the action on the running loop; coroutine results are fire-and-forget."""
        if self.callback is None:
            return
        result = self.callback()
        if asyncio.iscoroutine(result):
            task = asyncio.ensure_future(result)
            _background.add(task)
            task.add_done_callback(_background.discard)


@dataclass(frozen=True)
class Notice:
    kind: str
    title: str
    message: str = ""
    actions: Tuple[NoticeAction, ...] = ()
    id: int = field(default_factory=lambda: next(_ids))


class NoticeBoard:
    def __init__(self):
        self._lock = threading.Lock()
        self._pending = deque()

    def toast(self, message: str) -> Notice:
        return self._post(Notice(TOAST, message))

    def alert(self, title: str, message: str = "", actions=()) -> Notice:
        return self._post(Notice(ALERT, title, message, tuple(actions)))

    def _post(self, notice: Notice) -> Notice:
        logger.info("notice (%s): %s %s", notice.kind, notice.title, notice.message)
        with self._lock:
            self._pending.append(notice)
        return notice

    def drain(self) -> List[Notice]:
        with self._lock:
            items = list(self._pending)
            self._pending.clear()
        return items

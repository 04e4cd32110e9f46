"""Modal dialogs as pending requests.

`show()` suspends the calling coroutine until the surface calls `resolve()`
or `dismiss()`. There is one slot per dialog: showing a dialog that is
already visible raises DialogBusy.
"""

import asyncio
import inspect
import logging
from typing import Any, Optional, Sequence, Tuple

from .categories import CATEGORY_OPTIONS, SELECTION_TITLE, CategoryOption
from .errors import DialogBusy

logger = logging.getLogger(__name__)


class PendingDialog:
    def __init__(self, title: str):
        self.title = title
        self._pending: Optional[asyncio.Future] = None

    @property
    def visible(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def show(self) -> Any:
        if self.visible:
            raise DialogBusy(f"{self.title!r} is already open")
        fut = asyncio.get_running_loop().create_future()
        self._pending = fut
        try:
            return await fut
        finally:
            if self._pending is fut:
                self._pending = None

    def resolve(self, value: Any) -> bool:
        fut, self._pending = self._pending, None
        if fut is None or fut.done():
            logger.debug("%r: nothing to resolve", self.title)
            return False
        fut.set_result(value)
        return True

    def dismiss(self) -> bool:
        return self.resolve(None)


class CategorySelector(PendingDialog):
    def __init__(self, options: Sequence[CategoryOption] = CATEGORY_OPTIONS, title: str = SELECTION_TITLE):
        super().__init__(title)
        self.options: Tuple[CategoryOption, ...] = tuple(options)

    def select(self, option: CategoryOption) -> bool:
        if option not in self.options:
            raise ValueError(f"unknown category {option!r}")
        return self.resolve(option)


class ConfirmDialog(PendingDialog):
    CANCEL = "Cancelar"
    CONFIRM = "Excluir"

    def __init__(self, title: str = "Aviso"):
        super().__init__(title)
        self.message = ""
        self.choices = (self.CANCEL, self.CONFIRM)

    async def ask(self, message: str) -> bool:
        self.message = message
        return (await self.show()) == self.CONFIRM

    def confirm(self) -> bool:
        return self.resolve(self.CONFIRM)

    def cancel(self) -> bool:
        return self.resolve(self.CANCEL)


CLOSE_HINT = "Toque em Cancelar para fechar."


def dismiss_options(dialog_decorator, on_close) -> dict:
    """Keyword arguments that make closing the modal (X / Esc) call `on_close`.

    Only Streamlit releases whose `st.dialog` takes `on_dismiss` can report
    the close; older ones get no extra arguments and rely on Cancelar.
    """
    try:
        params = inspect.signature(dialog_decorator).parameters
    except (TypeError, ValueError):
        return {}
    if "on_dismiss" not in params:
        return {}
    return {"on_dismiss": on_close}

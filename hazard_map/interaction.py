import logging
from typing import Optional

from .dialogs import CategorySelector, ConfirmDialog
from .errors import RemoteWriteFailure
from .models import Coordinate, EventRecord

logger = logging.getLogger(__name__)

DELETE_MESSAGE = "Deseja excluir o marcador?"


class InteractionController:
    """Turns gestures into writes on the remote collection.

    Nothing is inserted into or removed from the marker set here; the
    change shows up when the feed delivers the next snapshot.
    """

    def __init__(self, store, selector: CategorySelector = None, confirm: ConfirmDialog = None):
        self.store = store
        self.selector = selector or CategorySelector()
        self.confirm = confirm or ConfirmDialog()

    @property
    def busy(self) -> bool:
        return self.selector.visible or self.confirm.visible

    async def create(self, coordinate: Coordinate) -> Optional[str]:
        option = await self.selector.show()
        if option is None:
            logger.debug("category selection dismissed")
            return None
        fields = {**option.to_fields(), **coordinate.to_fields()}
        try:
            event_id = await self.store.add(fields)
        except RemoteWriteFailure as e:
            logger.error("create failed: %s", e)
            return None
        logger.info("created event %s (%s)", event_id, option.label)
        return event_id

    async def delete(self, record: EventRecord) -> bool:
        if not await self.confirm.ask(DELETE_MESSAGE):
            return False
        try:
            await self.store.delete(record.id)
        except RemoteWriteFailure as e:
            logger.error("delete failed: %s", e)
            return False
        logger.info("deleted event %s", record.id)
        return True

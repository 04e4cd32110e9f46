import asyncio
import logging
from typing import Optional

from .config import PositionOptions
from .errors import PositionError, PositionTimeout
from .models import Coordinate

logger = logging.getLogger(__name__)


class PositionProvider:
    """One-shot device position with a hard timeout. Never retries."""

    def __init__(self, device, options: PositionOptions = PositionOptions()):
        self.device = device
        self.options = options

    async def get_current_position(self) -> Coordinate:
        try:
            return await asyncio.wait_for(
                self.device.get_current_position(self.options),
                timeout=self.options.timeout,
            )
        except asyncio.TimeoutError:
            raise PositionTimeout(f"no position fix within {self.options.timeout:g}s") from None


async def locate(gate, provider: PositionProvider) -> Optional[Coordinate]:
    """Run the permission gate and, only if it grants, fetch one position.

    Returns None when there is no capability or the fix failed; callers keep
    their default region in that case.
    """
    if not await gate.check_and_request():
        logger.info("no location capability, keeping default region")
        return None
    try:
        return await provider.get_current_position()
    except PositionError as e:
        logger.warning("position error %s: %s", e.code, e)
        return None

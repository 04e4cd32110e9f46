import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .categories import CATEGORY_OPTIONS, CategoryOption
from .errors import DialogBusy
from .models import DEFAULT_REGION, Coordinate, EventRecord, MarkerSet, RegionState

logger = logging.getLogger(__name__)

PIN_TITLE = "Aviso"
# ~10 cm at the equator; folium echoes back the marker's own coordinate
MATCH_TOLERANCE = 1e-6


@dataclass(frozen=True)
class Pin:
    id: str
    title: str
    description: str
    color: str
    latitude: float
    longitude: float


class MapPresenter:
    """Owns what the map shows: region, markers, loading flag and legend state."""

    def __init__(self, controller, region: RegionState = DEFAULT_REGION):
        self.controller = controller
        self.region = region
        self.markers = MarkerSet()
        self.loading = True
        self.user_position: Optional[Coordinate] = None
        self.legend_expanded = False
        self._positioned = False

    # ---- state coming in ----
    def apply_snapshot(self, markers: MarkerSet) -> None:
        self.markers = markers
        self.loading = False

    def apply_position(self, coordinate: Coordinate) -> None:
        if self._positioned:
            logger.debug("region already framed, ignoring %s", coordinate)
            return
        self._positioned = True
        self.user_position = coordinate
        self.region = self.region.recentered(coordinate)

    # ---- legend ----
    def toggle_legend(self) -> bool:
        self.legend_expanded = not self.legend_expanded
        return self.legend_expanded

    @staticmethod
    def legend() -> Tuple[CategoryOption, ...]:
        return CATEGORY_OPTIONS

    # ---- gestures ----
    async def on_long_press(self, coordinate: Coordinate) -> Optional[str]:
        if self.controller.busy:
            logger.info("dialog open, ignoring long press at %s", coordinate)
            return None
        try:
            return await self.controller.create(coordinate)
        except DialogBusy as e:
            logger.info("%s", e)
            return None

    async def on_callout_press(self, event_id: str) -> bool:
        record = self.markers.get(event_id)
        if record is None:
            logger.info("marker %s is no longer on the map", event_id)
            return False
        if self.controller.busy:
            logger.info("dialog open, ignoring callout press on %s", event_id)
            return False
        try:
            return await self.controller.delete(record)
        except DialogBusy as e:
            logger.info("%s", e)
            return False

    # ---- output ----
    def pins(self) -> List[Pin]:
        return [
            Pin(r.id, PIN_TITLE, r.value, r.marker_color, r.latitude, r.longitude)
            for r in self.markers
        ]

    def marker_at(self, latitude: float, longitude: float) -> Optional[EventRecord]:
        for rec in self.markers:
            if abs(rec.latitude - latitude) <= MATCH_TOLERANCE and abs(rec.longitude - longitude) <= MATCH_TOLERANCE:
                return rec
        return None

"""
Data model
==========

`EventRecord` is one hazard document as the backend stores it. Its identity is
the Firestore document id and nothing else: the client never invents one.

`MarkerSet` is always rebuilt from a whole snapshot; there is no patch
operation.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

VALUE_FIELD = "value"
COLOR_FIELD = "markerColor"
LAT_FIELD = "latitude"
LNG_FIELD = "longitude"
_KNOWN_FIELDS = (VALUE_FIELD, COLOR_FIELD, LAT_FIELD, LNG_FIELD)


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def to_fields(self) -> dict:
        return {LAT_FIELD: float(self.latitude), LNG_FIELD: float(self.longitude)}


@dataclass(frozen=True)
class EventRecord:
    id: str
    value: str
    marker_color: str
    latitude: float
    longitude: float
    # any other stored fields, carried through untouched
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    @classmethod
    def from_document(cls, doc_id: str, data: Optional[dict]) -> "EventRecord":
        """Build a record from a document id and its stored fields.

        Raises ValueError / TypeError when the coordinate is missing or not numeric.
        """
        data = dict(data or {})
        lat = data.get(LAT_FIELD)
        lng = data.get(LNG_FIELD)
        if lat is None or lng is None:
            raise ValueError(f"document {doc_id} has no coordinate")
        return cls(
            id=doc_id,
            value=str(data.get(VALUE_FIELD) or ""),
            marker_color=str(data.get(COLOR_FIELD) or ""),
            latitude=float(lat),
            longitude=float(lng),
            extra={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )


@dataclass(frozen=True)
class RegionState:
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float

    def recentered(self, coordinate: Coordinate) -> "RegionState":
        return replace(self, latitude=coordinate.latitude, longitude=coordinate.longitude)


DEFAULT_REGION = RegionState(
    latitude=37.78825,
    longitude=-122.4324,
    latitude_delta=0.015,
    longitude_delta=0.0121,
)


class MarkerSet:
    """Immutable, ordered set of records keyed by identity."""

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[EventRecord] = ()):
        seen = set()
        kept = []
        for rec in records:
            if rec.id in seen:
                continue
            seen.add(rec.id)
            kept.append(rec)
        self._records: Tuple[EventRecord, ...] = tuple(kept)

    @classmethod
    def from_snapshot(cls, documents: Iterable[Tuple[str, Optional[dict]]]) -> "MarkerSet":
        records = []
        for doc_id, data in documents:
            try:
                records.append(EventRecord.from_document(doc_id, data))
            except (TypeError, ValueError) as e:
                logger.warning("skipping malformed event %s: %s", doc_id, e)
        return cls(records)

    def ids(self) -> Tuple[str, ...]:
        return tuple(r.id for r in self._records)

    def get(self, event_id: str) -> Optional[EventRecord]:
        for rec in self._records:
            if rec.id == event_id:
                return rec
        return None

    def __iter__(self) -> Iterator[EventRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, event_id) -> bool:
        return self.get(event_id) is not None

    def __eq__(self, other) -> bool:
        if not isinstance(other, MarkerSet):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return f"MarkerSet({list(self.ids())!r})"

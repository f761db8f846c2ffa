"""
Domain types for the declutter engine.

Geographic and screen-space value objects, the Event record with its
ingestion-boundary validation, and the per-pass output records.  Every
module in the package speaks in these types, never raw dicts.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from declutter.errors import EventValidationError

# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GeoPoint:
    """WGS84 coordinate in degrees."""
    lat: float
    lng: float


@dataclass(frozen=True)
class PixelPoint:
    """Screen-space point in container pixels (y grows downward)."""
    x: float
    y: float

    def distance_to(self, other: "PixelPoint") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


@dataclass(frozen=True)
class GeoBounds:
    """Axis-aligned geographic rectangle (no antimeridian wrapping)."""
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_points(cls, points: Iterable[GeoPoint]) -> "GeoBounds":
        pts = list(points)
        if not pts:
            raise ValueError("GeoBounds.from_points requires at least one point")
        lats = [p.lat for p in pts]
        lngs = [p.lng for p in pts]
        return cls(south=min(lats), west=min(lngs), north=max(lats), east=max(lngs))

    @property
    def width(self) -> float:
        return abs(self.east - self.west)

    @property
    def height(self) -> float:
        return abs(self.north - self.south)

    @property
    def center(self) -> GeoPoint:
        return GeoPoint((self.south + self.north) / 2.0, (self.west + self.east) / 2.0)

    def contains(self, point: GeoPoint) -> bool:
        return (
            self.south <= point.lat <= self.north
            and self.west <= point.lng <= self.east
        )

    def contains_bounds(self, other: "GeoBounds") -> bool:
        return (
            self.south <= other.south
            and self.north >= other.north
            and self.west <= other.west
            and self.east >= other.east
        )

    def pad(self, ratio: float) -> "GeoBounds":
        """Grow every side by *ratio* of the height (lat) or width (lng)."""
        lat_buffer = self.height * ratio
        lng_buffer = self.width * ratio
        return GeoBounds(
            south=self.south - lat_buffer,
            west=self.west - lng_buffer,
            north=self.north + lat_buffer,
            east=self.east + lng_buffer,
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            'south': self.south,
            'west': self.west,
            'north': self.north,
            'east': self.east,
        }


@dataclass(frozen=True)
class Viewport:
    """Visible geographic rectangle plus zoom; replaced wholesale on every pan/zoom."""
    bounds: GeoBounds
    zoom: float


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Tier(str, Enum):
    """Visual size category of a rendered marker."""
    TOP = "top"
    HIGH = "high"
    NORMAL = "normal"

    @property
    def weight(self) -> int:
        return _TIER_WEIGHTS[self]


_TIER_WEIGHTS = {Tier.TOP: 2, Tier.HIGH: 1, Tier.NORMAL: 0}


# ---------------------------------------------------------------------------
# Event record
# ---------------------------------------------------------------------------

def _finite_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EventValidationError(field_name, f"expected a number, got {type(value).__name__}")
    number = float(value)
    if not math.isfinite(number):
        raise EventValidationError(field_name, f"must be finite, got {value!r}")
    return number


def _parse_location(data: Mapping[str, Any]) -> GeoPoint:
    raw = data.get("location")
    if raw is None:
        raw = data.get("coordinates")
    if raw is None and "lat" in data and "lng" in data:
        raw = {"lat": data["lat"], "lng": data["lng"]}
    if raw is None:
        raise EventValidationError("location", "missing")

    if isinstance(raw, Mapping):
        if "lat" not in raw or "lng" not in raw:
            raise EventValidationError("location", "expected keys 'lat' and 'lng'")
        lat, lng = raw["lat"], raw["lng"]
    elif isinstance(raw, (list, tuple)) and len(raw) == 2:
        lat, lng = raw
    else:
        raise EventValidationError("location", f"unsupported shape {raw!r}")

    lat = _finite_number(lat, "location.lat")
    lng = _finite_number(lng, "location.lng")
    if not -90.0 <= lat <= 90.0:
        raise EventValidationError("location.lat", f"out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise EventValidationError("location.lng", f"out of range: {lng}")
    return GeoPoint(lat, lng)


@dataclass(eq=False)
class Event:
    """
    A geolocated, scored event.

    ``score`` mutates over time; ``rank`` is recomputed from scores on its
    own clock (0 until the first ranking).  ``render_tier`` and
    ``footprint_radius`` are transient, owned by the latest resolution pass.
    """
    id: str
    location: GeoPoint
    score: float = 0.0
    rank: int = 0
    title: Optional[str] = None
    category: Optional[str] = None
    severity: Optional[str] = None
    verified: bool = False
    timestamp: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    render_tier: Optional[Tier] = None
    footprint_radius: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Event":
        """Validate a raw record and build an Event from it."""
        if not isinstance(data, Mapping):
            raise EventValidationError("event", f"expected a mapping, got {type(data).__name__}")

        event_id = data.get("id")
        if not isinstance(event_id, str) or not event_id:
            raise EventValidationError("id", "must be a non-empty string")

        score = data.get("score", 0.0)
        score = _finite_number(score, "score")
        if score < 0:
            raise EventValidationError("score", f"must be >= 0, got {score}")

        rank = data.get("rank", 0)
        if isinstance(rank, bool) or not isinstance(rank, int) or rank < 0:
            raise EventValidationError("rank", f"must be a non-negative integer, got {rank!r}")

        return cls(
            id=event_id,
            location=_parse_location(data),
            score=score,
            rank=rank,
            title=data.get("title"),
            category=data.get("category"),
            severity=data.get("severity"),
            verified=bool(data.get("verified", False)),
            timestamp=data.get("timestamp"),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'location': {'lat': self.location.lat, 'lng': self.location.lng},
            'score': self.score,
            'rank': self.rank,
            'title': self.title,
            'category': self.category,
            'severity': self.severity,
            'verified': self.verified,
            'timestamp': self.timestamp,
            'metadata': self.metadata,
        }

    def __repr__(self) -> str:
        return f"Event(id={self.id!r}, rank={self.rank}, score={self.score})"


# ---------------------------------------------------------------------------
# Pass output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TieredEvent:
    """An event with the render tier assigned by the pass that produced it."""
    event: Event
    tier: Tier

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.event.id, 'rank': self.event.rank, 'tier': self.tier.value}


@dataclass
class Cluster:
    """
    Synthetic node standing in for a dense grid cell.

    Owns its members for the duration of one resolution pass only.
    """
    cluster_id: str
    center: GeoPoint
    members: List[Event]
    bounds: GeoBounds
    representative: Event

    @property
    def size(self) -> int:
        return len(self.members)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.cluster_id,
            'center': {'lat': self.center.lat, 'lng': self.center.lng},
            'size': self.size,
            'bounds': self.bounds.to_dict(),
            'representative': self.representative.id,
            'members': [e.id for e in self.members],
        }


@dataclass
class ResolutionResult:
    """Visible/hidden partition produced by one resolution pass."""
    viewport: Viewport
    visible: List[TieredEvent] = field(default_factory=list)
    hidden: List[TieredEvent] = field(default_factory=list)
    clusters: List[Cluster] = field(default_factory=list)
    excluded: List[str] = field(default_factory=list)

    @property
    def visible_events(self) -> List[Event]:
        return [t.event for t in self.visible]

    @property
    def hidden_events(self) -> List[Event]:
        return [t.event for t in self.hidden]

    @property
    def visible_ids(self) -> List[str]:
        return [t.event.id for t in self.visible]

    @property
    def hidden_ids(self) -> List[str]:
        return [t.event.id for t in self.hidden]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'viewport': {
                'bounds': self.viewport.bounds.to_dict(),
                'zoom': self.viewport.zoom,
            },
            'visible': [t.to_dict() for t in self.visible],
            'hidden': [t.to_dict() for t in self.hidden],
            'clusters': [c.to_dict() for c in self.clusters],
            'excluded': list(self.excluded),
        }

"""Viewport candidate filter: extended bounds plus zoom-dependent level of detail."""

from enum import Enum
from typing import Iterable, List

from declutter.types import Event, GeoBounds, Viewport

DEFAULT_PADDING = 0.5


class LODLevel(str, Enum):
    FAR = "far"          # global view
    MEDIUM = "medium"    # regional view
    CLOSE = "close"      # local view


# (max zoom inclusive, level)
LOD_THRESHOLDS = (
    (4, LODLevel.FAR),
    (8, LODLevel.MEDIUM),
)

# Worst rank still considered at each level; None = no cap
LOD_RANK_CAPS = {
    LODLevel.FAR: 100,
    LODLevel.MEDIUM: 500,
    LODLevel.CLOSE: None,
}


def lod_level(zoom: float) -> LODLevel:
    for max_zoom, level in LOD_THRESHOLDS:
        if zoom <= max_zoom:
            return level
    return LODLevel.CLOSE


def extended_bounds(bounds: GeoBounds, padding: float = DEFAULT_PADDING) -> GeoBounds:
    """Bounds padded outward so edge markers are considered before they scroll in."""
    return bounds.pad(padding)


def sort_by_rank(events: Iterable[Event]) -> List[Event]:
    """Stable ascending-rank order; equal ranks keep input order."""
    return sorted(events, key=lambda e: e.rank)


def filter_candidates(
    events: Iterable[Event],
    viewport: Viewport,
    padding: float = DEFAULT_PADDING,
) -> List[Event]:
    """Events inside the extended viewport that pass the LOD rank cap, best rank first."""
    area = extended_bounds(viewport.bounds, padding)
    cap = LOD_RANK_CAPS[lod_level(viewport.zoom)]
    kept = [
        e for e in events
        if area.contains(e.location) and (cap is None or e.rank <= cap)
    ]
    return sort_by_rank(kept)

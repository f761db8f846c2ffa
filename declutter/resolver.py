"""
Greedy, rank-priority collision resolution.

Turns a ranked candidate list into a bounded visible set whose marker
footprints do not overlap, plus the hidden remainder:

    1. keep candidates inside the extended viewport
    2. take the ``budget`` best-ranked as the working set (seed tiers)
    3. place them best-first; a candidate that overlaps placed markers
       evicts them only when every one of them is strictly worse-ranked,
       otherwise the candidate is hidden
    4. everything outside the working set, plus any ``unreached``
       events, is hidden
    5. finalize tiers against the final visible set

If the footprint-based collision test cannot be evaluated the resolver
degrades to a center-distance test.  Under the ``session`` fallback policy
the degradation is permanent for the resolver's lifetime; under ``pass``
the full test is re-armed at the start of every pass.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from common.logging.logger import get_logger
from declutter.errors import (
    CollisionEvaluationError,
    GeometryUnavailableError,
    IndexStaleError,
)
from declutter.footprint import Footprint, FootprintModel, collision_extent
from declutter.protocols import PROJECTION_FAILURES, Projector
from declutter.settings import COLLISION_FALLBACK_POLICIES
from declutter.spatial_index import SpatialIndex
from declutter.tiers import TierAssigner
from declutter.types import Event, PixelPoint, ResolutionResult, Viewport
from declutter.viewport import DEFAULT_PADDING, extended_bounds, sort_by_rank

logger = get_logger("declutter.resolver")

# Center-distance fallback: minimum separation, scaled down at coarse zooms
SIMPLE_MIN_DISTANCE_PX = 25.0
SIMPLE_ZOOM_SCALES = (
    (4, 0.7),
    (8, 0.85),
)

# Failures of the footprint test that trigger the fallback
COLLISION_FAILURES = (TypeError, ValueError, ArithmeticError, CollisionEvaluationError)


def markers_collide(p1: PixelPoint, f1: Footprint, p2: PixelPoint, f2: Footprint) -> bool:
    """
    Footprint-based collision test.

    Circles collide below the sum of radii.  When the two label bands
    overlap vertically the required separation grows to the larger of the
    summed band half-widths and the summed radii.
    """
    distance = math.hypot(p2.x - p1.x, p2.y - p1.y)
    min_distance = f1.radius + f2.radius
    if not math.isfinite(distance) or not math.isfinite(min_distance):
        raise CollisionEvaluationError(f"non-finite geometry ({distance!r}, {min_distance!r})")

    vertical = abs(p2.y - p1.y)
    if vertical < f1.label_band_height + f2.label_band_height:
        band_overlap = max((f1.label_band_width + f2.label_band_width) / 2, min_distance)
        return distance < band_overlap
    return distance < min_distance


def simple_min_distance(zoom: float) -> float:
    for max_zoom, scale in SIMPLE_ZOOM_SCALES:
        if zoom <= max_zoom:
            return SIMPLE_MIN_DISTANCE_PX * scale
    return SIMPLE_MIN_DISTANCE_PX


def simple_collide(p1: PixelPoint, p2: PixelPoint, zoom: float) -> bool:
    """Center-distance-only fallback test."""
    return math.hypot(p2.x - p1.x, p2.y - p1.y) < simple_min_distance(zoom)


@dataclass
class _Placed:
    event: Event
    pixel: PixelPoint
    footprint: Footprint


class DeclutterResolver:
    """
    Selects a bounded, non-overlapping visible set from ranked candidates.

    Args:
        projector: Geographic → pixel projection (external collaborator).
        footprints: Tier/zoom → footprint model.
        tiers: Two-phase tier assigner.
        padding: Extended-viewport padding ratio.
        fallback_policy: ``"session"`` or ``"pass"`` (see module docstring).
    """

    def __init__(
        self,
        projector: Projector,
        footprints: Optional[FootprintModel] = None,
        tiers: Optional[TierAssigner] = None,
        padding: float = DEFAULT_PADDING,
        fallback_policy: str = "session",
    ):
        if fallback_policy not in COLLISION_FALLBACK_POLICIES:
            raise ValueError(f"Unknown fallback policy: {fallback_policy!r}")
        self.projector = projector
        self.footprints = footprints or FootprintModel()
        self.tiers = tiers or TierAssigner()
        self.padding = padding
        self.fallback_policy = fallback_policy
        self._degraded = False

    @property
    def degraded(self) -> bool:
        """True while the center-distance fallback is in effect."""
        return self._degraded

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(
        self,
        candidates: Sequence[Event],
        viewport: Viewport,
        budget: int,
        index: SpatialIndex,
        unreached: Sequence[Event] = (),
    ) -> ResolutionResult:
        """
        Partition *candidates* into visible and hidden for *viewport*.
        *unreached* events are never placed; those inside the extended
        bounds go straight to hidden, after the candidate overflow.
        """
        if isinstance(budget, bool) or not isinstance(budget, int) or budget < 0:
            raise ValueError(f"budget must be a non-negative int, got {budget!r}")
        if not math.isfinite(viewport.zoom):
            raise ValueError(f"viewport zoom must be finite, got {viewport.zoom!r}")

        area = extended_bounds(viewport.bounds, self.padding)
        ordered = sort_by_rank(e for e in candidates if area.contains(e.location))
        working, overflow = ordered[:budget], ordered[budget:]
        overflow.extend(e for e in unreached if area.contains(e.location))

        result = self.place(working, viewport, budget, index, unreached=overflow)

        logger.debug(
            f"Resolved {len(ordered)} candidates at zoom {viewport.zoom}: "
            f"{len(result.visible)} visible, {len(result.hidden)} hidden, "
            f"{len(result.excluded)} excluded"
        )
        return result

    def place(
        self,
        working: Sequence[Event],
        viewport: Viewport,
        budget: int,
        index: SpatialIndex,
        unreached: Sequence[Event] = (),
    ) -> ResolutionResult:
        """
        Greedy placement of *working* in the given order (no filtering, no
        sorting).  :meth:`resolve` calls this with the best-ranked slice and
        passes the rest as *unreached*, which goes straight to hidden.
        """
        self._check_index(index, viewport)
        if self.fallback_policy == "pass" and self._degraded:
            logger.info("Re-arming footprint collision test for new pass")
            self._degraded = False

        zoom = viewport.zoom
        seeds = self.tiers.seed_tiers(working, viewport.bounds)
        placed: Dict[str, _Placed] = {}
        hidden: List[Event] = []
        excluded: List[str] = []

        for event in working:
            try:
                pixel = self._locate(event, index, viewport)
                footprint = self.footprints.footprint(seeds[event.id], zoom)
            except GeometryUnavailableError as e:
                logger.warning(f"Excluding event {event.id!r} from pass: {e}")
                excluded.append(event.id)
                continue

            if len(placed) >= budget:
                hidden.append(event)
                continue

            colliders = self._colliders(event, pixel, footprint, placed, index, zoom)
            if all(other.event.rank > event.rank for other in colliders):
                for other in colliders:
                    del placed[other.event.id]
                    hidden.append(other.event)
                placed[event.id] = _Placed(event, pixel, footprint)
            else:
                hidden.append(event)

        visible, hidden_tiered = self.tiers.finalize_tiers(
            [p.event for p in placed.values()], hidden + list(unreached), viewport.bounds,
        )
        self._record_radii(visible, zoom)
        self._record_radii(hidden_tiered, zoom)
        return ResolutionResult(
            viewport=viewport,
            visible=visible,
            hidden=hidden_tiered,
            excluded=excluded,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_index(self, index: SpatialIndex, viewport: Viewport) -> None:
        if index.is_current(viewport):
            return
        detail = f"index frame {index.frame!r} was not rebuilt or validated for {viewport!r}"
        logger.error(detail)
        if __debug__:
            raise IndexStaleError(detail)

    def _locate(self, event: Event, index: SpatialIndex, viewport: Viewport) -> PixelPoint:
        """Pixel position in the index frame, projecting and caching on first sight."""
        pixel = index.position(event.id)
        if pixel is not None:
            return pixel

        frame = index.frame or viewport
        try:
            pixel = self.projector.project(event.location, frame)
        except GeometryUnavailableError as e:
            raise GeometryUnavailableError(event.id, str(e)) from e
        except PROJECTION_FAILURES as e:
            raise GeometryUnavailableError(event.id, f"projection failed: {e}") from e
        if not (math.isfinite(pixel.x) and math.isfinite(pixel.y)):
            raise GeometryUnavailableError(event.id, f"projected to non-finite pixel {pixel!r}")

        index.insert(event.id, pixel)
        return pixel

    def _colliders(
        self,
        event: Event,
        pixel: PixelPoint,
        footprint: Footprint,
        placed: Dict[str, _Placed],
        index: SpatialIndex,
        zoom: float,
    ) -> List[_Placed]:
        """Every placed marker *event* would overlap, in neighbor-scan order."""
        radius = self._search_radius(footprint, zoom)
        found: List[_Placed] = []
        for other_id in index.neighbors(pixel, radius):
            if other_id == event.id:
                continue
            other = placed.get(other_id)
            if other is not None and self._collides(pixel, footprint, other, zoom):
                found.append(other)
        return found

    def _search_radius(self, footprint: Footprint, zoom: float) -> float:
        if not self._degraded:
            try:
                return collision_extent(footprint) + collision_extent(self.footprints.max_footprint(zoom))
            except COLLISION_FAILURES as e:
                self._degrade(e)
        return simple_min_distance(zoom)

    def _collides(self, pixel: PixelPoint, footprint: Footprint, other: _Placed, zoom: float) -> bool:
        if not self._degraded:
            try:
                return markers_collide(pixel, footprint, other.pixel, other.footprint)
            except COLLISION_FAILURES as e:
                self._degrade(e)
        return simple_collide(pixel, other.pixel, zoom)

    def _degrade(self, error: Exception) -> None:
        self._degraded = True
        scope = "this pass" if self.fallback_policy == "pass" else "the rest of the session"
        logger.warning(
            f"Footprint collision test failed ({error!r}); "
            f"using center-distance fallback for {scope}"
        )

    def _record_radii(self, tiered, zoom: float) -> None:
        for item in tiered:
            item.event.footprint_radius = self.footprints.footprint(item.tier, zoom).radius

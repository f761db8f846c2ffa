"""Marker footprint model: the on-screen extent used by collision tests."""

import math
from dataclasses import dataclass
from typing import Dict, Tuple

from declutter.errors import GeometryUnavailableError
from declutter.types import Tier

# (max zoom inclusive, base marker size px); the last step covers every finer zoom
ZOOM_SIZE_STEPS: Tuple[Tuple[float, int], ...] = (
    (3, 20),    # coarse
    (6, 24),    # medium
)
FINE_BASE_SIZE = 28

TIER_SIZE_MULTIPLIERS: Dict[Tier, float] = {
    Tier.TOP: 2.0,
    Tier.HIGH: 1.5,
    Tier.NORMAL: 1.0,
}
TIER_VISUAL_PADDING: Dict[Tier, float] = {
    Tier.TOP: 4.0,
    Tier.HIGH: 3.0,
    Tier.NORMAL: 2.0,
}
LABEL_BAND_HEIGHT_RATIO = 0.4
LABEL_BAND_WIDTH_RATIO = 1.2


@dataclass(frozen=True)
class Footprint:
    """Collision extent: marker circle plus the rank label band beneath it."""
    size: int
    radius: float
    label_band_height: float
    label_band_width: float

    @property
    def total_height(self) -> float:
        return self.size + self.label_band_height


class FootprintModel:
    """Pure function of (tier, zoom) → Footprint."""

    def base_size(self, zoom: float) -> int:
        for max_zoom, size in ZOOM_SIZE_STEPS:
            if zoom <= max_zoom:
                return size
        return FINE_BASE_SIZE

    def marker_size(self, tier: Tier, zoom: float) -> int:
        try:
            multiplier = TIER_SIZE_MULTIPLIERS[Tier(tier)]
        except ValueError:
            raise GeometryUnavailableError(None, f"unknown tier {tier!r}")
        return int(round(self.base_size(zoom) * multiplier))

    def footprint(self, tier: Tier, zoom: float) -> Footprint:
        if not isinstance(zoom, (int, float)) or not math.isfinite(zoom):
            raise GeometryUnavailableError(None, f"non-finite zoom {zoom!r}")
        size = self.marker_size(tier, zoom)
        return Footprint(
            size=size,
            radius=size / 2 + TIER_VISUAL_PADDING[Tier(tier)],
            label_band_height=round(size * LABEL_BAND_HEIGHT_RATIO),
            label_band_width=size * LABEL_BAND_WIDTH_RATIO,
        )

    def max_footprint(self, zoom: float) -> Footprint:
        """Largest footprint any marker can have at *zoom*."""
        return self.footprint(Tier.TOP, zoom)


def collision_extent(footprint: Footprint) -> float:
    """
    This footprint's share of any pairwise separation requirement: two
    markers never collide beyond the sum of their extents.
    """
    return max(footprint.radius, footprint.label_band_width / 2)

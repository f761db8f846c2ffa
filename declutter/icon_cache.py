"""Marker icon memoization, keyed by everything that changes a marker's look."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from declutter.footprint import FootprintModel
from declutter.types import Event, Tier, TieredEvent
from declutter.viewport import lod_level

IconKey = Tuple[Optional[str], Optional[str], bool, float, int, str]


@dataclass(frozen=True)
class MarkerIcon:
    """Renderer-agnostic icon descriptor."""
    size: int
    label_band_height: float
    anchor: Tuple[float, float]
    css_classes: Tuple[str, ...]
    label: str


def default_icon_factory(footprints: FootprintModel) -> Callable[[IconKey], MarkerIcon]:
    def build(key: IconKey) -> MarkerIcon:
        category, severity, verified, zoom, rank, tier = key
        fp = footprints.footprint(Tier(tier), zoom)
        classes = ["category-marker-wrapper", lod_level(zoom).value]
        if severity:
            classes.append(f"severity-{severity}")
        if verified:
            classes.append("verified")
        classes.append(f"rank-{tier}")
        return MarkerIcon(
            size=fp.size,
            label_band_height=fp.label_band_height,
            anchor=(fp.size / 2, fp.size / 2),
            css_classes=tuple(classes),
            label=f"#{rank}",
        )
    return build


class IconCache:
    """
    Process-lifetime memo of icon objects.

    Cleared whenever the zoom changes; all entries built at one zoom share
    the same footprint scale.
    """

    def __init__(self, factory: Optional[Callable[[IconKey], Any]] = None):
        self._factory = factory or default_icon_factory(FootprintModel())
        self._cache: Dict[IconKey, Any] = {}
        self._last_zoom: Optional[float] = None

    @staticmethod
    def key_for(event: Event, tier: Tier, zoom: float) -> IconKey:
        return (event.category, event.severity, bool(event.verified), zoom, event.rank, Tier(tier).value)

    def get(self, event: Event, tier: Tier, zoom: float) -> Any:
        key = self.key_for(event, tier, zoom)
        icon = self._cache.get(key)
        if icon is None:
            icon = self._factory(key)
            self._cache[key] = icon
        return icon

    def icon_for(self, tiered: TieredEvent, zoom: float) -> Any:
        return self.get(tiered.event, tiered.tier, zoom)

    def clear_if_zoom_changed(self, zoom: float) -> bool:
        """Drop every entry when *zoom* differs from the last one seen."""
        if self._last_zoom != zoom:
            self._cache.clear()
            self._last_zoom = zoom
            return True
        return False

    def __len__(self) -> int:
        return len(self._cache)

"""Built-in projector implementations."""

import math
from typing import Sequence

import numpy as np

from declutter.errors import GeometryUnavailableError
from declutter.protocols import Projector
from declutter.types import GeoPoint, PixelPoint, Viewport

MERCATOR_LAT_BOUND = 85.0511287798


class WebMercatorProjector(Projector):
    """
    Spherical Web Mercator, container pixels relative to the viewport's
    north-west corner (the slippy-map convention).
    """

    def __init__(self, tile_size: int = 256):
        if tile_size <= 0:
            raise ValueError("tile_size must be > 0")
        self._tile_size = tile_size

    @property
    def name(self) -> str:
        return "web_mercator"

    def world_size(self, zoom: float) -> float:
        return self._tile_size * math.pow(2.0, zoom)

    def _to_world(self, lat: float, lng: float, world_size: float):
        lat = max(min(lat, MERCATOR_LAT_BOUND), -MERCATOR_LAT_BOUND)
        x = (lng + 180.0) / 360.0 * world_size
        sin_lat = math.sin(math.radians(lat))
        y = (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)) * world_size
        return x, y

    def _origin(self, viewport: Viewport):
        if not math.isfinite(viewport.zoom):
            raise GeometryUnavailableError(None, f"non-finite zoom {viewport.zoom!r}")
        world = self.world_size(viewport.zoom)
        ox, oy = self._to_world(viewport.bounds.north, viewport.bounds.west, world)
        return world, ox, oy

    def project(self, point: GeoPoint, viewport: Viewport) -> PixelPoint:
        if not (math.isfinite(point.lat) and math.isfinite(point.lng)):
            raise GeometryUnavailableError(None, f"non-finite coordinate {point!r}")
        world, ox, oy = self._origin(viewport)
        x, y = self._to_world(point.lat, point.lng, world)
        return PixelPoint(x - ox, y - oy)

    def unproject(self, pixel: PixelPoint, viewport: Viewport) -> GeoPoint:
        world, ox, oy = self._origin(viewport)
        wx = pixel.x + ox
        wy = pixel.y + oy
        lng = wx / world * 360.0 - 180.0
        n = math.pi - 2.0 * math.pi * wy / world
        lat = math.degrees(math.atan(math.sinh(n)))
        return GeoPoint(lat, lng)

    def project_many(self, points: Sequence[GeoPoint], viewport: Viewport) -> np.ndarray:
        if not points:
            return np.empty((0, 2), dtype=float)
        coords = np.array([(p.lat, p.lng) for p in points], dtype=float)
        if not np.all(np.isfinite(coords)):
            raise GeometryUnavailableError(None, "non-finite coordinate in batch")

        world, ox, oy = self._origin(viewport)
        lat = np.clip(coords[:, 0], -MERCATOR_LAT_BOUND, MERCATOR_LAT_BOUND)
        sin_lat = np.sin(np.radians(lat))
        x = (coords[:, 1] + 180.0) / 360.0 * world - ox
        y = (0.5 - np.log((1 + sin_lat) / (1 - sin_lat)) / (4 * np.pi)) * world - oy
        return np.column_stack((x, y))

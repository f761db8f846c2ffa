"""
Shared pytest fixtures for declutter tests.

Provides a linear fake projector with exact pixel geometry, event and
viewport factories, and a hand-driven clock.

The conftest patches the Config singleton at import time so that no test
reads a developer's config.json.
"""

import math
import sys
from pathlib import Path

# Ensure project root is on sys.path so imports work from tests/
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.config import Config

_test_config = Config.__new__(Config)
_test_config._config = {
    "paths": {},
    "declutter": {},
}
Config._instance = _test_config

import pytest

from declutter.errors import GeometryUnavailableError
from declutter.protocols import Projector
from declutter.settings import DeclutterSettings
from declutter.spatial_index import SpatialIndex
from declutter.types import Event, GeoBounds, GeoPoint, PixelPoint, Viewport


# ── Fake Components ────────────────────────────────────────────

class FakeProjector(Projector):
    """
    Linear projection: ``scale`` pixels per degree, origin at the
    viewport's north-west corner.  Ignores zoom.
    """

    def __init__(self, scale: float = 1000.0):
        self.scale = scale
        self.calls = 0

    @property
    def name(self):
        return "fake"

    def project(self, point, viewport):
        self.calls += 1
        b = viewport.bounds
        return PixelPoint((point.lng - b.west) * self.scale, (b.north - point.lat) * self.scale)

    def unproject(self, pixel, viewport):
        b = viewport.bounds
        return GeoPoint(b.north - pixel.y / self.scale, b.west + pixel.x / self.scale)


class BrokenProjector(FakeProjector):
    """Refuses to project any point whose latitude is in ``bad_lats``."""

    def __init__(self, bad_lats, scale: float = 1000.0):
        super().__init__(scale)
        self.bad_lats = set(bad_lats)

    def project(self, point, viewport):
        if point.lat in self.bad_lats:
            raise GeometryUnavailableError(None, "no projection")
        return super().project(point, viewport)


class MalformedProjector(FakeProjector):
    """Raises a plain ValueError for latitudes in ``bad_lats``, as host code might."""

    def __init__(self, bad_lats, scale: float = 1000.0):
        super().__init__(scale)
        self.bad_lats = set(bad_lats)

    def project(self, point, viewport):
        if point.lat in self.bad_lats:
            raise ValueError("malformed coordinate")
        return super().project(point, viewport)


class NaNProjector(FakeProjector):
    """Projects latitudes in ``bad_lats`` to a NaN pixel instead of raising."""

    def __init__(self, bad_lats, scale: float = 1000.0):
        super().__init__(scale)
        self.bad_lats = set(bad_lats)

    def project(self, point, viewport):
        if point.lat in self.bad_lats:
            self.calls += 1
            return PixelPoint(math.nan, math.nan)
        return super().project(point, viewport)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


# ── Fixtures ───────────────────────────────────────────────────

@pytest.fixture
def projector():
    return FakeProjector()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return DeclutterSettings()


@pytest.fixture
def make_event():
    def _make(event_id, lat=0.5, lng=0.5, score=0.0, rank=0, **kwargs):
        return Event(id=event_id, location=GeoPoint(lat, lng), score=score, rank=rank, **kwargs)
    return _make


@pytest.fixture
def make_viewport():
    def _make(south=0.0, west=0.0, north=1.0, east=1.0, zoom=10):
        return Viewport(GeoBounds(south=south, west=west, north=north, east=east), zoom)
    return _make


@pytest.fixture
def fresh_index():
    """An empty index built (framed) for the given viewport."""
    def _make(viewport, cell_size_px=50):
        return SpatialIndex(cell_size_px).build((), viewport)
    return _make

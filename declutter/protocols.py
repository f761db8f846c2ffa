"""Abstract base classes for the external collaborators of the declutter core."""

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np

from declutter.errors import GeometryUnavailableError
from declutter.types import GeoPoint, PixelPoint, Viewport

# What a host projector may raise for a point it cannot place
PROJECTION_FAILURES = (GeometryUnavailableError, TypeError, ValueError, ArithmeticError)


class Projector(ABC):
    """Protocol for geographic → screen-space projection under a viewport."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique projector name (e.g. 'web_mercator')."""
        ...

    @abstractmethod
    def project(self, point: GeoPoint, viewport: Viewport) -> PixelPoint:
        """Map *point* to container pixels for *viewport*."""
        ...

    @abstractmethod
    def unproject(self, pixel: PixelPoint, viewport: Viewport) -> GeoPoint:
        """Inverse of :meth:`project`."""
        ...

    def project_many(self, points: Sequence[GeoPoint], viewport: Viewport) -> np.ndarray:
        """Project a batch; returns an (N, 2) float array of x, y."""
        out = np.empty((len(points), 2), dtype=float)
        for i, point in enumerate(points):
            pixel = self.project(point, viewport)
            out[i, 0] = pixel.x
            out[i, 1] = pixel.y
        return out

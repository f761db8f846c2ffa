"""
Uniform-grid spatial index over screen-space marker positions.

The index is a broad-phase filter: :meth:`SpatialIndex.neighbors` returns
every id in the block of cells around a point, a superset of the ids that
can actually collide.  Exact distance tests are the caller's job.

Positions are cached in the pixel *frame* of the viewport the index was
built for.  A later viewport at the same zoom bucket whose bounds are
nested with the frame's (either way) reuses the index; anything else
requires a rebuild.

Within a zoom bucket the cached pixels keep the frame's scale while
footprints follow the current zoom, so after a fractional zoom change
(say 10 to 10.9) collision distances are approximate until the next
rebuild.
"""

import math
from collections import defaultdict
from typing import DefaultDict, Dict, Iterable, List, Optional, Tuple

from declutter.types import PixelPoint, Viewport

CellKey = Tuple[int, int]

DEFAULT_CELL_SIZE_PX = 50
ZOOM_REBUILD_DELTA = 1.0


class SpatialIndex:
    """Grid of ``cell_size_px`` square cells mapping cell key → ids."""

    def __init__(self, cell_size_px: int = DEFAULT_CELL_SIZE_PX):
        if cell_size_px <= 0:
            raise ValueError("cell_size_px must be > 0")
        self.cell_size_px = cell_size_px
        self._grid: DefaultDict[CellKey, List[str]] = defaultdict(list)
        self._positions: Dict[str, PixelPoint] = {}
        self._frame: Optional[Viewport] = None
        self._current: Optional[Viewport] = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def cell_key(self, x: float, y: float) -> CellKey:
        return (math.floor(x / self.cell_size_px), math.floor(y / self.cell_size_px))

    def clear(self) -> None:
        self._grid.clear()
        self._positions.clear()
        self._frame = None
        self._current = None

    def build(
        self,
        points: Iterable[Tuple[str, PixelPoint]],
        viewport: Optional[Viewport] = None,
    ) -> "SpatialIndex":
        """Replace the index contents with *points*, projected in *viewport*'s frame."""
        self.clear()
        self._frame = viewport
        self._current = viewport
        for event_id, pixel in points:
            self.insert(event_id, pixel)
        return self

    def insert(self, event_id: str, pixel: PixelPoint) -> None:
        """Add (or move) one id."""
        if event_id in self._positions:
            self.remove(event_id)
        self._positions[event_id] = pixel
        self._grid[self.cell_key(pixel.x, pixel.y)].append(event_id)

    def remove(self, event_id: str) -> None:
        pixel = self._positions.pop(event_id, None)
        if pixel is None:
            return
        key = self.cell_key(pixel.x, pixel.y)
        bucket = self._grid.get(key)
        if bucket is not None:
            bucket.remove(event_id)
            if not bucket:
                del self._grid[key]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def position(self, event_id: str) -> Optional[PixelPoint]:
        return self._positions.get(event_id)

    def neighbors(self, pixel: PixelPoint, radius: float = 0.0) -> List[str]:
        """
        Ids in the square block of cells around *pixel*.

        The block is 3×3 for ``radius <= cell_size_px`` and widens by one
        ring per extra cell of radius, so no pair closer than *radius* is
        ever missed.
        """
        reach = max(1, math.ceil(radius / self.cell_size_px)) if radius > 0 else 1
        cx, cy = self.cell_key(pixel.x, pixel.y)
        found: List[str] = []
        for dx in range(-reach, reach + 1):
            for dy in range(-reach, reach + 1):
                bucket = self._grid.get((cx + dx, cy + dy))
                if bucket:
                    found.extend(bucket)
        return found

    def cells(self) -> Dict[CellKey, List[str]]:
        """Snapshot of non-empty cells."""
        return {key: list(ids) for key, ids in self._grid.items()}

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._positions

    def __len__(self) -> int:
        return len(self._positions)

    # ------------------------------------------------------------------
    # Rebuild policy
    # ------------------------------------------------------------------

    @property
    def frame(self) -> Optional[Viewport]:
        """Viewport whose pixel frame the cached positions live in."""
        return self._frame

    def needs_rebuild(self, viewport: Viewport) -> bool:
        """
        True when cached geometry cannot serve *viewport*: never built, zoom
        moved by a full level or more, or the bounds are no longer nested
        with the frame's bounds.
        """
        frame = self._frame
        if frame is None:
            return True
        if abs(viewport.zoom - frame.zoom) >= ZOOM_REBUILD_DELTA:
            return True
        nested = (
            frame.bounds.contains_bounds(viewport.bounds)
            or viewport.bounds.contains_bounds(frame.bounds)
        )
        return not nested

    def mark_current(self, viewport: Viewport) -> None:
        """Record that the index was validated for *viewport* without a rebuild."""
        if self._frame is None:
            raise ValueError("cannot validate an index that was never built")
        self._current = viewport

    def is_current(self, viewport: Viewport) -> bool:
        return self._current is not None and self._current == viewport

    def invalidate(self) -> None:
        """Force the next :meth:`needs_rebuild` check to report True."""
        self.clear()

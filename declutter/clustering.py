"""
Density pre-clustering.

Candidates are bucketed into the same uniform pixel grid the spatial index
uses.  Every cell holding at least ``min_size`` candidates collapses into a
single Cluster node and its members are withheld from collision
resolution for this pass.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from common.logging.logger import get_logger
from declutter.protocols import PROJECTION_FAILURES, Projector
from declutter.spatial_index import DEFAULT_CELL_SIZE_PX, SpatialIndex
from declutter.types import Cluster, Event, GeoBounds, PixelPoint, ResolutionResult, Viewport

logger = get_logger("declutter.clustering")

DEFAULT_MIN_CLUSTER_SIZE = 3
EXPAND_MAX_SIZE = 5          # small clusters expand in place
EXPAND_MIN_ZOOM = 12         # at fine zooms every cluster expands
ZOOM_TO_PADDING_PX = 50
ZOOM_TO_MAX_ZOOM = 12


class ClusterActionKind(str, Enum):
    EXPAND = "expand"
    ZOOM_TO_BOUNDS = "zoom_to_bounds"


@dataclass
class ClusterAction:
    """What activating a cluster should do."""
    kind: ClusterActionKind
    cluster: Cluster
    bounds: Optional[GeoBounds] = None
    padding_px: int = ZOOM_TO_PADDING_PX
    max_zoom: float = ZOOM_TO_MAX_ZOOM
    result: Optional[ResolutionResult] = None


class ClusterAggregator:
    """Grid-density clusterer over projected candidate positions."""

    def __init__(
        self,
        projector: Projector,
        cell_size_px: int = DEFAULT_CELL_SIZE_PX,
        min_size: int = DEFAULT_MIN_CLUSTER_SIZE,
    ):
        if cell_size_px <= 0:
            raise ValueError("cell_size_px must be > 0")
        if min_size < 2:
            raise ValueError("min_size must be >= 2")
        self.projector = projector
        self.cell_size_px = cell_size_px
        self.min_size = min_size

    def cluster(
        self,
        candidates: Sequence[Event],
        viewport: Viewport,
    ) -> Tuple[List[Cluster], List[Event]]:
        """
        Returns (clusters, remainder).  The remainder keeps input order and
        contains every candidate not absorbed by a cluster, including any
        that could not be projected.
        """
        grid = SpatialIndex(self.cell_size_px)
        by_id = {}
        for event in candidates:
            try:
                pixel = self.projector.project(event.location, viewport)
            except PROJECTION_FAILURES as e:
                logger.warning(f"Cannot bucket event {event.id!r}: {e}")
                continue
            if not (math.isfinite(pixel.x) and math.isfinite(pixel.y)):
                logger.warning(f"Cannot bucket event {event.id!r}: non-finite pixel {pixel!r}")
                continue
            grid.insert(event.id, pixel)
            by_id[event.id] = event

        clusters: List[Cluster] = []
        absorbed = set()
        for (cx, cy), ids in grid.cells().items():
            if len(ids) < self.min_size:
                continue
            members = [(by_id[i], grid.position(i)) for i in ids]
            clusters.append(self._build(f"{cx},{cy}", members, viewport))
            absorbed.update(ids)

        clusters.sort(key=lambda c: (c.representative.rank, c.cluster_id))
        remainder = [e for e in candidates if e.id not in absorbed]

        if clusters:
            logger.debug(
                f"Formed {len(clusters)} clusters from {len(absorbed)} of "
                f"{len(candidates)} candidates"
            )
        return clusters, remainder

    def _build(
        self,
        cluster_id: str,
        members: List[Tuple[Event, PixelPoint]],
        viewport: Viewport,
    ) -> Cluster:
        pixels = np.array([(p.x, p.y) for _, p in members], dtype=float)
        cx, cy = pixels.mean(axis=0)
        events = [event for event, _ in members]
        representative = min(events, key=lambda e: e.rank)
        return Cluster(
            cluster_id=cluster_id,
            center=self.projector.unproject(PixelPoint(float(cx), float(cy)), viewport),
            members=events,
            bounds=GeoBounds.from_points(e.location for e in events),
            representative=representative,
        )

    @staticmethod
    def activate(cluster: Cluster, viewport: Viewport) -> ClusterAction:
        """Expand small clusters (or any cluster at fine zoom); zoom to the rest."""
        if cluster.size <= EXPAND_MAX_SIZE or viewport.zoom >= EXPAND_MIN_ZOOM:
            return ClusterAction(kind=ClusterActionKind.EXPAND, cluster=cluster)
        return ClusterAction(
            kind=ClusterActionKind.ZOOM_TO_BOUNDS,
            cluster=cluster,
            bounds=cluster.bounds,
        )

"""Declutter pipeline - one resolution pass: filter -> cluster -> resolve."""

from typing import List, Optional, Sequence

import numpy as np

from common.logging.logger import get_logger
from declutter.clustering import ClusterAction, ClusterActionKind, ClusterAggregator
from declutter.protocols import PROJECTION_FAILURES, Projector
from declutter.resolver import DeclutterResolver
from declutter.settings import DeclutterSettings
from declutter.spatial_index import SpatialIndex
from declutter.types import Cluster, Event, PixelPoint, ResolutionResult, Viewport
from declutter.viewport import filter_candidates

logger = get_logger("declutter.pipeline")


class DeclutterPipeline:
    """
    Orchestrates one resolution pass.

    Owns the spatial index cache and passes it by reference into the
    resolver; the index is rebuilt or validated against each pass's
    viewport before resolution.  Each component can be swapped
    independently.

    Args:
        projector: Geographic -> pixel projection.
        settings: Declutter settings (default: from config.json).
        resolver: Collision resolver (default: built from settings).
        aggregator: Density clusterer (default: built from settings).
        index: Spatial index cache (default: empty, grid from settings).
    """

    def __init__(
        self,
        projector: Projector,
        settings: Optional[DeclutterSettings] = None,
        resolver: Optional[DeclutterResolver] = None,
        aggregator: Optional[ClusterAggregator] = None,
        index: Optional[SpatialIndex] = None,
    ):
        self.settings = settings or DeclutterSettings.from_config()
        self.projector = projector
        self.resolver = resolver or DeclutterResolver(
            projector,
            padding=self.settings.viewport_padding,
            fallback_policy=self.settings.collision_fallback,
        )
        self.aggregator = aggregator or ClusterAggregator(
            projector,
            cell_size_px=self.settings.grid_cell_size_px,
            min_size=self.settings.cluster_min_size,
        )
        self.index = index or SpatialIndex(self.settings.grid_cell_size_px)
        self.rebuilds = 0

    def run(
        self,
        events: Sequence[Event],
        viewport: Viewport,
        budget: Optional[int] = None,
        cluster: Optional[bool] = None,
    ) -> ResolutionResult:
        """Run one pass over the (already ranked) event pool."""
        if budget is None:
            budget = self.settings.effective_budget
        if cluster is None:
            cluster = self.settings.clustering_enabled

        candidates = filter_candidates(events, viewport, self.settings.viewport_padding)

        # Only the best-ranked multiple of the budget is projected; the rest
        # go straight to hidden
        limit = self.settings.candidate_multiplier * budget
        considered, overflow = candidates[:limit], candidates[limit:]
        if overflow:
            logger.debug(f"Considering {len(considered)} of {len(candidates)} candidates (budget {budget})")

        clusters: List[Cluster] = []
        if cluster:
            clusters, considered = self.aggregator.cluster(considered, viewport)

        self._prepare_index(considered, viewport)
        result = self.resolver.resolve(considered, viewport, budget, self.index, unreached=overflow)
        result.clusters = clusters
        return result

    def activate_cluster(self, cluster: Cluster, viewport: Viewport) -> ClusterAction:
        """
        Decide what a click on *cluster* does.  Expansion re-resolves exactly
        the members, budget = member count, on a throwaway index so the
        viewport-level cache is left alone.
        """
        action = self.aggregator.activate(cluster, viewport)
        if action.kind is ClusterActionKind.EXPAND:
            index = SpatialIndex(self.settings.grid_cell_size_px)
            self._build_index(index, cluster.members, viewport)
            action.result = self.resolver.resolve(cluster.members, viewport, cluster.size, index)
        logger.info(f"Cluster {cluster.cluster_id} ({cluster.size} events): {action.kind.value}")
        return action

    def invalidate_index(self) -> None:
        self.index.invalidate()

    # ------------------------------------------------------------------
    # Index cache
    # ------------------------------------------------------------------

    def _prepare_index(self, candidates: Sequence[Event], viewport: Viewport) -> None:
        if self.index.needs_rebuild(viewport):
            self._build_index(self.index, candidates, viewport)
            self.rebuilds += 1
            logger.debug(f"Rebuilt spatial index for zoom {viewport.zoom} ({len(self.index)} points)")
        else:
            self.index.mark_current(viewport)

    def _build_index(self, index: SpatialIndex, candidates: Sequence[Event], viewport: Viewport) -> None:
        """
        Batch-project the candidates into a fresh index.  Points that fail
        are left out; the resolver projects them one by one and excludes
        the ones that still fail.
        """
        try:
            pixels = self.projector.project_many([e.location for e in candidates], viewport)
        except PROJECTION_FAILURES as e:
            logger.warning(f"Batch projection failed, falling back to per-event projection: {e}")
            index.build((), viewport)
            return

        finite = np.isfinite(pixels).all(axis=1)
        index.build(
            (
                (event.id, PixelPoint(float(x), float(y)))
                for event, (x, y), ok in zip(candidates, pixels, finite)
                if ok
            ),
            viewport,
        )

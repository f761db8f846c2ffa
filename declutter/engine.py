"""
Host-facing declutter engine.

Wires the event pool, score policy, cooperative scheduler and pipeline
together behind the three host call points:

    on_viewport_changed(bounds, zoom)   pan/zoom (debounced)
    on_events_changed(events)           candidate pool replaced
    on_score_mutation(event_id, delta)  interaction-driven score change

The host drives time by calling :meth:`DeclutterEngine.tick` from its own
loop.  Everything runs on that one thread; a pass never overlaps another.
"""

import math
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from common.logging.logger import get_logger
from declutter.clustering import ClusterAction
from declutter.errors import EventValidationError
from declutter.icon_cache import IconCache
from declutter.pipeline import DeclutterPipeline
from declutter.protocols import Projector
from declutter.ranking import Interaction, ScorePolicy, apply_ranks
from declutter.scheduling import Clock, CooperativeScheduler
from declutter.settings import DeclutterSettings
from declutter.types import Event, GeoBounds, ResolutionResult, TieredEvent, Viewport

logger = get_logger("declutter.engine")

ResultCallback = Callable[[ResolutionResult], Any]


class DeclutterEngine:
    """
    Stateful declutter session for one map view.

    Args:
        projector: Geographic -> pixel projection.
        settings: Declutter settings (default: from config.json).
        clock: Monotonic clock in seconds (injectable for tests).
        on_result: Called once with every committed ResolutionResult.
        pipeline: Pre-built pipeline (default: built from settings).
        icon_cache: Icon memo (default: the built-in descriptor factory).
    """

    def __init__(
        self,
        projector: Projector,
        settings: Optional[DeclutterSettings] = None,
        clock: Clock = time.monotonic,
        on_result: Optional[ResultCallback] = None,
        pipeline: Optional[DeclutterPipeline] = None,
        icon_cache: Optional[IconCache] = None,
    ):
        self.settings = settings or DeclutterSettings.from_config()
        self.pipeline = pipeline or DeclutterPipeline(projector, self.settings)
        self.icons = icon_cache or IconCache()
        self.scores = ScorePolicy(self.settings)
        self.on_result = on_result

        self._events: Dict[str, Event] = {}
        self._viewport: Optional[Viewport] = None
        self._budget = self.settings.effective_budget
        self._latest: Optional[ResolutionResult] = None
        self.passes = 0

        self.scheduler = CooperativeScheduler(clock)
        self._debouncer = self.scheduler.debouncer(self.settings.debounce_ms / 1000.0, self._run_pass)
        self._decay_timer = self.scheduler.every(
            self.settings.decay_interval_ms / 1000.0,
            self._decay,
            catch_up=True,
            name="score-decay",
        )
        self._rank_timer = self.scheduler.every(
            self.settings.rank_recompute_interval_ms / 1000.0,
            self._recompute_ranks,
            name="rank-recompute",
        )

    # ------------------------------------------------------------------
    # Host call points
    # ------------------------------------------------------------------

    def on_viewport_changed(self, bounds: GeoBounds, zoom: float) -> None:
        """Schedule a pass for the new viewport; bursts collapse to the last one."""
        if isinstance(zoom, bool) or not isinstance(zoom, (int, float)) or not math.isfinite(zoom):
            raise ValueError(f"zoom must be a finite number, got {zoom!r}")
        self._debouncer.trigger(Viewport(bounds, float(zoom)))

    def on_events_changed(self, events: Iterable[Union[Event, Mapping[str, Any]]]) -> None:
        """Replace the candidate pool, rank it, and schedule a pass."""
        pool: Dict[str, Event] = {}
        for item in events:
            event = item if isinstance(item, Event) else Event.from_dict(item)
            if event.id in pool:
                raise EventValidationError("id", f"duplicate id {event.id!r}")
            pool[event.id] = event

        self._events = pool
        apply_ranks(list(pool.values()))
        self.pipeline.invalidate_index()
        logger.info(f"Event pool replaced: {len(pool)} events")
        self._request_pass()

    def on_score_mutation(self, event_id: str, delta: float) -> float:
        """
        Apply a score delta (clamped at the floor).  Ranks are untouched
        until the next recompute tick.  A non-finite delta raises
        ValueError and leaves the score unchanged.
        """
        event = self._events[event_id]
        return self.scores.apply_delta(event, delta)

    def record_interaction(self, event_id: str, interaction: Union[Interaction, str]) -> float:
        return self.on_score_mutation(event_id, self.scores.bonus_for(Interaction(interaction)))

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def tick(self) -> int:
        """Run every due debounced pass and timer; returns callbacks fired."""
        return self.scheduler.run_pending()

    def resolve_now(self) -> Optional[ResolutionResult]:
        """Run the pending pass immediately, or re-resolve the current viewport."""
        if not self._debouncer.flush() and self._viewport is not None:
            self._run_pass(self._viewport)
        return self._latest

    # ------------------------------------------------------------------
    # Other operations
    # ------------------------------------------------------------------

    @property
    def latest_result(self) -> Optional[ResolutionResult]:
        return self._latest

    @property
    def viewport(self) -> Optional[Viewport]:
        return self._viewport

    @property
    def visible_budget(self) -> int:
        return self._budget

    @property
    def events(self) -> List[Event]:
        return list(self._events.values())

    def set_visible_budget(self, budget: int) -> int:
        self._budget = self.settings.clamp_budget(budget)
        logger.info(f"Visible budget set to {self._budget}")
        self._request_pass()
        return self._budget

    def activate_cluster(self, cluster_id: str) -> ClusterAction:
        if self._latest is None:
            raise KeyError(cluster_id)
        for cluster in self._latest.clusters:
            if cluster.cluster_id == cluster_id:
                return self.pipeline.activate_cluster(cluster, self._latest.viewport)
        raise KeyError(cluster_id)

    def icon_for(self, tiered: TieredEvent) -> Any:
        if self._latest is None:
            raise RuntimeError("no resolution pass has run yet")
        return self.icons.icon_for(tiered, self._latest.viewport.zoom)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _request_pass(self) -> None:
        if self._debouncer.pending:
            return
        if self._viewport is not None:
            self._debouncer.trigger(self._viewport)

    def _run_pass(self, viewport: Viewport) -> None:
        self._viewport = viewport
        if self.icons.clear_if_zoom_changed(viewport.zoom):
            logger.debug(f"Icon cache cleared for zoom {viewport.zoom}")

        started = time.perf_counter()
        result = self.pipeline.run(list(self._events.values()), viewport, budget=self._budget)
        elapsed_ms = (time.perf_counter() - started) * 1000
        self._latest = result
        self.passes += 1
        logger.debug(
            f"Pass {self.passes}: {len(result.visible)} visible, {len(result.hidden)} hidden, "
            f"{len(result.clusters)} clusters in {elapsed_ms:.1f}ms"
        )
        if self.on_result is not None:
            self.on_result(result)

    def _decay(self) -> None:
        changed = self.scores.decay(self._events.values())
        if changed:
            logger.debug(f"Decayed {changed} scores")

    def _recompute_ranks(self) -> None:
        if not self._events:
            return
        apply_ranks(list(self._events.values()))
        self._request_pass()

"""
Render tier assignment.

A marker's tier sets its footprint, the footprint decides which markers
survive collision resolution, and the surviving set decides who is in the
local top ten.  The loop is cut with two fixed phases instead of iterating
to a fixed point:

``seed_tiers``
    Before resolution.  Tier from global rank and viewport membership only.
    Every in-viewport candidate is seeded ``high`` because any of them can
    still end up in the local top ten, so seed tiers never understate the
    final tier.

``finalize_tiers``
    After resolution.  Re-tiers the final visible set against itself.
    Collisions are not re-validated; tiers only ever shrink here, so the
    placed markers stay collision-free, but space freed by a shrinking
    marker is not offered to hidden candidates.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from declutter.types import Event, GeoBounds, Tier, TieredEvent

TOP_RANK_CUTOFF = 5
LOCAL_HIGH_COUNT = 10


class TierAssigner:
    """Global/local two-tier sizing rule."""

    def __init__(self, top_rank_cutoff: int = TOP_RANK_CUTOFF, local_high_count: int = LOCAL_HIGH_COUNT):
        self.top_rank_cutoff = top_rank_cutoff
        self.local_high_count = local_high_count

    def _rank(self, event: Event, ranks: Optional[Mapping[str, int]]) -> int:
        if ranks is not None and event.id in ranks:
            return ranks[event.id]
        return event.rank

    def local_top(
        self,
        local_set: Iterable[Event],
        viewport_bounds: Optional[GeoBounds],
        ranks: Optional[Mapping[str, int]] = None,
    ) -> Set[str]:
        """Ids of the best-ranked in-bounds members of *local_set*."""
        if viewport_bounds is None:
            return set()
        in_view = [e for e in local_set if viewport_bounds.contains(e.location)]
        in_view.sort(key=lambda e: self._rank(e, ranks))
        return {e.id for e in in_view[:self.local_high_count]}

    def tier(
        self,
        event: Event,
        local_set: Iterable[Event],
        viewport_bounds: Optional[GeoBounds],
        ranks: Optional[Mapping[str, int]] = None,
    ) -> Tier:
        if self._rank(event, ranks) <= self.top_rank_cutoff:
            return Tier.TOP
        if event.id in self.local_top(local_set, viewport_bounds, ranks):
            return Tier.HIGH
        return Tier.NORMAL

    # ------------------------------------------------------------------
    # Two-phase convergence
    # ------------------------------------------------------------------

    def seed_tiers(self, candidates: Sequence[Event], viewport_bounds: GeoBounds) -> Dict[str, Tier]:
        tiers: Dict[str, Tier] = {}
        for event in candidates:
            if event.rank <= self.top_rank_cutoff:
                tiers[event.id] = Tier.TOP
            elif viewport_bounds.contains(event.location):
                tiers[event.id] = Tier.HIGH
            else:
                tiers[event.id] = Tier.NORMAL
        return tiers

    def finalize_tiers(
        self,
        visible: Sequence[Event],
        hidden: Sequence[Event],
        viewport_bounds: GeoBounds,
    ) -> Tuple[List[TieredEvent], List[TieredEvent]]:
        local_top = self.local_top(visible, viewport_bounds)

        def assign(event: Event) -> TieredEvent:
            if event.rank <= self.top_rank_cutoff:
                tier = Tier.TOP
            elif event.id in local_top:
                tier = Tier.HIGH
            else:
                tier = Tier.NORMAL
            event.render_tier = tier
            return TieredEvent(event, tier)

        return [assign(e) for e in visible], [assign(e) for e in hidden]

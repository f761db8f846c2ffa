"""Tests for two-phase render tier assignment."""

from declutter.tiers import TierAssigner
from declutter.types import GeoBounds, Tier

BOUNDS = GeoBounds(south=0, west=0, north=1, east=1)


class TestTierRule:
    def test_global_top_five(self, make_event):
        assigner = TierAssigner()
        outside = make_event("a", lat=5, lng=5, rank=5)
        assert assigner.tier(outside, [outside], BOUNDS) == Tier.TOP

    def test_local_top_ten(self, make_event):
        assigner = TierAssigner()
        events = [make_event(str(r), rank=r) for r in range(6, 20)]
        assert assigner.tier(events[0], events, BOUNDS) == Tier.HIGH
        assert assigner.tier(events[9], events, BOUNDS) == Tier.HIGH
        assert assigner.tier(events[10], events, BOUNDS) == Tier.NORMAL

    def test_local_top_ignores_out_of_view(self, make_event):
        assigner = TierAssigner()
        far = make_event("far", lat=3, lng=3, rank=6)
        near = make_event("near", rank=50)
        assert assigner.local_top([far, near], BOUNDS) == {"near"}

    def test_ranks_override(self, make_event):
        assigner = TierAssigner()
        e = make_event("a", rank=40)
        assert assigner.tier(e, [e], BOUNDS, ranks={"a": 2}) == Tier.TOP

    def test_no_bounds(self, make_event):
        e = make_event("a", rank=9)
        assert TierAssigner().tier(e, [e], None) == Tier.NORMAL


class TestTwoPhase:
    def test_seed_is_upper_bound_of_final(self, make_event):
        assigner = TierAssigner()
        events = [make_event(str(r), rank=r) for r in range(1, 30)]
        events.append(make_event("out", lat=1.2, lng=0.5, rank=7))
        seeds = assigner.seed_tiers(events, BOUNDS)
        visible, hidden = assigner.finalize_tiers(events[:20], events[20:], BOUNDS)
        for tiered in visible + hidden:
            assert seeds[tiered.event.id].weight >= tiered.tier.weight

    def test_seed_tiers(self, make_event):
        seeds = TierAssigner().seed_tiers(
            [make_event("top", rank=3), make_event("in", rank=60), make_event("out", lat=2, rank=8)],
            BOUNDS,
        )
        assert seeds == {"top": Tier.TOP, "in": Tier.HIGH, "out": Tier.NORMAL}

    def test_finalize_uses_visible_set_only(self, make_event):
        assigner = TierAssigner()
        visible = [make_event(str(r), rank=r) for r in (6, 40)]
        hidden = [make_event(str(r), rank=r) for r in range(7, 20)]
        vis, hid = assigner.finalize_tiers(visible, hidden, BOUNDS)
        assert [t.tier for t in vis] == [Tier.HIGH, Tier.HIGH]
        assert all(t.tier == Tier.NORMAL for t in hid)
        assert visible[1].render_tier == Tier.HIGH

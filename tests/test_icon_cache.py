"""Tests for marker icon memoization."""

from declutter.icon_cache import IconCache, MarkerIcon
from declutter.types import Tier, TieredEvent


class TestIconCache:
    def test_memoizes_by_visual_key(self, make_event):
        cache = IconCache()
        a = make_event("a", rank=3, category="fire", severity="high")
        b = make_event("b", rank=3, category="fire", severity="high")
        icon = cache.get(a, Tier.TOP, 10)
        assert cache.get(b, Tier.TOP, 10) is icon
        assert len(cache) == 1

    def test_key_distinguishes_rank_and_tier(self, make_event):
        cache = IconCache()
        e = make_event("a", rank=3)
        cache.get(e, Tier.TOP, 10)
        cache.get(e, Tier.HIGH, 10)
        e.rank = 4
        cache.get(e, Tier.HIGH, 10)
        assert len(cache) == 3

    def test_default_icon(self, make_event):
        icon = IconCache().icon_for(
            TieredEvent(make_event("a", rank=7, severity="low", verified=True), Tier.HIGH), 10,
        )
        assert isinstance(icon, MarkerIcon)
        assert icon.size == 42
        assert icon.anchor == (21, 21)
        assert icon.label == "#7"
        assert "severity-low" in icon.css_classes
        assert "verified" in icon.css_classes
        assert "rank-high" in icon.css_classes
        assert "close" in icon.css_classes

    def test_cleared_on_zoom_change(self, make_event):
        built = []
        cache = IconCache(factory=lambda key: built.append(key) or key)
        assert cache.clear_if_zoom_changed(10)
        cache.get(make_event("a"), Tier.NORMAL, 10)
        assert not cache.clear_if_zoom_changed(10)
        assert len(cache) == 1
        assert cache.clear_if_zoom_changed(11)
        assert len(cache) == 0

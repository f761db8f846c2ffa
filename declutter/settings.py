"""Process-wide declutter options, read once from config.json at startup."""

from dataclasses import dataclass, fields
from typing import Optional

from common.config import Config, config as default_config
from declutter.errors import DeclutterConfigError

MIN_VISIBLE_BUDGET = 5
COLLISION_FALLBACK_POLICIES = ("session", "pass")


@dataclass(frozen=True)
class DeclutterSettings:
    """
    Recognized options (config.json section ``declutter``).

    Intervals are in milliseconds, sizes in pixels, bonuses and decay in
    score points.
    """
    visible_budget: int = 300
    max_visible_budget: int = 300
    grid_cell_size_px: int = 50
    viewport_padding: float = 0.5
    candidate_multiplier: int = 4
    collision_fallback: str = "session"
    decay_interval_ms: int = 10000
    decay_amount: float = 3.0
    hover_bonus: float = 5.0
    click_bonus: float = 10.0
    like_bonus: float = 25.0
    comment_bonus: float = 15.0
    min_score: float = 0.0
    rank_recompute_interval_ms: int = 60000
    cluster_min_size: int = 3
    clustering_enabled: bool = False
    debounce_ms: int = 100

    def __post_init__(self):
        self._check(self.visible_budget >= MIN_VISIBLE_BUDGET,
                    "visible_budget", f"must be >= {MIN_VISIBLE_BUDGET}")
        self._check(self.max_visible_budget >= MIN_VISIBLE_BUDGET,
                    "max_visible_budget", f"must be >= {MIN_VISIBLE_BUDGET}")
        self._check(self.grid_cell_size_px > 0, "grid_cell_size_px", "must be > 0")
        self._check(self.viewport_padding >= 0, "viewport_padding", "must be >= 0")
        self._check(self.candidate_multiplier >= 1, "candidate_multiplier", "must be >= 1")
        self._check(self.collision_fallback in COLLISION_FALLBACK_POLICIES,
                    "collision_fallback", f"must be one of {COLLISION_FALLBACK_POLICIES}")
        self._check(self.decay_interval_ms > 0, "decay_interval_ms", "must be > 0")
        self._check(self.decay_amount >= 0, "decay_amount", "must be >= 0")
        self._check(self.rank_recompute_interval_ms > 0,
                    "rank_recompute_interval_ms", "must be > 0")
        self._check(self.cluster_min_size >= 2, "cluster_min_size", "must be >= 2")
        self._check(self.debounce_ms >= 0, "debounce_ms", "must be >= 0")

    @staticmethod
    def _check(ok: bool, key: str, reason: str) -> None:
        if not ok:
            raise DeclutterConfigError(f"declutter.{key}", reason)

    @property
    def effective_budget(self) -> int:
        """Default budget clamped to the configured ceiling."""
        return min(self.visible_budget, self.max_visible_budget)

    def clamp_budget(self, budget: int) -> int:
        return max(MIN_VISIBLE_BUDGET, min(int(budget), self.max_visible_budget))

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None) -> "DeclutterSettings":
        """Build settings from the ``declutter.*`` schema keys."""
        cfg = cfg or default_config
        values = cfg.section("declutter")
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known and v is not None})

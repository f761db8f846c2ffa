"""
Score → rank computation and the score mutation policy.

Ranking is competition-style: equal scores share a rank and the next lower
score jumps to its 1-based position, so ``[50, 50, 40, 10]`` ranks as
``[1, 1, 3, 4]``.  Ranking is a pure function over a snapshot; scores are
mutated separately (interaction bonuses, periodic decay) and only reach
the ranks on the next recompute tick.
"""

import math
from enum import Enum
from typing import Dict, Iterable, Sequence

from common.logging.logger import get_logger
from declutter.settings import DeclutterSettings
from declutter.types import Event

logger = get_logger("declutter.ranking")


def compute_ranks(events: Iterable) -> Dict[str, int]:
    """
    Map each event id to its competition rank (1 = highest score).

    Accepts any objects with ``id`` and ``score``.  The sort is stable, so
    ties keep their input order.
    """
    ordered = sorted(events, key=lambda e: e.score, reverse=True)
    ranks: Dict[str, int] = {}
    if not ordered:
        return ranks

    current_rank = 1
    current_score = ordered[0].score
    for index, event in enumerate(ordered):
        if event.score < current_score:
            current_rank = index + 1
            current_score = event.score
        ranks[event.id] = current_rank
    return ranks


def apply_ranks(events: Sequence[Event]) -> Dict[str, int]:
    """Recompute ranks and write them onto each event's ``rank``."""
    ranks = compute_ranks(events)
    for event in events:
        event.rank = ranks[event.id]
    logger.debug(f"Recomputed ranks for {len(events)} events")
    return ranks


class Interaction(str, Enum):
    """User interactions that earn a score bonus."""
    HOVER = "hover"
    CLICK = "click"
    LIKE = "like"
    COMMENT = "comment"


class ScorePolicy:
    """
    Interaction bonuses, periodic decay and the score floor.

    Args:
        settings: Declutter settings supplying bonus, decay and floor values.
    """

    def __init__(self, settings: DeclutterSettings):
        self.min_score = settings.min_score
        self.decay_amount = settings.decay_amount
        self._bonuses = {
            Interaction.HOVER: settings.hover_bonus,
            Interaction.CLICK: settings.click_bonus,
            Interaction.LIKE: settings.like_bonus,
            Interaction.COMMENT: settings.comment_bonus,
        }

    def bonus_for(self, interaction: Interaction) -> float:
        return self._bonuses[Interaction(interaction)]

    def apply_delta(self, event: Event, delta: float) -> float:
        """Add *delta* to the event's score, clamped at the floor."""
        if isinstance(delta, bool) or not isinstance(delta, (int, float)) or not math.isfinite(delta):
            raise ValueError(f"score delta must be a finite number, got {delta!r}")
        score = max(self.min_score, event.score + delta)
        if not math.isfinite(score):
            raise ValueError(f"score overflow applying {delta!r} to {event.score!r}")
        event.score = score
        return event.score

    def decay(self, events: Iterable[Event]) -> int:
        """Subtract one decay step from every event; returns how many changed."""
        changed = 0
        for event in events:
            before = event.score
            if self.apply_delta(event, -self.decay_amount) != before:
                changed += 1
        return changed

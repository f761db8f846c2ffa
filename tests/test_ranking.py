"""Tests for competition ranking and the score mutation policy."""

import math

import pytest

from declutter.ranking import Interaction, ScorePolicy, apply_ranks, compute_ranks
from declutter.settings import DeclutterSettings


class TestComputeRanks:
    def test_competition_ranking(self, make_event):
        events = [make_event(i, score=s) for i, s in zip("abcd", [50, 50, 40, 10])]
        assert compute_ranks(events) == {"a": 1, "b": 1, "c": 3, "d": 4}

    def test_unsorted_input(self, make_event):
        events = [make_event(i, score=s) for i, s in zip("abcde", [1, 9, 5, 9, 0])]
        ranks = compute_ranks(events)
        assert ranks == {"b": 1, "d": 1, "c": 3, "a": 4, "e": 5}

    def test_all_equal(self, make_event):
        events = [make_event(str(i), score=7) for i in range(5)]
        assert set(compute_ranks(events).values()) == {1}

    def test_empty(self):
        assert compute_ranks([]) == {}

    def test_pure(self, make_event):
        events = [make_event("a", score=1), make_event("b", score=2)]
        compute_ranks(events)
        assert [e.rank for e in events] == [0, 0]

    def test_apply_ranks_writes_rank(self, make_event):
        events = [make_event("a", score=1), make_event("b", score=2)]
        apply_ranks(events)
        assert [e.rank for e in events] == [2, 1]


class TestScorePolicy:
    def test_bonuses(self, make_event):
        policy = ScorePolicy(DeclutterSettings())
        assert policy.bonus_for(Interaction.HOVER) == 5
        assert policy.bonus_for("click") == 10
        assert policy.bonus_for(Interaction.LIKE) == 25
        assert policy.bonus_for(Interaction.COMMENT) == 15

    def test_unknown_interaction(self):
        with pytest.raises(ValueError):
            ScorePolicy(DeclutterSettings()).bonus_for("share")

    def test_delta_clamped_at_floor(self, make_event):
        policy = ScorePolicy(DeclutterSettings())
        e = make_event("a", score=4)
        assert policy.apply_delta(e, -10) == 0.0
        assert e.score == 0.0

    def test_decay(self, make_event):
        policy = ScorePolicy(DeclutterSettings())
        events = [make_event("a", score=10), make_event("b", score=2), make_event("c", score=0)]
        changed = policy.decay(events)
        assert [e.score for e in events] == [7, 0, 0]
        assert changed == 2

    def test_mutation_does_not_rerank(self, make_event):
        policy = ScorePolicy(DeclutterSettings())
        events = [make_event("a", score=10), make_event("b", score=5)]
        apply_ranks(events)
        policy.apply_delta(events[1], 100)
        assert events[1].rank == 2

    @pytest.mark.parametrize("delta", [math.nan, math.inf, -math.inf])
    def test_non_finite_delta_rejected(self, make_event, delta):
        policy = ScorePolicy(DeclutterSettings())
        e = make_event("a", score=12)
        with pytest.raises(ValueError):
            policy.apply_delta(e, delta)
        assert e.score == 12

    def test_non_numeric_delta_rejected(self, make_event):
        policy = ScorePolicy(DeclutterSettings())
        e = make_event("a", score=12)
        for delta in ("5", None, True):
            with pytest.raises(ValueError):
                policy.apply_delta(e, delta)
        assert e.score == 12

    def test_overflow_rejected(self, make_event):
        policy = ScorePolicy(DeclutterSettings())
        e = make_event("a", score=0)
        policy.apply_delta(e, 1e308)
        with pytest.raises(ValueError):
            policy.apply_delta(e, 1e308)
        assert e.score == 1e308


class TestRankMonotonicity:
    @pytest.mark.parametrize("scores", [[50, 50, 40, 10, 30], [90, 70, 50, 30, 10]])
    def test_raising_score_never_worsens_rank(self, make_event, scores):
        events = [make_event(f"e{i}", score=s) for i, s in enumerate(scores)]
        climber = events[3]
        previous = compute_ranks(events)[climber.id]
        for _ in range(20):
            climber.score += 5
            rank = compute_ranks(events)[climber.id]
            assert rank <= previous
            previous = rank
        assert previous == 1

    def test_raising_score_never_improves_others(self, make_event):
        events = [make_event(f"e{i}", score=s) for i, s in enumerate([50, 50, 40, 10, 30])]
        before = compute_ranks(events)
        events[3].score += 45
        after = compute_ranks(events)
        for e in events[:3] + events[4:]:
            assert after[e.id] >= before[e.id]

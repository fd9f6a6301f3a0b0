"""Tests for chromasort.core.generator – scrambled level generation."""

from __future__ import annotations

import random
from collections import Counter

import pytest

from chromasort.core.generator import (
    MAX_REPAIR_PASSES,
    break_presolved,
    generate_level,
    legal_scramble_moves,
    scramble,
    solved_board,
)
from chromasort.core.levels import LevelConfig, config_for
from chromasort.core.models import Ball
from chromasort.core.rules import is_sorted_tube, is_win


def _stacks(*colors):
    return [[Ball(color_id=c) for c in stack] for stack in colors]


def _colors(stacks):
    return [[b.color_id for b in stack] for stack in stacks]


# ---------------------------------------------------------------------------
# Solved layout
# ---------------------------------------------------------------------------

class TestSolvedBoard:
    def test_layout(self):
        cfg = LevelConfig(num_colors=3, num_empty=2, shuffles=0, max_moves=3, time_limit=30)
        assert _colors(solved_board(cfg)) == [[0] * 4, [1] * 4, [2] * 4, [], []]

    def test_custom_capacity(self):
        cfg = LevelConfig(num_colors=2, num_empty=1, shuffles=0, max_moves=3, time_limit=30)
        assert _colors(solved_board(cfg, capacity=3)) == [[0] * 3, [1] * 3, []]


# ---------------------------------------------------------------------------
# Scrambling
# ---------------------------------------------------------------------------

class TestScramble:
    def test_legal_moves_respect_capacity(self):
        stacks = _stacks([0, 0, 0, 0], [1, 1, 1, 1], [])
        assert sorted(legal_scramble_moves(stacks, 4)) == [(0, 2), (1, 2)]

    def test_no_moves_when_everything_empty(self):
        assert legal_scramble_moves(_stacks([], []), 4) == []

    def test_stops_early_without_moves(self):
        stacks = _stacks([0, 0], [1, 1])
        assert scramble(stacks, 10, 2, random.Random(1)) == 0
        assert _colors(stacks) == [[0, 0], [1, 1]]

    def test_never_undoes_previous_move_when_avoidable(self):
        class Recorder(random.Random):
            def __init__(self):
                super().__init__(7)
                self.picks = []

            def choice(self, seq):
                picked = super().choice(seq)
                self.picks.append(picked)
                return picked

        rng = Recorder()
        stacks = _stacks([0, 0, 0, 0], [1, 1, 1, 1], [2, 2, 2, 2], [], [])
        scramble(stacks, 200, 4, rng)
        for previous, current in zip(rng.picks, rng.picks[1:]):
            assert current != (previous[1], previous[0])

    def test_falls_back_to_reverse_when_forced(self):
        stacks = _stacks([0], [])
        performed = scramble(stacks, 5, 1, random.Random(3))
        assert performed == 5
        assert _colors(stacks) == [[], [0]]

    def test_preserves_balls(self):
        stacks = _stacks([0, 0, 0, 0], [1, 1, 1, 1], [], [])
        ids_before = {b.id for s in stacks for b in s}
        scramble(stacks, 50, 4, random.Random(11))
        assert {b.id for s in stacks for b in s} == ids_before
        assert all(len(s) <= 4 for s in stacks)


# ---------------------------------------------------------------------------
# Breaking up pre-solved tubes
# ---------------------------------------------------------------------------

class TestBreakPresolved:
    def test_breaks_full_monochrome_tube(self):
        stacks = _stacks([0, 0, 0, 0], [1, 0, 1], [1, 1])
        break_presolved(stacks, 4)
        assert _colors(stacks) == [[0, 0, 0], [1, 0, 1, 0], [1, 1]]

    def test_leaves_mixed_tubes_alone(self):
        stacks = _stacks([0, 1, 0, 1], [1, 0, 1, 0], [])
        assert break_presolved(stacks, 4) == 1
        assert _colors(stacks) == [[0, 1, 0, 1], [1, 0, 1, 0], []]

    def test_unsolved_start_from_zero_shuffles(self):
        cfg = LevelConfig(num_colors=4, num_empty=2, shuffles=0, max_moves=3, time_limit=30)
        stacks = solved_board(cfg)
        break_presolved(stacks, 4)
        assert not any(len(s) == 4 and len({b.color_id for b in s}) == 1 for s in stacks)

    def test_gives_up_after_bounded_passes(self):
        stacks = _stacks([0, 0], [1, 1])
        assert break_presolved(stacks, 2) == MAX_REPAIR_PASSES


# ---------------------------------------------------------------------------
# generate_level
# ---------------------------------------------------------------------------

class TestGenerateLevel:
    @pytest.mark.parametrize("level", [0, 4, 12, 25])
    def test_generated_boards_are_valid(self, level):
        cfg = config_for(level)
        for seed in range(25):
            board = generate_level(cfg, rng=random.Random(seed))
            assert len(board) == cfg.num_colors + cfg.num_empty
            assert [t.id for t in board] == list(range(len(board)))
            assert all(t.capacity == 4 and len(t.balls) <= 4 for t in board)
            counts = Counter(b.color_id for t in board for b in t.balls)
            assert counts == {color: 4 for color in range(cfg.num_colors)}
            assert not is_win(board)
            assert not any(t.balls and is_sorted_tube(t) for t in board)

    def test_ball_ids_unique(self):
        board = generate_level(config_for(19), rng=random.Random(5))
        ids = [b.id for t in board for b in t.balls]
        assert len(ids) == len(set(ids))

    def test_seeded_generation_is_repeatable(self):
        cfg = config_for(2)
        first = generate_level(cfg, rng=random.Random(42))
        second = generate_level(cfg, rng=random.Random(42))
        assert first == second

    def test_zero_shuffles_still_unsolved(self):
        cfg = LevelConfig(num_colors=4, num_empty=2, shuffles=0, max_moves=3, time_limit=30)
        assert not is_win(generate_level(cfg, rng=random.Random(0)))

    def test_default_rng(self):
        board = generate_level(config_for(0))
        assert sum(len(t.balls) for t in board) == 16

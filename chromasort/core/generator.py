"""Level generation: build a solved board, then scramble it.

Scrambling ignores colours and only respects capacity, so the result is
always reachable from a solved layout. Tubes that end up full and
single-coloured are broken up afterwards so a new level never starts with
a finished tube.
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional, Tuple

from chromasort.core.levels import LevelConfig
from chromasort.core.models import Ball, Board, Tube

logger = logging.getLogger(__name__)

TUBE_CAPACITY = 4
MAX_REPAIR_PASSES = 100

Move = Tuple[int, int]


def solved_board(config: LevelConfig, capacity: int = TUBE_CAPACITY) -> List[List[Ball]]:
    """Stacks for a solved layout: one full tube per colour, then the empty tubes."""
    total = config.num_colors + config.num_empty
    return [
        [Ball(color_id=index) for _ in range(capacity)] if index < config.num_colors else []
        for index in range(total)
    ]


def legal_scramble_moves(stacks: List[List[Ball]], capacity: int) -> List[Move]:
    """All (from, to) pairs where ``from`` has a ball and ``to`` has room."""
    moves: List[Move] = []
    for src, source in enumerate(stacks):
        if not source:
            continue
        for dest, target in enumerate(stacks):
            if src != dest and len(target) < capacity:
                moves.append((src, dest))
    return moves


def scramble(
    stacks: List[List[Ball]],
    shuffles: int,
    capacity: int,
    rng: random.Random,
) -> int:
    """Apply up to ``shuffles`` random capacity-only moves in place.

    Returns the number of moves actually made.
    """
    previous: Optional[Move] = None
    for performed in range(shuffles):
        available = legal_scramble_moves(stacks, capacity)
        if not available:
            return performed
        if previous is not None:
            reverse = (previous[1], previous[0])
            useful = [move for move in available if move != reverse]
            pool = useful or available
        else:
            pool = available
        src, dest = rng.choice(pool)
        stacks[dest].append(stacks[src].pop())
        previous = (src, dest)
    return shuffles


def _is_presolved(stack: List[Ball], capacity: int) -> bool:
    return len(stack) == capacity and len({ball.color_id for ball in stack}) == 1


def break_presolved(stacks: List[List[Ball]], capacity: int) -> int:
    """Move the top ball off every full single-colour tube until none remain.

    Gives up after MAX_REPAIR_PASSES passes. Returns the number of passes used.
    """
    passes = 0
    found = True
    while found and passes < MAX_REPAIR_PASSES:
        found = False
        passes += 1
        for index, stack in enumerate(stacks):
            if not _is_presolved(stack, capacity):
                continue
            found = True
            dest = next(
                (other for pos, other in enumerate(stacks) if pos != index and len(other) < capacity),
                None,
            )
            if dest is not None:
                dest.append(stack.pop())
    if found:
        logger.warning("Pre-solved tubes remain after %d repair passes", passes)
    return passes


def generate_level(
    config: LevelConfig,
    capacity: int = TUBE_CAPACITY,
    rng: Optional[random.Random] = None,
) -> Board:
    """Build a scrambled, not-yet-solved board for ``config``."""
    rng = rng or random.Random()
    stacks = solved_board(config, capacity)
    performed = scramble(stacks, config.shuffles, capacity, rng)
    passes = break_presolved(stacks, capacity)
    logger.debug(
        "Generated %d tubes: %d/%d scramble moves, %d repair passes",
        len(stacks),
        performed,
        config.shuffles,
        passes,
    )
    return tuple(
        Tube(id=index, capacity=capacity, balls=tuple(stack)) for index, stack in enumerate(stacks)
    )

"""Board value types: balls, tubes and boards, plus their JSON-friendly form."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple


def new_ball_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Ball:
    """A single ball. ``id`` only exists so a renderer can follow it between tubes."""

    color_id: int
    id: str = field(default_factory=new_ball_id, compare=False)


@dataclass(frozen=True)
class Tube:
    """Fixed-capacity stack of balls, bottom first."""

    id: int
    capacity: int
    balls: Tuple[Ball, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.balls

    @property
    def is_full(self) -> bool:
        return len(self.balls) >= self.capacity

    @property
    def free_space(self) -> int:
        return self.capacity - len(self.balls)

    def top(self) -> Optional[Ball]:
        """Return the top ball, or None when the tube is empty."""
        return self.balls[-1] if self.balls else None

    def is_monochrome(self) -> bool:
        return len({ball.color_id for ball in self.balls}) <= 1

    def pop(self) -> Tuple["Tube", Ball]:
        """Return ``(tube_without_top, top_ball)``. Raises IndexError when empty."""
        if not self.balls:
            raise IndexError(f"tube {self.id} is empty")
        return replace(self, balls=self.balls[:-1]), self.balls[-1]

    def push(self, ball: Ball) -> "Tube":
        if self.is_full:
            raise ValueError(f"tube {self.id} is full")
        return replace(self, balls=self.balls + (ball,))

    def colors(self) -> List[int]:
        return [ball.color_id for ball in self.balls]


Board = Tuple[Tube, ...]


def find_tube(board: Board, tube_id: int) -> Optional[Tube]:
    for tube in board:
        if tube.id == tube_id:
            return tube
    return None


def move_top_ball(board: Board, source_id: int, dest_id: int) -> Board:
    """Move the top ball of ``source_id`` onto ``dest_id`` and return the new board.

    Only the two touched tubes are rebuilt; every other tube is shared with
    the input board. Capacity is enforced, colours are not.
    """
    source = find_tube(board, source_id)
    dest = find_tube(board, dest_id)
    if source is None or dest is None:
        raise KeyError(f"unknown tube id: {source_id if source is None else dest_id}")
    new_source, ball = source.pop()
    new_dest = dest.push(ball)
    updated = {new_source.id: new_source, new_dest.id: new_dest}
    return tuple(updated.get(tube.id, tube) for tube in board)


def board_colors(board: Board) -> List[List[int]]:
    """Colour ids per tube, bottom to top. Handy for comparing boards by value."""
    return [tube.colors() for tube in board]


def board_to_list(board: Board) -> List[Dict[str, Any]]:
    return [
        {
            "id": tube.id,
            "capacity": tube.capacity,
            "balls": [{"id": ball.id, "color_id": ball.color_id} for ball in tube.balls],
        }
        for tube in board
    ]


def board_from_list(raw: Any) -> Board:
    """Rebuild a board from :func:`board_to_list` output.

    Raises ValueError/TypeError/KeyError on malformed input so callers can
    fall back to a fresh level.
    """
    if not isinstance(raw, list) or not raw:
        raise ValueError("board must be a non-empty list of tubes")
    tubes: List[Tube] = []
    for item in raw:
        capacity = int(item["capacity"])
        balls = tuple(
            Ball(color_id=int(b["color_id"]), id=str(b.get("id") or new_ball_id()))
            for b in item.get("balls", [])
        )
        if capacity <= 0 or len(balls) > capacity:
            raise ValueError(f"tube {item.get('id')}: {len(balls)} balls exceed capacity {capacity}")
        tubes.append(Tube(id=int(item["id"]), capacity=capacity, balls=balls))
    return tuple(tubes)

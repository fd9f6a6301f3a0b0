from __future__ import annotations

from typing import Iterable

from chromasort.core.models import Tube


def is_valid_move(source: Tube, dest: Tube) -> bool:
    """True if the top ball of ``source`` may be dropped onto ``dest``."""
    if source.id == dest.id:
        return False
    source_top = source.top()
    if source_top is None or dest.is_full:
        return False
    dest_top = dest.top()
    if dest_top is None:
        return True
    return source_top.color_id == dest_top.color_id


def is_sorted_tube(tube: Tube) -> bool:
    """Empty, or full to capacity with a single colour."""
    if tube.is_empty:
        return True
    return len(tube.balls) == tube.capacity and tube.is_monochrome()


def is_win(board: Iterable[Tube]) -> bool:
    return all(is_sorted_tube(tube) for tube in board)

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from chromasort.core.generator import generate_level
from chromasort.core.levels import DifficultyTable, LevelConfig, default_table
from chromasort.core.models import Board, board_from_list, board_to_list, find_tube, move_top_ball
from chromasort.core.progress import LevelState, ProgressStore
from chromasort.core.rules import is_valid_move, is_win

logger = logging.getLogger(__name__)


class Status(Enum):
    PLAYING = "playing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class GameState:
    """Immutable snapshot of one level being played.

    ``initial_board`` is captured when the level starts and is what
    :func:`reset` goes back to. ``history`` holds the boards as they were
    before each applied move, newest last.
    """

    board: Board
    initial_board: Board
    level: int
    max_moves: int
    total_time: int
    time_left: int
    selected_tube_id: Optional[int] = None
    moves: int = 0
    is_completed: bool = False
    is_failed: bool = False
    history: Tuple[Board, ...] = ()

    @property
    def status(self) -> Status:
        if self.is_completed:
            return Status.COMPLETED
        if self.is_failed:
            return Status.FAILED
        return Status.PLAYING

    @property
    def is_playing(self) -> bool:
        return not (self.is_completed or self.is_failed)

    @property
    def can_undo(self) -> bool:
        return self.is_playing and bool(self.history)

    @property
    def moves_left(self) -> int:
        return max(0, self.max_moves - self.moves)


# ---------------------------------------------------------------------------
# Transitions: each takes a state and returns the next one. A rejected
# intent returns the very same object.
# ---------------------------------------------------------------------------

def new_game(level: int, config: LevelConfig, board: Board) -> GameState:
    return GameState(
        board=board,
        initial_board=board,
        level=level,
        max_moves=config.max_moves,
        total_time=config.time_limit,
        time_left=config.time_limit,
    )


def select_or_move(state: GameState, tube_id: int) -> GameState:
    """Handle a click on ``tube_id``: select it, deselect it, or move onto it."""
    if not state.is_playing:
        return state
    clicked = find_tube(state.board, tube_id)
    if clicked is None:
        return state

    if state.selected_tube_id is None:
        if clicked.is_empty:
            return state
        return replace(state, selected_tube_id=tube_id)

    if state.selected_tube_id == tube_id:
        return replace(state, selected_tube_id=None)

    source = find_tube(state.board, state.selected_tube_id)
    if source is None or not is_valid_move(source, clicked):
        # Rejected move turns into a new selection (or none, for an empty tube).
        return replace(state, selected_tube_id=None if clicked.is_empty else tube_id)

    board = move_top_ball(state.board, source.id, clicked.id)
    moves = state.moves + 1
    won = is_win(board)
    return replace(
        state,
        board=board,
        selected_tube_id=None,
        moves=moves,
        is_completed=won,
        is_failed=not won and moves >= state.max_moves,
        history=state.history + (state.board,),
    )


def undo(state: GameState) -> GameState:
    """Restore the board from before the last move. The move count is kept."""
    if not state.can_undo:
        return state
    return replace(
        state,
        board=state.history[-1],
        history=state.history[:-1],
        selected_tube_id=None,
    )


def reset(state: GameState, config: LevelConfig) -> GameState:
    """Start the same level over from its initial board."""
    return replace(
        state,
        board=state.initial_board,
        selected_tube_id=None,
        moves=0,
        max_moves=config.max_moves,
        total_time=config.time_limit,
        time_left=config.time_limit,
        is_completed=False,
        is_failed=False,
        history=(),
    )


def tick(state: GameState) -> GameState:
    """Advance the countdown by one second."""
    if not state.is_playing or state.time_left <= 0:
        return state
    time_left = state.time_left - 1
    return replace(state, time_left=time_left, is_failed=time_left == 0)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def state_to_dict(state: GameState) -> Dict[str, Any]:
    return {
        "board": board_to_list(state.board),
        "initial_board": board_to_list(state.initial_board),
        "selected_tube_id": state.selected_tube_id,
        "moves": state.moves,
        "max_moves": state.max_moves,
        "level": state.level,
        "is_completed": state.is_completed,
        "is_failed": state.is_failed,
        "history": [board_to_list(board) for board in state.history],
        "time_left": state.time_left,
        "total_time": state.total_time,
    }


def state_from_dict(raw: Any) -> Optional[GameState]:
    """Rebuild a saved state, or return None if it cannot be used.

    Saves written before ``initial_board`` existed use the current board
    as the initial one.
    """
    if not isinstance(raw, dict):
        return None
    try:
        board = board_from_list(raw.get("board"))
        initial_raw = raw.get("initial_board")
        initial_board = board_from_list(initial_raw) if initial_raw else board
        history = tuple(board_from_list(item) for item in raw.get("history") or [])
        selected = raw.get("selected_tube_id")
        total_time = int(raw["total_time"])
        state = GameState(
            board=board,
            initial_board=initial_board,
            level=int(raw["level"]),
            max_moves=int(raw["max_moves"]),
            total_time=total_time,
            time_left=max(0, min(int(raw["time_left"]), total_time)),
            selected_tube_id=None if selected is None else int(selected),
            moves=max(0, int(raw.get("moves", 0))),
            is_completed=bool(raw.get("is_completed", False)),
            is_failed=bool(raw.get("is_failed", False)),
            history=history,
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("Discarding unreadable saved session: %s", e)
        return None
    if state.is_completed and state.is_failed:
        logger.warning("Discarding saved session that is both completed and failed")
        return None
    if state.level < 0 or state.max_moves <= 0:
        logger.warning("Discarding saved session with invalid level settings")
        return None
    if state.selected_tube_id is not None and find_tube(board, state.selected_tube_id) is None:
        state = replace(state, selected_tube_id=None)
    if state.is_playing and state.time_left == 0:
        # Saved with the clock already run out; tick() would never fail it.
        state = replace(state, is_failed=True, selected_tube_id=None)
    return state


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class GameSession:
    """Owns the current :class:`GameState` and the player's progress.

    The presentation layer sends intents (``start_level``, ``select_or_move``,
    ``undo``, ``reset``, ``tick``, ``advance_level``) and reads ``state``.
    Every change is written through to the progress store, and completing a
    level unlocks the next one.
    """

    def __init__(
        self,
        progress_store: ProgressStore,
        table: Optional[DifficultyTable] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._progress = progress_store
        self._table = table or default_table()
        self._rng = rng or random.Random()
        self._state: Optional[GameState] = None

    @property
    def state(self) -> Optional[GameState]:
        """The level being played, or None before the first level starts."""
        return self._state

    @property
    def total_levels(self) -> int:
        return self._table.total_levels

    @property
    def unlocked_levels(self) -> int:
        return self._progress.unlocked_levels

    @property
    def has_next_level(self) -> bool:
        return self._state is not None and self._state.level + 1 < self.total_levels

    def config_for(self, level_index: int) -> LevelConfig:
        return self._table.config_for(level_index)

    def start_level(self, level_index: int) -> GameState:
        """Generate a fresh board for ``level_index`` and start playing it."""
        config = self._table.config_for(level_index)
        board = generate_level(config, capacity=self._table.tube_capacity, rng=self._rng)
        logger.info(
            "Starting level %d: %d colours, %d moves, %ds",
            level_index + 1,
            config.num_colors,
            config.max_moves,
            config.time_limit,
        )
        return self._commit(new_game(level_index, config, board))

    def select_level(self, level_index: int) -> Optional[GameState]:
        """Open a level from the level menu.

        Locked levels are ignored. Picking the level that is still in
        progress resumes it instead of generating a new board.
        """
        if not self._progress.is_unlocked(level_index):
            return self._state
        current = self._state
        if current is not None and current.level == level_index and current.is_playing:
            return current
        return self.start_level(level_index)

    def select_or_move(self, tube_id: int) -> Optional[GameState]:
        if self._state is None:
            return None
        return self._commit(select_or_move(self._state, tube_id))

    def undo(self) -> Optional[GameState]:
        if self._state is None:
            return None
        return self._commit(undo(self._state))

    def reset(self) -> Optional[GameState]:
        if self._state is None:
            return None
        logger.info("Restarting level %d", self._state.level + 1)
        return self._commit(reset(self._state, self._table.config_for(self._state.level)))

    def tick(self) -> Optional[GameState]:
        if self._state is None:
            return None
        return self._commit(tick(self._state))

    def advance_level(self) -> Optional[GameState]:
        """Move on to the next level once the current one is completed."""
        if self._state is None or not self._state.is_completed or not self.has_next_level:
            return self._state
        return self.start_level(self._state.level + 1)

    def restore(self) -> bool:
        """Load the last saved session. Returns False if there was none usable."""
        state = state_from_dict(self._progress.load_session())
        if state is None:
            return False
        self._state = state
        logger.info("Restored level %d at move %d", state.level + 1, state.moves)
        return True

    def resume_or_start(self) -> GameState:
        """Resume the saved session, or start the newest unlocked level."""
        if self.restore():
            return self._state
        level = min(self.unlocked_levels, self.total_levels) - 1
        logger.info("No usable saved session, starting level %d", level + 1)
        return self.start_level(level)

    def level_states(self) -> List[LevelState]:
        current = self._state.level if self._state is not None and self._state.is_playing else None
        return self._progress.level_states(self.total_levels, current_level=current)

    def _commit(self, new_state: GameState) -> GameState:
        previous = self._state
        if new_state is previous:
            return new_state
        self._state = new_state
        was_playing = previous is not None and previous.is_playing and previous.level == new_state.level
        if was_playing and new_state.is_completed:
            logger.info("Level %d completed in %d moves", new_state.level + 1, new_state.moves)
            self._progress.record_completion(new_state.level, self.total_levels)
        elif was_playing and new_state.is_failed:
            reason = "time" if new_state.time_left == 0 else "moves"
            logger.info("Level %d failed: out of %s", new_state.level + 1, reason)
        self._progress.save_session(state_to_dict(new_state))
        return new_state

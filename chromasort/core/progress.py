from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class LevelState:
    """Level-menu view of a single level."""

    index: int
    unlocked: bool
    completed: bool
    is_current: bool = False


def default_data_dir() -> Path:
    override = os.environ.get("CHROMASORT_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".chromasort"


class ProgressStore:
    """Stores the unlock frontier and the last active session.

    Files: ``progress.json`` holds ``unlocked_levels`` (how many levels are
    playable, at least 1) and ``session.json`` holds the serialized game
    state so a level can be resumed after a restart.
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        base_dir = base_dir or default_data_dir()
        self._file_path = base_dir / "progress.json"
        self._session_path = base_dir / "session.json"
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        self._unlock_all = os.environ.get("CHROMASORT_UNLOCK_ALL") == "1"
        self._unlocked = self._load()

    @property
    def unlocked_levels(self) -> int:
        return self._unlocked

    def is_unlocked(self, level_index: int) -> bool:
        if level_index < 0:
            return False
        return self._unlock_all or level_index < self._unlocked

    def record_completion(self, level_index: int, total_levels: int) -> bool:
        """Unlock the level after ``level_index``. Returns True if the frontier moved.

        The frontier only grows, so completing an old level again, or the
        same level twice, leaves it where it is.
        """
        next_level = level_index + 1
        if next_level < self._unlocked or next_level >= total_levels:
            return False
        self._unlocked = max(self._unlocked, level_index + 2)
        logger.info("Unlocked level %d", self._unlocked)
        self._save()
        return True

    def level_states(self, total_levels: int, current_level: Optional[int] = None) -> List[LevelState]:
        return [
            LevelState(
                index=index,
                unlocked=self.is_unlocked(index),
                completed=index + 1 < self._unlocked,
                is_current=index == current_level,
            )
            for index in range(total_levels)
        ]

    def load_session(self) -> Optional[Dict[str, Any]]:
        """Return the raw saved session, or None if missing or unreadable."""
        if not self._session_path.exists():
            return None
        try:
            payload = json.loads(self._session_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not load session from %s: %s", self._session_path, e)
            return None
        if not isinstance(payload, dict):
            logger.warning("Ignoring saved session in %s: not an object", self._session_path)
            return None
        return payload

    def save_session(self, payload: Dict[str, Any]) -> None:
        self._write(self._session_path, payload)

    def clear_session(self) -> None:
        try:
            self._session_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove %s: %s", self._session_path, e)

    def reset(self) -> None:
        """Lock everything but the first level and forget the saved session."""
        self._unlocked = 1
        self._save()
        self.clear_session()

    def _load(self) -> int:
        if not self._file_path.exists():
            return 1
        try:
            payload = json.loads(self._file_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not load progress from %s: %s", self._file_path, e)
            return 1
        if not isinstance(payload, dict):
            return 1
        try:
            return max(1, int(payload.get("unlocked_levels", 1)))
        except (TypeError, ValueError):
            logger.warning("Invalid unlocked_levels in %s", self._file_path)
            return 1

    def _save(self) -> None:
        self._write(self._file_path, {"unlocked_levels": self._unlocked})

    def _write(self, path: Path, payload: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save %s: %s", path, e)

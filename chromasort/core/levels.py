from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

DEFAULT_DIFFICULTY_FILE = Path(__file__).resolve().parent.parent / "data" / "difficulty.yaml"

_INT_KEYS = (
    "total_levels",
    "tube_capacity",
    "empty_tubes",
    "shuffle_base",
    "shuffle_step",
    "move_buffer",
    "time_base",
)


@dataclass(frozen=True)
class LevelConfig:
    num_colors: int
    num_empty: int
    shuffles: int
    max_moves: int
    time_limit: int


@dataclass(frozen=True)
class PaletteColor:
    name: str
    hex: str


class DifficultyTable:
    """Maps a level index to its :class:`LevelConfig`."""

    def __init__(self, raw: Mapping[str, Any], source: str = "difficulty.yaml") -> None:
        if not isinstance(raw, Mapping):
            raise ValueError(f"{source}: expected a mapping of difficulty settings")
        values: Dict[str, int] = {}
        for key in _INT_KEYS:
            value = raw.get(key)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{source}: missing or invalid '{key}'")
            values[key] = value
        if values["total_levels"] < 1 or values["tube_capacity"] < 1:
            raise ValueError(f"{source}: 'total_levels' and 'tube_capacity' must be positive")

        time_per_move = raw.get("time_per_move")
        if not isinstance(time_per_move, (int, float)) or time_per_move < 0:
            raise ValueError(f"{source}: missing or invalid 'time_per_move'")
        if values["shuffle_base"] + values["move_buffer"] < 1:
            raise ValueError(f"{source}: 'shuffle_base' plus 'move_buffer' must allow at least one move")
        if values["time_base"] < 1:
            raise ValueError(f"{source}: 'time_base' must be positive")

        self.total_levels = values["total_levels"]
        self.tube_capacity = values["tube_capacity"]
        self.empty_tubes = values["empty_tubes"]
        self.shuffle_base = values["shuffle_base"]
        self.shuffle_step = values["shuffle_step"]
        self.move_buffer = values["move_buffer"]
        self.time_base = values["time_base"]
        self.time_per_move = float(time_per_move)
        self.palette = self._parse_palette(raw.get("palette"), source)
        self.color_thresholds = self._parse_thresholds(raw.get("color_thresholds"), source)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "DifficultyTable":
        path = path or DEFAULT_DIFFICULTY_FILE
        if not path.exists():
            raise FileNotFoundError(f"Difficulty file not found: {path}")
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        if not raw or not isinstance(raw, dict):
            raise ValueError(f"{path.name}: expected YAML mapping of difficulty settings")
        return cls(raw, source=path.name)

    def num_colors(self, level_index: int) -> int:
        colors = self.color_thresholds[0][1]
        for from_level, count in self.color_thresholds:
            if level_index >= from_level:
                colors = count
        return min(colors, len(self.palette))

    def config_for(self, level_index: int) -> LevelConfig:
        if level_index < 0:
            raise ValueError(f"level index must be non-negative, got {level_index}")
        shuffles = self.shuffle_base + level_index * self.shuffle_step
        max_moves = math.floor(shuffles) + self.move_buffer
        time_limit = self.time_base + math.ceil(max_moves * self.time_per_move)
        return LevelConfig(
            num_colors=self.num_colors(level_index),
            num_empty=self.empty_tubes,
            shuffles=shuffles,
            max_moves=max_moves,
            time_limit=time_limit,
        )

    def color_hex(self, color_id: int) -> str:
        return self.palette[color_id].hex

    @staticmethod
    def _parse_palette(raw: Any, source: str) -> Tuple[PaletteColor, ...]:
        if not isinstance(raw, list) or not raw:
            raise ValueError(f"{source}: 'palette' must be a non-empty list")
        colors: List[PaletteColor] = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("name") or not item.get("hex"):
                raise ValueError(f"{source}: palette entries need 'name' and 'hex'")
            colors.append(PaletteColor(name=str(item["name"]).strip(), hex=str(item["hex"]).strip()))
        return tuple(colors)

    @staticmethod
    def _parse_thresholds(raw: Any, source: str) -> Tuple[Tuple[int, int], ...]:
        if not isinstance(raw, list) or not raw:
            raise ValueError(f"{source}: 'color_thresholds' must be a non-empty list")
        steps: List[Tuple[int, int]] = []
        for item in raw:
            try:
                steps.append((int(item["from_level"]), int(item["colors"])))
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"{source}: invalid color threshold {item!r}") from exc
        steps.sort()
        if steps[0][0] != 0:
            raise ValueError(f"{source}: first color threshold must start at level 0")
        if any(count < 1 for _, count in steps):
            raise ValueError(f"{source}: color counts must be positive")
        if any(later[1] < earlier[1] for earlier, later in zip(steps, steps[1:])):
            raise ValueError(f"{source}: color counts must not decrease with level")
        return tuple(steps)


@lru_cache(maxsize=1)
def default_table() -> DifficultyTable:
    return DifficultyTable.load()


def config_for(level_index: int) -> LevelConfig:
    """Difficulty settings for ``level_index`` from the bundled curve."""
    return default_table().config_for(level_index)

"""
Game data directories: metadata and starting save states.

A game's data directory follows the stable-retro integration layout::

    <game dir>/metadata.json   {"default_state": ..., "default_player_state": [...]}
    <game dir>/<name>.state    gzip-compressed (or raw) emulator state
"""

from __future__ import annotations

import gzip
import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from retro_env.errors import ConfigurationError

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


class State(Enum):
    """Special starting-state selectors."""

    DEFAULT = -1
    NONE = 0


StateSelector = Union[State, str, None]


@dataclass(frozen=True)
class GameMetadata:
    default_state: Optional[str] = None
    default_player_state: Optional[tuple[str, ...]] = None

    @classmethod
    def from_json(cls, text: str) -> GameMetadata:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid game metadata: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError("Game metadata must be a JSON object")
        player_states = raw.get("default_player_state")
        return cls(
            default_state=raw.get("default_state"),
            default_player_state=tuple(player_states) if player_states else None,
        )

    def starting_state(self, num_players: int) -> Optional[str]:
        """Default starting state for ``num_players``; per-player-count entries win."""
        if self.default_player_state and num_players <= len(self.default_player_state):
            return self.default_player_state[num_players - 1]
        return self.default_state


@dataclass(frozen=True)
class Game:
    """A game identifier plus its (optional) data directory."""

    name: str
    path: Optional[Path] = None

    def __post_init__(self):
        if self.path is not None:
            object.__setattr__(self, "path", Path(self.path))

    def __str__(self) -> str:
        return self.name

    @property
    def metadata_path(self) -> Optional[Path]:
        return None if self.path is None else self.path / "metadata.json"

    def metadata(self) -> Optional[GameMetadata]:
        """Parsed metadata.json, or None when the game has none."""
        path = self.metadata_path
        if path is None or not path.exists():
            return None
        return GameMetadata.from_json(path.read_text(encoding="utf-8"))

    def state_path(self, state: str) -> Path:
        if self.path is None:
            raise ConfigurationError(f"Game {self.name!r} has no data directory for state {state!r}")
        filename = state if state.endswith(".state") else f"{state}.state"
        return self.path / filename

    def load_state(self, state: str) -> bytes:
        """Read a starting state, transparently decompressing gzip files."""
        path = self.state_path(state)
        if not path.exists():
            raise ConfigurationError(f"State {state!r} not found for {self.name} at {path}")
        raw = path.read_bytes()
        if raw[:2] == GZIP_MAGIC:
            return gzip.decompress(raw)
        return raw

    def available_states(self) -> list[str]:
        """List available save states (without the .state extension)."""
        if self.path is None or not self.path.exists():
            return []
        return sorted(p.stem for p in self.path.glob("*.state"))


def resolve_starting_state(
    selector: StateSelector, game: Game, num_players: int
) -> Optional[str]:
    """Turn a state selector into a concrete state name (or None).

    ``State.DEFAULT`` consults the game's metadata and falls back to no
    starting state when the metadata has no default. A custom state name is
    returned as given; its file is checked when it is loaded.
    """
    if selector is None or selector is State.NONE:
        return None
    if isinstance(selector, str):
        if selector.upper() == "NONE":
            return None
        return selector
    if selector is State.DEFAULT:
        metadata = game.metadata()
        state = metadata.starting_state(num_players) if metadata else None
        if state is None:
            logger.warning("No default state for %s, starting from power-on", game.name)
        else:
            logger.debug("Resolved default state for %s: %s", game.name, state)
        return state
    raise ConfigurationError(f"Invalid starting state selector {selector!r}")

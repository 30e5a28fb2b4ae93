"""
The interface an emulator core must provide to be driven by an Environment.

Implementations wrap a native core. They are not thread-safe and are owned
by exactly one Environment at a time.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

import numpy as np

from retro_env.data import Game


class Emulator(Protocol):
    game: Game
    buttons: Sequence[Optional[str]]
    button_combos: Sequence[Sequence[int]]
    num_players: int

    def reset(self) -> None:
        """Power-cycle the core."""
        ...

    def step(self) -> None:
        """Advance one frame using the current button masks."""
        ...

    def get_screen(self) -> np.ndarray:
        ...

    def get_memory(self) -> np.ndarray:
        ...

    def reward(self, player: int) -> float:
        ...

    def finished(self) -> bool:
        ...

    def set_button_mask(self, player: int, mask: np.ndarray) -> None:
        """Set one player's per-button pressed flags (uint8, one per button)."""
        ...

    def get_state(self) -> bytes:
        ...

    def set_state(self, state: bytes) -> None:
        ...

    def filter_action(self, action: int) -> int:
        """Map a raw button bitmask to the nearest legal one."""
        ...

"""
Emulator contract implemented on top of stable-retro.

Usage::

    emulator = StableRetroEmulator.from_game("Airstriker-Genesis")
    env = Environment(emulator, actions=Actions.FILTERED)
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import stable_retro as retro

from retro_env.data import Game


class StableRetroEmulator:
    """Wraps a ``retro.RetroEmulator`` and its ``retro.data.GameData``.

    ``reset()`` restores the power-on state captured at construction.
    """

    def __init__(
        self,
        em,
        data,
        game: Game,
        buttons: Sequence[Optional[str]],
        num_players: int = 1,
    ) -> None:
        self.em = em
        self.data = data
        self.game = game
        self.buttons = tuple(buttons)
        self.num_players = int(num_players)
        self.button_combos = [list(group) for group in data.valid_actions()]
        self._power_on_state = em.get_state()

    @classmethod
    def from_game(
        cls,
        game: str,
        players: int = 1,
        inttype=None,
    ) -> StableRetroEmulator:
        if inttype is None:
            inttype = retro.data.Integrations.STABLE
        rom_path = retro.data.get_romfile_path(game, inttype)
        system = retro.get_romfile_system(rom_path)
        core = retro.get_system_info(system)

        em = retro.RetroEmulator(rom_path)
        data = retro.data.GameData(game, inttype=inttype)
        em.configure_data(data)
        em.step()
        game_dir = Path(rom_path).parent
        return cls(em, data, Game(game, game_dir), core["buttons"], players)

    def reset(self) -> None:
        self.set_state(self._power_on_state)

    def step(self) -> None:
        self.em.step()
        self.data.update_ram()

    def get_screen(self) -> np.ndarray:
        return self.em.get_screen()

    def get_memory(self) -> np.ndarray:
        blocks = [
            np.frombuffer(self.data.memory.blocks[offset], dtype=np.uint8)
            for offset in sorted(self.data.memory.blocks)
        ]
        return np.concatenate(blocks)

    def reward(self, player: int) -> float:
        return float(self.data.current_reward(player))

    def finished(self) -> bool:
        return bool(self.data.is_done())

    def set_button_mask(self, player: int, mask: np.ndarray) -> None:
        self.em.set_button_mask(np.asarray(mask, dtype=np.uint8), player)

    def get_state(self) -> bytes:
        return self.em.get_state()

    def set_state(self, state: bytes) -> None:
        self.em.set_state(state)
        self.data.reset()
        self.data.update_ram()

    def filter_action(self, action: int) -> int:
        return int(self.data.filter_action(action))

    def close(self) -> None:
        if hasattr(self, "em"):
            del self.em

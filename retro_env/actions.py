"""
Action spaces: map structured action values to per-player button bitmasks.

Bit ``i`` of an encoded action is set when button ``i`` of the layout is
pressed. Encoding is pure: it never touches emulator or RNG state, and any
value outside the declared space raises EncodingError instead of being
clamped.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from math import prod
from typing import Callable, Optional

import numpy as np
from gymnasium import spaces

from retro_env.cores import MAX_BUTTONS, ButtonLayout, ComboTable, filter_action
from retro_env.errors import ConfigurationError, EncodingError
from retro_env.seeding import RandomSource

ActionFilter = Callable[[int], int]


class ActionSpace(ABC):
    """Shape of valid actions for a button layout and a number of players."""

    def __init__(
        self,
        buttons: ButtonLayout,
        combos: ComboTable = (),
        num_players: int = 1,
        action_filter: Optional[ActionFilter] = None,
    ) -> None:
        if len(buttons) > MAX_BUTTONS:
            raise ConfigurationError(f"{len(buttons)} buttons exceed the {MAX_BUTTONS}-bit mask")
        if num_players < 1:
            raise ConfigurationError(f"num_players must be positive, got {num_players}")
        self.buttons = tuple(buttons)
        self.combos = tuple(tuple(int(c) for c in group) for group in combos)
        self.num_players = int(num_players)
        self._filter = action_filter
        self.space = self._build_space()

    @classmethod
    def for_emulator(cls, emulator) -> ActionSpace:
        return cls(
            emulator.buttons,
            emulator.button_combos,
            emulator.num_players,
            action_filter=emulator.filter_action,
        )

    @property
    def num_buttons(self) -> int:
        return len(self.buttons)

    @abstractmethod
    def _build_space(self) -> spaces.Space:
        ...

    @abstractmethod
    def encode(self, action, player: int) -> int:
        """Encode ``action`` into the button bitmask of ``player``."""

    def encode_all(self, action) -> list[int]:
        return [self.encode(action, p) for p in range(self.num_players)]

    def decode(self, mask: int) -> np.ndarray:
        """Per-button pressed flags of an encoded action."""
        return np.array([(mask >> i) & 1 for i in range(self.num_buttons)], dtype=np.uint8)

    def sample(self, rng: RandomSource) -> np.ndarray:
        return rng.sample(self.space)

    def _check_player(self, player: int) -> None:
        if not 0 <= player < self.num_players:
            raise EncodingError(f"Player {player} out of range [0, {self.num_players})")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(buttons={len(self.buttons)}, players={self.num_players})"


def _integer_array(action, ndim: int, allow_bool: bool = False) -> np.ndarray:
    arr = np.asarray(action)
    if arr.ndim != ndim:
        raise EncodingError(f"Action must be {ndim}-dimensional, got shape {arr.shape}")
    if arr.dtype == np.bool_ and allow_bool:
        return arr.astype(np.int64)
    if arr.dtype == np.bool_ or not np.issubdtype(arr.dtype, np.integer):
        raise EncodingError(f"Action must hold integers, got dtype {arr.dtype}")
    return arr


class FullActionSpace(ActionSpace):
    """One binary entry per button per player; every combination is allowed."""

    def _build_space(self) -> spaces.MultiBinary:
        return spaces.MultiBinary(self.num_buttons * self.num_players)

    def _player_bits(self, action, player: int) -> np.ndarray:
        self._check_player(player)
        arr = _integer_array(action, 1, allow_bool=True)
        size = self.num_buttons * self.num_players
        if arr.shape[0] != size:
            raise EncodingError(f"Action must have {size} entries, got {arr.shape[0]}")
        if not np.isin(arr, (0, 1)).all():
            raise EncodingError("Multi-binary action entries must be 0 or 1")
        start = self.num_buttons * player
        return arr[start:start + self.num_buttons]

    def encode(self, action, player: int) -> int:
        mask = 0
        for i, bit in enumerate(self._player_bits(action, player)):
            mask |= int(bit) << i
        return mask


class FilteredActionSpace(FullActionSpace):
    """Multi-binary actions passed through the game's legality filter."""

    def encode(self, action, player: int) -> int:
        mask = super().encode(action, player)
        if self._filter is not None:
            return self._filter(mask)
        return filter_action(mask, self.combos)


class DiscreteActionSpace(ActionSpace):
    """A single index selecting one combo per group for every player.

    The index is a mixed-radix number: the first group of player 0 is the
    least significant digit, followed by that player's remaining groups and
    then the next player's.
    """

    @property
    def num_combos(self) -> int:
        return prod(len(group) for group in self.combos)

    def _build_space(self) -> spaces.Discrete:
        return spaces.Discrete(self.num_combos ** self.num_players)

    def encode(self, action, player: int) -> int:
        self._check_player(player)
        arr = np.asarray(action)
        if arr.size != 1:
            raise EncodingError(f"Discrete action must be a single index, got shape {arr.shape}")
        arr = _integer_array(arr.reshape(()), 0)
        index = int(arr)
        if not 0 <= index < self.space.n:
            raise EncodingError(f"Discrete action {index} out of range [0, {self.space.n})")
        index //= self.num_combos ** player
        mask = 0
        for group in self.combos:
            mask |= group[index % len(group)]
            index //= len(group)
        return mask


class MultiDiscreteActionSpace(ActionSpace):
    """One combo index per group per player."""

    def _build_space(self) -> spaces.MultiDiscrete:
        return spaces.MultiDiscrete([len(group) for group in self.combos] * self.num_players)

    def encode(self, action, player: int) -> int:
        self._check_player(player)
        arr = _integer_array(action, 1)
        nvec = self.space.nvec
        if arr.shape[0] != len(nvec):
            raise EncodingError(f"Action must have {len(nvec)} entries, got {arr.shape[0]}")
        if ((arr < 0) | (arr >= nvec)).any():
            raise EncodingError(f"Action {arr.tolist()} outside combo ranges {nvec.tolist()}")
        start = len(self.combos) * player
        mask = 0
        for group, index in zip(self.combos, arr[start:start + len(self.combos)]):
            mask |= group[int(index)]
        return mask


class Actions(Enum):
    """Action space selector, mirroring stable-retro's ``retro.Actions``."""

    ALL = 0
    FILTERED = 1
    DISCRETE = 2
    MULTI_DISCRETE = 3

    @property
    def space_class(self) -> type[ActionSpace]:
        return _SPACE_CLASSES[self]

    def space_for(self, emulator) -> ActionSpace:
        return self.space_class.for_emulator(emulator)

    def build(
        self,
        buttons: ButtonLayout,
        combos: ComboTable = (),
        num_players: int = 1,
        action_filter: Optional[ActionFilter] = None,
    ) -> ActionSpace:
        return self.space_class(buttons, combos, num_players, action_filter)


_SPACE_CLASSES: dict[Actions, type[ActionSpace]] = {
    Actions.ALL: FullActionSpace,
    Actions.FILTERED: FilteredActionSpace,
    Actions.DISCRETE: DiscreteActionSpace,
    Actions.MULTI_DISCRETE: MultiDiscreteActionSpace,
}

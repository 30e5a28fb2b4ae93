"""Shared fixtures: an in-memory emulator and a game data directory."""
import gzip
import json

import numpy as np
import pytest

from retro_env.cores import filter_action, get_core
from retro_env.data import Game

ATARI = get_core("Atari2600")


def fake_state(frame: int) -> bytes:
    return b"FAKE" + frame.to_bytes(4, "little")


class FakeEmulator:
    """Deterministic emulator whose screen/memory encode the frame counter.

    Each player's reward is the number of buttons it held on the last frame.
    """

    def __init__(self, game, buttons=ATARI.buttons, combos=None, num_players=1,
                 finish_after=None, screen_shape=(4, 6, 3), memory_size=16):
        self.game = game
        self.buttons = tuple(buttons)
        self.button_combos = combos if combos is not None else ATARI.button_combos()
        self.num_players = num_players
        self.finish_after = finish_after
        self.screen_shape = screen_shape
        self.memory_size = memory_size
        self.frame = 0
        self.reset_count = 0
        self.loaded_states = []
        self.history = []
        self.masks = [np.zeros(len(self.buttons), dtype=np.uint8) for _ in range(num_players)]

    def reset(self):
        self.frame = 0
        self.reset_count += 1
        for mask in self.masks:
            mask[:] = 0

    def step(self):
        self.frame += 1
        self.history.append([_to_int(mask) for mask in self.masks])

    def get_screen(self):
        return np.full(self.screen_shape, self.frame % 256, dtype=np.uint8)

    def get_memory(self):
        ram = np.zeros(self.memory_size, dtype=np.uint8)
        ram[0] = self.frame % 256
        for p, mask in enumerate(self.masks):
            ram[1 + p] = _to_int(mask) & 0xFF
        return ram

    def reward(self, player):
        return float(self.masks[player].sum())

    def finished(self):
        return self.finish_after is not None and self.frame >= self.finish_after

    def set_button_mask(self, player, mask):
        self.masks[player] = np.array(mask, dtype=np.uint8)

    def get_state(self):
        return fake_state(self.frame)

    def set_state(self, state):
        self.loaded_states.append(state)
        self.frame = int.from_bytes(state[4:8], "little")

    def filter_action(self, action):
        return filter_action(action, self.button_combos)


def _to_int(flags):
    value = 0
    for i, flag in enumerate(flags):
        value |= int(flag) << i
    return value


@pytest.fixture
def game_dir(tmp_path):
    path = tmp_path / "Pong-Atari2600"
    path.mkdir()
    (path / "metadata.json").write_text(json.dumps({"default_state": "Start"}))
    with gzip.open(path / "Start.state", "wb") as f:
        f.write(fake_state(5))
    (path / "Raw.state").write_bytes(fake_state(9))
    return path


@pytest.fixture
def game(game_dir):
    return Game("Pong-Atari2600", game_dir)


@pytest.fixture
def emulator(game):
    return FakeEmulator(game)


@pytest.fixture
def make_emulator(game):
    def _make(**kwargs):
        return FakeEmulator(game, **kwargs)
    return _make

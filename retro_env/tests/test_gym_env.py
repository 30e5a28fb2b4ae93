"""Tests for retro_env.gym_env module."""
import numpy as np
import pytest

from retro_env.actions import Actions
from retro_env.data import State
from retro_env.gym_env import RetroGymEnv
from retro_env.recordings import list_movies

from conftest import FakeEmulator


def test_reset_returns_obs_and_info(emulator):
    env = RetroGymEnv(emulator)
    obs, info = env.reset(seed=3)
    assert obs.shape == env.observation_space.shape
    assert info == {}
    assert env.env.random_seed == env.env.seed(3)


def test_step_tuple(emulator):
    env = RetroGymEnv(emulator, actions=Actions.ALL, state=State.NONE)
    env.reset()
    obs, reward, terminated, truncated, info = env.step(np.array([1, 0, 0, 0, 1, 0, 0, 0]))
    assert env.observation_space.contains(obs)
    assert reward == 2.0
    assert terminated is False
    assert truncated is False
    assert info == {}


def test_multi_player_reward(game):
    env = RetroGymEnv(FakeEmulator(game, num_players=2), actions=Actions.ALL)
    env.reset()
    _, reward, _, _, _ = env.step(np.zeros(16, dtype=np.int8))
    assert reward.dtype == np.float32
    assert reward.tolist() == [0.0, 0.0]


def test_terminated_without_auto_reset(game):
    emulator = FakeEmulator(game, finish_after=2)
    env = RetroGymEnv(emulator, state=State.NONE)
    env.reset()
    env.step(env.sample_action())
    _, _, terminated, _, _ = env.step(env.sample_action())
    assert terminated
    assert emulator.frame == 2


def test_first_movie_starts_at_reset(tmp_path, emulator):
    env = RetroGymEnv(emulator, record=tmp_path)
    assert list_movies(tmp_path) == []
    env.reset()
    env.step(env.action_space.sample())
    env.close()
    assert [p.name for p in list_movies(tmp_path)] == ["Pong-Atari2600-Start-000000.bk2"]


def test_render(emulator):
    env = RetroGymEnv(emulator, render_mode="rgb_array")
    env.reset()
    assert env.render().shape == (4, 6, 3)
    assert RetroGymEnv(FakeEmulator(emulator.game)).render() is None


def test_invalid_render_mode(emulator):
    with pytest.raises(ValueError):
        RetroGymEnv(emulator, render_mode="human")

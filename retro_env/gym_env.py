"""
Gymnasium adapter around Environment.

Exposes the standard ``reset() -> (obs, info)`` and
``step() -> (obs, reward, terminated, truncated, info)`` API so the
environment can be used with gymnasium wrappers and stable-baselines3.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

import gymnasium as gym
import numpy as np

from retro_env.actions import Actions, ActionSpace
from retro_env.data import State, StateSelector
from retro_env.environment import Environment, Observations
from retro_env.seeding import SeedLike


class RetroGymEnv(gym.Env):
    """Single gymnasium environment over one emulator.

    With one player the reward is a float; with several it is a float32
    array holding one reward per player.
    """

    metadata = {"render_modes": ["rgb_array"]}

    def __init__(
        self,
        emulator,
        actions: Union[Actions, ActionSpace] = Actions.FILTERED,
        observations: Observations = Observations.SCREEN,
        state: StateSelector = State.DEFAULT,
        record: Union[str, Path, None] = None,
        seed: SeedLike = None,
        render_mode: Optional[str] = None,
    ) -> None:
        if render_mode is not None and render_mode not in self.metadata["render_modes"]:
            raise ValueError(f"Unsupported render_mode {render_mode!r}")
        self.env = Environment(
            emulator, actions=actions, observations=observations, state=state, seed=seed
        )
        # Armed after construction so the first movie starts at the first reset()
        if record is not None:
            self.env.enable_recording(record)
        self.action_space = self.env.action_space
        self.observation_space = self.env.observation_space
        self.render_mode = render_mode

    def reset(self, *, seed: Optional[int] = None, options: Optional[dict] = None):
        super().reset(seed=seed)
        if seed is not None:
            self.env.seed(seed)
        ob = self.env.reset()
        return ob, self._info()

    def step(self, action):
        result = self.env.step(action)
        if self.env.num_players == 1:
            reward: Any = result.reward[0]
        else:
            reward = np.array(result.reward, dtype=np.float32)
        return result.observation, reward, result.finished, False, self._info()

    def _info(self) -> dict:
        """Per-step auxiliary data. Empty until a game needs it."""
        return {}

    def sample_action(self) -> np.ndarray:
        """Action drawn from the environment's own seeded random source."""
        return self.env.sample_action()

    def render(self):
        if self.render_mode == "rgb_array":
            return np.array(self.env.emulator.get_screen(), dtype=np.uint8)
        return None

    def close(self) -> None:
        self.env.close()

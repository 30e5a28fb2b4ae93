"""
Episode driver: one emulator, one action space, one random source and an
optional movie recording.

Usage::

    env = Environment(emulator, actions=Actions.FILTERED, record="movies/")
    while True:
        result = env.step(env.sample_action())
        if result.finished:
            env.reset()
"""

from __future__ import annotations

import logging
import weakref
from enum import Enum
from pathlib import Path
from typing import Iterator, NamedTuple, Optional, Sequence, Union

import numpy as np
from gymnasium import spaces

from retro_env.actions import Actions, ActionSpace
from retro_env.data import Game, State, StateSelector, resolve_starting_state
from retro_env.errors import ConfigurationError
from retro_env.movie import MovieRecorder, MovieReplayer, movie_filename
from retro_env.seeding import RandomSource, SeedLike

logger = logging.getLogger(__name__)


class Observations(Enum):
    """Observation selector, mirroring stable-retro's ``retro.Observations``."""

    SCREEN = 0
    MEMORY = 1


class StepResult(NamedTuple):
    observation: np.ndarray
    reward: tuple[float, ...]
    finished: bool


# id(emulator) -> weak reference to the Environment driving it
_OWNERS: dict[int, weakref.ref] = {}


class Environment:
    """Deterministic, recordable episodes over an emulator.

    Construction loads the starting state and performs the first ``reset()``.
    ``step()`` never resets on its own: once ``finished`` is reported the
    caller decides when to call ``reset()``.
    """

    def __init__(
        self,
        emulator,
        actions: Union[Actions, ActionSpace] = Actions.FILTERED,
        observations: Observations = Observations.SCREEN,
        state: StateSelector = State.DEFAULT,
        record: Union[str, Path, None] = None,
        seed: SeedLike = None,
    ) -> None:
        self.emulator = emulator
        self.movie: Optional[MovieRecorder] = None
        self.movie_id = 0
        self.movie_path: Optional[Path] = None
        self.closed = False
        self.frame = 0
        self.finished = False
        self._claim()
        try:
            self.actions = actions if isinstance(actions, ActionSpace) else Actions(actions).space_for(emulator)
            if self.actions.num_players != self.num_players:
                raise ConfigurationError(
                    f"Action space has {self.actions.num_players} players, emulator has {self.num_players}"
                )
            self.action_space = self.actions.space
            self.observations = Observations(observations)

            self._rng = RandomSource()
            self.random_seed = self._rng.seed(seed)

            self.state_name = resolve_starting_state(state, self.game, self.num_players)
            self.initial_state: Optional[bytes] = None
            if self.state_name is not None:
                self.initial_state = self.game.load_state(self.state_name)
                self.emulator.set_state(self.initial_state)
                logger.debug("Loaded starting state %s for %s", self.state_name, self.game)

            ob = self._observe()
            self.observation_space = spaces.Box(low=0, high=255, shape=ob.shape, dtype=np.uint8)

            if record is not None:
                self.enable_recording(record)
            self.reset()
        except BaseException:
            self.close()
            raise

    # -- Ownership ------------------------------------------------------------

    def _claim(self) -> None:
        key = id(self.emulator)
        ref = _OWNERS.get(key)
        owner = ref() if ref is not None else None
        if owner is not None and not owner.closed and owner.emulator is self.emulator:
            raise ConfigurationError("Emulator is already driven by another open Environment")

        def _forget(r, key=key):
            if _OWNERS.get(key) is r:
                del _OWNERS[key]

        _OWNERS[key] = weakref.ref(self, _forget)

    def _check_open(self) -> None:
        if self.closed:
            raise ConfigurationError("Environment is closed and no longer owns its emulator")

    def _release(self) -> None:
        key = id(self.emulator)
        ref = _OWNERS.get(key)
        if ref is not None and ref() is self:
            del _OWNERS[key]

    # -- Properties -----------------------------------------------------------

    @property
    def game(self) -> Game:
        return self.emulator.game

    @property
    def num_players(self) -> int:
        return int(self.emulator.num_players)

    @property
    def num_buttons(self) -> int:
        return len(self.emulator.buttons)

    # -- Episode --------------------------------------------------------------

    def seed(self, value: SeedLike = None) -> int:
        """Re-seed action sampling; returns the effective seed."""
        self.random_seed = self._rng.seed(value)
        return self.random_seed

    def sample_action(self) -> np.ndarray:
        return self.actions.sample(self._rng)

    def reset(self) -> np.ndarray:
        """Return to the starting state and, when armed, start a new movie."""
        self._check_open()
        self.emulator.reset()
        if self.initial_state is not None:
            self.emulator.set_state(self.initial_state)

        if self.movie_path is not None:
            name = movie_filename(self.game.name, self.state_name, self.movie_id)
            self.start_recording(self.movie_path / name)
            self.movie_id += 1

        if self.movie is not None:
            self.movie.step()
        self.frame = 0
        self.finished = False
        return self._observe()

    def step(self, action) -> StepResult:
        self._check_open()
        # Encode every player first so an invalid action mutates nothing
        masks = self.actions.encode_all(action)
        return self._apply(masks)

    def _apply(self, masks: Sequence[int]) -> StepResult:
        for player, mask in enumerate(masks):
            flags = self.actions.decode(mask)
            if self.movie is not None:
                for i, flag in enumerate(flags):
                    self.movie.set_key(i, player, bool(flag))
            self.emulator.set_button_mask(player, flags)

        if self.movie is not None:
            self.movie.step()
        self.emulator.step()
        self.frame += 1

        observation = self._observe()
        reward = tuple(float(self.emulator.reward(p)) for p in range(self.num_players))
        self.finished = bool(self.emulator.finished())
        return StepResult(observation=observation, reward=reward, finished=self.finished)

    def _observe(self) -> np.ndarray:
        if self.observations is Observations.MEMORY:
            ob = self.emulator.get_memory()
        else:
            ob = self.emulator.get_screen()
        return np.array(ob, dtype=np.uint8, copy=True)

    # -- Recording ------------------------------------------------------------

    def start_recording(self, path: Union[str, Path]) -> MovieRecorder:
        """Record from now on into ``path``, replacing any active movie."""
        self._check_open()
        if self.movie is not None:
            self.movie.close()
            self.movie = None
        movie = MovieRecorder(path, self.num_players)
        try:
            movie.configure(self.game.name, self.emulator)
            movie.state = self.emulator.get_state()
        except BaseException:
            movie.close()
            raise
        self.movie = movie
        logger.debug("Started recording %s", path)
        return movie

    def enable_recording(self, directory: Union[str, Path]) -> None:
        """Start a new movie in ``directory`` on every subsequent reset."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        self.movie_path = directory

    def disable_recording(self) -> None:
        self.movie_id = 0
        self.movie_path = None
        if self.movie is not None:
            self.movie.close()
            self.movie = None

    # -- Replay ---------------------------------------------------------------

    def replay(self, movie: MovieReplayer) -> Iterator[StepResult]:
        """Restore a movie's snapshot and step through its recorded frames.

        Frame 0 is the frame written at reset and does not advance the
        emulator; every later frame yields one StepResult.
        """
        self._check_open()
        if movie.game != self.game.name:
            raise ConfigurationError(f"Movie is for {movie.game!r}, environment runs {self.game.name!r}")
        if movie.num_players != self.num_players or movie.num_buttons != self.num_buttons:
            raise ConfigurationError(
                f"Movie layout {movie.num_players}x{movie.num_buttons} does not match "
                f"{self.num_players}x{self.num_buttons}"
            )
        self.emulator.reset()
        if movie.state:
            self.emulator.set_state(movie.state)
        if movie.frame < 0:
            movie.step()
        self.frame = 0
        self.finished = False
        logger.debug("Replaying %s (%d frames)", movie.path, movie.num_frames)
        return self._replay_frames(movie)

    def _replay_frames(self, movie: MovieReplayer) -> Iterator[StepResult]:
        while movie.remaining > 0:
            self._check_open()
            movie.step()
            yield self._apply(movie.masks())

    # -- Lifecycle ------------------------------------------------------------

    def close(self) -> None:
        """Close any active movie and release the emulator."""
        if self.closed:
            return
        try:
            self.disable_recording()
        finally:
            self._release()
            self.closed = True

    def __enter__(self) -> Environment:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

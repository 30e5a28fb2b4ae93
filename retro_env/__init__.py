"""
Reinforcement-learning environments over emulated game cores.

Provides:
- Actions: Full, Filtered, Discrete and MultiDiscrete action encodings
- Seeding: Deterministic seed mixing and a counter-based random source
- Environment: Reset/step episode driver with movie recording and replay
- Movie: stable-retro .bk2 input movie recorder and replayer
- Cores: Per-system button layouts and legal button combos
- Data: Game metadata and starting save states
"""

from retro_env.errors import (
    RetroEnvError,
    ConfigurationError,
    EncodingError,
    MovieIOError,
    MovieClosedError,
    ReplayExhaustedError,
)
from retro_env.seeding import (
    RandomSource,
    create_seed,
    hash_seed,
)
from retro_env.cores import (
    CORES,
    CoreInfo,
    button_mask,
    combos_from_names,
    core_for_extension,
    filter_action,
    get_core,
)
from retro_env.actions import (
    Actions,
    ActionSpace,
    FullActionSpace,
    FilteredActionSpace,
    DiscreteActionSpace,
    MultiDiscreteActionSpace,
)
from retro_env.data import (
    Game,
    GameMetadata,
    State,
    resolve_starting_state,
)
from retro_env.emulator import Emulator
from retro_env.movie import (
    MovieRecorder,
    MovieReplayer,
    movie_filename,
)
from retro_env.environment import (
    Environment,
    Observations,
    StepResult,
)
from retro_env.gym_env import RetroGymEnv
from retro_env.recordings import (
    MovieName,
    parse_movie_filename,
    list_movies,
    find_latest_movie,
)
# StableRetroEmulator imported lazily (depends on stable_retro)

__all__ = [
    # Errors
    "RetroEnvError", "ConfigurationError", "EncodingError", "MovieIOError",
    "MovieClosedError", "ReplayExhaustedError",
    # Seeding
    "RandomSource", "create_seed", "hash_seed",
    # Cores
    "CORES", "CoreInfo", "button_mask", "combos_from_names", "core_for_extension",
    "filter_action", "get_core",
    # Actions
    "Actions", "ActionSpace", "FullActionSpace", "FilteredActionSpace",
    "DiscreteActionSpace", "MultiDiscreteActionSpace",
    # Data
    "Game", "GameMetadata", "State", "resolve_starting_state",
    # Environment
    "Emulator", "Environment", "Observations", "StepResult", "RetroGymEnv",
    # Movies
    "MovieRecorder", "MovieReplayer", "movie_filename",
    "MovieName", "parse_movie_filename", "list_movies", "find_latest_movie",
]

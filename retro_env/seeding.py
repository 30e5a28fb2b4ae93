"""Seed derivation and the seeded random source used for action sampling.

Seeds are derived the same way gym/stable-retro derive them: an explicit seed
(or 8 bytes of OS entropy) is passed through a SHA-512 based mixing step, and
the resulting 64-bit value drives a counter-based Philox bit generator.
"""

from __future__ import annotations

import hashlib
import os
from typing import Optional, Union

import numpy as np
from gymnasium import spaces

SEED_BYTES = 8
_SEED_MODULUS = 2 ** (8 * SEED_BYTES)

SeedLike = Union[int, str, None]


def _int_from_bytes(data: bytes) -> int:
    return int.from_bytes(data, "little")


def create_seed(a: SeedLike = None, max_bytes: int = SEED_BYTES) -> int:
    """Create a seed of at most ``max_bytes`` bytes.

    ``None`` draws fresh entropy from the OS, an int is reduced modulo
    ``2 ** (8 * max_bytes)`` and a string is hashed.
    """
    if a is None:
        return _int_from_bytes(os.urandom(max_bytes))
    if isinstance(a, str):
        raw = a.encode("utf8")
        raw += hashlib.sha512(raw).digest()
        return _int_from_bytes(raw[:max_bytes])
    if isinstance(a, (int, np.integer)) and not isinstance(a, bool):
        return int(a) % 2 ** (8 * max_bytes)
    raise TypeError(f"Invalid type for seed: {type(a)!r} ({a!r})")


def hash_seed(seed: Optional[int] = None, max_bytes: int = SEED_BYTES) -> int:
    """Mix ``seed`` into a well distributed 64-bit value.

    Nearby seeds (0, 1, 2, ...) produce unrelated generator streams.
    """
    if seed is None:
        seed = create_seed(max_bytes=max_bytes)
    digest = hashlib.sha512(str(seed).encode("utf8")).digest()
    return _int_from_bytes(digest[:max_bytes])


class RandomSource:
    """Deterministic random source for sampling action values.

    Two sources seeded with the same explicit value produce identical sample
    sequences on every platform. Re-seeding replaces the generator and never
    touches values that were already sampled.
    """

    def __init__(self, seed: SeedLike = None) -> None:
        self._seed = 0
        self._generator: np.random.Generator
        self.seed(seed)

    @property
    def effective_seed(self) -> int:
        return self._seed

    @property
    def generator(self) -> np.random.Generator:
        return self._generator

    def seed(self, value: SeedLike = None) -> int:
        """Re-seed the source and return the effective 64-bit seed."""
        self._seed = hash_seed(create_seed(value))
        self._generator = np.random.Generator(np.random.Philox(self._seed))
        return self._seed

    def sample(self, space: spaces.Space) -> np.ndarray:
        """Draw a uniformly random element of ``space``."""
        gen = self._generator
        if isinstance(space, spaces.Discrete):
            start = getattr(space, "start", 0)
            return np.asarray(start + gen.integers(space.n), dtype=space.dtype)
        if isinstance(space, spaces.MultiDiscrete):
            start = getattr(space, "start", 0)
            return (start + gen.integers(space.nvec)).astype(space.dtype)
        if isinstance(space, spaces.MultiBinary):
            return gen.integers(0, 2, size=space.n, dtype=space.dtype)
        if isinstance(space, spaces.Box) and np.issubdtype(space.dtype, np.integer):
            high = space.high.astype(np.int64) + 1
            return gen.integers(space.low, high, size=space.shape).astype(space.dtype)
        raise TypeError(f"Cannot sample from space {space!r}")

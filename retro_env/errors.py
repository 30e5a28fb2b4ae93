"""Exceptions raised by retro_env.

All failures are raised synchronously at the call that detected them and are
never retried internally.
"""

from __future__ import annotations


class RetroEnvError(Exception):
    """Base class for all retro_env errors."""


class ConfigurationError(RetroEnvError):
    """Invalid or unresolvable game, core, state or movie configuration."""


class EncodingError(RetroEnvError, ValueError):
    """An action value lies outside the domain of its action space."""


class MovieIOError(RetroEnvError, OSError):
    """A movie file could not be opened, read, written or closed."""


class MovieClosedError(MovieIOError):
    """A write was attempted on a movie that has already been closed."""


class ReplayExhaustedError(RetroEnvError):
    """A replayed movie was stepped past its last recorded frame."""

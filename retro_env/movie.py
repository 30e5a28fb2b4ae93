"""
Input movies in the ``.bk2`` container written and read by stable-retro.

A movie is a zip archive holding:

- ``Input Log.txt``: ``[Input]``, a key line naming every player's buttons
  (``P1 Z|P1 X|...|P1 B|``, last layout button first), one
  ``|..|<player 1>|<player 2>|`` line per frame and ``[/Input]``. The ``..``
  column is the console (reset/power), never pressed here.
- ``Header.txt``: ``key value`` lines, notably ``Platform`` and ``GameName``
- ``Core.bin``: the raw emulator state the movie starts from

Recording and replaying are separate classes sharing the frame codec.
"""

from __future__ import annotations

import io
import logging
import re
import weakref
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Sequence

import numpy as np

from retro_env.cores import system_for_game
from retro_env.errors import (
    ConfigurationError,
    MovieClosedError,
    MovieIOError,
    ReplayExhaustedError,
)

logger = logging.getLogger(__name__)

MOVIE_EXTENSION = ".bk2"
MOVIE_VERSION = "Retro"

HEADER_FILE = "Header.txt"
INPUT_FILE = "Input Log.txt"
STATE_FILE = "Core.bin"

# stable-retro only records these systems
PLATFORMS = {
    "Atari2600": "A26",
    "Nes": "NES",
    "Snes": "SNES",
    "Genesis": "GEN",
}

# Fixed member timestamp so identical recordings produce identical archives
_ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)

RELEASED = "."
UNBOUND = "#"
CONSOLE = ".."

# Key line spelling of multi-letter buttons; single letters are kept as is
_KEY_NAMES = {
    "START": "Start",
    "SELECT": "Select",
    "MODE": "Mode",
    "UP": "Up",
    "DOWN": "Down",
    "LEFT": "Left",
    "RIGHT": "Right",
    "BUTTON": "Button",
}
_LAYOUT_NAMES = {logged: name for name, logged in _KEY_NAMES.items()}

_KEY_ENTRY = re.compile(r"^P(?P<player>\d+) (?P<name>.*)$")


def movie_filename(game: str, state: Optional[str], movie_id: int) -> str:
    """``<game>-<state or none>-<NNNNNN>.bk2``"""
    state_name = state.split(".")[0] if state else "none"
    return f"{game}-{state_name}-{movie_id:06d}{MOVIE_EXTENSION}"


def movie_platform(game: str) -> str:
    """Header platform code of a game id, e.g. "Airstriker-Genesis-v0" -> "GEN"."""
    system = system_for_game(game)
    try:
        return PLATFORMS[system]
    except KeyError:
        raise ConfigurationError(f"Movies cannot be recorded for system {system!r}") from None


# -- Frame codec -------------------------------------------------------------

def key_name(name: Optional[str]) -> str:
    return _KEY_NAMES.get(name, name) if name else ""


def _mnemonic(name: Optional[str]) -> str:
    return key_name(name)[0].upper() if name else UNBOUND


def encode_frame(keys: np.ndarray, buttons: Sequence[Optional[str]]) -> str:
    """Format a (players, buttons) pressed-flag array as one input log line."""
    chars = [_mnemonic(name) for name in buttons]
    order = range(len(buttons) - 1, -1, -1)
    players = [
        "".join(chars[i] if row[i] else RELEASED for i in order)
        for row in keys
    ]
    return "|" + "|".join([CONSOLE] + players) + "|"


def decode_frame(line: str, num_players: int, num_buttons: int) -> np.ndarray:
    line = line.strip()
    if len(line) < 2 or line[0] != "|" or line[-1] != "|":
        raise MovieIOError(f"Malformed input log line {line!r}")
    columns = line[1:-1].split("|")
    if len(columns) == num_players + 1:
        columns = columns[1:]
    if len(columns) != num_players or any(len(c) != num_buttons for c in columns):
        raise MovieIOError(
            f"Input log line {line!r} does not match {num_players} players x {num_buttons} buttons"
        )
    return np.array([[c != RELEASED for c in reversed(col)] for col in columns], dtype=bool).reshape(
        num_players, num_buttons
    )


def log_key(buttons: Sequence[Optional[str]], num_players: int) -> str:
    return "".join(
        f"P{p + 1} {key_name(name)}|"
        for p in range(num_players)
        for name in reversed(buttons)
    )


def parse_log_key(line: str) -> tuple[int, tuple[Optional[str], ...]]:
    """Player count and button layout named by an input log key line.

    BizHawk style ``LogKey:#Reset|Power|#P1 Up|...`` lines are accepted too;
    entries without a player prefix belong to the console and are skipped.
    """
    if line.startswith("LogKey:"):
        line = line[len("LogKey:"):]
    players: dict[int, list[str]] = {}
    for entry in line.split("|"):
        match = _KEY_ENTRY.match(entry.lstrip("#"))
        if match is None:
            continue
        players.setdefault(int(match.group("player")), []).append(match.group("name"))
    if not players:
        raise MovieIOError(f"Key line {line!r} names no player buttons")
    num_players = max(players)
    names = players.get(1, [])
    if sorted(players) != list(range(1, num_players + 1)) or any(
        len(keys) != len(names) for keys in players.values()
    ):
        raise MovieIOError(f"Key line {line!r} has inconsistent players")
    buttons = tuple(_LAYOUT_NAMES.get(name, name) or None for name in reversed(names))
    return num_players, buttons


def _format_header(game: str, platform: str) -> str:
    lines = [
        f"MovieVersion {MOVIE_VERSION}",
        "Author ?",
        "emuVersion ?",
        f"Platform {platform}",
        f"GameName {game}",
        "SHA1 ?",
        "Core ?",
        "rerecordCount 1",
    ]
    return "\n".join(lines) + "\n"


def _parse_header(text: str) -> dict[str, str]:
    header = {}
    for line in text.splitlines():
        if not line.strip():
            continue
        key, _, value = line.partition(" ")
        header[key] = value
    return header


@dataclass
class _Archive:
    """Everything a recorder writes out when it is closed or dropped."""

    num_players: int
    game: str = ""
    platform: str = ""
    buttons: tuple[Optional[str], ...] = ()
    state: bytes = b""
    frames: list[np.ndarray] = field(default_factory=list)

    def input_log(self) -> str:
        lines = ["[Input]", log_key(self.buttons, self.num_players)]
        lines.extend(encode_frame(frame, self.buttons) for frame in self.frames)
        lines.append("[/Input]")
        return "\n".join(lines)

    def write(self, fileobj) -> None:
        members = [
            (INPUT_FILE, self.input_log().encode("utf-8")),
            (HEADER_FILE, _format_header(self.game, self.platform).encode("utf-8")),
            (STATE_FILE, self.state),
        ]
        with zipfile.ZipFile(fileobj, "w") as zf:
            for name, data in members:
                info = zipfile.ZipInfo(name, date_time=_ZIP_DATE_TIME)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                zf.writestr(info, data)


def _finish(fileobj, archive: _Archive, path: Path) -> None:
    try:
        archive.write(fileobj)
    except OSError as exc:
        raise MovieIOError(f"Cannot write movie {path}: {exc}") from exc
    finally:
        fileobj.close()
    logger.debug("Closed movie %s (%d frames)", path, len(archive.frames))


# -- Recording / replaying ---------------------------------------------------

class _Movie:
    num_players: int
    _buttons: tuple[Optional[str], ...]
    _game: Optional[str]

    @property
    def game(self) -> Optional[str]:
        return self._game

    @property
    def buttons(self) -> tuple[Optional[str], ...]:
        return self._buttons

    @property
    def num_buttons(self) -> int:
        return len(self._buttons)

    def _check_key(self, key: int, player: int) -> None:
        if not 0 <= player < self.num_players:
            raise IndexError(f"Player {player} out of range [0, {self.num_players})")
        if not 0 <= key < self.num_buttons:
            raise IndexError(f"Button {key} out of range [0, {self.num_buttons})")

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        raise NotImplementedError


class MovieRecorder(_Movie):
    """Append-only movie writer.

    The file is opened immediately. The archive is written by ``close()``,
    or when the recorder is garbage collected without being closed.
    Keys staged with ``set_key`` become a frame on ``step()``.
    """

    def __init__(self, path: str | Path, num_players: int) -> None:
        if num_players < 1:
            raise ConfigurationError(f"num_players must be positive, got {num_players}")
        self.path = Path(path)
        self.num_players = int(num_players)
        self._game = None
        self._buttons = ()
        self._archive = _Archive(self.num_players)
        self._keys = np.zeros((self.num_players, 0), dtype=bool)
        try:
            fileobj = open(self.path, "wb")
        except OSError as exc:
            raise MovieIOError(f"Cannot open movie {self.path}: {exc}") from exc
        self._finalizer = weakref.finalize(self, _finish, fileobj, self._archive, self.path)
        logger.debug("Recording movie to %s", self.path)

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def _check_open(self) -> None:
        if self.closed:
            raise MovieClosedError(f"Movie {self.path} is closed")

    def configure(self, game: str, emulator) -> None:
        """Bind the movie to a game and the emulator whose buttons it records."""
        self._check_open()
        if self._game is not None:
            raise ConfigurationError(f"Movie {self.path} is already configured for {self._game}")
        if emulator.num_players != self.num_players:
            raise ConfigurationError(
                f"Movie records {self.num_players} players, emulator has {emulator.num_players}"
            )
        platform = movie_platform(str(game))
        self._game = self._archive.game = str(game)
        self._archive.platform = platform
        self._buttons = self._archive.buttons = tuple(emulator.buttons)
        self._keys = np.zeros((self.num_players, self.num_buttons), dtype=bool)

    @property
    def platform(self) -> str:
        return self._archive.platform

    @property
    def state(self) -> bytes:
        return self._archive.state

    @state.setter
    def state(self, value: bytes) -> None:
        self._check_open()
        self._archive.state = bytes(value)

    @property
    def num_frames(self) -> int:
        return len(self._archive.frames)

    def set_key(self, key: int, player: int, pressed: bool) -> None:
        """Stage one button of the frame being recorded."""
        self._check_open()
        self._check_key(key, player)
        self._keys[player, key] = bool(pressed)

    def get_key(self, key: int, player: int, frame: int = -1) -> bool:
        """Read a committed frame (the last one by default)."""
        self._check_key(key, player)
        if not self._archive.frames:
            raise IndexError("No frame has been recorded yet")
        return bool(self._archive.frames[frame][player, key])

    def step(self) -> bool:
        """Commit the staged keys as a new frame and clear them."""
        self._check_open()
        if self._game is None:
            raise ConfigurationError(f"Movie {self.path} must be configured before stepping")
        self._archive.frames.append(self._keys.copy())
        self._keys[:] = False
        return True

    def to_bytes(self) -> bytes:
        """Serialize the movie archive as it would be written by ``close()``."""
        buf = io.BytesIO()
        self._archive.write(buf)
        return buf.getvalue()

    def close(self) -> None:
        """Write the archive and release the file. Closing twice is a no-op."""
        self._finalizer()


class MovieReplayer(_Movie):
    """Read-only movie with a frame cursor.

    The cursor starts before frame 0; each ``step()`` moves to the next
    frame and stepping past the last frame raises ReplayExhaustedError.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        try:
            with zipfile.ZipFile(self.path) as zf:
                header_text = zf.read(HEADER_FILE).decode("utf-8")
                input_text = zf.read(INPUT_FILE).decode("utf-8")
                self._state = zf.read(STATE_FILE) if STATE_FILE in zf.namelist() else b""
        except (OSError, zipfile.BadZipFile, KeyError, UnicodeDecodeError) as exc:
            raise MovieIOError(f"Cannot read movie {self.path}: {exc}") from exc

        header = _parse_header(header_text)
        try:
            self._game = header["GameName"]
            self.platform = header["Platform"]
        except KeyError as exc:
            raise MovieIOError(f"Invalid movie header in {self.path}: {exc}") from exc

        lines = input_text.splitlines()
        key_lines = [line for line in lines if line and line[0] not in "|["]
        if not key_lines:
            raise MovieIOError(f"Movie {self.path} has no key line")
        self.num_players, self._buttons = parse_log_key(key_lines[0])

        self._frames = [
            decode_frame(line, self.num_players, self.num_buttons)
            for line in lines
            if line.startswith("|")
        ]
        self._cursor = -1
        self._closed = False

    @property
    def state(self) -> bytes:
        return self._state

    @property
    def num_frames(self) -> int:
        return len(self._frames)

    @property
    def frame(self) -> int:
        """Index of the current frame (-1 before the first ``step()``)."""
        return self._cursor

    @property
    def remaining(self) -> int:
        return len(self._frames) - self._cursor - 1

    def step(self) -> bool:
        if self._closed:
            raise MovieClosedError(f"Movie {self.path} is closed")
        if self._cursor + 1 >= len(self._frames):
            raise ReplayExhaustedError(
                f"Movie {self.path} has no frame after {self._cursor} ({len(self._frames)} recorded)"
            )
        self._cursor += 1
        return True

    def _current(self) -> np.ndarray:
        if self._cursor < 0:
            raise IndexError("step() must be called before reading keys")
        return self._frames[self._cursor]

    def get_key(self, key: int, player: int) -> bool:
        self._check_key(key, player)
        return bool(self._current()[player, key])

    def keys(self, player: int) -> np.ndarray:
        """Pressed flags (uint8) of every button for ``player`` in the current frame."""
        if not 0 <= player < self.num_players:
            raise IndexError(f"Player {player} out of range [0, {self.num_players})")
        return self._current()[player].astype(np.uint8)

    def masks(self) -> list[int]:
        """Button bitmask of each player in the current frame."""
        masks = []
        for row in self._current():
            mask = 0
            for i, pressed in enumerate(row):
                mask |= int(pressed) << i
            masks.append(mask)
        return masks

    def __iter__(self) -> Iterator[np.ndarray]:
        while self.remaining > 0:
            self.step()
            yield self._current().copy()

    def close(self) -> None:
        self._closed = True

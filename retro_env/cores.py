"""
Per-system core information: button layouts and legal button combinations.

Button layouts are fixed per system and indexed by position. A slot may be
``None`` when the core exposes no button there. Combo groups list, for one
control axis (d-pad vertical, d-pad horizontal, face buttons, ...), every
combination of buttons that may be held together.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from retro_env.errors import ConfigurationError

MAX_BUTTONS = 16

ButtonLayout = Sequence[Optional[str]]
ComboTable = Sequence[Sequence[int]]

_VERSION_SUFFIX = re.compile(r"v\d+")


@dataclass(frozen=True)
class CoreInfo:
    """Static description of one emulated system."""

    name: str
    library: str
    extensions: tuple[str, ...]
    memory_size: int
    keybinds: tuple[Optional[str], ...]
    buttons: tuple[Optional[str], ...]
    actions: tuple[tuple[tuple[str, ...], ...], ...] = field(default_factory=tuple)

    def __post_init__(self):
        if len(self.buttons) > MAX_BUTTONS:
            raise ConfigurationError(
                f"{self.name} has {len(self.buttons)} buttons, at most {MAX_BUTTONS} are supported"
            )

    @classmethod
    def from_dict(cls, name: str, d: dict) -> CoreInfo:
        """Build from a stable-retro style core json entry."""
        try:
            return cls(
                name=name,
                library=d["lib"],
                extensions=tuple(d.get("ext", ())),
                memory_size=int(d.get("memory_size", 0)),
                keybinds=tuple(d.get("keybinds", ())),
                buttons=tuple(d["buttons"]),
                actions=tuple(
                    tuple(tuple(combo) for combo in group) for group in d.get("actions", ())
                ),
            )
        except KeyError as exc:
            raise ConfigurationError(f"Core {name!r} is missing field {exc.args[0]!r}") from exc

    def button_combos(self) -> list[list[int]]:
        """Convert named combo groups into per-group bitmask tables."""
        return combos_from_names(self.actions, self.buttons)


def button_mask(names: Sequence[str], buttons: ButtonLayout) -> int:
    """Bitmask with the bit of every named button set."""
    mask = 0
    for name in names:
        try:
            index = list(buttons).index(name)
        except ValueError:
            raise ConfigurationError(f"Unknown button {name!r} in layout {list(buttons)!r}") from None
        mask |= 1 << index
    return mask


def combos_from_names(
    actions: Sequence[Sequence[Sequence[str]]], buttons: ButtonLayout
) -> list[list[int]]:
    return [[button_mask(combo, buttons) for combo in group] for group in actions]


def filter_action(mask: int, combos: ComboTable) -> int:
    """Keep only the parts of ``mask`` that form a legal combo in each group.

    Buttons that belong to no group are dropped. Filtering a legal mask
    returns it unchanged.
    """
    filtered = 0
    for group in combos:
        group_mask = 0
        for combo in group:
            group_mask |= combo
        if (mask & group_mask) in group:
            filtered |= mask & group_mask
    return filtered


def _dpad(*face: Sequence[str]) -> tuple:
    return (
        ((), ("UP",), ("DOWN",)),
        ((), ("LEFT",), ("RIGHT",)),
        ((),) + tuple(tuple(combo) for combo in face),
    )


CORES: dict[str, CoreInfo] = {
    core.name: core
    for core in (
        CoreInfo(
            name="Atari2600",
            library="stella",
            extensions=("a26",),
            memory_size=128,
            keybinds=("Z", None, "TAB", "ENTER", "UP", "DOWN", "LEFT", "RIGHT"),
            buttons=("BUTTON", None, "SELECT", "RESET", "UP", "DOWN", "LEFT", "RIGHT"),
            actions=_dpad(["BUTTON"]),
        ),
        CoreInfo(
            name="Nes",
            library="fceumm",
            extensions=("nes",),
            memory_size=2048,
            keybinds=("Z", None, "TAB", "ENTER", "UP", "DOWN", "LEFT", "RIGHT", "X"),
            buttons=("B", None, "SELECT", "START", "UP", "DOWN", "LEFT", "RIGHT", "A"),
            actions=_dpad(["A"], ["B"], ["A", "B"]),
        ),
        # Keyboard: Z=B, A=Y, X=A, S=X, Q=L, W=R, Enter=Start, Tab=Select
        CoreInfo(
            name="Snes",
            library="snes9x",
            extensions=("sfc", "smc"),
            memory_size=131072,
            keybinds=("Z", "A", "TAB", "ENTER", "UP", "DOWN", "LEFT", "RIGHT", "X", "S", "Q", "W"),
            buttons=("B", "Y", "SELECT", "START", "UP", "DOWN", "LEFT", "RIGHT", "A", "X", "L", "R"),
            actions=_dpad(["A"], ["B"], ["X"], ["Y"], ["L"], ["R"], ["A", "B"], ["X", "Y"]),
        ),
        CoreInfo(
            name="Genesis",
            library="genesis_plus_gx",
            extensions=("md", "gen"),
            memory_size=65536,
            keybinds=("X", "Z", "TAB", "ENTER", "UP", "DOWN", "LEFT", "RIGHT", "C", "A", "S", "D"),
            buttons=("B", "A", "MODE", "START", "UP", "DOWN", "LEFT", "RIGHT", "C", "Y", "X", "Z"),
            actions=_dpad(["A"], ["B"], ["C"], ["A", "B"], ["B", "C"], ["A", "C"]),
        ),
    )
}


def get_core(system: str) -> CoreInfo:
    try:
        return CORES[system]
    except KeyError:
        raise ConfigurationError(f"Unsupported system {system!r}") from None


def core_for_extension(extension: str) -> CoreInfo:
    """Find the core handling a ROM extension (with or without leading dot)."""
    ext = extension.lower().lstrip(".")
    for core in CORES.values():
        if ext in core.extensions:
            return core
    raise ConfigurationError(f"No core handles extension {extension!r}")


def system_for_game(game: str) -> str:
    """System suffix of a stable-retro game id.

    "Pong-Atari2600" -> "Atari2600", "Airstriker-Genesis-v0" -> "Genesis".
    """
    name, sep, system = game.rpartition("-")
    if sep and _VERSION_SUFFIX.fullmatch(system):
        name, sep, system = name.rpartition("-")
    if not sep or not system:
        raise ConfigurationError(f"Game id {game!r} has no system suffix")
    return system

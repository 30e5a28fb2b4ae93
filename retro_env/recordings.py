from __future__ import annotations

import re
from pathlib import Path
from typing import NamedTuple, Optional

from retro_env.movie import MOVIE_EXTENSION

# Game ids are "<Name>-<System>" with an optional "-v<N>"; state names may contain dashes
_MOVIE_NAME = re.compile(r"^(?P<game>[^-]+-[^-]+(?:-v\d+)?)-(?P<state>.+)-(?P<movie_id>\d{6})\.bk2$")


class MovieName(NamedTuple):
    game: str
    state: Optional[str]
    movie_id: int


def parse_movie_filename(name: str | Path) -> Optional[MovieName]:
    """Split ``<game>-<state>-<NNNNNN>.bk2``; a state of "none" becomes None."""
    match = _MOVIE_NAME.match(Path(name).name)
    if match is None:
        return None
    state = match.group("state")
    return MovieName(
        game=match.group("game"),
        state=None if state == "none" else state,
        movie_id=int(match.group("movie_id")),
    )


def list_movies(record_dir: Path, game: str | None = None) -> list[Path]:
    """Movies in ``record_dir`` ordered by game, state and sequence id."""
    record_dir = Path(record_dir)
    if not record_dir.exists():
        return []
    movies = []
    for path in record_dir.glob(f"*{MOVIE_EXTENSION}"):
        parsed = parse_movie_filename(path)
        if parsed is None:
            continue
        if game and parsed.game != game:
            continue
        movies.append((parsed.game, parsed.state or "", parsed.movie_id, path))
    movies.sort()
    return [item[-1] for item in movies]


def find_latest_movie(record_dir: Path, game: str | None = None) -> Path | None:
    candidates = []
    for path in list_movies(record_dir, game):
        try:
            candidates.append((path.stat().st_mtime, path))
        except OSError:
            continue
    if not candidates:
        return None
    candidates.sort(key=lambda item: item[0], reverse=True)
    return candidates[0][1]

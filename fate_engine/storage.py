"""JSON file storage for games.

Every game is one JSON document holding its full GameState. There is no
database or ORM; reads and writes go through plain helper methods.

Directory layout:

    {base}/
      games/
        {game_id}.json        ← GameState, rewritten after every turn

Only one turn per game may be in flight at a time. claim_turn() enforces
that within a process; a second claim for the same id fails immediately
with TurnInProgressError instead of queueing.
"""

from __future__ import annotations

import logging
import re
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from fate_engine.models import Character, GameState, ProceduralBackground, Relationship
from fate_engine.state import new_game_state

logger = logging.getLogger(__name__)

_GAME_ID = re.compile(r"[\w-]+")


class GameNotFoundError(LookupError):
    """Raised when no game is stored under the requested id."""


class TurnInProgressError(RuntimeError):
    """Raised when a turn is requested for a game that is already mid-turn."""


class InvalidGameIdError(ValueError):
    """Raised when a game id is not a plain slug of word characters and dashes."""


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._games = base_path / "games"
        self._games.mkdir(parents=True, exist_ok=True)
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _game_file(self, game_id: str) -> Path:
        if not _GAME_ID.fullmatch(game_id):
            raise InvalidGameIdError(f"Invalid game id: {game_id!r}")
        return self._games / f"{game_id}.json"

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    def create_game(
        self,
        character: Character,
        *,
        relationships: list[Relationship] | None = None,
        background: ProceduralBackground | None = None,
        game_id: str | None = None,
        seed: str | None = None,
    ) -> tuple[str, GameState]:
        game_id = game_id or uuid.uuid4().hex
        state = new_game_state(
            character,
            seed=seed or uuid.uuid4().hex,
            relationships=relationships,
            background=background,
        )
        self.save(game_id, state)
        logger.info("created game %s for %s", game_id, character.name)
        return game_id, state

    def load(self, game_id: str) -> GameState:
        path = self._game_file(game_id)
        if not path.exists():
            raise GameNotFoundError(game_id)
        return GameState.model_validate_json(path.read_text())

    def save(self, game_id: str, state: GameState) -> None:
        path = self._game_file(game_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(state.model_dump_json(indent=2))
        tmp.replace(path)
        logger.info("saved game %s at year %d", game_id, state.current_year)

    def exists(self, game_id: str) -> bool:
        return self._game_file(game_id).exists()

    def list_games(self) -> list[str]:
        return sorted(p.stem for p in self._games.glob("*.json"))

    def delete(self, game_id: str) -> None:
        path = self._game_file(game_id)
        if not path.exists():
            raise GameNotFoundError(game_id)
        path.unlink()

    # ------------------------------------------------------------------
    # One writer per game
    # ------------------------------------------------------------------

    @contextmanager
    def claim_turn(self, game_id: str) -> Iterator[None]:
        with self._lock:
            if game_id in self._in_flight:
                raise TurnInProgressError(f"A turn is already in progress for game {game_id}")
            self._in_flight.add(game_id)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(game_id)

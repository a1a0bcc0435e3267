"""GameRepository kept in a dict. Same compare-and-set contract as the SQL implementation."""

import threading
from copy import deepcopy
from dataclasses import replace
from uuid import UUID, uuid4

from src.core.exceptions import StaleWriteError
from src.core.models import GameModel
from src.core.timer import utc_now


class InMemoryGameRepository:
    def __init__(self) -> None:
        self._games: dict[UUID, GameModel] = {}
        self._lock = threading.Lock()

    def get_game(self, game_id: UUID) -> GameModel | None:
        with self._lock:
            game = self._games.get(game_id)
            return deepcopy(game) if game is not None else None

    def create_game(self, game: GameModel) -> tuple[GameModel, UUID]:
        new_id = uuid4()
        stored = replace(
            deepcopy(game), version=1, last_updated=utc_now(), game_id=new_id
        )
        with self._lock:
            self._games[new_id] = stored
        return deepcopy(stored), new_id

    def compare_and_set(
        self, game_id: UUID, expected_version: int, game: GameModel
    ) -> GameModel | None:
        with self._lock:
            current = self._games.get(game_id)
            if current is None:
                return None
            if current.version != expected_version:
                raise StaleWriteError(
                    f"Game {game_id} changed (version {current.version}, expected {expected_version})."
                )
            stored = replace(
                deepcopy(game),
                kind=current.kind,
                version=expected_version + 1,
                last_updated=utc_now(),
                game_id=game_id,
            )
            self._games[game_id] = stored
            return deepcopy(stored)

    def delete_game(self, game_id: UUID) -> GameModel | None:
        with self._lock:
            return self._games.pop(game_id, None)

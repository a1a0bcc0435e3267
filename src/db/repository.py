"""Protocol repository (implemented with SQLAlchemy, and in memory for tests / local runs)"""

from typing import Protocol
from uuid import UUID

from src.core.models import GameModel


class GameRepository(Protocol):
    """Persistence layer orchestration"""

    def get_game(self, game_id: UUID) -> GameModel | None:
        """Get game by ID, if record exists."""
        ...

    def create_game(self, game: GameModel) -> tuple[GameModel, UUID]:
        """Store new game and return the stored data (version 1) + newly created game ID."""
        ...

    def compare_and_set(
        self, game_id: UUID, expected_version: int, game: GameModel
    ) -> GameModel | None:
        """
        Replace the whole record, but only if it is still at `expected_version`.

        Returns the stored data (version bumped, fresh `last_updated`), None if the game does not exist.
        Raises StaleWriteError if somebody else wrote first.
        """
        ...

    def delete_game(self, game_id: UUID) -> GameModel | None:
        """Remove a game's record."""
        ...

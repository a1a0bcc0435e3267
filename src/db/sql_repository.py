"""Implementation of (Game)Repository using SQLAlchemy"""

import logging
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.exceptions import PersistenceError, StaleWriteError
from src.core.models import GameModel
from src.core.timer import utc_now
from src.db.schema import DBGame

logger = logging.getLogger(__name__)


def _as_utc(moment: datetime) -> datetime:
    """SQLite hands timestamps back without tzinfo."""
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


class SQLGameRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_game(self, game_id: UUID) -> GameModel | None:
        """Get game by ID, if record exists."""
        try:
            game_db = self._fetch_game(game_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not read game {game_id}") from exc
        if game_db:
            return self._to_model(game_db)
        return None

    def create_game(self, game: GameModel) -> tuple[GameModel, UUID]:
        """Store new game and return the stored data + newly created game ID."""
        new_id = uuid4()
        now = utc_now()
        game_db = DBGame(
            id=new_id,
            kind=game.kind,
            state=game.state,
            registered_players=game.registered_players,
            status=game.status,
            winner=game.winner,
            stake=game.stake,
            settlement_status=game.settlement_status,
            version=1,
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(game_db)
            self.db.commit()
            self.db.refresh(game_db)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError("Could not store new game") from exc
        return self._to_model(game_db), new_id

    def compare_and_set(
        self, game_id: UUID, expected_version: int, game: GameModel
    ) -> GameModel | None:
        """Single UPDATE ... WHERE version = expected: the database decides who wins a race."""
        statement = (
            update(DBGame)
            .where(DBGame.id == game_id, DBGame.version == expected_version)
            .values(
                state=game.state,
                registered_players=game.registered_players,
                status=game.status,
                winner=game.winner,
                stake=game.stake,
                settlement_status=game.settlement_status,
                version=expected_version + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(statement)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Could not write game {game_id}") from exc

        if result.rowcount == 0:
            current = self.get_game(game_id)
            if current is None:
                return None
            logger.warning(
                "Stale write on game %s: expected version %s, found %s",
                game_id,
                expected_version,
                current.version,
            )
            raise StaleWriteError(
                f"Game {game_id} changed (version {current.version}, expected {expected_version})."
            )

        # the UPDATE bypassed the identity map: re-read the row
        self.db.expire_all()
        return self.get_game(game_id)

    def delete_game(self, game_id: UUID) -> GameModel | None:
        """Remove a game's record."""
        game_db = self._fetch_game(game_id)
        if not game_db:
            return None
        game_model = self._to_model(game_db)
        try:
            self.db.delete(game_db)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Could not delete game {game_id}") from exc
        return game_model

    def _fetch_game(self, game_id: UUID) -> DBGame | None:
        query = select(DBGame).where(DBGame.id == game_id)
        return self.db.scalar(query)

    def _to_model(self, game_db: DBGame) -> GameModel:
        """Convert SQLAlchemy model to data transfer model."""
        return GameModel(
            kind=game_db.kind,
            state=game_db.state,
            registered_players=game_db.registered_players,
            status=game_db.status,
            winner=game_db.winner,
            stake=game_db.stake,
            settlement_status=game_db.settlement_status,
            version=game_db.version,
            last_updated=_as_utc(game_db.updated_at),
            game_id=game_db.id,
        )

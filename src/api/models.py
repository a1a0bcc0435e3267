"""Requests and Response models"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from src.core.exceptions import InvalidRequestError
from src.core.shared_types import GameKind

Seat = str
PlayerId = str
SquareList = list[int]


def _validate_square(value: Any) -> SquareList:
    """A square is sent as [row, col]"""
    if (
        not isinstance(value, list)
        or len(value) != 2
        or not all(isinstance(v, int) and not isinstance(v, bool) for v in value)
        or min(value) < 0
    ):
        raise InvalidRequestError(
            f"Cannot interpret {value!r} as a square. Expected [row, col]."
        )
    return value


# --- REQUEST MODELS ---
class CreateGameRequest(BaseModel):
    kind: GameKind
    player_id: PlayerId
    seat: Optional[Seat] = None
    stake: Optional[str] = None
    starting_fen: Optional[str] = None

    @field_validator("starting_fen")
    @classmethod
    def validate_starting_fen(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value

        parts = value.strip().split(" ")
        if len(parts) != 6:
            raise InvalidRequestError(
                "FEN string must contain 6 space-separated parts."
            )
        return value.strip()


class JoinGameRequest(BaseModel):
    player_id: PlayerId


class LegalMovesRequest(BaseModel):
    seat: Seat
    row: int
    col: int


class MoveRequest(BaseModel):
    player_id: PlayerId
    from_square: SquareList
    to_square: SquareList
    promotion: Optional[str] = None
    expected_version: Optional[int] = None

    @field_validator("from_square", "to_square", mode="before")
    @classmethod
    def validate_square(cls, value: Any) -> SquareList:
        return _validate_square(value)


class StateWriteRequest(BaseModel):
    """A whole proposed next document. Only accepted if it is reachable by exactly one legal move."""

    player_id: PlayerId
    new_state: dict[str, Any]
    expected_version: Optional[int] = None


class PlacementRequest(BaseModel):
    player_id: PlayerId
    rank: str
    square: SquareList
    expected_version: Optional[int] = None

    @field_validator("square", mode="before")
    @classmethod
    def validate_square(cls, value: Any) -> SquareList:
        return _validate_square(value)


class RemovalRequest(BaseModel):
    player_id: PlayerId
    square: SquareList
    expected_version: Optional[int] = None

    @field_validator("square", mode="before")
    @classmethod
    def validate_square(cls, value: Any) -> SquareList:
        return _validate_square(value)


class ReadyRequest(BaseModel):
    player_id: PlayerId
    expected_version: Optional[int] = None


class TimeoutRequest(BaseModel):
    """Only a seated player may trigger. `observed_ply`: the ply the client saw expire, a trigger for an older ply is a no-op."""

    player_id: PlayerId
    observed_ply: Optional[int] = None


# --- RESPONSE MODELS ---
class GameResponse(BaseModel):
    game_id: UUID
    kind: GameKind
    players: dict[Seat, PlayerId]
    status: str
    winner: Optional[str]
    stake: Optional[str]
    settlement_status: str
    version: int
    last_updated: Optional[datetime]
    state: dict[str, Any]
    promotion_pending: bool = False


class LegalMovesResponse(BaseModel):
    game_id: UUID
    seat: Seat
    from_square: SquareList
    legal_moves: list[SquareList]

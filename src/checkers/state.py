"""The Checkers GameState document."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Self

from src.checkers.board import Board
from src.checkers.pieces import Color
from src.core.exceptions import InvalidStateDocumentError
from src.core.shared_types import GameKind, Status
from src.core.square import Square, optional_square_from_list, optional_square_to_list
from src.core.timer import from_iso, to_iso


@dataclass
class CheckersState:
    board: Board = field(default_factory=Board.starting_position)
    current_player: Color = Color.BLACK
    status: Status = Status.WAITING
    winner: Optional[str] = None
    # set while a capture chain is running: the piece that has to keep jumping
    chain_square: Optional[Square] = None
    last_move: Optional[dict[str, Any]] = None
    ply: int = 0
    turn_started_at: Optional[datetime] = None

    @property
    def seat_to_move(self) -> str:
        return self.current_player.value

    def to_document(self, viewer: Optional[str] = None) -> dict[str, Any]:
        return {
            "kind": GameKind.CHECKERS.value,
            "board": self.board.to_document(),
            "currentPlayer": self.current_player.value,
            "status": self.status.value,
            "winner": self.winner,
            "chainSquare": optional_square_to_list(self.chain_square),
            "lastMove": self.last_move,
            "ply": self.ply,
            "turnStartedAt": to_iso(self.turn_started_at),
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Self:
        if document.get("kind") != GameKind.CHECKERS.value:
            raise InvalidStateDocumentError(
                f"Not a checkers document: kind={document.get('kind')!r}"
            )
        try:
            return cls(
                board=Board.from_document(document["board"]),
                current_player=Color(document["currentPlayer"]),
                status=Status(document["status"]),
                winner=document.get("winner"),
                chain_square=optional_square_from_list(document.get("chainSquare")),
                last_move=document.get("lastMove"),
                ply=int(document.get("ply", 0)),
                turn_started_at=from_iso(document.get("turnStartedAt")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidStateDocumentError(
                f"Cannot interpret checkers state document: {exc}"
            ) from exc

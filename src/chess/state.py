"""
The Chess GameState document.

Everything the engine needs to decide legality lives here (board incl. `hasMoved` flags, castling rights,
en passant target, half-move clock). `moveHistory` and `lastMove` are for display/change-detection only.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Self

from src.chess.board import Board
from src.chess.castling import CASTLING_ORDER, CastlingDirection
from src.chess.fen import FENState
from src.chess.pieces import Color
from src.core.exceptions import InvalidStateDocumentError
from src.core.shared_types import GameKind, Status
from src.core.square import (
    Square,
    optional_square_from_list,
    optional_square_to_list,
)
from src.core.timer import from_iso, to_iso


def all_castling_rights() -> dict[CastlingDirection, bool]:
    return {direction: True for direction in CASTLING_ORDER}


@dataclass
class ChessState:
    board: Board
    current_player: Color = Color.WHITE
    status: Status = Status.WAITING
    winner: Optional[str] = None
    castling_rights: dict[CastlingDirection, bool] = field(
        default_factory=all_castling_rights
    )
    en_passant_target: Optional[Square] = None
    half_move_clock: int = 0
    full_move_number: int = 1
    move_history: list[str] = field(default_factory=list)
    is_check: bool = False
    draw_reason: Optional[str] = None
    last_move: Optional[dict[str, Any]] = None
    ply: int = 0
    turn_started_at: Optional[datetime] = None

    @property
    def seat_to_move(self) -> str:
        return self.current_player.value

    # --- FEN ---
    @classmethod
    def from_fen(cls, fen: str, status: Status = Status.WAITING) -> Self:
        fen_state = FENState.from_fen(fen)
        board = Board.from_fen(fen_state.position)
        state = cls(
            board=board,
            current_player=fen_state.color_to_move,
            status=status,
            castling_rights=fen_state.castling_rights,
            en_passant_target=fen_state.en_passant_square,
            half_move_clock=fen_state.half_move_clock,
            full_move_number=fen_state.num_turns,
        )
        state.is_check = board.is_check(state.current_player)
        return state

    def to_fen(self) -> str:
        return FENState(
            position=self.board.to_fen(),
            color_to_move=self.current_player,
            castling_rights=self.castling_rights,
            en_passant_square=self.en_passant_target,
            half_move_clock=self.half_move_clock,
            num_turns=self.full_move_number,
        ).to_fen()

    # --- JSON document ---
    def to_document(self, viewer: Optional[str] = None) -> dict[str, Any]:
        """Chess is a game of perfect information: every viewer sees the full document."""
        return {
            "kind": GameKind.CHESS.value,
            "board": self.board.to_document(),
            "currentPlayer": self.current_player.value,
            "status": self.status.value,
            "winner": self.winner,
            "castlingRights": {
                direction.value: self.castling_rights[direction]
                for direction in CASTLING_ORDER
            },
            "enPassantTarget": optional_square_to_list(self.en_passant_target),
            "halfMoveClock": self.half_move_clock,
            "fullMoveNumber": self.full_move_number,
            "moveHistory": list(self.move_history),
            "isCheck": self.is_check,
            "drawReason": self.draw_reason,
            "lastMove": self.last_move,
            "ply": self.ply,
            "turnStartedAt": to_iso(self.turn_started_at),
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Self:
        if document.get("kind") != GameKind.CHESS.value:
            raise InvalidStateDocumentError(
                f"Not a chess document: kind={document.get('kind')!r}"
            )
        try:
            rights = document["castlingRights"]
            return cls(
                board=Board.from_document(document["board"]),
                current_player=Color(document["currentPlayer"]),
                status=Status(document["status"]),
                winner=document.get("winner"),
                castling_rights={
                    direction: bool(rights[direction.value])
                    for direction in CASTLING_ORDER
                },
                en_passant_target=optional_square_from_list(
                    document.get("enPassantTarget")
                ),
                half_move_clock=int(document["halfMoveClock"]),
                full_move_number=int(document["fullMoveNumber"]),
                move_history=list(document.get("moveHistory", [])),
                is_check=bool(document.get("isCheck", False)),
                draw_reason=document.get("drawReason"),
                last_move=document.get("lastMove"),
                ply=int(document.get("ply", 0)),
                turn_started_at=from_iso(document.get("turnStartedAt")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidStateDocumentError(
                f"Cannot interpret chess state document: {exc}"
            ) from exc

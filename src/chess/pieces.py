"""Defines the types of chess pieces"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Self

from src.core.exceptions import InvalidStateDocumentError


class PieceType(StrEnum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE


FEN_TO_PIECE: dict[str, PieceType] = {
    "p": PieceType.PAWN,
    "n": PieceType.KNIGHT,
    "b": PieceType.BISHOP,
    "r": PieceType.ROOK,
    "q": PieceType.QUEEN,
    "k": PieceType.KING,
}

PIECE_TO_FEN: dict[PieceType, str] = {value: key for key, value in FEN_TO_PIECE.items()}

MINOR_PIECES: frozenset[PieceType] = frozenset({PieceType.BISHOP, PieceType.KNIGHT})


@dataclass
class Piece:
    type: PieceType
    color: Color
    has_moved: bool = False

    @classmethod
    def from_fen(cls, character: str) -> Self:
        # lower case: Black pieces, upper case: White pieces
        color = Color.WHITE if character.isupper() else Color.BLACK
        piece_type = FEN_TO_PIECE[character.lower()]
        return cls(piece_type, color)

    def to_fen(self) -> str:
        return (
            PIECE_TO_FEN[self.type].upper()
            if self.color == Color.WHITE
            else PIECE_TO_FEN[self.type].lower()
        )

    def promote_to(self, new_type: PieceType) -> None:
        self.type = new_type

    def to_document(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "color": self.color.value,
            "hasMoved": self.has_moved,
        }

    @classmethod
    def from_document(cls, document: Any) -> Self:
        try:
            return cls(
                type=PieceType(document["type"]),
                color=Color(document["color"]),
                has_moved=bool(document.get("hasMoved", False)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidStateDocumentError(
                f"Cannot interpret {document!r} as a chess piece."
            ) from exc

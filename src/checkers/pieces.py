"""Checkers pieces: a man or a king of one of the two colors"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Self

from src.core.exceptions import InvalidStateDocumentError


class Color(StrEnum):
    BLACK = "black"
    WHITE = "white"

    @property
    def opponent(self) -> "Color":
        return Color.WHITE if self == Color.BLACK else Color.BLACK


@dataclass
class Piece:
    color: Color
    is_king: bool = False

    def crown(self) -> None:
        self.is_king = True

    def to_document(self) -> dict[str, Any]:
        return {"color": self.color.value, "isKing": self.is_king}

    @classmethod
    def from_document(cls, document: Any) -> Self:
        try:
            return cls(
                color=Color(document["color"]),
                is_king=bool(document.get("isKing", False)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidStateDocumentError(
                f"Cannot interpret {document!r} as a checkers piece."
            ) from exc

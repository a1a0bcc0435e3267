"""The checkers board: 8x8, only the dark squares are ever occupied"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Optional, Self

from src.checkers.pieces import Color, Piece
from src.core.exceptions import InvalidStateDocumentError
from src.core.square import Square

BOARD_DIMENSIONS = (8, 8)

# three rows of men per side. Black sets up at the top (row 0), White at the bottom.
STARTING_ROWS: dict[Color, range] = {
    Color.BLACK: range(0, 3),
    Color.WHITE: range(5, 8),
}


def is_dark_square(square: Square) -> bool:
    return (square.row + square.col) % 2 == 1


def is_on_board(square: Square) -> bool:
    return square.is_within_bounds(BOARD_DIMENSIONS)


@dataclass
class Board:
    """A square missing from `position` is empty."""

    position: dict[Square, Piece] = field(default_factory=dict)

    @classmethod
    def starting_position(cls) -> Self:
        position: dict[Square, Piece] = {}
        _, num_cols = BOARD_DIMENSIONS
        for color, rows in STARTING_ROWS.items():
            for row in rows:
                for col in range(num_cols):
                    square = Square(row, col)
                    if is_dark_square(square):
                        position[square] = Piece(color)
        return cls(position)

    # --- JSON document ---
    def to_document(self) -> list[list[Optional[dict[str, Any]]]]:
        num_rows, num_cols = BOARD_DIMENSIONS
        return [
            [
                piece.to_document() if (piece := self.piece(Square(row, col))) else None
                for col in range(num_cols)
            ]
            for row in range(num_rows)
        ]

    @classmethod
    def from_document(cls, rows: Any) -> Self:
        num_rows, num_cols = BOARD_DIMENSIONS
        if not isinstance(rows, list) or len(rows) != num_rows:
            raise InvalidStateDocumentError("Checkers board must have 8 rows.")
        position: dict[Square, Piece] = {}
        for row, cells in enumerate(rows):
            if not isinstance(cells, list) or len(cells) != num_cols:
                raise InvalidStateDocumentError(
                    f"Checkers board row {row} must have 8 cells."
                )
            for col, cell in enumerate(cells):
                if cell is not None:
                    position[Square(row, col)] = Piece.from_document(cell)
        return cls(position)

    # --- QUERIES ---
    def piece(self, square: Square) -> Optional[Piece]:
        return self.position.get(square)

    def is_empty(self, square: Square) -> bool:
        return square not in self.position

    def locate_color(self, color: Color) -> list[Square]:
        return sorted(
            square for square, piece in self.position.items() if piece.color == color
        )

    def count(self, color: Color) -> int:
        return sum(1 for piece in self.position.values() if piece.color == color)

    # --- UPDATES ---
    def place_piece(self, piece: Piece, square: Square) -> None:
        self.position[square] = piece

    def remove_piece(self, square: Square) -> Optional[Piece]:
        return self.position.pop(square, None)

    def move_piece(self, from_square: Square, to_square: Square) -> Piece:
        piece = self.position.pop(from_square)
        self.position[to_square] = piece
        return piece

    def copy(self) -> "Board":
        return deepcopy(self)

"""The stratego board: 10x10 with two impassable lakes in the middle"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Optional, Self

from src.core.exceptions import InvalidStateDocumentError
from src.core.square import Square
from src.stratego.pieces import Color, Piece

BOARD_DIMENSIONS = (10, 10)

LAKES: frozenset[Square] = frozenset(
    {
        Square(4, 2),
        Square(4, 3),
        Square(5, 2),
        Square(5, 3),
        Square(4, 6),
        Square(4, 7),
        Square(5, 6),
        Square(5, 7),
    }
)

# Red sets up on the bottom four rows, Blue on the top four
SETUP_ROWS: dict[Color, range] = {
    Color.RED: range(6, 10),
    Color.BLUE: range(0, 4),
}


def is_lake(square: Square) -> bool:
    return square in LAKES


def is_on_board(square: Square) -> bool:
    return square.is_within_bounds(BOARD_DIMENSIONS)


def is_in_setup_zone(square: Square, color: Color) -> bool:
    return is_on_board(square) and square.row in SETUP_ROWS[color]


def setup_zone(color: Color) -> list[Square]:
    _, num_cols = BOARD_DIMENSIONS
    return [Square(row, col) for row in SETUP_ROWS[color] for col in range(num_cols)]


@dataclass
class Board:
    """A square missing from `position` is empty."""

    position: dict[Square, Piece] = field(default_factory=dict)

    # --- JSON document ---
    def to_document(
        self, viewer: Optional[Color] = None
    ) -> list[list[Optional[dict[str, Any]]]]:
        """With a `viewer`, opposing pieces that were never revealed are written without their rank."""
        num_rows, num_cols = BOARD_DIMENSIONS
        rows: list[list[Optional[dict[str, Any]]]] = []
        for row in range(num_rows):
            cells: list[Optional[dict[str, Any]]] = []
            for col in range(num_cols):
                piece = self.piece(Square(row, col))
                if piece is None:
                    cells.append(None)
                    continue
                hidden = (
                    viewer is not None and piece.color != viewer and not piece.revealed
                )
                cells.append(piece.to_document(hidden=hidden))
            rows.append(cells)
        return rows

    @classmethod
    def from_document(cls, rows: Any) -> Self:
        num_rows, num_cols = BOARD_DIMENSIONS
        if not isinstance(rows, list) or len(rows) != num_rows:
            raise InvalidStateDocumentError("Stratego board must have 10 rows.")
        position: dict[Square, Piece] = {}
        for row, cells in enumerate(rows):
            if not isinstance(cells, list) or len(cells) != num_cols:
                raise InvalidStateDocumentError(
                    f"Stratego board row {row} must have 10 cells."
                )
            for col, cell in enumerate(cells):
                if cell is None:
                    continue
                square = Square(row, col)
                if is_lake(square):
                    raise InvalidStateDocumentError(f"Piece placed on lake {square}.")
                position[square] = Piece.from_document(cell)
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

    def movable_pieces(self, color: Color) -> list[Piece]:
        return [
            piece
            for piece in self.position.values()
            if piece.color == color and piece.can_move
        ]

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

"""
A square on a board

(placed in its own module as every game needs to import it)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from src.core.exceptions import InvalidStateDocumentError

Vector = tuple[int, int]


@dataclass(frozen=True, order=True)
class Square:
    """Row 0 is the top row of the persisted grid, column 0 the left-most column."""

    row: int
    col: int

    def offset(self, d_row: int, d_col: int) -> Square:
        return Square(self.row + d_row, self.col + d_col)

    def is_within_bounds(self, dimensions: tuple[int, int]) -> bool:
        num_rows, num_cols = dimensions
        return (0 <= self.row < num_rows) and (0 <= self.col < num_cols)

    def to_list(self) -> list[int]:
        """JSON encoding: [row, col]"""
        return [self.row, self.col]

    @classmethod
    def from_list(cls, value: Any) -> Square:
        if (
            not isinstance(value, (list, tuple))
            or len(value) != 2
            or not all(isinstance(v, int) and not isinstance(v, bool) for v in value)
        ):
            raise InvalidStateDocumentError(
                f"Cannot interpret {value!r} as a square. Expected [row, col]."
            )
        return cls(value[0], value[1])


def optional_square_from_list(value: Any) -> Square | None:
    return None if value is None else Square.from_list(value)


def optional_square_to_list(square: Square | None) -> list[int] | None:
    return None if square is None else square.to_list()

"""
Chess coordinates on top of the shared Square(row, col)

(placed in its own module as multiple other modules need to import it)

Row 0 is the 8th rank (black's back rank), column 0 is the a-file.
"""

from src.core.square import Square

# Chess board is always 8x8. Just in case we want to try some funky stuff, make it adjustable
BOARD_DIMENSIONS = (8, 8)


def from_algebraic(sq: str) -> Square:
    """Algebraic notation: 'a8' is (0, 0), 'h1' is (7, 7)"""
    col = ord(sq[0]) - ord("a")
    rank = int(sq[1:])
    return Square(BOARD_DIMENSIONS[0] - rank, col)


def to_algebraic(square: Square) -> str:
    return f"{file_letter(square)}{rank_number(square)}"


def file_letter(square: Square) -> str:
    return chr(square.col + ord("a"))


def rank_number(square: Square) -> int:
    return BOARD_DIMENSIONS[0] - square.row


def is_on_board(square: Square) -> bool:
    return square.is_within_bounds(BOARD_DIMENSIONS)

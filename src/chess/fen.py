"""
FEN parsing / writing. Used to build a ChessState from a compact string (custom starting positions, tests),
and to export one for display. The authoritative document is still the JSON grid of `ChessState`.
"""

from dataclasses import dataclass
from string import ascii_lowercase
from typing import Callable, Optional, Self

from src.chess.castling import (
    CASTLING_ORDER,
    CastlingDirection,
    castling_from_fen,
    castling_to_fen,
)
from src.chess.pieces import FEN_TO_PIECE, Color
from src.chess.square import BOARD_DIMENSIONS, from_algebraic, to_algebraic
from src.core.exceptions import InvalidFENError
from src.core.square import Square

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
CASTLING_LETTERS = "".join(direction.value for direction in CASTLING_ORDER)


def rank_width(rank_fen: str) -> Optional[int]:
    """Number of files a single rank describes, or None if it holds anything but piece codes and digits."""
    width = 0
    for character in rank_fen:
        if character.isdigit():
            width += int(character)
        elif character.lower() in FEN_TO_PIECE:
            width += 1
        else:
            return None
    return width


def is_valid_position(position: str) -> bool:
    num_ranks, num_files = BOARD_DIMENSIONS
    rank_fens = position.split("/")
    return len(rank_fens) == num_ranks and all(
        rank_width(rank_fen) == num_files for rank_fen in rank_fens
    )


def is_valid_color_code(color: str) -> bool:
    return color in {"w", "b"}


def is_valid_castling_rights(castling: str) -> bool:
    """'-', or a non-empty selection of KQkq written in that order (no repeats)."""
    if castling == "-":
        return True
    in_order = "".join(letter for letter in CASTLING_LETTERS if letter in castling)
    return bool(castling) and castling == in_order


def is_valid_square(square: str) -> bool:
    num_ranks, num_files = BOARD_DIMENSIONS
    file_char, rank_chars = square[:1], square[1:]
    return (
        file_char != ""
        and file_char in ascii_lowercase[:num_files]
        and rank_chars.isdigit()
        and 1 <= int(rank_chars) <= num_ranks
    )


def is_valid_en_passant(en_passant: str) -> bool:
    return en_passant == "-" or is_valid_square(en_passant)


def is_valid_move_counter(counter: str) -> bool:
    return counter.isdigit()


# the six space-separated fields of a FEN string, in order
FEN_FIELDS: list[tuple[str, Callable[[str], bool]]] = [
    ("piece placement", is_valid_position),
    ("active color", is_valid_color_code),
    ("castling rights", is_valid_castling_rights),
    ("en passant square", is_valid_en_passant),
    ("half-move clock", is_valid_move_counter),
    ("full-move number", is_valid_move_counter),
]


def fen_problems(fen: str) -> list[str]:
    """Names of the fields that cannot be interpreted. Empty for a valid FEN."""
    parts = fen.split(" ")
    if len(parts) != len(FEN_FIELDS):
        return [f"expected {len(FEN_FIELDS)} space-separated fields, got {len(parts)}"]
    return [name for (name, is_valid), part in zip(FEN_FIELDS, parts) if not is_valid(part)]


def is_valid_fen(fen: str) -> bool:
    return not fen_problems(fen)


@dataclass
class FENState:
    """
    Data that can be constructed from a FEN string.
    ----

    FEN, or Forsyth-Edwards Notation, is a standard notation for describing a particular board position of a chess game.

    <board position string><active color><castling rights><en passant square><# half move clock><number turns played>

    * The active color is either "w" or "b"
    * Castling rights: "K"/"Q" for white king-/queen-side, "k"/"q" for black, "-" once all are revoked.
    * The en passant square indicates the square a pawn can take on. If not available a "-" is used.
    * The half move clock counts the half-moves since the last pawn move or capture (fifty-move rule).
    * The number of turns starts at 1 and increments after every move black makes.
    """

    position: str
    color_to_move: Color
    castling_rights: dict[CastlingDirection, bool]
    en_passant_square: Optional[Square]
    half_move_clock: int
    num_turns: int

    @classmethod
    def from_fen(cls, fen: str) -> Self:
        """Parse the FEN into data"""

        problems = fen_problems(fen)
        if problems:
            raise InvalidFENError(f"Cannot interpret {fen!r} as FEN: {', '.join(problems)}")

        (
            position,
            active_color,
            castling_str,
            en_passant_algebraic,
            half_move_clock,
            num_turns,
        ) = fen.split(" ")

        return cls(
            position=position,
            color_to_move=Color.WHITE if active_color == "w" else Color.BLACK,
            castling_rights=castling_from_fen(castling_str),
            en_passant_square=(
                from_algebraic(en_passant_algebraic)
                if en_passant_algebraic != "-"
                else None
            ),
            half_move_clock=int(half_move_clock),
            num_turns=int(num_turns),
        )

    def to_fen(self) -> str:
        """reverse operation: write a FEN from the given data"""
        active_color = "w" if self.color_to_move == Color.WHITE else "b"
        castling_str = castling_to_fen(self.castling_rights)
        en_passant_algebraic = (
            to_algebraic(self.en_passant_square)
            if self.en_passant_square is not None
            else "-"
        )
        return f"{self.position} {active_color} {castling_str} {en_passant_algebraic} {self.half_move_clock} {self.num_turns}"

    @classmethod
    def starting_position(cls) -> Self:
        return cls.from_fen(STARTING_FEN)

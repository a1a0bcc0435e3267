"""unit tests for src/chess/castling.py"""

import pytest

from src.chess.castling import (
    CASTLING_RULES,
    CastlingDirection,
    CastlingSquares,
    castling_from_fen,
    castling_options,
    castling_to_fen,
)
from src.chess.pieces import Color
from src.chess.square import from_algebraic


def test_castling_squares_creation() -> None:
    """Test one case, just to have a little contract stating: 'I want to be able to create this dataclass'"""
    castling_squares = CastlingSquares.from_algebraic(
        "e1", "g1", "h1", "f1", "f1 g1", "f1 g1"
    )
    assert castling_squares.king_from == from_algebraic("e1")
    assert castling_squares.king_to == from_algebraic("g1")
    assert castling_squares.rook_from == from_algebraic("h1")
    assert castling_squares.rook_to == from_algebraic("f1")
    assert castling_squares.path == (from_algebraic("f1"), from_algebraic("g1"))


def test_queen_side_path_is_longer_than_king_path() -> None:
    """The b-file square has to be empty, but may be attacked."""
    rule = CASTLING_RULES[CastlingDirection.WHITE_QUEEN_SIDE]
    assert from_algebraic("b1") in rule.path
    assert from_algebraic("b1") not in rule.king_path


@pytest.mark.parametrize(
    "color, expected",
    [
        (Color.WHITE, [CastlingDirection.WHITE_KING_SIDE, CastlingDirection.WHITE_QUEEN_SIDE]),
        (Color.BLACK, [CastlingDirection.BLACK_KING_SIDE, CastlingDirection.BLACK_QUEEN_SIDE]),
    ],
)
def test_castling_options(color: Color, expected: list[CastlingDirection]) -> None:
    assert castling_options(color) == expected


@pytest.mark.parametrize("encoding", ["KQkq", "KQk", "Kq", "q", "-"])
def test_castling_fen_roundtrip(encoding: str) -> None:
    assert castling_to_fen(castling_from_fen(encoding)) == encoding


@pytest.mark.parametrize(
    "direction,k_from,k_to,r_from,r_to",
    [
        (CastlingDirection.WHITE_KING_SIDE, "e1", "g1", "h1", "f1"),
        (CastlingDirection.WHITE_QUEEN_SIDE, "e1", "c1", "a1", "d1"),
        (CastlingDirection.BLACK_KING_SIDE, "e8", "g8", "h8", "f8"),
        (CastlingDirection.BLACK_QUEEN_SIDE, "e8", "c8", "a8", "d8"),
    ],
)
def test_canonical_castling_rules(
    direction: CastlingDirection, k_from: str, k_to: str, r_from: str, r_to: str
) -> None:
    """Classical castling positional changes of the king and rook."""
    rule = CASTLING_RULES[direction]
    assert rule.king_from == from_algebraic(k_from)
    assert rule.king_to == from_algebraic(k_to)
    assert rule.rook_from == from_algebraic(r_from)
    assert rule.rook_to == from_algebraic(r_to)

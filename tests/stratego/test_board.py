"""Unit tests for /src/stratego/board.py"""

import pytest

from src.core.exceptions import InvalidStateDocumentError
from src.core.square import Square
from src.stratego.board import (
    LAKES,
    Board,
    is_in_setup_zone,
    is_lake,
    is_on_board,
    setup_zone,
)
from src.stratego.pieces import HIDDEN_RANK, Color, Piece, Rank


def test_lakes() -> None:
    assert len(LAKES) == 8
    assert is_lake(Square(4, 2))
    assert is_lake(Square(5, 7))
    assert not is_lake(Square(4, 4))
    assert all(square.row in (4, 5) for square in LAKES)


def test_setup_zones() -> None:
    red_zone = setup_zone(Color.RED)
    blue_zone = setup_zone(Color.BLUE)
    assert len(red_zone) == len(blue_zone) == 40
    assert not set(red_zone) & set(blue_zone)
    assert not set(red_zone) & LAKES
    assert is_in_setup_zone(Square(9, 0), Color.RED)
    assert not is_in_setup_zone(Square(9, 0), Color.BLUE)
    assert is_in_setup_zone(Square(3, 5), Color.BLUE)
    assert not is_in_setup_zone(Square(4, 5), Color.BLUE)
    assert not is_in_setup_zone(Square(10, 0), Color.RED)


def test_is_on_board() -> None:
    assert is_on_board(Square(9, 9))
    assert not is_on_board(Square(-1, 0))


@pytest.fixture
def board() -> Board:
    return Board(
        {
            Square(9, 0): Piece(Rank.FLAG, Color.RED),
            Square(6, 5): Piece(Rank.MARSHAL, Color.RED),
            Square(0, 9): Piece(Rank.FLAG, Color.BLUE),
            Square(3, 5): Piece(Rank.GENERAL, Color.BLUE, revealed=True),
        }
    )


def test_full_document_shows_every_rank(board: Board) -> None:
    rows = board.to_document()
    assert rows[9][0]["rank"] == "flag"  # type: ignore[index]
    assert rows[0][9]["rank"] == "flag"  # type: ignore[index]
    assert Board.from_document(rows) == board


def test_viewer_document_hides_unrevealed_enemies(board: Board) -> None:
    rows = board.to_document(viewer=Color.RED)
    # own pieces stay visible
    assert rows[9][0]["rank"] == "flag"  # type: ignore[index]
    assert rows[6][5]["rank"] == "marshal"  # type: ignore[index]
    # enemy that fought before is visible, the rest is not
    assert rows[3][5]["rank"] == "general"  # type: ignore[index]
    assert rows[0][9] == {"rank": HIDDEN_RANK, "color": "blue", "revealed": False, "canMove": None}


def test_piece_on_a_lake_is_rejected() -> None:
    rows = Board().to_document()
    rows[4][2] = Piece(Rank.SCOUT, Color.RED).to_document()
    with pytest.raises(InvalidStateDocumentError):
        Board.from_document(rows)


@pytest.mark.parametrize("rows", [None, [[None] * 10] * 8, [[None] * 10] * 9 + [[None] * 8]])
def test_invalid_document(rows: object) -> None:
    with pytest.raises(InvalidStateDocumentError):
        Board.from_document(rows)


def test_movable_pieces(board: Board) -> None:
    assert board.movable_pieces(Color.RED) == [Piece(Rank.MARSHAL, Color.RED)]
    assert board.locate_color(Color.BLUE) == [Square(0, 9), Square(3, 5)]

"""
Movement rules for checkers
----

* men step one square diagonally forward, kings in all four diagonal directions
* a jump goes over an adjacent enemy piece, into the empty square right behind it
* while a capture chain is running, only further jumps by the chaining piece are allowed
"""

from dataclasses import dataclass
from typing import Optional

from src.checkers.board import Board, is_on_board
from src.checkers.pieces import Color, Piece
from src.core.square import Square, Vector

# Black starts at the top and moves DOWN the board (towards row 7), White moves UP
FORWARD: dict[Color, int] = {Color.BLACK: 1, Color.WHITE: -1}
CROWN_ROW: dict[Color, int] = {Color.BLACK: 7, Color.WHITE: 0}

ALL_DIAGONALS: list[Vector] = [(1, 1), (1, -1), (-1, 1), (-1, -1)]


@dataclass(frozen=True)
class Move:
    from_square: Square
    to_square: Square
    captured: Optional[Square] = None

    @property
    def is_capture(self) -> bool:
        return self.captured is not None


def directions(piece: Piece) -> list[Vector]:
    if piece.is_king:
        return ALL_DIAGONALS
    forward = FORWARD[piece.color]
    return [(forward, 1), (forward, -1)]


def step_moves(square: Square, board: Board) -> list[Move]:
    piece = board.piece(square)
    if piece is None:
        return []
    moves: list[Move] = []
    for d_row, d_col in directions(piece):
        target = square.offset(d_row, d_col)
        if is_on_board(target) and board.is_empty(target):
            moves.append(Move(square, target))
    return moves


def jump_moves(square: Square, board: Board) -> list[Move]:
    piece = board.piece(square)
    if piece is None:
        return []
    moves: list[Move] = []
    for d_row, d_col in directions(piece):
        jumped = square.offset(d_row, d_col)
        landing = square.offset(2 * d_row, 2 * d_col)
        if not is_on_board(landing) or not board.is_empty(landing):
            continue
        victim = board.piece(jumped)
        if victim is not None and victim.color != piece.color:
            moves.append(Move(square, landing, captured=jumped))
    return moves


def candidate_moves(square: Square, board: Board) -> list[Move]:
    return step_moves(square, board) + jump_moves(square, board)


def generate_moves(
    color: Color, board: Board, chain_square: Optional[Square] = None
) -> list[Move]:
    """All moves for `color`. Inside a capture chain: only jumps by the piece on `chain_square`."""
    if chain_square is not None:
        return jump_moves(chain_square, board)
    moves: list[Move] = []
    for square in board.locate_color(color):
        moves.extend(candidate_moves(square, board))
    return moves


def reaches_crown_row(piece: Piece, square: Square) -> bool:
    return not piece.is_king and square.row == CROWN_ROW[piece.color]

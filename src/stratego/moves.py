"""
Movement rules for stratego
----

* Bombs and Flags never move
* Scouts slide any number of empty squares in a straight line, and may attack the first piece they hit
* every other piece steps a single square orthogonally
* lakes, the board edge and friendly pieces block. There is no check-like restriction.
"""

from dataclasses import dataclass
from typing import Callable

from src.core.square import Square, Vector
from src.stratego.board import Board, is_lake, is_on_board
from src.stratego.pieces import Color, Rank

ORTHOGONALS: list[Vector] = [(1, 0), (-1, 0), (0, 1), (0, -1)]


@dataclass(frozen=True)
class Move:
    from_square: Square
    to_square: Square


def _is_passable(square: Square) -> bool:
    return is_on_board(square) and not is_lake(square)


def scout_moves(square: Square, board: Board) -> list[Move]:
    """Raycast until blocked. A scout attacks at most once: the ray stops on the first enemy."""
    scout = board.piece(square)
    assert scout is not None
    moves: list[Move] = []
    for d_row, d_col in ORTHOGONALS:
        target = square.offset(d_row, d_col)
        while _is_passable(target):
            occupant = board.piece(target)
            if occupant is None:
                moves.append(Move(square, target))
            else:
                if occupant.color != scout.color:
                    moves.append(Move(square, target))
                break
            target = target.offset(d_row, d_col)
    return moves


def single_step_moves(square: Square, board: Board) -> list[Move]:
    mover = board.piece(square)
    assert mover is not None
    moves: list[Move] = []
    for d_row, d_col in ORTHOGONALS:
        target = square.offset(d_row, d_col)
        if not _is_passable(target):
            continue
        occupant = board.piece(target)
        if occupant is None or occupant.color != mover.color:
            moves.append(Move(square, target))
    return moves


CandidateMovesFn = Callable[[Square, Board], list[Move]]


def candidate_moves(square: Square, board: Board) -> list[Move]:
    piece = board.piece(square)
    if piece is None or not piece.can_move:
        return []
    movement_rule: CandidateMovesFn = (
        scout_moves if piece.rank == Rank.SCOUT else single_step_moves
    )
    return movement_rule(square, board)


def generate_moves(color: Color, board: Board) -> list[Move]:
    moves: list[Move] = []
    for square in board.locate_color(color):
        moves.extend(candidate_moves(square, board))
    return moves

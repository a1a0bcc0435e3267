"""Standard Algebraic Notation for the move history (display only, never used for legality)."""

from src.chess.board import Board
from src.chess.castling import KING_SIDE_DIRECTIONS
from src.chess.moves import Move
from src.chess.pieces import PIECE_TO_FEN, PieceType
from src.chess.square import file_letter, rank_number, to_algebraic


def to_san(
    move: Move,
    board_before: Board,
    legal_moves: list[Move],
    gives_check: bool,
    gives_mate: bool,
) -> str:
    """
    ex) "e4", "Nbd7", "exd6", "e8=Q+", "O-O", "Qxf7#"

    `legal_moves` are all legal moves of the mover in the position before the move (needed to disambiguate).
    """
    suffix = "#" if gives_mate else "+" if gives_check else ""

    if move.castling_direction is not None:
        castle = "O-O" if move.castling_direction in KING_SIDE_DIRECTIONS else "O-O-O"
        return castle + suffix

    piece = board_before.piece(move.from_square)
    assert piece is not None
    is_capture = move.is_en_passant or board_before.piece(move.to_square) is not None

    notation = ""
    if piece.type == PieceType.PAWN:
        if is_capture:
            notation += file_letter(move.from_square)
    else:
        notation += PIECE_TO_FEN[piece.type].upper()
        notation += _disambiguation(move, piece.type, board_before, legal_moves)

    if is_capture:
        notation += "x"
    notation += to_algebraic(move.to_square)

    if move.promote_to is not None:
        notation += "=" + PIECE_TO_FEN[move.promote_to].upper()

    return notation + suffix


def _disambiguation(
    move: Move, piece_type: PieceType, board: Board, legal_moves: list[Move]
) -> str:
    """Another piece of the same type could reach the same square: add file, rank, or both."""
    rivals = {
        other.from_square
        for other in legal_moves
        if other.to_square == move.to_square
        and other.from_square != move.from_square
        and (rival := board.piece(other.from_square)) is not None
        and rival.type == piece_type
    }
    if not rivals:
        return ""
    if all(rival.col != move.from_square.col for rival in rivals):
        return file_letter(move.from_square)
    if all(rival.row != move.from_square.row for rival in rivals):
        return str(rank_number(move.from_square))
    return to_algebraic(move.from_square)

"""The Game board implements all rules that effect the `position` (in chess: the configuration of pieces on the board)"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Optional, Self

from src.chess.moves import ATTACK_RULES, MOVEMENT_RULES, CandidateMovesFn, Move
from src.chess.pieces import Color, Piece, PieceType
from src.chess.square import BOARD_DIMENSIONS
from src.core.exceptions import InvalidFENError, InvalidStateDocumentError
from src.core.square import Square


@dataclass
class Board:
    """Only occupied squares are stored. A square missing from `position` is empty."""

    position: dict[Square, Piece] = field(default_factory=dict)

    @classmethod
    def from_fen(cls, fen_str: str) -> Self:
        """Construct a board using a given FEN string.

        That is, we supply the first part of the FEN string that denotes the board position
        ex. standard starting position:
        rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR
        means:
        * black pieces are on the 8th rank (row 0), starting with rook on a8, knight on b8, etc.
        * pawns cover 7th rank entirely
        * ranks 6 through 3 have 8 consecutive empty squares
        * rank 2 are the white pawns (capital letters)
        * 1st rank are the white pieces.
        """
        position: dict[Square, Piece] = {}
        fen_by_ranks = fen_str.split("/")
        if len(fen_by_ranks) != BOARD_DIMENSIONS[0]:
            raise InvalidFENError(f"Expected 8 ranks in FEN position: {fen_str!r}")
        # FEN string is read from top rank (8th) to bottom rank (1st), which is exactly the row order
        for row, fen_one_rank in enumerate(fen_by_ranks):
            col = 0
            for character in fen_one_rank:
                if character.isalpha():
                    # simple case: a letter directly denotes the piece that should be created
                    position[Square(row, col)] = Piece.from_fen(character)
                    col += 1
                else:
                    # A number denotes the amount of empty squares after each other
                    col += int(character)
        board = cls(position)
        board.mark_moved_pieces()
        return board

    def to_fen(self) -> str:
        """Ranks are separated by slashes in FEN string."""
        return "/".join(self._rank_to_fen(row) for row in range(BOARD_DIMENSIONS[0]))

    def _rank_to_fen(self, row: int) -> str:
        """FEN string of a single rank"""
        fen_characters: list[str] = []
        empty_count = 0
        for col in range(BOARD_DIMENSIONS[1]):
            piece = self.piece(Square(row, col))

            if piece is not None:
                if empty_count > 0:
                    fen_characters.append(str(empty_count))
                    empty_count = 0
                fen_characters.append(piece.to_fen())
            else:
                empty_count += 1

        # if the entire rank is empty, then we still place this number in the string
        if empty_count > 0:
            fen_characters.append(str(empty_count))
        return "".join(fen_characters)

    def mark_moved_pieces(self) -> None:
        """
        FEN does not store `hasMoved`. Infer it: kings/rooks/pawns away from their starting squares have moved.
        (Castling legality uses the castling rights as well, so this only has to be conservative.)
        """
        start_rows = {
            (Color.WHITE, PieceType.PAWN): 6,
            (Color.BLACK, PieceType.PAWN): 1,
            (Color.WHITE, PieceType.KING): 7,
            (Color.BLACK, PieceType.KING): 0,
            (Color.WHITE, PieceType.ROOK): 7,
            (Color.BLACK, PieceType.ROOK): 0,
        }
        for square, piece in self.position.items():
            start_row = start_rows.get((piece.color, piece.type))
            if start_row is None:
                continue
            off_start_column = (piece.type == PieceType.KING and square.col != 4) or (
                piece.type == PieceType.ROOK and square.col not in (0, 7)
            )
            piece.has_moved = square.row != start_row or off_start_column

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
            raise InvalidStateDocumentError("Chess board must have 8 rows.")
        position: dict[Square, Piece] = {}
        for row, cells in enumerate(rows):
            if not isinstance(cells, list) or len(cells) != num_cols:
                raise InvalidStateDocumentError(f"Chess board row {row} must have 8 cells.")
            for col, cell in enumerate(cells):
                if cell is not None:
                    position[Square(row, col)] = Piece.from_document(cell)
        return cls(position)

    # --- QUERIES ---
    def piece(self, square: Square) -> Optional[Piece]:
        return self.position.get(square)

    def locate_pieces(self, piece_type: PieceType, color: Color) -> list[Square]:
        return [
            square
            for square, piece in self.position.items()
            if piece.type == piece_type and piece.color == color
        ]

    def locate_color(self, color: Color) -> list[Square]:
        return sorted(
            square for square, piece in self.position.items() if piece.color == color
        )

    def locate_king(self, color: Color) -> Optional[Square]:
        kings = self.locate_pieces(PieceType.KING, color)
        return kings[0] if kings else None

    def player_pieces(self, color: Color) -> list[Piece]:
        """find all pieces of a given color"""
        return [piece for piece in self.position.values() if piece.color == color]

    def is_any_occupied(self, squares: tuple[Square, ...] | list[Square]) -> bool:
        return any(self.piece(square) is not None for square in squares)

    def is_under_attack(self, square: Square, by_color: Color) -> bool:
        """Is the square attacked by any piece of the given color? (strategy pattern: one rule per piece type)"""
        return any(
            is_attacked(square, by_color, self) for is_attacked in ATTACK_RULES.values()
        )

    def is_any_under_attack(
        self, squares: tuple[Square, ...] | list[Square], by_color: Color
    ) -> bool:
        return any(self.is_under_attack(square, by_color) for square in squares)

    def is_check(self, color: Color) -> bool:
        """Is the king of the given color attacked? (No king on the board: never in check)"""
        king_square = self.locate_king(color)
        if king_square is None:
            return False
        return self.is_under_attack(king_square, color.opponent)

    def generate_candidate_moves(self, color: Color) -> list[Move]:
        """
        Before knowing the set of legal moves, we use raycasting to find candidate moves, which will later be tested for legality
        (making sure it does not put yourself in check.)

        ---
        NOTE: Castling / En passant are added by the engine, which knows the castling rights and en passant square.
        """
        candidate_moves: list[Move] = []
        for starting_square in self.locate_color(color):
            piece_type = self.position[starting_square].type
            movement_rule: CandidateMovesFn = MOVEMENT_RULES[piece_type]
            candidate_moves.extend(movement_rule(starting_square, self))
        return candidate_moves

    # --- UPDATES ---
    def place_piece(self, piece: Piece, square: Square) -> None:
        self.position[square] = piece

    def remove_piece(self, square: Square) -> Optional[Piece]:
        return self.position.pop(square, None)

    def move_piece(self, move: Move) -> Optional[Piece]:
        """Update the position on the board. Returns whatever stood on the target square."""
        piece_that_moved = self.position.pop(move.from_square)
        captured = self.position.get(move.to_square)
        piece_that_moved.has_moved = True
        self.position[move.to_square] = piece_that_moved
        return captured

    def promote_piece(self, square: Square, to: PieceType) -> None:
        self.position[square].promote_to(to)

    def copy(self) -> "Board":
        return deepcopy(self)

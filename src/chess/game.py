"""
The ChessEngine is the entrypoint into the chess domain layer for the service layer.
It is responsible for orchestrating all the business logic required to play a ply:
generating legal moves, applying one, and deciding whether the game is over.

All public methods are pure: the incoming ChessState is never mutated, a new one is returned.
"""

import logging
from copy import deepcopy
from datetime import datetime
from random import Random
from typing import Any, Optional

from src.chess.board import Board
from src.chess.castling import (
    CASTLING_RULES,
    KING_SIDE_DIRECTIONS,
    CastlingDirection,
    castling_options,
)
from src.chess.fen import STARTING_FEN
from src.chess.moves import (
    Move,
    candidate_castling_move,
    en_passant_moves,
    en_passant_victim_square,
    is_pawn_push_to_promotion_square,
    pawn_pushes_w_promotion,
)
from src.chess.notation import to_san
from src.chess.pieces import MINOR_PIECES, Color, Piece, PieceType
from src.chess.state import ChessState
from src.core.engine import MoveOutcome, ProposedMove, Termination
from src.core.exceptions import GameStateError, IllegalMoveError, NotYourTurnError
from src.core.shared_types import DRAW, GameKind, Status
from src.core.square import Square

logger = logging.getLogger(__name__)

FIFTY_MOVE_HALF_MOVES = 100


class ChessEngine:
    kind = GameKind.CHESS
    seats: tuple[str, ...] = (Color.WHITE.value, Color.BLACK.value)
    supports_setup = False

    # --- DOMAIN LAYER API CALLED BY SERVICE ---
    def new_state(self, starting_fen: Optional[str] = None) -> ChessState:
        """Canonical starting position, unless a custom FEN is supplied."""
        return ChessState.from_fen(starting_fen or STARTING_FEN, status=Status.WAITING)

    def state_from_document(self, document: dict[str, Any]) -> ChessState:
        return ChessState.from_document(document)

    def start(self, state: ChessState, now: datetime) -> ChessState:
        """Both seats are taken: the clock starts for the side to move."""
        if state.status != Status.WAITING:
            raise GameStateError(f"Cannot start a game with status {state.status}")
        started = deepcopy(state)
        started.status = Status.ACTIVE
        started.turn_started_at = now
        return started

    def legal_moves(self, state: ChessState, from_square: Square) -> set[Square]:
        """Destinations for the piece on `from_square`. Empty unless it belongs to the side to move in an active game."""
        if state.status != Status.ACTIVE:
            return set()
        piece = state.board.piece(from_square)
        if piece is None or piece.color != state.current_player:
            return set()
        return {
            move.to_square
            for move in self._generate_legal_moves(state, state.current_player)
            if move.from_square == from_square
        }

    def all_legal_moves(self, state: ChessState) -> list[ProposedMove]:
        """Every legal move of the side to move (one entry per promotion choice)."""
        if state.status != Status.ACTIVE:
            return []
        return [
            ProposedMove(
                move.from_square,
                move.to_square,
                move.promote_to.value if move.promote_to else None,
            )
            for move in self._generate_legal_moves(state, state.current_player)
        ]

    def apply_move(
        self, state: ChessState, seat: str, move: ProposedMove, now: datetime
    ) -> MoveOutcome:
        """
        Attempt to make a move
        -----

        1. the game must be active and it must be `seat`'s turn
        2. the move must be one of the legal moves
        3. a pawn reaching the far rank needs a promotion choice, otherwise: promotion pending (state untouched)
        4. play it, update rights / clocks / history, and check for the end of the game
        """
        self._assert_in_progress(state)
        if seat != state.seat_to_move:
            raise NotYourTurnError(
                f"It is not your turn. Waiting for {state.seat_to_move} to make a move first."
            )

        legal_moves = self._generate_legal_moves(state, state.current_player)
        accepted = self._match_legal_move(move, legal_moves)
        if accepted is None:
            return MoveOutcome(state=state, promotion_pending=True)

        return self._play_turn(state, accepted, legal_moves, now, forced=False)

    def check_termination(self, state: ChessState) -> Optional[Termination]:
        """
        Performs checks to see if the game has ended. Never ends a game that is not active.

        * no legal moves: checkmate (side that just moved wins) or stalemate
        * insufficient material
        * fifty-move rule (100 half-moves without pawn move or capture)
        """
        if state.status != Status.ACTIVE:
            return None

        color = state.current_player
        if not self._generate_legal_moves(state, color):
            if state.board.is_check(color):
                return Termination(winner=color.opponent.value, reason="checkmate")
            return Termination(winner=DRAW, reason="stalemate")

        if self._is_insufficient_material(state.board):
            return Termination(winner=DRAW, reason="insufficient_material")

        if state.half_move_clock >= FIFTY_MOVE_HALF_MOVES:
            return Termination(winner=DRAW, reason="fifty_move")

        return None

    def expire_turn(self, state: ChessState, rng: Random, now: datetime) -> ChessState:
        """
        Turn timer ran out: play a uniformly random legal move for the side to move.
        Promotions default to a Queen. Without any legal move the game is ended (checkmate or stalemate).
        """
        if state.status != Status.ACTIVE:
            return state

        legal_moves = self._generate_legal_moves(state, state.current_player)
        if not legal_moves:
            finished = deepcopy(state)
            termination = self.check_termination(finished)
            if termination is not None:
                self._finish(finished, termination)
            return finished

        # pick among (from, to) pairs, so a promotion square is not 4x as likely
        destinations = list(
            dict.fromkeys((move.from_square, move.to_square) for move in legal_moves)
        )
        from_square, to_square = rng.choice(destinations)
        candidates = [
            move
            for move in legal_moves
            if (move.from_square, move.to_square) == (from_square, to_square)
        ]
        chosen = next(
            (move for move in candidates if move.promote_to == PieceType.QUEEN),
            candidates[0],
        )
        logger.info(
            "Forced move for %s: %s", state.current_player.value, chosen.to_uci()
        )
        return self._play_turn(state, chosen, legal_moves, now, forced=True).state

    # -- PRIVATE HELPERS ---
    def _assert_in_progress(self, state: ChessState) -> None:
        if state.status != Status.ACTIVE:
            raise GameStateError(f"Game is not in progress. status: {state.status}")

    def _match_legal_move(
        self, proposed: ProposedMove, legal_moves: list[Move]
    ) -> Optional[Move]:
        """
        Find the legal move the client means (castling / en passant flags are only known on our side).
        Returns None if it would promote, but no piece type was chosen yet.
        """
        candidates = [
            move
            for move in legal_moves
            if (move.from_square, move.to_square)
            == (proposed.from_square, proposed.to_square)
        ]
        if not candidates:
            raise IllegalMoveError(
                f"Move not allowed: {proposed.from_square} -> {proposed.to_square}"
            )

        is_promotion = any(move.promote_to is not None for move in candidates)
        if not is_promotion:
            return candidates[0]

        if proposed.promotion is None:
            return None
        for move in candidates:
            if move.promote_to is not None and move.promote_to.value == proposed.promotion:
                return move
        raise IllegalMoveError(f"Cannot promote to {proposed.promotion!r}")

    def _play_turn(
        self,
        state: ChessState,
        move: Move,
        legal_moves: list[Move],
        now: datetime,
        forced: bool,
    ) -> MoveOutcome:
        """Apply an accepted move to a copy of the state."""
        mover = state.current_player
        next_state = deepcopy(state)
        moving_piece = deepcopy(state.board.piece(move.from_square))
        assert moving_piece is not None

        captured, captured_square = self._play_on_board(next_state.board, move)

        self._revoke_castling_rights_if_needed(next_state, move)
        next_state.en_passant_target = self._determine_en_passant_square(
            moving_piece, move
        )

        # move counters
        if moving_piece.type == PieceType.PAWN or captured is not None:
            next_state.half_move_clock = 0
        else:
            next_state.half_move_clock += 1
        if mover == Color.BLACK:
            next_state.full_move_number += 1

        # NOTE update color to move AFTER doing checks that depend on the last move made
        next_state.current_player = mover.opponent
        next_state.ply += 1
        next_state.turn_started_at = now
        next_state.is_check = next_state.board.is_check(next_state.current_player)

        termination = self.check_termination(next_state)
        if termination is not None:
            self._finish(next_state, termination)

        notation = to_san(
            move,
            state.board,
            legal_moves,
            gives_check=next_state.is_check,
            gives_mate=termination is not None and termination.reason == "checkmate",
        )
        next_state.move_history.append(notation)
        next_state.last_move = self._last_move_record(
            move, moving_piece, captured, notation, next_state.is_check, forced
        )

        logger.info(
            "chess ply %s: %s %s%s",
            next_state.ply,
            mover.value,
            notation,
            " (forced)" if forced else "",
        )
        return MoveOutcome(
            state=next_state,
            termination=termination,
            captured=[captured_square] if captured_square is not None else [],
        )

    def _play_on_board(
        self, board: Board, move: Move
    ) -> tuple[Optional[Piece], Optional[Square]]:
        """
        Update a board with the move (castling moves two pieces, en passant captures off the target square).
        Returns the captured piece and the square it was taken on.
        """
        if move.castling_direction is not None:
            rule = CASTLING_RULES[move.castling_direction]
            board.move_piece(Move(rule.king_from, rule.king_to))
            board.move_piece(Move(rule.rook_from, rule.rook_to))
            return None, None

        if move.is_en_passant:
            victim_square = en_passant_victim_square(move)
            board.move_piece(move)
            return board.remove_piece(victim_square), victim_square

        captured = board.move_piece(move)
        if move.promote_to is not None:
            board.promote_piece(move.to_square, to=move.promote_to)
        return captured, (move.to_square if captured is not None else None)

    # -- LEGAL MOVES HELPERS ---
    def _generate_legal_moves(self, state: ChessState, color: Color) -> list[Move]:
        """
        List of legal moves for the player with the 'color' pieces
        ----

        **Combines the following**

        1. generate candidate moves, using the basic movement rules for all pieces (the board does this calculation)
        2. add candidate castling moves
        3. add candidate en passant moves
        4. remove illegal options --> a move that would put you in check or you are in check and the move does not get you out of it.
        5. Pawn push to promotion square? --> expand the set of moves to include one for every choice of piece type to promote into.
        """
        board = state.board
        candidate_moves = board.generate_candidate_moves(color)
        candidate_moves.extend(self._generate_castling_moves(state, color))

        if state.en_passant_target is not None and color == state.current_player:
            candidate_moves.extend(
                en_passant_moves(state.en_passant_target, color, board)
            )

        legal_moves: list[Move] = []
        for move in candidate_moves:
            if self._is_putting_yourself_in_check(board, move, color):
                continue
            if is_pawn_push_to_promotion_square(move, board):
                legal_moves.extend(pawn_pushes_w_promotion(move))
            else:
                legal_moves.append(move)
        return legal_moves

    def _is_putting_yourself_in_check(self, board: Board, move: Move, color: Color) -> bool:
        """Return True if the move leaves your own king attacked (evaluated on a hypothetical board)"""
        hypothetical = board.copy()
        self._play_on_board(hypothetical, move)
        return hypothetical.is_check(color)

    # -- CASTLING RULE HELPERS ---
    def _generate_castling_moves(self, state: ChessState, color: Color) -> list[Move]:
        return [
            candidate_castling_move(direction)
            for direction in self._legal_castling_directions(state, color)
        ]

    def _legal_castling_directions(
        self, state: ChessState, color: Color
    ) -> list[CastlingDirection]:
        """
        **you are allowed to castle if**

        * Castling rights are not yet revoked, and neither king nor that rook ever moved.
        * All squares in between king and rook are empty.
        * Neither the king's start square, nor a square it passes or lands on, is under attack.
        """
        board = state.board
        opponent = color.opponent
        legal_directions: list[CastlingDirection] = []
        for direction in castling_options(color):
            if not state.castling_rights[direction]:
                continue

            rule = CASTLING_RULES[direction]
            king = board.piece(rule.king_from)
            rook = board.piece(rule.rook_from)
            if king != Piece(PieceType.KING, color) or rook != Piece(PieceType.ROOK, color):
                # NOTE: equality includes has_moved=False
                continue

            if board.is_any_occupied(rule.path):
                continue

            if board.is_any_under_attack((rule.king_from, *rule.king_path), opponent):
                continue

            legal_directions.append(direction)
        return legal_directions

    def _revoke_castling_rights_if_needed(self, state: ChessState, move: Move) -> None:
        """
        A right is gone for good once its king or rook leaves its starting square,
        or once something lands on that rook's starting square (the rook got captured).
        """
        for direction, rule in CASTLING_RULES.items():
            if move.from_square == rule.king_from:
                state.castling_rights[direction] = False
            if rule.rook_from in (move.from_square, move.to_square):
                state.castling_rights[direction] = False

    # --- EN PASSANT RULE HELPERS ----
    def _determine_en_passant_square(
        self, moving_piece: Piece, move: Move
    ) -> Optional[Square]:
        """The possible en passant square for the next turn: the square a double-pushed pawn skipped."""
        rows_moved = abs(move.from_square.row - move.to_square.row)
        if moving_piece.type == PieceType.PAWN and rows_moved == 2:
            return Square(
                (move.from_square.row + move.to_square.row) // 2, move.from_square.col
            )
        return None

    # --- CHECKS FOR ENDING THE GAME ---
    def _is_insufficient_material(self, board: Board) -> bool:
        """King vs King, or King + single minor piece vs King."""
        pieces = list(board.position.values())
        if len(pieces) == 2:
            return True
        if len(pieces) == 3:
            non_kings = [piece for piece in pieces if piece.type != PieceType.KING]
            return len(non_kings) == 1 and non_kings[0].type in MINOR_PIECES
        return False

    def _finish(self, state: ChessState, termination: Termination) -> None:
        state.status = Status.FINISHED
        state.winner = termination.winner
        state.draw_reason = (
            termination.reason if termination.winner == DRAW else None
        )

    def _last_move_record(
        self,
        move: Move,
        piece: Piece,
        captured: Optional[Piece],
        notation: str,
        is_check: bool,
        forced: bool,
    ) -> dict[str, Any]:
        castle = None
        if move.castling_direction is not None:
            castle = (
                "kingside"
                if move.castling_direction in KING_SIDE_DIRECTIONS
                else "queenside"
            )
        return {
            "from": move.from_square.to_list(),
            "to": move.to_square.to_list(),
            "uci": move.to_uci(),
            "piece": piece.to_document(),
            "captured": captured.to_document() if captured is not None else None,
            "castle": castle,
            "enPassant": move.is_en_passant,
            "promotion": move.promote_to.value if move.promote_to else None,
            "notation": notation,
            "isCheck": is_check,
            "forced": forced,
        }

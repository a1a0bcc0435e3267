"""
The StrategoEngine: setup phase, movement with combat, and termination.

Lifecycle: waiting -> setup -> active -> finished.
During setup both seats place their own army concurrently, only inside their own setup zone.
Once both declared ready, Red moves first.
"""

import logging
from copy import deepcopy
from datetime import datetime
from random import Random
from typing import Any, Optional

from src.core.engine import MoveOutcome, ProposedMove, Termination
from src.core.exceptions import GameStateError, IllegalMoveError, NotYourTurnError
from src.core.shared_types import DRAW, GameKind, Status
from src.core.square import Square
from src.stratego.board import is_in_setup_zone, is_lake, setup_zone
from src.stratego.combat import CombatResult, resolve_combat
from src.stratego.moves import Move, generate_moves
from src.stratego.pieces import Color, Piece, Rank
from src.stratego.state import StrategoState

logger = logging.getLogger(__name__)


class StrategoEngine:
    kind = GameKind.STRATEGO
    seats: tuple[str, ...] = (Color.RED.value, Color.BLUE.value)
    supports_setup = True

    def new_state(self) -> StrategoState:
        return StrategoState()

    def state_from_document(self, document: dict[str, Any]) -> StrategoState:
        return StrategoState.from_document(document)

    def start(self, state: StrategoState, now: datetime) -> StrategoState:
        """Both seats are taken: the (shared) setup clock starts."""
        if state.status != Status.WAITING:
            raise GameStateError(f"Cannot start a game with status {state.status}")
        started = deepcopy(state)
        started.status = Status.SETUP
        started.setup_phase = True
        started.turn_started_at = now
        return started

    # --- SETUP PHASE ---
    def place_piece(
        self, state: StrategoState, seat: str, rank: str, square: Square
    ) -> StrategoState:
        """Take one piece of `rank` out of the seat's pool and put it on an empty square of its setup zone."""
        color = self._seat_in_setup(state, seat)
        try:
            piece_rank = Rank(rank)
        except ValueError as exc:
            raise IllegalMoveError(f"Unknown rank {rank!r}") from exc

        if state.pools[color][piece_rank] <= 0:
            raise IllegalMoveError(f"No {piece_rank} left to place for {color}.")
        if not is_in_setup_zone(square, color) or is_lake(square):
            raise IllegalMoveError(f"{square.to_list()} is outside the {color} setup zone.")
        if not state.board.is_empty(square):
            raise IllegalMoveError(f"{square.to_list()} is already occupied.")

        next_state = deepcopy(state)
        next_state.board.place_piece(Piece(piece_rank, color), square)
        next_state.pools[color][piece_rank] -= 1
        return next_state

    def remove_piece(
        self, state: StrategoState, seat: str, square: Square
    ) -> StrategoState:
        """Lift one of your own placed pieces back into your pool."""
        color = self._seat_in_setup(state, seat)
        piece = state.board.piece(square)
        if piece is None or piece.color != color:
            raise IllegalMoveError(f"No {color} piece on {square.to_list()} to remove.")

        next_state = deepcopy(state)
        next_state.board.remove_piece(square)
        next_state.pools[color][piece.rank] += 1
        return next_state

    def mark_ready(
        self, state: StrategoState, seat: str, now: datetime
    ) -> StrategoState:
        color = self._seat_in_setup(state, seat)
        if state.pieces_left(color) > 0:
            raise GameStateError(
                f"{color} still has {state.pieces_left(color)} pieces to place."
            )
        next_state = deepcopy(state)
        next_state.ready[color] = True
        self._activate_if_all_ready(next_state, now)
        return next_state

    # --- PLAY PHASE ---
    def legal_moves(self, state: StrategoState, from_square: Square) -> set[Square]:
        if state.status != Status.ACTIVE:
            return set()
        piece = state.board.piece(from_square)
        if piece is None or piece.color != state.current_player:
            return set()
        return {
            move.to_square
            for move in generate_moves(state.current_player, state.board)
            if move.from_square == from_square
        }

    def all_legal_moves(self, state: StrategoState) -> list[ProposedMove]:
        if state.status != Status.ACTIVE:
            return []
        return [
            ProposedMove(move.from_square, move.to_square)
            for move in generate_moves(state.current_player, state.board)
        ]

    def apply_move(
        self, state: StrategoState, seat: str, move: ProposedMove, now: datetime
    ) -> MoveOutcome:
        if state.status != Status.ACTIVE:
            raise GameStateError(f"Game is not in progress. status: {state.status}")
        if seat != state.seat_to_move:
            raise NotYourTurnError(
                f"It is not your turn. Waiting for {state.seat_to_move} to make a move first."
            )
        if move.to_square not in self.legal_moves(state, move.from_square):
            raise IllegalMoveError(
                f"Move not allowed: {move.from_square.to_list()} -> {move.to_square.to_list()}"
            )
        return self._play(state, Move(move.from_square, move.to_square), now, forced=False)

    def check_termination(self, state: StrategoState) -> Optional[Termination]:
        """
        Only evaluated while active (never during setup, when flags may legitimately be missing).

        * a captured flag: the other side wins
        * a side without movable pieces loses (both without: draw)
        * the side to move has movable pieces but all of them are boxed in: it loses
        """
        if state.status != Status.ACTIVE:
            return None

        flags = {
            piece.color for piece in state.board.position.values() if piece.rank == Rank.FLAG
        }
        for color in Color:
            if color not in flags:
                return Termination(winner=color.opponent.value, reason="flag_captured")

        immobile = [
            color for color in Color if not state.board.movable_pieces(color)
        ]
        if len(immobile) == len(Color):
            return Termination(winner=DRAW, reason="no_movable_pieces")
        if immobile:
            return Termination(
                winner=immobile[0].opponent.value, reason="no_movable_pieces"
            )

        if not generate_moves(state.current_player, state.board):
            return Termination(
                winner=state.current_player.opponent.value, reason="no_legal_moves"
            )
        return None

    def expire_turn(
        self, state: StrategoState, rng: Random, now: datetime
    ) -> StrategoState:
        """
        * setup: every seat that is not ready gets its remaining pool placed at random, and is marked ready
        * active: a random legal move for the side to move
        """
        if state.status == Status.SETUP:
            return self._auto_complete_setup(state, rng, now)
        if state.status != Status.ACTIVE:
            return state

        moves = generate_moves(state.current_player, state.board)
        if not moves:
            finished = deepcopy(state)
            termination = self.check_termination(finished)
            if termination is not None:
                self._finish(finished, termination)
            return finished
        chosen = rng.choice(moves)
        logger.info(
            "Forced move for %s: %s -> %s",
            state.current_player.value,
            chosen.from_square.to_list(),
            chosen.to_square.to_list(),
        )
        return self._play(state, chosen, now, forced=True).state

    # --- PRIVATE HELPERS ---
    def _seat_in_setup(self, state: StrategoState, seat: str) -> Color:
        if state.status != Status.SETUP:
            raise GameStateError(f"Game is not in setup. status: {state.status}")
        try:
            color = Color(seat)
        except ValueError as exc:
            raise IllegalMoveError(f"Unknown seat {seat!r}") from exc
        if state.ready[color]:
            raise GameStateError(f"{color} already declared ready.")
        return color

    def _auto_complete_setup(
        self, state: StrategoState, rng: Random, now: datetime
    ) -> StrategoState:
        next_state = deepcopy(state)
        for color in Color:
            if next_state.ready[color]:
                continue
            remaining = [
                rank
                for rank, count in next_state.pools[color].items()
                for _ in range(count)
            ]
            free_squares = [
                square
                for square in setup_zone(color)
                if next_state.board.is_empty(square) and not is_lake(square)
            ]
            chosen_squares = rng.sample(free_squares, len(remaining))
            for rank, square in zip(remaining, chosen_squares):
                next_state.board.place_piece(Piece(rank, color), square)
                next_state.pools[color][rank] -= 1
            next_state.ready[color] = True
            logger.info("Setup timer expired: placed %s pieces for %s", len(remaining), color)
        self._activate_if_all_ready(next_state, now)
        return next_state

    def _activate_if_all_ready(self, state: StrategoState, now: datetime) -> None:
        if not all(state.ready.values()):
            return
        state.status = Status.ACTIVE
        state.setup_phase = False
        state.current_player = Color.RED
        state.turn_started_at = now
        logger.info("Both armies ready, red to move")

    def _play(
        self, state: StrategoState, move: Move, now: datetime, forced: bool
    ) -> MoveOutcome:
        next_state = deepcopy(state)
        board = next_state.board
        attacker = board.piece(move.from_square)
        defender = board.piece(move.to_square)
        assert attacker is not None

        combat: Optional[dict[str, Any]] = None
        captured: list[Square] = []
        if defender is None:
            board.move_piece(move.from_square, move.to_square)
        else:
            result = resolve_combat(attacker, defender)
            attacker.revealed = True
            defender.revealed = True
            combat = {
                "attacker": attacker.to_document(),
                "defender": defender.to_document(),
                "result": result.value,
            }
            board.remove_piece(move.from_square)
            if result == CombatResult.ATTACKER:
                board.place_piece(attacker, move.to_square)
                captured.append(move.to_square)
            elif result == CombatResult.DEFENDER:
                captured.append(move.from_square)
            else:
                board.remove_piece(move.to_square)
                captured.extend([move.from_square, move.to_square])
            logger.info(
                "Combat %s (%s) vs %s (%s): %s",
                attacker.rank,
                attacker.color,
                defender.rank,
                defender.color,
                result,
            )

        next_state.current_player = state.current_player.opponent
        next_state.ply += 1
        next_state.turn_started_at = now
        next_state.last_move = {
            "from": move.from_square.to_list(),
            "to": move.to_square.to_list(),
            "combat": combat,
            "forced": forced,
        }

        termination = self.check_termination(next_state)
        if termination is not None:
            self._finish(next_state, termination)

        logger.info(
            "stratego ply %s: %s %s -> %s",
            next_state.ply,
            state.current_player.value,
            move.from_square.to_list(),
            move.to_square.to_list(),
        )
        return MoveOutcome(
            state=next_state, termination=termination, captured=captured, combat=combat
        )

    def _finish(self, state: StrategoState, termination: Termination) -> None:
        state.status = Status.FINISHED
        state.winner = termination.winner

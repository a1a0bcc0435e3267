"""
The CheckersEngine advances a checkers game by one accepted move.

A jump that leaves the same piece with another jump available does NOT pass the turn:
`chain_square` pins the jumping piece and only its captures are legal until the chain ends.
Crowning always ends the turn.
"""

import logging
from copy import deepcopy
from datetime import datetime
from random import Random
from typing import Any, Optional

from src.checkers.moves import Move, generate_moves, jump_moves, reaches_crown_row
from src.checkers.pieces import Color
from src.checkers.state import CheckersState
from src.core.engine import MoveOutcome, ProposedMove, Termination
from src.core.exceptions import GameStateError, IllegalMoveError, NotYourTurnError
from src.core.shared_types import GameKind, Status
from src.core.square import Square

logger = logging.getLogger(__name__)


class CheckersEngine:
    kind = GameKind.CHECKERS
    seats: tuple[str, ...] = (Color.BLACK.value, Color.WHITE.value)
    supports_setup = False

    def new_state(self) -> CheckersState:
        return CheckersState()

    def state_from_document(self, document: dict[str, Any]) -> CheckersState:
        return CheckersState.from_document(document)

    def start(self, state: CheckersState, now: datetime) -> CheckersState:
        if state.status != Status.WAITING:
            raise GameStateError(f"Cannot start a game with status {state.status}")
        started = deepcopy(state)
        started.status = Status.ACTIVE
        started.turn_started_at = now
        return started

    def legal_moves(self, state: CheckersState, from_square: Square) -> set[Square]:
        if state.status != Status.ACTIVE:
            return set()
        return {
            move.to_square
            for move in self._generate_legal_moves(state)
            if move.from_square == from_square
        }

    def all_legal_moves(self, state: CheckersState) -> list[ProposedMove]:
        if state.status != Status.ACTIVE:
            return []
        return [
            ProposedMove(move.from_square, move.to_square)
            for move in self._generate_legal_moves(state)
        ]

    def apply_move(
        self, state: CheckersState, seat: str, move: ProposedMove, now: datetime
    ) -> MoveOutcome:
        if state.status != Status.ACTIVE:
            raise GameStateError(f"Game is not in progress. status: {state.status}")
        if seat != state.seat_to_move:
            raise NotYourTurnError(
                f"It is not your turn. Waiting for {state.seat_to_move} to make a move first."
            )

        accepted = next(
            (
                legal
                for legal in self._generate_legal_moves(state)
                if (legal.from_square, legal.to_square)
                == (move.from_square, move.to_square)
            ),
            None,
        )
        if accepted is None:
            if state.chain_square is not None:
                raise IllegalMoveError(
                    f"The piece on {state.chain_square.to_list()} must continue capturing."
                )
            raise IllegalMoveError(
                f"Move not allowed: {move.from_square.to_list()} -> {move.to_square.to_list()}"
            )
        return self._play(state, accepted, now, forced=False)

    def check_termination(self, state: CheckersState) -> Optional[Termination]:
        """
        * a side without pieces loses
        * the side to move loses when it has no legal move left
        """
        if state.status != Status.ACTIVE:
            return None
        for color in Color:
            if state.board.count(color) == 0:
                return Termination(winner=color.opponent.value, reason="no_pieces")
        if not self._generate_legal_moves(state):
            return Termination(
                winner=state.current_player.opponent.value, reason="no_moves"
            )
        return None

    def expire_turn(
        self, state: CheckersState, rng: Random, now: datetime
    ) -> CheckersState:
        """Random legal move for the side to move (continues a running chain)."""
        if state.status != Status.ACTIVE:
            return state
        legal_moves = self._generate_legal_moves(state)
        if not legal_moves:
            finished = deepcopy(state)
            termination = self.check_termination(finished)
            if termination is not None:
                self._finish(finished, termination)
            return finished
        chosen = rng.choice(legal_moves)
        logger.info(
            "Forced move for %s: %s -> %s",
            state.current_player.value,
            chosen.from_square.to_list(),
            chosen.to_square.to_list(),
        )
        return self._play(state, chosen, now, forced=True).state

    # --- PRIVATE HELPERS ---
    def _generate_legal_moves(self, state: CheckersState) -> list[Move]:
        return generate_moves(state.current_player, state.board, state.chain_square)

    def _play(
        self, state: CheckersState, move: Move, now: datetime, forced: bool
    ) -> MoveOutcome:
        next_state = deepcopy(state)
        board = next_state.board
        piece = board.move_piece(move.from_square, move.to_square)

        captured: list[Square] = []
        if move.captured is not None:
            board.remove_piece(move.captured)
            captured.append(move.captured)

        crowned = reaches_crown_row(piece, move.to_square)
        if crowned:
            piece.crown()

        next_state.ply += 1
        continues_chain = (
            move.is_capture
            and not crowned
            and bool(jump_moves(move.to_square, board))
        )
        if continues_chain:
            # same player, same deadline: only the chaining piece may move
            next_state.chain_square = move.to_square
        else:
            next_state.chain_square = None
            next_state.current_player = state.current_player.opponent
            next_state.turn_started_at = now

        next_state.last_move = {
            "from": move.from_square.to_list(),
            "to": move.to_square.to_list(),
            "capturedPieces": [square.to_list() for square in captured],
            "crowned": crowned,
            "forced": forced,
        }

        termination = self.check_termination(next_state)
        if termination is not None:
            self._finish(next_state, termination)

        logger.info(
            "checkers ply %s: %s %s -> %s%s",
            next_state.ply,
            state.current_player.value,
            move.from_square.to_list(),
            move.to_square.to_list(),
            " (chain continues)" if continues_chain else "",
        )
        return MoveOutcome(state=next_state, termination=termination, captured=captured)

    def _finish(self, state: CheckersState, termination: Termination) -> None:
        state.status = Status.FINISHED
        state.winner = termination.winner
        state.chain_square = None

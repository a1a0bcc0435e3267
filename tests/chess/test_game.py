"""Unit tests for /src/chess/game.py"""

from datetime import datetime, timedelta, timezone
from random import Random
from typing import Optional
from unittest.mock import Mock

import pytest

from src.chess.castling import CastlingDirection
from src.chess.game import ChessEngine
from src.chess.moves import Move
from src.chess.pieces import Color, Piece, PieceType
from src.chess.square import from_algebraic
from src.chess.state import ChessState
from src.core.engine import MoveOutcome, ProposedMove
from src.core.exceptions import (
    GameStateError,
    IllegalMoveError,
    NotYourTurnError,
)
from src.core.shared_types import DRAW, Status

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine() -> ChessEngine:
    return ChessEngine()


def active_state(engine: ChessEngine, fen: str = STARTING_FEN) -> ChessState:
    return engine.start(engine.new_state(fen), NOW)


def proposal(uci: str, promotion: Optional[str] = None) -> ProposedMove:
    move = Move.from_uci(uci)
    return ProposedMove(move.from_square, move.to_square, promotion)


def play(
    engine: ChessEngine, state: ChessState, uci: str, promotion: Optional[str] = None
) -> MoveOutcome:
    return engine.apply_move(state, state.seat_to_move, proposal(uci, promotion), NOW)


def squares(*algebraic: str) -> set:
    return {from_algebraic(sq) for sq in algebraic}


# -- CREATION / STARTING --
def test_new_state_is_waiting_for_an_opponent(engine: ChessEngine) -> None:
    state = engine.new_state()
    assert state.status == Status.WAITING
    assert state.current_player == Color.WHITE
    assert state.to_fen() == STARTING_FEN
    assert state.turn_started_at is None


def test_start_activates_the_clock(engine: ChessEngine) -> None:
    state = engine.new_state()
    started = engine.start(state, NOW)
    assert started.status == Status.ACTIVE
    assert started.turn_started_at == NOW
    # original is untouched
    assert state.status == Status.WAITING

    with pytest.raises(GameStateError):
        engine.start(started, NOW)


def test_document_roundtrip_through_engine(engine: ChessEngine) -> None:
    state = active_state(engine)
    assert engine.state_from_document(state.to_document()) == state


# -- LEGAL MOVES --
def test_legal_moves_from_starting_position(engine: ChessEngine) -> None:
    state = active_state(engine)
    assert engine.legal_moves(state, from_algebraic("e2")) == squares("e3", "e4")
    assert engine.legal_moves(state, from_algebraic("g1")) == squares("f3", "h3")
    # not the side to move / empty square
    assert engine.legal_moves(state, from_algebraic("e7")) == set()
    assert engine.legal_moves(state, from_algebraic("e4")) == set()
    assert len(engine.all_legal_moves(state)) == 20


def test_no_legal_moves_unless_active(engine: ChessEngine) -> None:
    state = engine.new_state()
    assert engine.legal_moves(state, from_algebraic("e2")) == set()
    assert engine.all_legal_moves(state) == []


def test_pinned_piece_stays_on_the_line(engine: ChessEngine) -> None:
    """The rook on e2 shields its king from the rook on e8"""
    state = active_state(engine, "4r1k1/8/8/8/8/8/4R3/4K3 w - - 0 1")
    assert engine.legal_moves(state, from_algebraic("e2")) == squares(
        "e3", "e4", "e5", "e6", "e7", "e8"
    )


def test_must_get_out_of_check(engine: ChessEngine) -> None:
    state = active_state(engine, "4k3/8/8/8/8/8/3P4/r3K3 w - - 0 1")
    assert state.is_check
    # the pawn cannot help, the king has to step off the first rank
    assert engine.legal_moves(state, from_algebraic("d2")) == set()
    assert engine.legal_moves(state, from_algebraic("e1")) == squares("e2", "f2")


def test_all_legal_moves_lists_every_promotion(engine: ChessEngine) -> None:
    state = active_state(engine, "8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
    promotions = {
        move.promotion
        for move in engine.all_legal_moves(state)
        if move.from_square == from_algebraic("e7")
    }
    assert promotions == {"knight", "bishop", "rook", "queen"}


# -- MAKING MOVES --
def test_opening_sequence(engine: ChessEngine) -> None:
    state = active_state(engine)
    later = NOW + timedelta(seconds=5)

    after_e4 = engine.apply_move(state, "white", proposal("e2e4"), later).state
    assert after_e4.current_player == Color.BLACK
    assert after_e4.en_passant_target == from_algebraic("e3")
    assert after_e4.turn_started_at == later
    assert after_e4.ply == 1
    assert after_e4.last_move is not None
    assert after_e4.last_move["uci"] == "e2e4"
    assert after_e4.last_move["forced"] is False
    # the input state is never mutated
    assert state.ply == 0
    assert state.board.piece(from_algebraic("e2")) is not None

    after_e5 = play(engine, after_e4, "e7e5").state
    assert after_e5.en_passant_target == from_algebraic("e6")
    assert after_e5.full_move_number == 2

    after_qh5 = play(engine, after_e5, "d1h5").state
    assert after_qh5.move_history == ["e4", "e5", "Qh5"]
    assert after_qh5.en_passant_target is None
    assert after_qh5.half_move_clock == 1
    assert after_qh5.full_move_number == 2
    assert after_qh5.ply == 3


def test_not_your_turn(engine: ChessEngine) -> None:
    state = active_state(engine)
    with pytest.raises(NotYourTurnError):
        engine.apply_move(state, "black", proposal("e7e5"), NOW)


def test_illegal_move(engine: ChessEngine) -> None:
    state = active_state(engine)
    with pytest.raises(IllegalMoveError):
        play(engine, state, "e2e5")
    with pytest.raises(IllegalMoveError):
        play(engine, state, "e4e5")


def test_no_moves_unless_active(engine: ChessEngine) -> None:
    with pytest.raises(GameStateError):
        engine.apply_move(engine.new_state(), "white", proposal("e2e4"), NOW)


def test_moving_into_check_is_illegal(engine: ChessEngine) -> None:
    state = active_state(engine, "4r1k1/8/8/8/8/8/4R3/4K3 w - - 0 1")
    with pytest.raises(IllegalMoveError):
        play(engine, state, "e2d2")


def test_capture(engine: ChessEngine) -> None:
    state = active_state(engine, "4k3/8/8/3p4/4P3/8/8/4K3 w - - 7 30")
    outcome = play(engine, state, "e4d5")
    assert outcome.captured == [from_algebraic("d5")]
    assert outcome.state.half_move_clock == 0
    assert outcome.state.move_history == ["exd5"]
    assert outcome.state.last_move["captured"] == {  # type: ignore[index]
        "type": "pawn",
        "color": "black",
        "hasMoved": True,
    }


# -- CASTLING --
def test_castling_king_side(engine: ChessEngine) -> None:
    state = active_state(engine, "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    assert from_algebraic("g1") in engine.legal_moves(state, from_algebraic("e1"))
    assert from_algebraic("c1") in engine.legal_moves(state, from_algebraic("e1"))

    next_state = play(engine, state, "e1g1").state
    board = next_state.board
    assert board.piece(from_algebraic("g1")) == Piece(PieceType.KING, Color.WHITE, True)
    assert board.piece(from_algebraic("f1")) == Piece(PieceType.ROOK, Color.WHITE, True)
    assert board.piece(from_algebraic("h1")) is None
    assert board.piece(from_algebraic("e1")) is None
    assert next_state.castling_rights == {
        CastlingDirection.WHITE_KING_SIDE: False,
        CastlingDirection.WHITE_QUEEN_SIDE: False,
        CastlingDirection.BLACK_KING_SIDE: True,
        CastlingDirection.BLACK_QUEEN_SIDE: True,
    }
    assert next_state.move_history == ["O-O"]
    assert next_state.last_move["castle"] == "kingside"  # type: ignore[index]


def test_castling_queen_side_black(engine: ChessEngine) -> None:
    state = active_state(engine, "r3k2r/8/8/8/8/8/8/R3K2R b KQkq - 0 1")
    next_state = play(engine, state, "e8c8").state
    assert next_state.board.piece(from_algebraic("c8")) == Piece(PieceType.KING, Color.BLACK, True)
    assert next_state.board.piece(from_algebraic("d8")) == Piece(PieceType.ROOK, Color.BLACK, True)
    assert next_state.move_history == ["O-O-O"]
    assert not next_state.castling_rights[CastlingDirection.BLACK_KING_SIDE]
    assert next_state.castling_rights[CastlingDirection.WHITE_KING_SIDE]


def test_no_castling_through_attacked_squares(engine: ChessEngine) -> None:
    """The rook on f8 covers f1: king side is out, queen side is fine"""
    state = active_state(engine, "4kr2/8/8/8/8/8/8/R3K2R w KQ - 0 1")
    assert engine.legal_moves(state, from_algebraic("e1")) == squares("d1", "d2", "e2", "c1")


def test_no_castling_out_of_check(engine: ChessEngine) -> None:
    state = active_state(engine, "4r1k1/8/8/8/8/8/8/R3K2R w KQ - 0 1")
    destinations = engine.legal_moves(state, from_algebraic("e1"))
    assert from_algebraic("g1") not in destinations
    assert from_algebraic("c1") not in destinations


def test_no_castling_without_rights(engine: ChessEngine) -> None:
    state = active_state(engine, "r3k2r/8/8/8/8/8/8/R3K2R w - - 0 1")
    assert engine.legal_moves(state, from_algebraic("e1")) == squares("d1", "d2", "e2", "f2", "f1")


def test_rook_move_revokes_one_right(engine: ChessEngine) -> None:
    state = active_state(engine, "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    next_state = play(engine, state, "h1h5").state
    assert not next_state.castling_rights[CastlingDirection.WHITE_KING_SIDE]
    assert next_state.castling_rights[CastlingDirection.WHITE_QUEEN_SIDE]


def test_capturing_a_rook_revokes_its_right(engine: ChessEngine) -> None:
    state = active_state(engine, "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    next_state = play(engine, state, "a1a8").state
    assert not next_state.castling_rights[CastlingDirection.BLACK_QUEEN_SIDE]
    assert not next_state.castling_rights[CastlingDirection.WHITE_QUEEN_SIDE]
    assert next_state.castling_rights[CastlingDirection.BLACK_KING_SIDE]


# -- EN PASSANT --
def test_en_passant(engine: ChessEngine) -> None:
    state = active_state(engine, "4k3/8/8/3pP3/8/8/8/4K3 w - d6 0 2")
    assert engine.legal_moves(state, from_algebraic("e5")) == squares("e6", "d6")

    outcome = play(engine, state, "e5d6")
    assert outcome.captured == [from_algebraic("d5")]
    assert outcome.state.board.piece(from_algebraic("d5")) is None
    assert outcome.state.board.piece(from_algebraic("d6")) == Piece(PieceType.PAWN, Color.WHITE, True)
    assert outcome.state.move_history == ["exd6"]
    assert outcome.state.last_move["enPassant"] is True  # type: ignore[index]


def test_en_passant_only_right_after_the_double_push(engine: ChessEngine) -> None:
    state = active_state(engine, "4k3/8/8/3pP3/8/8/8/4K3 w - - 0 2")
    assert engine.legal_moves(state, from_algebraic("e5")) == squares("e6")


# -- PROMOTION --
def test_promotion_needs_a_choice(engine: ChessEngine) -> None:
    state = active_state(engine, "8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
    outcome = play(engine, state, "e7e8")
    assert outcome.promotion_pending
    assert outcome.state is state


def test_promotion(engine: ChessEngine) -> None:
    state = active_state(engine, "8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
    outcome = play(engine, state, "e7e8", promotion="queen")
    assert not outcome.promotion_pending
    assert outcome.state.board.piece(from_algebraic("e8")) == Piece(PieceType.QUEEN, Color.WHITE, True)
    assert outcome.state.move_history == ["e8=Q"]
    assert outcome.state.last_move["promotion"] == "queen"  # type: ignore[index]


def test_underpromotion(engine: ChessEngine) -> None:
    state = active_state(engine, "8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
    outcome = play(engine, state, "e7e8", promotion="knight")
    assert outcome.state.board.piece(from_algebraic("e8")).type == PieceType.KNIGHT  # type: ignore[union-attr]


def test_invalid_promotion_choice(engine: ChessEngine) -> None:
    state = active_state(engine, "8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
    with pytest.raises(IllegalMoveError):
        play(engine, state, "e7e8", promotion="king")


# -- ENDING THE GAME --
def test_fools_mate(engine: ChessEngine) -> None:
    state = active_state(engine)
    for uci in ["f2f3", "e7e5", "g2g4"]:
        state = play(engine, state, uci).state

    outcome = play(engine, state, "d8h4")
    assert outcome.termination is not None
    assert outcome.termination.reason == "checkmate"
    assert outcome.state.status == Status.FINISHED
    assert outcome.state.winner == "black"
    assert outcome.state.draw_reason is None
    assert outcome.state.move_history == ["f3", "e5", "g4", "Qh4#"]

    with pytest.raises(GameStateError):
        play(engine, outcome.state, "e2e4")


def test_stalemate(engine: ChessEngine) -> None:
    state = active_state(engine, "7k/8/6K1/8/8/8/8/5Q2 w - - 0 1")
    outcome = play(engine, state, "f1f7")
    assert outcome.state.status == Status.FINISHED
    assert outcome.state.winner == DRAW
    assert outcome.state.draw_reason == "stalemate"


def test_insufficient_material(engine: ChessEngine) -> None:
    state = active_state(engine, "8/8/8/8/8/2k5/8/3qK3 w - - 0 1")
    outcome = play(engine, state, "e1d1")
    assert outcome.state.winner == DRAW
    assert outcome.state.draw_reason == "insufficient_material"
    assert outcome.state.move_history == ["Kxd1"]


def test_king_and_minor_piece_is_insufficient(engine: ChessEngine) -> None:
    state = active_state(engine, "8/8/8/8/8/2k5/8/3nK3 w - - 0 1")
    termination = engine.check_termination(state)
    assert termination is not None
    assert termination.reason == "insufficient_material"


def test_fifty_move_rule(engine: ChessEngine) -> None:
    state = active_state(engine, "4k3/8/8/8/8/8/8/R3K3 w - - 99 60")
    assert engine.check_termination(state) is None
    outcome = play(engine, state, "a1a2")
    assert outcome.state.half_move_clock == 100
    assert outcome.state.winner == DRAW
    assert outcome.state.draw_reason == "fifty_move"


def test_no_termination_unless_active(engine: ChessEngine) -> None:
    """A mated position that never started is not 'finished'"""
    state = engine.new_state("7k/6Q1/6K1/8/8/8/8/8 b - - 0 1")
    assert engine.check_termination(state) is None


# -- TURN TIMER FALLBACK --
def test_expire_turn_plays_a_random_legal_move(engine: ChessEngine) -> None:
    state = active_state(engine)
    later = NOW + timedelta(minutes=2)
    next_state = engine.expire_turn(state, Random(7), later)

    assert next_state.ply == 1
    assert next_state.current_player == Color.BLACK
    assert next_state.turn_started_at == later
    assert next_state.last_move is not None
    assert next_state.last_move["forced"] is True
    assert len(next_state.move_history) == 1
    assert state.ply == 0


def test_expire_turn_promotes_to_queen(engine: ChessEngine) -> None:
    state = active_state(engine, "8/4P3/8/8/8/8/k7/4K3 w - - 0 1")
    rng = Mock()
    rng.choice.side_effect = lambda options: (from_algebraic("e7"), from_algebraic("e8"))

    next_state = engine.expire_turn(state, rng, NOW)
    assert next_state.board.piece(from_algebraic("e8")).type == PieceType.QUEEN  # type: ignore[union-attr]
    rng.choice.assert_called_once()


@pytest.mark.parametrize(
    "fen, winner, reason",
    [
        ("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1", DRAW, "stalemate"),
        ("7k/6Q1/6K1/8/8/8/8/8 b - - 0 1", "white", None),
    ],
)
def test_expire_turn_without_legal_moves_ends_the_game(
    engine: ChessEngine, fen: str, winner: str, reason: Optional[str]
) -> None:
    state = active_state(engine, fen)
    next_state = engine.expire_turn(state, Random(0), NOW)
    assert next_state.status == Status.FINISHED
    assert next_state.winner == winner
    assert next_state.draw_reason == reason
    assert next_state.ply == state.ply


def test_expire_turn_is_a_noop_when_not_active(engine: ChessEngine) -> None:
    state = engine.new_state()
    assert engine.expire_turn(state, Random(0), NOW) is state


def test_random_games_never_leave_the_mover_in_check(engine: ChessEngine) -> None:
    rng = Random(2024)
    state = active_state(engine)
    for _ in range(80):
        if state.status != Status.ACTIVE:
            break
        mover = state.current_player
        state = engine.expire_turn(state, rng, NOW)
        assert not state.board.is_check(mover)

"""Unit tests for /src/stratego/game.py"""

from datetime import datetime, timedelta, timezone
from random import Random

import pytest

from src.core.engine import ProposedMove
from src.core.exceptions import GameStateError, IllegalMoveError, NotYourTurnError
from src.core.shared_types import DRAW, Status
from src.core.square import Square
from src.stratego.board import Board, setup_zone
from src.stratego.game import StrategoEngine
from src.stratego.pieces import Color, Piece, Rank, empty_pool
from src.stratego.state import StrategoState

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
LATER = NOW + timedelta(seconds=30)

RED_FLAG = {(9, 0): Piece(Rank.FLAG, Color.RED)}
BLUE_FLAG = {(0, 9): Piece(Rank.FLAG, Color.BLUE)}


@pytest.fixture
def engine() -> StrategoEngine:
    return StrategoEngine()


@pytest.fixture
def setup_state(engine: StrategoEngine) -> StrategoState:
    return engine.start(engine.new_state(), NOW)


def active_state(
    pieces: dict[tuple[int, int], Piece], to_move: Color = Color.RED
) -> StrategoState:
    return StrategoState(
        board=Board({Square(row, col): piece for (row, col), piece in pieces.items()}),
        current_player=to_move,
        status=Status.ACTIVE,
        setup_phase=False,
        ready={color: True for color in Color},
        pools={color: empty_pool() for color in Color},
        turn_started_at=NOW,
    )


def step(from_square: tuple[int, int], to_square: tuple[int, int]) -> ProposedMove:
    return ProposedMove(Square(*from_square), Square(*to_square))


# -- SETUP PHASE --
def test_start_opens_the_setup_phase(engine: StrategoEngine) -> None:
    state = engine.new_state()
    assert state.status == Status.WAITING
    started = engine.start(state, NOW)
    assert started.status == Status.SETUP
    assert started.setup_phase
    assert started.turn_started_at == NOW
    with pytest.raises(GameStateError):
        engine.start(started, NOW)


def test_place_piece(engine: StrategoEngine, setup_state: StrategoState) -> None:
    state = engine.place_piece(setup_state, "red", "marshal", Square(6, 4))
    assert state.board.piece(Square(6, 4)) == Piece(Rank.MARSHAL, Color.RED)
    assert state.pools[Color.RED][Rank.MARSHAL] == 0
    assert state.pieces_left(Color.RED) == 39
    # setup mutations never advance the ply
    assert state.ply == 0
    # original is untouched
    assert setup_state.board.is_empty(Square(6, 4))


def test_both_seats_place_concurrently(engine: StrategoEngine, setup_state: StrategoState) -> None:
    state = engine.place_piece(setup_state, "blue", "flag", Square(0, 0))
    state = engine.place_piece(state, "red", "flag", Square(9, 9))
    assert state.pieces_left(Color.RED) == state.pieces_left(Color.BLUE) == 39


@pytest.mark.parametrize(
    "seat, rank, square",
    [
        ("red", "marshal", Square(3, 0)),  # blue's zone
        ("red", "marshal", Square(5, 0)),  # no man's land
        ("blue", "spy", Square(6, 0)),  # red's zone
        ("red", "admiral", Square(6, 0)),  # no such rank
        ("red", "unknown", Square(6, 0)),
        ("green", "spy", Square(6, 0)),  # no such seat
    ],
)
def test_invalid_placements(
    engine: StrategoEngine, setup_state: StrategoState, seat: str, rank: str, square: Square
) -> None:
    with pytest.raises(IllegalMoveError):
        engine.place_piece(setup_state, seat, rank, square)


def test_pool_runs_out(engine: StrategoEngine, setup_state: StrategoState) -> None:
    state = engine.place_piece(setup_state, "red", "spy", Square(6, 0))
    with pytest.raises(IllegalMoveError):
        engine.place_piece(state, "red", "spy", Square(6, 1))


def test_square_already_taken(engine: StrategoEngine, setup_state: StrategoState) -> None:
    state = engine.place_piece(setup_state, "red", "scout", Square(6, 0))
    with pytest.raises(IllegalMoveError):
        engine.place_piece(state, "red", "miner", Square(6, 0))


def test_remove_piece(engine: StrategoEngine, setup_state: StrategoState) -> None:
    state = engine.place_piece(setup_state, "red", "bomb", Square(8, 8))
    state = engine.remove_piece(state, "red", Square(8, 8))
    assert state.board.is_empty(Square(8, 8))
    assert state.pools[Color.RED][Rank.BOMB] == 6

    placed_by_blue = engine.place_piece(state, "blue", "bomb", Square(1, 1))
    with pytest.raises(IllegalMoveError):
        engine.remove_piece(placed_by_blue, "red", Square(1, 1))
    with pytest.raises(IllegalMoveError):
        engine.remove_piece(placed_by_blue, "red", Square(8, 8))


def test_ready_requires_an_empty_pool(engine: StrategoEngine, setup_state: StrategoState) -> None:
    with pytest.raises(GameStateError):
        engine.mark_ready(setup_state, "red", NOW)


def test_both_ready_starts_play(engine: StrategoEngine, setup_state: StrategoState) -> None:
    setup_state.pools = {color: empty_pool() for color in Color}

    state = engine.mark_ready(setup_state, "blue", LATER)
    assert state.ready[Color.BLUE]
    assert state.status == Status.SETUP
    # a ready seat cannot change its army anymore
    with pytest.raises(GameStateError):
        engine.mark_ready(state, "blue", LATER)

    state = engine.mark_ready(state, "red", LATER)
    assert state.status == Status.ACTIVE
    assert not state.setup_phase
    assert state.current_player == Color.RED
    assert state.turn_started_at == LATER
    assert state.ply == 0


def test_setup_actions_outside_setup(engine: StrategoEngine) -> None:
    state = active_state({**RED_FLAG, **BLUE_FLAG})
    with pytest.raises(GameStateError):
        engine.place_piece(state, "red", "spy", Square(6, 0))
    with pytest.raises(GameStateError):
        engine.mark_ready(state, "red", NOW)


def test_no_termination_during_setup(engine: StrategoEngine, setup_state: StrategoState) -> None:
    """No flags on the board yet: that is not a captured flag"""
    assert engine.check_termination(setup_state) is None
    assert engine.legal_moves(setup_state, Square(6, 0)) == set()
    assert engine.all_legal_moves(setup_state) == []


def test_setup_timeout_places_remaining_pieces(
    engine: StrategoEngine, setup_state: StrategoState
) -> None:
    state = engine.place_piece(setup_state, "red", "flag", Square(9, 4))
    state = engine.expire_turn(state, Random(11), LATER)

    assert state.status == Status.ACTIVE
    assert state.current_player == Color.RED
    assert state.turn_started_at == LATER
    assert state.ply == 0
    assert state.board.piece(Square(9, 4)) == Piece(Rank.FLAG, Color.RED)
    for color in Color:
        assert state.pieces_left(color) == 0
        assert state.ready[color]
        squares = state.board.locate_color(color)
        assert len(squares) == 40
        assert set(squares) == set(setup_zone(color))


def test_setup_timeout_keeps_a_ready_army(engine: StrategoEngine, setup_state: StrategoState) -> None:
    setup_state.pools[Color.BLUE] = empty_pool()
    setup_state.ready[Color.BLUE] = True
    state = engine.expire_turn(setup_state, Random(0), LATER)
    assert state.board.locate_color(Color.BLUE) == []
    assert len(state.board.locate_color(Color.RED)) == 40


# -- PLAY PHASE --
def test_move_into_empty_square(engine: StrategoEngine) -> None:
    state = active_state({**RED_FLAG, **BLUE_FLAG, (6, 5): Piece(Rank.CAPTAIN, Color.RED), (0, 0): Piece(Rank.SCOUT, Color.BLUE)})
    outcome = engine.apply_move(state, "red", step((6, 5), (5, 5)), LATER)
    assert outcome.combat is None
    assert outcome.state.board.piece(Square(5, 5)) == Piece(Rank.CAPTAIN, Color.RED)
    assert outcome.state.current_player == Color.BLUE
    assert outcome.state.ply == 1
    assert outcome.state.turn_started_at == LATER
    assert outcome.state.last_move == {"from": [6, 5], "to": [5, 5], "combat": None, "forced": False}


def test_attacker_wins(engine: StrategoEngine) -> None:
    state = active_state(
        {
            **RED_FLAG,
            **BLUE_FLAG,
            (6, 5): Piece(Rank.MARSHAL, Color.RED),
            (5, 5): Piece(Rank.GENERAL, Color.BLUE),
            (0, 0): Piece(Rank.SCOUT, Color.BLUE),
        }
    )
    outcome = engine.apply_move(state, "red", step((6, 5), (5, 5)), LATER)
    board = outcome.state.board
    assert board.piece(Square(5, 5)) == Piece(Rank.MARSHAL, Color.RED, revealed=True)
    assert board.piece(Square(6, 5)) is None
    assert outcome.captured == [Square(5, 5)]
    assert outcome.combat is not None
    assert outcome.combat["result"] == "attacker"
    assert outcome.combat["defender"]["rank"] == "general"
    assert outcome.state.last_move["combat"] == outcome.combat  # type: ignore[index]
    assert outcome.state.status == Status.ACTIVE


def test_defender_wins_and_is_revealed(engine: StrategoEngine) -> None:
    state = active_state(
        {
            **RED_FLAG,
            **BLUE_FLAG,
            (6, 5): Piece(Rank.SCOUT, Color.RED),
            (6, 0): Piece(Rank.MINER, Color.RED),
            (5, 5): Piece(Rank.GENERAL, Color.BLUE),
        }
    )
    outcome = engine.apply_move(state, "red", step((6, 5), (5, 5)), LATER)
    assert outcome.captured == [Square(6, 5)]
    assert outcome.state.board.piece(Square(5, 5)) == Piece(Rank.GENERAL, Color.BLUE, revealed=True)
    assert outcome.state.to_document(viewer="red")["board"][5][5]["rank"] == "general"


def test_spy_takes_the_marshal(engine: StrategoEngine) -> None:
    state = active_state(
        {
            **RED_FLAG,
            **BLUE_FLAG,
            (6, 5): Piece(Rank.SPY, Color.RED),
            (5, 5): Piece(Rank.MARSHAL, Color.BLUE),
            (0, 0): Piece(Rank.SCOUT, Color.BLUE),
        }
    )
    outcome = engine.apply_move(state, "red", step((6, 5), (5, 5)), LATER)
    assert outcome.state.board.piece(Square(5, 5)).rank == Rank.SPY  # type: ignore[union-attr]


def test_capturing_the_flag_wins(engine: StrategoEngine) -> None:
    state = active_state(
        {**RED_FLAG, **BLUE_FLAG, (1, 9): Piece(Rank.SERGEANT, Color.RED), (0, 0): Piece(Rank.SCOUT, Color.BLUE)}
    )
    outcome = engine.apply_move(state, "red", step((1, 9), (0, 9)), LATER)
    assert outcome.termination is not None
    assert outcome.termination.reason == "flag_captured"
    assert outcome.state.status == Status.FINISHED
    assert outcome.state.winner == "red"


def test_losing_the_last_movable_piece(engine: StrategoEngine) -> None:
    state = active_state(
        {
            **RED_FLAG,
            **BLUE_FLAG,
            (6, 0): Piece(Rank.SCOUT, Color.RED),
            (5, 0): Piece(Rank.BOMB, Color.BLUE),
            (0, 0): Piece(Rank.SERGEANT, Color.BLUE),
        }
    )
    outcome = engine.apply_move(state, "red", step((6, 0), (5, 0)), LATER)
    assert outcome.state.winner == "blue"
    assert outcome.termination.reason == "no_movable_pieces"  # type: ignore[union-attr]


def test_both_without_movable_pieces_is_a_draw(engine: StrategoEngine) -> None:
    state = active_state(
        {
            **RED_FLAG,
            **BLUE_FLAG,
            (6, 5): Piece(Rank.MARSHAL, Color.RED),
            (5, 5): Piece(Rank.MARSHAL, Color.BLUE),
        }
    )
    outcome = engine.apply_move(state, "red", step((6, 5), (5, 5)), LATER)
    assert outcome.captured == [Square(6, 5), Square(5, 5)]
    assert outcome.state.winner == DRAW


def test_boxed_in_loses(engine: StrategoEngine) -> None:
    state = active_state(
        {
            (9, 5): Piece(Rank.FLAG, Color.RED),
            (9, 0): Piece(Rank.SCOUT, Color.RED),
            (8, 0): Piece(Rank.BOMB, Color.RED),
            (9, 1): Piece(Rank.BOMB, Color.RED),
            **BLUE_FLAG,
            (0, 0): Piece(Rank.SCOUT, Color.BLUE),
        }
    )
    termination = engine.check_termination(state)
    assert termination is not None
    assert termination.winner == "blue"
    assert termination.reason == "no_legal_moves"


def test_illegal_moves(engine: StrategoEngine) -> None:
    state = active_state(
        {
            **RED_FLAG,
            **BLUE_FLAG,
            (6, 2): Piece(Rank.CAPTAIN, Color.RED),
            (6, 0): Piece(Rank.BOMB, Color.RED),
            (0, 0): Piece(Rank.SCOUT, Color.BLUE),
        }
    )
    for move in [
        step((6, 2), (5, 2)),  # lake
        step((6, 2), (4, 2)),  # two squares
        step((6, 0), (5, 0)),  # bomb
        step((0, 0), (1, 0)),  # not ours
    ]:
        with pytest.raises(IllegalMoveError):
            engine.apply_move(state, "red", move, LATER)

    with pytest.raises(NotYourTurnError):
        engine.apply_move(state, "blue", step((0, 0), (1, 0)), LATER)


def test_expire_turn_in_play(engine: StrategoEngine) -> None:
    state = active_state(
        {**RED_FLAG, **BLUE_FLAG, (6, 5): Piece(Rank.CAPTAIN, Color.RED), (0, 0): Piece(Rank.SCOUT, Color.BLUE)}
    )
    next_state = engine.expire_turn(state, Random(5), LATER)
    assert next_state.current_player == Color.BLUE
    assert next_state.last_move["forced"] is True  # type: ignore[index]
    assert next_state.last_move["from"] == [6, 5]  # type: ignore[index]


def test_expire_turn_is_a_noop_when_waiting(engine: StrategoEngine) -> None:
    state = engine.new_state()
    assert engine.expire_turn(state, Random(0), NOW) is state

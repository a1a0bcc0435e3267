"""
Orchestration of communication from API router to business logic and persistence layers (and the reverse direction).

Every mutation is one read-validate-write transaction against the stored document:

1. read the current record (never trust the client's cached copy)
2. rebuild the engine state and validate seat / turn / legality against it
3. write the whole next document with compare-and-set on the version that was read

Losing a compare-and-set race re-runs the transaction from step 1. The second proposal of a near-simultaneous pair
then fails validation (the turn already passed), instead of being merged into the document.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from random import Random
from typing import Any, Callable, Optional
from uuid import UUID

from src.api.models import (
    CreateGameRequest,
    GameResponse,
    JoinGameRequest,
    LegalMovesRequest,
    LegalMovesResponse,
    MoveRequest,
    PlacementRequest,
    ReadyRequest,
    RemovalRequest,
    StateWriteRequest,
    TimeoutRequest,
)
from src.core.config import Settings
from src.core.engine import MoveOutcome, ProposedMove, RuleEngine, other_seat
from src.core.exceptions import (
    GameStateError,
    IllegalMoveError,
    InvalidRequestError,
    NotYourTurnError,
    RepositoryError,
    SettlementError,
    StaleWriteError,
    TurnExpiredError,
)
from src.core.models import GameModel
from src.core.registry import engine_for
from src.core.shared_types import DRAW, GameKind, SettlementStatus, Status
from src.core.square import Square
from src.core.timer import expire_turn, timer_for, utc_now
from src.db.repository import GameRepository
from src.services.settlement import (
    NullSettlementGateway,
    SettlementGateway,
    SettlementRequest,
)

logger = logging.getLogger(__name__)

# Given the stored record, its engine and the rebuilt state: the next transition, or None for "nothing to write".
Mutation = Callable[[GameModel, RuleEngine, Any], Optional["Transition"]]


@dataclass
class Transition:
    state: Any
    registered_players: Optional[dict[str, str]] = None


class GameService:
    """Orchestration of layers for all supported games."""

    def __init__(
        self,
        repository: GameRepository,
        settings: Optional[Settings] = None,
        settlement: Optional[SettlementGateway] = None,
        rng: Optional[Random] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repo = repository
        self.settings = settings or Settings()
        self.settlement = settlement or NullSettlementGateway()
        self.rng = rng or Random()
        self.clock = clock

    # -- Lobby boundary ---
    def create_game(self, request: CreateGameRequest) -> GameResponse:
        """First player requested to create a new game (and picks a seat, or gets the first one)."""
        engine = engine_for(request.kind)
        seat = request.seat or engine.seats[0]
        if seat not in engine.seats:
            raise InvalidRequestError(
                f"{seat!r} is not a seat in {request.kind}. Choose from {engine.seats}."
            )

        if request.starting_fen is not None:
            if request.kind != GameKind.CHESS:
                raise InvalidRequestError("A starting FEN only applies to chess.")
            state = engine.new_state(request.starting_fen)  # type: ignore[call-arg]
        else:
            state = engine.new_state()

        model = GameModel(
            kind=request.kind.value,
            state=state.to_document(),
            registered_players={seat: request.player_id},
            status=state.status.value,
            stake=request.stake,
        )
        stored_game, game_id = self.repo.create_game(model)
        logger.info("Created %s game %s, %s seated as %s", request.kind, game_id, request.player_id, seat)
        return self._create_game_response(game_id, stored_game, viewer=seat)

    def join_game(self, game_id: UUID, request: JoinGameRequest) -> GameResponse:
        """Second player requested to join a game: takes the free seat, and the game starts."""

        def mutate(stored: GameModel, engine: RuleEngine, state: Any) -> Optional[Transition]:
            players = dict(stored.registered_players)
            if request.player_id in players.values():
                # joining twice is harmless
                return None
            if len(players) >= len(engine.seats):
                raise GameStateError(f"Game {game_id} already has two players.")

            (taken_seat,) = players
            seat = other_seat(engine.seats, taken_seat)
            players[seat] = request.player_id
            return Transition(engine.start(state, self.clock()), players)

        stored = self._transact(game_id, mutate)
        viewer = self._find_seat(stored, request.player_id)
        return self._create_game_response(game_id, stored, viewer=viewer)

    def delete_game(self, game_id: UUID) -> None:
        """Handle a request to delete a Game record."""
        if self.repo.delete_game(game_id) is None:
            raise RepositoryError(f"Game with {game_id=} not found.")

    # -- Reads ---
    def get_game_state(self, game_id: UUID, seat: Optional[str] = None) -> GameResponse:
        """
        Retrieve current game state.
        ----
        Used in the polling loop by clients. With a `seat`, hidden information of the opponent is redacted.
        """
        game_model = self._fetch_game(game_id)
        return self._create_game_response(game_id, game_model, viewer=seat)

    def legal_moves(self, game_id: UUID, request: LegalMovesRequest) -> LegalMovesResponse:
        """retrieve the set of legal destinations for the piece on one square."""
        stored_model = self._fetch_game(game_id)
        engine = engine_for(stored_model.kind)
        if request.seat not in engine.seats:
            raise InvalidRequestError(f"{request.seat!r} is not a seat in {stored_model.kind}.")

        state = engine.state_from_document(stored_model.state)
        from_square = Square(request.row, request.col)
        destinations = (
            engine.legal_moves(state, from_square)
            if state.seat_to_move == request.seat
            else set()
        )
        return LegalMovesResponse(
            game_id=game_id,
            seat=request.seat,
            from_square=from_square.to_list(),
            legal_moves=[square.to_list() for square in sorted(destinations)],
        )

    # -- Moves ---
    def make_move(self, game_id: UUID, request: MoveRequest) -> GameResponse:
        """
        Make a move attempt.

        A pawn reaching the last rank without a promotion choice is not an error: nothing is written and the
        response is flagged `promotion_pending`, so the client can ask the player and resubmit.
        """
        proposed = ProposedMove(
            Square.from_list(request.from_square),
            Square.from_list(request.to_square),
            request.promotion,
        )
        promotion_pending = False

        def mutate(stored: GameModel, engine: RuleEngine, state: Any) -> Optional[Transition]:
            nonlocal promotion_pending
            seat = self._get_player_seat(stored, request.player_id)
            now = self.clock()
            self._assert_turn_not_expired(stored, state, now)
            outcome = engine.apply_move(state, seat, proposed, now)
            if outcome.promotion_pending:
                promotion_pending = True
                return None
            return Transition(outcome.state)

        stored = self._transact(game_id, mutate, request.expected_version)
        viewer = self._find_seat(stored, request.player_id)
        response = self._create_game_response(game_id, stored, viewer=viewer)
        response.promotion_pending = promotion_pending
        return response

    def put_state(self, game_id: UUID, request: StateWriteRequest) -> GameResponse:
        """
        Persist a whole proposed document for the acting seat.

        The client's document is never stored as-is: it is accepted only if exactly one legal move from the
        stored state reproduces its board, seat to move and status. The engine's own result of that move is written.
        """

        def mutate(stored: GameModel, engine: RuleEngine, state: Any) -> Optional[Transition]:
            seat = self._get_player_seat(stored, request.player_id)
            if request.new_state.get("kind") != stored.kind:
                raise InvalidRequestError(
                    f"Document kind {request.new_state.get('kind')!r} does not match game kind {stored.kind!r}."
                )
            proposed_state = engine.state_from_document(request.new_state)

            if state.status != Status.ACTIVE:
                raise GameStateError(f"Game is not in progress. status: {state.status}")
            if seat != state.seat_to_move:
                raise NotYourTurnError(
                    f"It is not your turn. Waiting for {state.seat_to_move} to make a move first."
                )
            now = self.clock()
            self._assert_turn_not_expired(stored, state, now)

            matches = [
                outcome
                for outcome in self._reachable_outcomes(engine, state, seat, now)
                if self._reproduces(outcome.state, proposed_state)
            ]
            if len(matches) != 1:
                logger.warning(
                    "Rejected proposed document for game %s: %s legal moves reproduce it",
                    game_id,
                    len(matches),
                )
                raise IllegalMoveError(
                    "Proposed state is not reachable by exactly one legal move from the current state."
                )
            return Transition(matches[0].state)

        stored = self._transact(game_id, mutate, request.expected_version)
        viewer = self._find_seat(stored, request.player_id)
        return self._create_game_response(game_id, stored, viewer=viewer)

    # -- Setup phase ---
    def place_piece(self, game_id: UUID, request: PlacementRequest) -> GameResponse:
        square = Square.from_list(request.square)

        def mutate(stored: GameModel, engine: RuleEngine, state: Any) -> Optional[Transition]:
            seat = self._get_player_seat(stored, request.player_id)
            self._assert_turn_not_expired(stored, state, self.clock())
            return Transition(
                self._setup_engine(engine).place_piece(state, seat, request.rank, square)
            )

        stored = self._transact(game_id, mutate, request.expected_version)
        return self._create_game_response(
            game_id, stored, viewer=self._find_seat(stored, request.player_id)
        )

    def remove_piece(self, game_id: UUID, request: RemovalRequest) -> GameResponse:
        square = Square.from_list(request.square)

        def mutate(stored: GameModel, engine: RuleEngine, state: Any) -> Optional[Transition]:
            seat = self._get_player_seat(stored, request.player_id)
            self._assert_turn_not_expired(stored, state, self.clock())
            return Transition(
                self._setup_engine(engine).remove_piece(state, seat, square)
            )

        stored = self._transact(game_id, mutate, request.expected_version)
        return self._create_game_response(
            game_id, stored, viewer=self._find_seat(stored, request.player_id)
        )

    def mark_ready(self, game_id: UUID, request: ReadyRequest) -> GameResponse:
        def mutate(stored: GameModel, engine: RuleEngine, state: Any) -> Optional[Transition]:
            seat = self._get_player_seat(stored, request.player_id)
            now = self.clock()
            self._assert_turn_not_expired(stored, state, now)
            return Transition(self._setup_engine(engine).mark_ready(state, seat, now))

        stored = self._transact(game_id, mutate, request.expected_version)
        return self._create_game_response(
            game_id, stored, viewer=self._find_seat(stored, request.player_id)
        )

    # -- Turn timer ---
    def trigger_timeout(self, game_id: UUID, request: TimeoutRequest) -> GameResponse:
        """
        A client saw the deadline pass. Safe to call redundantly (both clients, retries):
        once the ply moved on, or while the deadline is still ahead, nothing is written.
        """

        def mutate(stored: GameModel, engine: RuleEngine, state: Any) -> Optional[Transition]:
            self._get_player_seat(stored, request.player_id)
            timer = timer_for(engine.kind, self.settings)
            next_state = expire_turn(
                engine,
                state,
                timer,
                self.clock(),
                self.rng,
                observed_ply=request.observed_ply,
            )
            return Transition(next_state) if next_state is not None else None

        stored = self._transact(game_id, mutate)
        return self._create_game_response(
            game_id, stored, viewer=self._find_seat(stored, request.player_id)
        )

    # -- Settlement ---
    def retry_settlement(self, game_id: UUID) -> GameResponse:
        """Re-emit the outcome of a finished game whose release did not go through."""
        stored = self._fetch_game(game_id)
        if stored.status != Status.FINISHED:
            raise GameStateError(f"Game {game_id} is not finished. status: {stored.status}")
        if stored.settlement_status == SettlementStatus.RELEASED:
            return self._create_game_response(game_id, stored)

        settled = self._settle(game_id, stored)
        if settled.settlement_status == SettlementStatus.FAILED:
            raise SettlementError(f"Settlement for game {game_id} failed again.")
        return self._create_game_response(game_id, settled)

    # -- Internal helpers --
    def _transact(
        self,
        game_id: UUID,
        mutate: Mutation,
        expected_version: Optional[int] = None,
    ) -> GameModel:
        """Read, validate, compare-and-set. Re-runs on a lost race, unless the client pinned a version."""
        attempts = max(1, self.settings.write_attempts)
        for attempt in range(1, attempts + 1):
            stored = self._fetch_game(game_id)
            if expected_version is not None and stored.version != expected_version:
                raise StaleWriteError(
                    f"Game {game_id} is at version {stored.version}, not {expected_version}."
                )

            engine = engine_for(stored.kind)
            state = engine.state_from_document(stored.state)
            transition = mutate(stored, engine, state)
            if transition is None:
                return stored

            next_state = transition.state
            finishes = (
                stored.status != Status.FINISHED and next_state.status == Status.FINISHED
            )
            next_model = replace(
                stored,
                state=next_state.to_document(),
                status=next_state.status.value,
                winner=next_state.winner,
                registered_players=(
                    transition.registered_players
                    if transition.registered_players is not None
                    else stored.registered_players
                ),
                settlement_status=(
                    SettlementStatus.PENDING.value
                    if finishes
                    else stored.settlement_status
                ),
            )
            try:
                written = self.repo.compare_and_set(game_id, stored.version, next_model)
            except StaleWriteError:
                if expected_version is not None or attempt == attempts:
                    raise
                logger.warning(
                    "Lost write race on game %s (attempt %s/%s), re-validating",
                    game_id,
                    attempt,
                    attempts,
                )
                continue

            if written is None:
                raise RepositoryError(f"Game with {game_id=} not found.")
            if finishes:
                logger.info("Game %s finished. winner: %s", game_id, written.winner)
                written = self._settle(game_id, written)
            return written

        raise StaleWriteError(f"Game {game_id} kept changing, gave up after {attempts} attempts.")

    def _settle(self, game_id: UUID, model: GameModel) -> GameModel:
        """Hand the outcome to escrow and record the result. A failure never reverts the game."""
        is_draw = model.winner == DRAW
        request = SettlementRequest(
            game_id=game_id,
            kind=model.kind,
            winner_seat=None if is_draw else model.winner,
            winner_player=None if is_draw else model.registered_players.get(model.winner or ""),
            is_draw=is_draw,
            stake=model.stake,
        )
        try:
            self.settlement.release(request)
            settlement_status = SettlementStatus.RELEASED
        except SettlementError as exc:
            logger.error("Settlement failed for game %s: %s", game_id, exc)
            settlement_status = SettlementStatus.FAILED

        try:
            recorded = self.repo.compare_and_set(
                game_id,
                model.version,
                replace(model, settlement_status=settlement_status.value),
            )
        except StaleWriteError:
            logger.warning("Settlement status of game %s changed concurrently", game_id)
            return self._fetch_game(game_id)
        return recorded if recorded is not None else model

    def _reachable_outcomes(
        self, engine: RuleEngine, state: Any, seat: str, now: datetime
    ) -> list[MoveOutcome]:
        return [
            engine.apply_move(state, seat, candidate, now)
            for candidate in engine.all_legal_moves(state)
        ]

    def _reproduces(self, derived: Any, proposed: Any) -> bool:
        return (
            derived.board == proposed.board
            and derived.seat_to_move == proposed.seat_to_move
            and derived.status == proposed.status
        )

    def _assert_turn_not_expired(self, stored: GameModel, state: Any, now: datetime) -> None:
        """After deadline + grace the ply belongs to the timeout fallback."""
        timer = timer_for(GameKind(stored.kind), self.settings)
        if timer.is_expired(state, now, grace=self.settings.turn_grace_seconds):
            logger.warning("Rejected late proposal on %s game at ply %s", stored.kind, state.ply)
            raise TurnExpiredError(
                "The turn timer expired. Trigger the timeout and re-sync."
            )

    def _setup_engine(self, engine: RuleEngine) -> Any:
        if not engine.supports_setup:
            raise GameStateError(f"{engine.kind} has no setup phase.")
        return engine

    def _get_player_seat(self, model: GameModel, player_id: str) -> str:
        """The seat (color) a registered player occupies."""
        seat = self._find_seat(model, player_id)
        if seat is None:
            raise IllegalMoveError(f"Player {player_id!r} is not registered for this game.")
        return seat

    def _find_seat(self, model: GameModel, player_id: str) -> Optional[str]:
        return next(
            (seat for seat, player in model.registered_players.items() if player == player_id),
            None,
        )

    def _create_game_response(
        self, game_id: UUID, model: GameModel, viewer: Optional[str] = None
    ) -> GameResponse:
        """Convert info in GameModel to a GameResponse (for game with given ID.)"""
        engine = engine_for(model.kind)
        if viewer is not None and viewer not in engine.seats:
            raise InvalidRequestError(f"{viewer!r} is not a seat in {model.kind}.")
        state_document = (
            engine.state_from_document(model.state).to_document(viewer=viewer)
            if viewer is not None
            else model.state
        )
        return GameResponse(
            game_id=game_id,
            kind=GameKind(model.kind),
            players=model.registered_players,
            status=model.status,
            winner=model.winner,
            stake=model.stake,
            settlement_status=model.settlement_status,
            version=model.version,
            last_updated=model.last_updated,
            state=state_document,
        )

    def _fetch_game(self, game_id: UUID) -> GameModel:
        """Attempt to find the game in the repository and raise error if it fails."""
        game_model = self.repo.get_game(game_id)
        if game_model is None:
            raise RepositoryError(f"Game with {game_id=} not found.")
        return game_model

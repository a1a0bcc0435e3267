"""HTTP routes. Thin: parse the request, hand it to the GameService, map domain errors to status codes."""

import logging
from typing import Generator, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

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
from src.core.exceptions import (
    GameError,
    GameStateError,
    IllegalMoveError,
    InvalidRequestError,
    InvalidStateDocumentError,
    PersistenceError,
    RepositoryError,
    SettlementError,
)
from src.db.database import get_db
from src.db.sql_repository import SQLGameRepository
from src.services.game_service import GameService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games", tags=["games"])

# most specific first
ERROR_STATUS_CODES: list[tuple[type[GameError], int]] = [
    (IllegalMoveError, status.HTTP_409_CONFLICT),
    (GameStateError, status.HTTP_409_CONFLICT),
    (InvalidStateDocumentError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidRequestError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (RepositoryError, status.HTTP_404_NOT_FOUND),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (SettlementError, status.HTTP_502_BAD_GATEWAY),
]


def status_code_for(exc: GameError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def handle_game_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, GameError)
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GameError, handle_game_error)


def get_service(request: Request) -> Generator[GameService, None, None]:
    """One service per request. Without an injected repository, a database session is opened for the request."""
    app_state = request.app.state
    if app_state.repository is not None:
        yield GameService(
            app_state.repository,
            settings=app_state.settings,
            settlement=app_state.settlement,
            rng=app_state.rng,
        )
        return

    sessions = get_db(app_state.session_local)
    db = next(sessions)
    try:
        yield GameService(
            SQLGameRepository(db),
            settings=app_state.settings,
            settlement=app_state.settlement,
            rng=app_state.rng,
        )
    finally:
        sessions.close()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_game(
    request: CreateGameRequest, service: GameService = Depends(get_service)
) -> GameResponse:
    return service.create_game(request)


@router.post("/{game_id}/join")
def join_game(
    game_id: UUID, request: JoinGameRequest, service: GameService = Depends(get_service)
) -> GameResponse:
    return service.join_game(game_id, request)


@router.get("/{game_id}/state")
def get_state(
    game_id: UUID,
    seat: Optional[str] = None,
    service: GameService = Depends(get_service),
) -> GameResponse:
    return service.get_game_state(game_id, seat)


@router.put("/{game_id}/state")
def put_state(
    game_id: UUID, request: StateWriteRequest, service: GameService = Depends(get_service)
) -> GameResponse:
    return service.put_state(game_id, request)


@router.get("/{game_id}/legal-moves")
def legal_moves(
    game_id: UUID,
    seat: str,
    row: int,
    col: int,
    service: GameService = Depends(get_service),
) -> LegalMovesResponse:
    return service.legal_moves(game_id, LegalMovesRequest(seat=seat, row=row, col=col))


@router.post("/{game_id}/moves", response_model=GameResponse)
def make_move(
    game_id: UUID, request: MoveRequest, service: GameService = Depends(get_service)
) -> GameResponse | JSONResponse:
    response = service.make_move(game_id, request)
    if response.promotion_pending:
        # nothing was written: the client has to choose a piece and resubmit
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=response.model_dump(mode="json"),
        )
    return response


@router.post("/{game_id}/setup/placements")
def place_piece(
    game_id: UUID, request: PlacementRequest, service: GameService = Depends(get_service)
) -> GameResponse:
    return service.place_piece(game_id, request)


@router.delete("/{game_id}/setup/placements")
def remove_piece(
    game_id: UUID, request: RemovalRequest, service: GameService = Depends(get_service)
) -> GameResponse:
    return service.remove_piece(game_id, request)


@router.post("/{game_id}/setup/ready")
def mark_ready(
    game_id: UUID, request: ReadyRequest, service: GameService = Depends(get_service)
) -> GameResponse:
    return service.mark_ready(game_id, request)


@router.post("/{game_id}/timeout")
def trigger_timeout(
    game_id: UUID, request: TimeoutRequest, service: GameService = Depends(get_service)
) -> GameResponse:
    return service.trigger_timeout(game_id, request)


@router.post("/{game_id}/settlement/retry")
def retry_settlement(
    game_id: UUID, service: GameService = Depends(get_service)
) -> GameResponse:
    return service.retry_settlement(game_id)


@router.delete("/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_game(game_id: UUID, service: GameService = Depends(get_service)) -> None:
    service.delete_game(game_id)

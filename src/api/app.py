"""FastAPI application factory"""

from random import Random
from typing import Optional

from fastapi import FastAPI

from src.api.routes import register_exception_handlers, router
from src.core.config import Settings
from src.core.logging_setup import configure_logging
from src.db.database import build_engine, session_factory
from src.db.repository import GameRepository
from src.services.settlement import (
    HttpSettlementGateway,
    NullSettlementGateway,
    SettlementGateway,
)


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[GameRepository] = None,
    settlement: Optional[SettlementGateway] = None,
    rng: Optional[Random] = None,
) -> FastAPI:
    """
    Without a `repository`, games are stored in the database at `settings.database_url`.
    Without a `settlement` gateway, outcomes go to the escrow URL (or only to the log, if none is configured).
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="stakeboard")
    app.state.settings = settings
    app.state.repository = repository
    app.state.session_local = (
        session_factory(build_engine(settings.database_url))
        if repository is None
        else None
    )
    if settlement is None:
        settlement = (
            HttpSettlementGateway(settings.escrow_url, settings.escrow_timeout_seconds)
            if settings.escrow_url
            else NullSettlementGateway()
        )
    app.state.settlement = settlement
    app.state.rng = rng or Random()

    app.include_router(router)
    register_exception_handlers(app)
    return app

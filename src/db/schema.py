"""Database tables / schema"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import JSON, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.core.shared_types import SettlementStatus
from src.core.timer import utc_now


class Base(DeclarativeBase):
    pass


class DBGame(Base):
    """
    One row per game. `state` holds the whole GameState document: it is only ever written as a unit,
    guarded by `version` (compare-and-set).
    """

    __tablename__ = "games"
    id: Mapped[UUID] = mapped_column(primary_key=True)
    kind: Mapped[str]
    state: Mapped[dict[str, Any]] = mapped_column(JSON)
    registered_players: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)
    status: Mapped[str]
    winner: Mapped[Optional[str]]
    stake: Mapped[Optional[str]]
    settlement_status: Mapped[str] = mapped_column(
        default=SettlementStatus.NOT_REQUIRED.value
    )
    version: Mapped[int] = mapped_column(default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

"""
Settlement hook
----

When a game finishes, the outcome is handed to the escrow collaborator, which owns the funds.
This side never moves funds itself, and a failed release never reopens a game.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol
from uuid import UUID

import httpx

from src.core.exceptions import SettlementError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementRequest:
    game_id: UUID
    kind: str
    winner_seat: Optional[str]
    winner_player: Optional[str]
    is_draw: bool
    stake: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "gameId": str(self.game_id),
            "kind": self.kind,
            "winnerSeat": self.winner_seat,
            "winnerPlayer": self.winner_player,
            "draw": self.is_draw,
            "stake": self.stake,
        }


class SettlementGateway(Protocol):
    def release(self, request: SettlementRequest) -> None:
        """Raise SettlementError if the escrow did not accept the release."""
        ...


class NullSettlementGateway:
    """No escrow configured: only record the outcome in the log."""

    def release(self, request: SettlementRequest) -> None:
        logger.info("Settlement (not forwarded): %s", request.to_payload())


class HttpSettlementGateway:
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def release(self, request: SettlementRequest) -> None:
        try:
            response = self.client.post("/release", json=request.to_payload())
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SettlementError(
                f"Escrow release failed for game {request.game_id}: {exc}"
            ) from exc
        logger.info("Settlement released for game %s", request.game_id)

"""
Client-side read replica of one game
----

The client never owns the game: it holds a possibly stale copy of the stored document and
* polls on a fixed interval (short while the game is active, longer otherwise)
* only replaces its view when the server's `last_updated` changed
* resets its local turn countdown when the seat to move or the ply changed (or on first observation)
* after a rejected submission throws its view away and re-fetches, so nothing optimistic survives a lost race
* triggers the turn timeout itself once the server-supplied deadline passed (the server decides if it is still due)
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional
from uuid import UUID

import httpx

from src.core.config import Settings
from src.core.exceptions import (
    GameError,
    IllegalMoveError,
    InvalidRequestError,
    PersistenceError,
)
from src.core.shared_types import GameKind, Status
from src.core.timer import from_iso, timer_for, utc_now

logger = logging.getLogger(__name__)


@dataclass
class PollResult:
    changed: bool
    turn_changed: bool


@dataclass
class SubmitResult:
    accepted: bool
    promotion_pending: bool = False


class GameReplica:
    def __init__(
        self,
        client: httpx.Client,
        game_id: UUID,
        player_id: str,
        seat: Optional[str] = None,
        settings: Optional[Settings] = None,
        now: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.game_id = game_id
        self.player_id = player_id
        self.seat = seat
        self.settings = settings or Settings()
        self.now = now
        self.sleep = sleep

        self.view: Optional[dict[str, Any]] = None
        self.last_updated: Optional[str] = None
        self.countdown_started_at: Optional[datetime] = None
        self._turn_key: Optional[tuple[Any, Any]] = None

    # --- read side ---
    @property
    def document(self) -> Optional[dict[str, Any]]:
        return self.view["state"] if self.view is not None else None

    @property
    def status(self) -> Optional[str]:
        return self.view["status"] if self.view is not None else None

    def poll_interval(self) -> float:
        if self.status == Status.ACTIVE:
            return self.settings.poll_active_seconds
        return self.settings.poll_idle_seconds

    def poll(self) -> PollResult:
        """One read. Transient store / network failures leave the view untouched (retried on the next tick)."""
        params = {"seat": self.seat} if self.seat else None
        try:
            response = self.client.get(f"/games/{self.game_id}/state", params=params)
            self._raise_for_error(response)
        except (httpx.TransportError, PersistenceError) as exc:
            logger.warning("Poll of game %s failed, retrying next tick: %s", self.game_id, exc)
            return PollResult(changed=False, turn_changed=False)

        fetched = response.json()
        if self.view is not None and fetched["last_updated"] == self.last_updated:
            return PollResult(changed=False, turn_changed=False)

        self.view = fetched
        self.last_updated = fetched["last_updated"]
        return PollResult(changed=True, turn_changed=self._observe_turn())

    def seconds_left(self) -> Optional[float]:
        """Countdown from the server supplied turn start. None when no timer runs."""
        document = self.document
        if document is None or self.view is None:
            return None
        timer = timer_for(GameKind(self.view["kind"]), self.settings)
        duration = timer.duration(Status(document["status"]))
        started_at = from_iso(document.get("turnStartedAt"))
        if duration is None or started_at is None:
            return None
        elapsed = (self.now() - started_at).total_seconds()
        return max(0.0, duration - elapsed)

    # --- write side ---
    def submit_move(
        self,
        from_square: list[int],
        to_square: list[int],
        promotion: Optional[str] = None,
    ) -> SubmitResult:
        payload = {
            "player_id": self.player_id,
            "from_square": from_square,
            "to_square": to_square,
            "promotion": promotion,
        }
        response = self.client.post(f"/games/{self.game_id}/moves", json=payload)
        if response.status_code == httpx.codes.ACCEPTED:
            return SubmitResult(accepted=False, promotion_pending=True)
        return self._after_submission(response)

    def place_piece(self, rank: str, square: list[int]) -> SubmitResult:
        payload = {"player_id": self.player_id, "rank": rank, "square": square}
        response = self.client.post(
            f"/games/{self.game_id}/setup/placements", json=payload
        )
        return self._after_submission(response)

    def mark_ready(self) -> SubmitResult:
        response = self.client.post(
            f"/games/{self.game_id}/setup/ready", json={"player_id": self.player_id}
        )
        return self._after_submission(response)

    def trigger_timeout(self) -> PollResult:
        """Ask the server to run the timeout fallback for the ply this replica observed."""
        observed_ply = self.document["ply"] if self.document is not None else None
        response = self.client.post(
            f"/games/{self.game_id}/timeout",
            json={"player_id": self.player_id, "observed_ply": observed_ply},
        )
        self._raise_for_error(response)
        return self.poll()

    # --- loop ---
    def run(self, max_polls: Optional[int] = None) -> None:
        """Poll until the game is finished (or `max_polls` reads were made)."""
        polls = 0
        while max_polls is None or polls < max_polls:
            self.poll()
            polls += 1
            if self.status == Status.FINISHED:
                return
            remaining = self.seconds_left()
            if remaining is not None and remaining <= 0:
                logger.info("Deadline passed for game %s, triggering timeout", self.game_id)
                try:
                    self.trigger_timeout()
                except GameError as exc:
                    logger.warning("Timeout trigger rejected: %s", exc)
            self.sleep(self.poll_interval())

    # --- helpers ---
    def _after_submission(self, response: httpx.Response) -> SubmitResult:
        if response.is_success:
            self.view = response.json()
            self.last_updated = self.view["last_updated"]
            self._observe_turn()
            return SubmitResult(accepted=True)

        # lost a race or proposed something illegal: drop the local view and re-sync
        self.view = None
        self.last_updated = None
        detail = self._error_detail(response)
        logger.warning("Submission to game %s rejected: %s", self.game_id, detail)
        self.poll()
        self._raise_for_error(response)
        return SubmitResult(accepted=False)

    def _observe_turn(self) -> bool:
        document = self.document
        if document is None:
            return False
        turn_key = (document.get("currentPlayer"), document.get("ply"))
        if turn_key == self._turn_key:
            return False
        self._turn_key = turn_key
        self.countdown_started_at = self.now()
        return True

    def _raise_for_error(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        detail = self._error_detail(response)
        if response.status_code >= 500:
            raise PersistenceError(detail)
        if response.status_code == httpx.codes.CONFLICT:
            raise IllegalMoveError(detail)
        if response.status_code == httpx.codes.UNPROCESSABLE_ENTITY:
            raise InvalidRequestError(detail)
        raise GameError(detail)

    def _error_detail(self, response: httpx.Response) -> str:
        try:
            return str(response.json().get("detail", response.text))
        except ValueError:
            return response.text

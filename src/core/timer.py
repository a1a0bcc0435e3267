"""
Turn Timer
----

One wall-clock deadline per ply. The deadline is derived from the `turnStartedAt` timestamp that the
engines write into the state document whenever the seat to move changes, so every client counts down
from the same server-supplied start time.

On expiry the game specific fallback (`RuleEngine.expire_turn`) takes over:
* Chess / Checkers: a uniformly random legal move for the side to move (or termination if there is none)
* Stratego setup: random placement of the remaining pool, after which the side is marked ready

Expiry is idempotent: a trigger is a no-op unless the stored document is still at the ply the
trigger observed AND the deadline actually passed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from random import Random
from typing import Any, Optional

from src.core.config import Settings
from src.core.engine import RuleEngine
from src.core.shared_types import GameKind, Status

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment is not None else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    moment = datetime.fromisoformat(value)
    # naive timestamps are interpreted as UTC
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass(frozen=True)
class TurnTimer:
    """Durations in seconds. None disables the timer for that phase."""

    turn_seconds: Optional[float]
    setup_seconds: Optional[float] = None

    def duration(self, status: Status) -> Optional[float]:
        if status == Status.ACTIVE:
            return self.turn_seconds
        if status == Status.SETUP:
            return self.setup_seconds
        return None

    def deadline(self, state: Any) -> Optional[datetime]:
        duration = self.duration(state.status)
        if duration is None or state.turn_started_at is None:
            return None
        return state.turn_started_at + timedelta(seconds=duration)

    def remaining(self, state: Any, now: datetime) -> Optional[float]:
        deadline = self.deadline(state)
        if deadline is None:
            return None
        return max(0.0, (deadline - now).total_seconds())

    def is_expired(self, state: Any, now: datetime, grace: float = 0.0) -> bool:
        deadline = self.deadline(state)
        if deadline is None:
            return False
        return now >= deadline + timedelta(seconds=grace)


def timer_for(kind: GameKind, settings: Settings) -> TurnTimer:
    """Per game durations (configured through Settings)."""
    if kind == GameKind.CHESS:
        return TurnTimer(turn_seconds=settings.chess_turn_seconds)
    if kind == GameKind.STRATEGO:
        return TurnTimer(
            turn_seconds=settings.stratego_turn_seconds,
            setup_seconds=settings.stratego_setup_seconds,
        )
    return TurnTimer(turn_seconds=settings.checkers_turn_seconds)


def expire_turn(
    engine: RuleEngine,
    state: Any,
    timer: TurnTimer,
    now: datetime,
    rng: Random,
    observed_ply: Optional[int] = None,
) -> Optional[Any]:
    """
    Run the timeout fallback if (and only if) it is still due.

    Returns the next state, or None when the trigger is a no-op:
    * the game is not in a timed phase (waiting / finished)
    * another trigger already advanced the ply the caller observed
    * the deadline has not passed yet
    """
    if state.status not in (Status.ACTIVE, Status.SETUP):
        return None

    if observed_ply is not None and observed_ply != state.ply:
        logger.debug(
            "Timeout trigger for ply %s ignored, document is at ply %s",
            observed_ply,
            state.ply,
        )
        return None

    if not timer.is_expired(state, now):
        return None

    logger.info(
        "Turn timer expired (%s, status=%s, ply=%s). Running fallback.",
        engine.kind,
        state.status,
        state.ply,
    )
    return engine.expire_turn(state, rng, now)

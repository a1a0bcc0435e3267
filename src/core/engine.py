"""
The capability every game module offers to the service layer.

Chess, Checkers and Stratego do NOT share a base class: their legality rules do not generalize.
Each one ships an engine object that structurally satisfies `RuleEngine` (same idea as the `Board`
protocol the movement strategies rely on), and the service only ever talks to that protocol.
"""

from dataclasses import dataclass, field
from datetime import datetime
from random import Random
from typing import Any, Optional, Protocol

from src.core.shared_types import GameKind, Status
from src.core.square import Square


@dataclass(frozen=True)
class ProposedMove:
    """A ply as proposed by a client (or picked by the turn timer)."""

    from_square: Square
    to_square: Square
    promotion: Optional[str] = None


@dataclass(frozen=True)
class Termination:
    """winner holds a seat name or the DRAW marker"""

    winner: str
    reason: str


@dataclass
class MoveOutcome:
    state: Any
    promotion_pending: bool = False
    termination: Optional[Termination] = None
    captured: list[Square] = field(default_factory=list)
    combat: Optional[dict[str, Any]] = None


class GameState(Protocol):
    """Just the parts of a per-game state the service / timer need"""

    status: Status
    winner: Optional[str]
    ply: int
    turn_started_at: Optional[datetime]

    @property
    def seat_to_move(self) -> str: ...

    def to_document(self, viewer: Optional[str] = None) -> dict[str, Any]: ...


class RuleEngine(Protocol):
    kind: GameKind
    seats: tuple[str, ...]
    supports_setup: bool

    def new_state(self) -> Any: ...
    def state_from_document(self, document: dict[str, Any]) -> Any: ...
    def start(self, state: Any, now: datetime) -> Any: ...
    def legal_moves(self, state: Any, from_square: Square) -> set[Square]: ...
    def all_legal_moves(self, state: Any) -> list[ProposedMove]: ...
    def apply_move(
        self, state: Any, seat: str, move: ProposedMove, now: datetime
    ) -> MoveOutcome: ...
    def check_termination(self, state: Any) -> Optional[Termination]: ...
    def expire_turn(self, state: Any, rng: Random, now: datetime) -> Any: ...


def other_seat(seats: tuple[str, ...], seat: str) -> str:
    """Two-seat games only."""
    return seats[1] if seat == seats[0] else seats[0]

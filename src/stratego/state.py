"""
The Stratego GameState document.

Besides the board it carries the setup bookkeeping: which seat declared ready, and what every seat still
has left to place (`pools`). The stored document always holds every rank; `to_document(viewer=...)` produces
the redacted view a single seat is allowed to see.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Self

from src.core.exceptions import InvalidStateDocumentError
from src.core.shared_types import GameKind, Status
from src.core.timer import from_iso, to_iso
from src.stratego.board import Board
from src.stratego.pieces import HIDDEN_RANK, Color, Rank, empty_pool, full_pool


def _full_pools() -> dict[Color, dict[Rank, int]]:
    return {color: full_pool() for color in Color}


def _not_ready() -> dict[Color, bool]:
    return {color: False for color in Color}


@dataclass
class StrategoState:
    board: Board = field(default_factory=Board)
    current_player: Color = Color.RED
    status: Status = Status.WAITING
    winner: Optional[str] = None
    setup_phase: bool = True
    ready: dict[Color, bool] = field(default_factory=_not_ready)
    pools: dict[Color, dict[Rank, int]] = field(default_factory=_full_pools)
    last_move: Optional[dict[str, Any]] = None
    ply: int = 0
    turn_started_at: Optional[datetime] = None

    @property
    def seat_to_move(self) -> str:
        return self.current_player.value

    def pieces_left(self, color: Color) -> int:
        return sum(self.pools[color].values())

    def to_document(self, viewer: Optional[str] = None) -> dict[str, Any]:
        viewing_color = Color(viewer) if viewer is not None else None
        return {
            "kind": GameKind.STRATEGO.value,
            "board": self.board.to_document(viewer=viewing_color),
            "currentPlayer": self.current_player.value,
            "status": self.status.value,
            "winner": self.winner,
            "setupPhase": self.setup_phase,
            "ready": {color.value: self.ready[color] for color in Color},
            "pools": {
                color.value: self._pool_document(color, viewing_color)
                for color in self.pools
            },
            "lastMove": self.last_move,
            "ply": self.ply,
            "turnStartedAt": to_iso(self.turn_started_at),
        }

    def _pool_document(self, color: Color, viewer: Optional[Color]) -> dict[str, int]:
        """An opponent only learns how many pieces are left to place, never which ranks."""
        if viewer is not None and color != viewer:
            return {HIDDEN_RANK: self.pieces_left(color)}
        return {rank.value: count for rank, count in self.pools[color].items()}

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Self:
        if document.get("kind") != GameKind.STRATEGO.value:
            raise InvalidStateDocumentError(
                f"Not a stratego document: kind={document.get('kind')!r}"
            )
        try:
            pools: dict[Color, dict[Rank, int]] = {}
            for color in Color:
                pool = empty_pool()
                for rank, count in document["pools"][color.value].items():
                    pool[Rank(rank)] = int(count)
                pools[color] = pool
            return cls(
                board=Board.from_document(document["board"]),
                current_player=Color(document["currentPlayer"]),
                status=Status(document["status"]),
                winner=document.get("winner"),
                setup_phase=bool(document["setupPhase"]),
                ready={
                    color: bool(document["ready"][color.value]) for color in Color
                },
                pools=pools,
                last_move=document.get("lastMove"),
                ply=int(document.get("ply", 0)),
                turn_started_at=from_iso(document.get("turnStartedAt")),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise InvalidStateDocumentError(
                f"Cannot interpret stratego state document: {exc}"
            ) from exc

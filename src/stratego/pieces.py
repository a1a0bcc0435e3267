"""Stratego ranks, the standard army and the (hidden-information) piece"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Self

from src.core.exceptions import InvalidStateDocumentError

HIDDEN_RANK = "unknown"


class Rank(StrEnum):
    MARSHAL = "marshal"
    GENERAL = "general"
    COLONEL = "colonel"
    MAJOR = "major"
    CAPTAIN = "captain"
    LIEUTENANT = "lieutenant"
    SERGEANT = "sergeant"
    MINER = "miner"
    SCOUT = "scout"
    SPY = "spy"
    BOMB = "bomb"
    FLAG = "flag"


class Color(StrEnum):
    RED = "red"
    BLUE = "blue"

    @property
    def opponent(self) -> "Color":
        return Color.BLUE if self == Color.RED else Color.RED


# combat strength: lower number wins. Bomb and Flag never attack and are handled separately.
RANK_VALUES: dict[Rank, int] = {
    Rank.MARSHAL: 1,
    Rank.GENERAL: 2,
    Rank.COLONEL: 3,
    Rank.MAJOR: 4,
    Rank.CAPTAIN: 5,
    Rank.LIEUTENANT: 6,
    Rank.SERGEANT: 7,
    Rank.MINER: 8,
    Rank.SCOUT: 9,
    Rank.SPY: 10,
    Rank.BOMB: 99,
    Rank.FLAG: 100,
}

IMMOVABLE_RANKS: frozenset[Rank] = frozenset({Rank.BOMB, Rank.FLAG})

# 40 pieces per side
STANDARD_POOL: dict[Rank, int] = {
    Rank.MARSHAL: 1,
    Rank.GENERAL: 1,
    Rank.COLONEL: 2,
    Rank.MAJOR: 3,
    Rank.CAPTAIN: 4,
    Rank.LIEUTENANT: 4,
    Rank.SERGEANT: 4,
    Rank.MINER: 5,
    Rank.SCOUT: 8,
    Rank.SPY: 1,
    Rank.BOMB: 6,
    Rank.FLAG: 1,
}


def full_pool() -> dict[Rank, int]:
    return dict(STANDARD_POOL)


def empty_pool() -> dict[Rank, int]:
    return {rank: 0 for rank in Rank}


@dataclass
class Piece:
    rank: Rank
    color: Color
    revealed: bool = False

    @property
    def can_move(self) -> bool:
        return self.rank not in IMMOVABLE_RANKS

    def to_document(self, hidden: bool = False) -> dict[str, Any]:
        """`hidden`: the viewer is the opponent and the piece was never revealed in combat."""
        if hidden:
            return {
                "rank": HIDDEN_RANK,
                "color": self.color.value,
                "revealed": False,
                "canMove": None,
            }
        return {
            "rank": self.rank.value,
            "color": self.color.value,
            "revealed": self.revealed,
            "canMove": self.can_move,
        }

    @classmethod
    def from_document(cls, document: Any) -> Self:
        """canMove is derived from the rank and therefore ignored."""
        try:
            if document["rank"] == HIDDEN_RANK:
                raise InvalidStateDocumentError(
                    "A redacted (opponent view) piece cannot be read back as authoritative state."
                )
            return cls(
                rank=Rank(document["rank"]),
                color=Color(document["color"]),
                revealed=bool(document.get("revealed", False)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidStateDocumentError(
                f"Cannot interpret {document!r} as a stratego piece."
            ) from exc

"""
Type definitions used across layers
"""

from enum import StrEnum


class Status(StrEnum):
    WAITING = "waiting"
    SETUP = "setup"
    ACTIVE = "active"
    FINISHED = "finished"


class GameKind(StrEnum):
    CHECKERS = "checkers"
    CHESS = "chess"
    STRATEGO = "stratego"


class SettlementStatus(StrEnum):
    NOT_REQUIRED = "not required"
    PENDING = "pending"
    RELEASED = "released"
    FAILED = "failed"


# --- The winner field holds either a seat name (color) or this marker.
DRAW = "draw"

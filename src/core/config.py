"""Application settings, read from STAKEBOARD_* environment variables."""

import os
from dataclasses import dataclass
from typing import Optional, Self

ENV_PREFIX = "STAKEBOARD_"


def _env(name: str, default: str) -> str:
    return os.environ.get(f"{ENV_PREFIX}{name}", default)


def _optional_seconds(name: str, default: str) -> Optional[float]:
    """'0' (or an empty value) disables a timer."""
    value = float(_env(name, default) or 0)
    return value if value > 0 else None


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./stakeboard.db"
    log_level: str = "INFO"

    # Turn timer (seconds). None disables.
    chess_turn_seconds: Optional[float] = 60.0
    stratego_turn_seconds: Optional[float] = 60.0
    stratego_setup_seconds: Optional[float] = 300.0
    checkers_turn_seconds: Optional[float] = None
    turn_grace_seconds: float = 2.0

    # Client polling (seconds)
    poll_active_seconds: float = 2.0
    poll_idle_seconds: float = 5.0

    # read-validate-write attempts before giving up on a contended document
    write_attempts: int = 3

    # Escrow release collaborator. None: settlement is only logged.
    escrow_url: Optional[str] = None
    escrow_timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> Self:
        return cls(
            database_url=_env("DATABASE_URL", cls.database_url),
            log_level=_env("LOG_LEVEL", cls.log_level),
            chess_turn_seconds=_optional_seconds("CHESS_TURN_SECONDS", "60"),
            stratego_turn_seconds=_optional_seconds("STRATEGO_TURN_SECONDS", "60"),
            stratego_setup_seconds=_optional_seconds("STRATEGO_SETUP_SECONDS", "300"),
            checkers_turn_seconds=_optional_seconds("CHECKERS_TURN_SECONDS", "0"),
            turn_grace_seconds=float(_env("TURN_GRACE_SECONDS", "2")),
            poll_active_seconds=float(_env("POLL_ACTIVE_SECONDS", "2")),
            poll_idle_seconds=float(_env("POLL_IDLE_SECONDS", "5")),
            write_attempts=int(_env("WRITE_ATTEMPTS", "3")),
            escrow_url=_env("ESCROW_URL", "") or None,
            escrow_timeout_seconds=float(_env("ESCROW_TIMEOUT_SECONDS", "10")),
        )

"""
Boundary layer data model(s).

These objects can be used to communicate with the Service.
Hence, both the API layer (higher) and domain/db layers (lower) will use model(s) defined here to send to/receive from the Service
(Decouples the data model specific to the DB layer, API layer, or domain layer from the information needed to send across boundaries)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

# Type aliases to make GameModel easier to read
Seat = str
PlayerId = str


@dataclass
class GameModel:
    """
    Transport-safe representation of a game used between API, Service and DB layers.

    `state` is the authoritative GameState JSON document. `version` increases by one on every accepted
    write and is what compare-and-set writes are checked against. `last_updated` is what polling
    clients compare to detect a change.
    """

    kind: str
    state: dict[str, Any]
    registered_players: dict[Seat, PlayerId]
    status: str
    winner: Optional[str] = None
    stake: Optional[str] = None
    settlement_status: str = "not required"
    version: int = 0
    last_updated: Optional[datetime] = None
    game_id: Optional[UUID] = field(default=None, compare=False)

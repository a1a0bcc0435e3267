"""
Custom exceptions.

Everything raised on purpose by the domain / service / persistence layers derives from GameError,
so the API layer can translate the whole family into HTTP responses in one place.
"""


class GameError(Exception):
    """Top-level exception for anything that goes wrong while playing a game."""


# --- MOVES ---
class IllegalMoveError(GameError):
    """Proposed transition fails the legality checks. The stored document is never touched."""


class NotYourTurnError(IllegalMoveError):
    """The acting seat is not the seat to move."""


class StaleWriteError(IllegalMoveError):
    """The proposal was validated against a version of the document that is no longer current."""


class TurnExpiredError(IllegalMoveError):
    """The turn deadline passed before the move arrived. The timeout fallback owns this ply now."""


# --- GAME STATE ---
class GameStateError(GameError):
    """Operation is not allowed in the current game status (finished game, full lobby, ...)."""


class InvalidStateDocumentError(GameError):
    """A persisted / submitted GameState document cannot be interpreted."""


class InvalidFENError(InvalidStateDocumentError):
    """String cannot be interpreted as FEN."""


class InvalidRequestError(GameError):
    """Request data is structurally wrong (raised from the API models' validators)."""


# --- PERSISTENCE ---
class RepositoryError(GameError):
    """Record could not be found."""


class PersistenceError(GameError):
    """Reading from / writing to the state store failed. Transient: retry on the next poll."""


# --- SETTLEMENT ---
class SettlementError(GameError):
    """Escrow release failed. The game stays finished."""

"""Strategy dict: which rule engine plays which game"""

from src.checkers.game import CheckersEngine
from src.chess.game import ChessEngine
from src.core.engine import RuleEngine
from src.core.exceptions import InvalidRequestError
from src.core.shared_types import GameKind
from src.stratego.game import StrategoEngine

ENGINES: dict[GameKind, RuleEngine] = {
    GameKind.CHECKERS: CheckersEngine(),
    GameKind.CHESS: ChessEngine(),
    GameKind.STRATEGO: StrategoEngine(),
}


def engine_for(kind: str) -> RuleEngine:
    try:
        return ENGINES[GameKind(kind)]
    except ValueError as exc:
        raise InvalidRequestError(f"Unknown game kind {kind!r}") from exc

"""
Error taxonomy for oracle-adjudicated games.

Every failure a caller can recover from is a GameError subclass; the registry
turns these into reply text. Anything else propagates.
"""
from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .adapters.base import RejectedAttempt


class GameError(Exception):
    """Base class for game-domain errors."""


class ConfigurationError(GameError):
    pass


class UnknownGameTypeError(ConfigurationError):
    def __init__(self, game_type: str, known: List[str] | None = None):
        self.game_type = game_type
        self.known = sorted(known or [])
        super().__init__(f"Unknown game type '{game_type}'")


class StateConflictError(GameError):
    pass


class TurnViolationError(GameError):
    pass


class ValidationRejection(GameError):
    """The oracle declared a move illegal; the player may resubmit."""

    def __init__(self, reason: str, move_text: str = ""):
        self.reason = reason
        self.move_text = move_text
        super().__init__(reason)


class ProtocolError(ValidationRejection):
    """The oracle reply was structurally unusable (or the call timed out)."""


class ArbitrationExhausted(GameError):
    def __init__(self, attempts: "List[RejectedAttempt]"):
        self.attempts = list(attempts)
        super().__init__(f"Oracle failed to produce a valid move after {len(self.attempts)} attempts")


class GameAlreadyFinishedError(GameError):
    def __init__(self, outcome_message: str):
        self.outcome_message = outcome_message
        super().__init__(f"The game is already over. {outcome_message}")


class PersistenceError(GameError):
    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message)


class OracleError(GameError):
    """The oracle could not be reached or returned nothing usable."""

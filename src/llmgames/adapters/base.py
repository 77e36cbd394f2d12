"""
Game adapter abstractions.

An adapter owns everything game-specific about talking to the oracle: the
canonical state encoding, the two prompts (validate a submitted move, generate
a move), parsing of both replies, state mutation from a validated reply, and
rendering. Sessions own turns, history and outcome; adapters never touch those.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from ..prompting import PromptConfig

if TYPE_CHECKING:  # pragma: no cover - import cycle protection for type hints
    from ..session import GameSession


@dataclass
class MoveVerdict:
    """Parsed reply to a validation prompt."""

    valid: bool
    reason: str = ""
    normalized_move: Optional[str] = None
    is_check: bool = False
    is_checkmate: bool = False
    is_draw: bool = False
    check_square: Optional[str] = None
    is_capture: bool = False
    moved_piece: Optional[str] = None
    resulting_state: Optional[str] = None
    protocol_error: bool = False
    raw: str = ""


@dataclass
class GeneratedCandidate:
    """Parsed reply to a generation prompt. Only move_text is ever used; the rest is self-reported."""

    move_text: Optional[str]
    explanation: str = ""
    is_check: Optional[bool] = None
    is_checkmate: Optional[bool] = None
    is_draw: Optional[bool] = None
    resulting_state: Optional[str] = None
    raw: str = ""

    @property
    def well_formed(self) -> bool:
        return bool(self.move_text)


@dataclass
class RejectedAttempt:
    move_text: str
    reason: str


class GameAdapter:
    """Capability set every game type implements."""

    tag: str = "base"
    sides: Tuple[str, str] = ("first", "second")

    def __init__(self, prompt_cfg: Optional[PromptConfig] = None, glyphs: str = "unicode") -> None:
        self.prompt_cfg = prompt_cfg or PromptConfig()
        self.glyphs = glyphs

    # -- state -------------------------------------------------------------
    def initialize_state(self) -> None:
        """Reset to the game's starting position."""
        raise NotImplementedError

    def dump_state(self) -> Dict[str, Any]:
        """Return the JSON-serializable adapter document."""
        raise NotImplementedError

    def load_state(self, doc: Dict[str, Any]) -> None:
        """Restore from dump_state() output; raise ValueError if unusable."""
        raise NotImplementedError

    # -- oracle protocol ---------------------------------------------------
    def build_move_prompt(self, session: "GameSession", player_id: str, move_text: str) -> str:
        raise NotImplementedError

    def parse_move_response(self, session: "GameSession", response: str) -> MoveVerdict:
        """Never raises; malformed replies come back as invalid verdicts."""
        raise NotImplementedError

    def build_generate_prompt(self, session: "GameSession", rejected: List[RejectedAttempt]) -> str:
        raise NotImplementedError

    def parse_generated_response(self, session: "GameSession", response: str) -> GeneratedCandidate:
        """Never raises; a reply without a move token yields a candidate with move_text=None."""
        raise NotImplementedError

    def apply_move(self, session: "GameSession", verdict: MoveVerdict) -> None:
        """Replace the state from an independently validated verdict."""
        raise NotImplementedError

    # -- presentation ------------------------------------------------------
    def render(self, session: "GameSession") -> str:
        raise NotImplementedError

    def looks_like_move(self, text: str) -> bool:
        return False

    def announce(self, verdict: MoveVerdict) -> str:
        return f"I moved: {verdict.normalized_move}"

    def move_label(self, move_text: Optional[str]) -> str:
        return move_text or "?"

    # Utility for children -------------------------------------------------
    def side_of(self, slot: str) -> str:
        return self.sides[0] if slot == "player1" else self.sides[1]

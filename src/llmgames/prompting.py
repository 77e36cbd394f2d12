"""
Prompt templates and config for oracle requests.

Adapters supply values for the placeholders; templates can be overridden per
adapter instance through PromptConfig.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

DEFAULT_VALIDATE_TEMPLATE = """You are a chess expert adjudicating a move in a game in progress.

Current position:
- FEN: {FEN}
- Side to move: {SIDE_TO_MOVE}
- Last move: {LAST_MOVE}

Move history:
{HISTORY}

The player {PLAYER_NAME} ({PLAYER_SIDE}) wants to play:
"{MOVE_TEXT}"

Decide whether this move is legal under the rules of chess. Keep in mind:
- The move may be written in coordinate notation (e2e4), SAN (Nf3) or plain language (e2 to e4).
- Check castling rights, en passant captures and promotions.
- A move may not leave the mover's own king in check.

Reply using exactly this format:

VALIDITY: [true/false]
NORMALIZED_MOVE: [coordinate notation, e.g. "e2e4", or "e7e8q" for a promotion]
REASON: [why it is illegal, or a short description of the move if legal]
CHECK: [true/false]
CHECKMATE: [true/false]
DRAW: [true/false]
CHECK_SQUARE: [square of the king in check, e.g. "e8", or "none"]
CAPTURE: [true/false]
MOVED_PIECE: [type of the piece moved]
RESULTING_STATE: [full FEN of the position after the move]
"""

DEFAULT_GENERATE_TEMPLATE = """You are a chess expert playing a game. You play {SIDE_TO_MOVE}.

Current position:
- FEN: {FEN}
- Side to move: {SIDE_TO_MOVE}
- Opponent's last move: {LAST_MOVE}

Move history:
{HISTORY}
{REJECTED}
Choose your next move. It must be LEGAL under the rules of chess, and a strong move if possible.
Make sure that your move:
- does not leave your king in check
- respects how each piece moves
- does not jump over other pieces (except with a knight)
- does not land on a square occupied by one of your own pieces

Reply using exactly this format:

MOVE: [your move in coordinate notation, e.g. "e2e4", or "e7e8q" for a promotion]
EXPLANATION: [one sentence on why you chose it]
CHECK: [true/false]
CHECKMATE: [true/false]
DRAW: [true/false]
CHECK_SQUARE: [square of the king in check, e.g. "e1", or "none"]
CAPTURE: [true/false]
MOVED_PIECE: [type of the piece moved]
RESULTING_STATE: [full FEN of the position after the move]
"""

REJECTED_HEADER = "\nPREVIOUS REJECTED ATTEMPTS (these moves are ILLEGAL, do NOT repeat them):"
REJECTED_FOOTER = "Make sure you produce a LEGAL move this time."


@dataclass
class PromptConfig:
    """Templates used by an adapter for its two oracle requests."""

    validate_template: str = DEFAULT_VALIDATE_TEMPLATE
    generate_template: str = DEFAULT_GENERATE_TEMPLATE


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered

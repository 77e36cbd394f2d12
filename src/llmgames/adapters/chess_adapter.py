"""
Chess adapter: FEN-backed canonical state, oracle prompts and reply parsing.

- ChessState / encode_fen / decode_fen: lossless FEN round-trip of the position.
- ChessAdapter: builds validation and generation prompts, parses the fixed-label
  replies, and replaces the position from the oracle's validated RESULTING_STATE.

python-chess is used for syntax only (FEN sanity, glyphs); no move is ever
generated or simulated locally.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import chess

from ..prompting import REJECTED_FOOTER, REJECTED_HEADER, render_custom_prompt
from ..renderer import glyph_table, render_board
from ..reply_parser import extract_move_token, parse_bool, parse_fields, parse_square, parse_text
from .base import GameAdapter, GeneratedCandidate, MoveVerdict, RejectedAttempt

if TYPE_CHECKING:  # pragma: no cover
    from ..session import GameSession

log = logging.getLogger("chess_adapter")

EMPTY = " "
PIECES = "KQRBNPkqrbnp"
START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

_COUNTER_RE = re.compile(r"^(0|[1-9][0-9]*)$")
_CASTLING_RE = re.compile(r"^(-|K?Q?k?q?)$")
_EP_RE = re.compile(r"^(-|[a-h][36])$")
_STRUCTURAL_FLAGS = (
    chess.STATUS_NO_WHITE_KING
    | chess.STATUS_NO_BLACK_KING
    | chess.STATUS_TOO_MANY_KINGS
    | chess.STATUS_PAWNS_ON_BACKRANK
)

_MOVE_PATTERNS = [
    re.compile(r"^[a-h][1-8]\s*-?\s*[a-h][1-8](?:=?[qrbn])?$", re.I),
    re.compile(r"\b[a-h][1-8]\s+(?:to|a|hacia)\s+[a-h][1-8]\b", re.I),
    re.compile(r"^[KQRBNP]?[a-h]?[1-8]?x?[a-h][1-8](?:=?[QRBN])?[+#]?$"),
    re.compile(r"^[O0]-[O0](?:-[O0])?[+#]?$", re.I),
]


@dataclass
class CastlingRights:
    white_kingside: bool = True
    white_queenside: bool = True
    black_kingside: bool = True
    black_queenside: bool = True

    def to_fen(self) -> str:
        flags = [(self.white_kingside, "K"), (self.white_queenside, "Q"), (self.black_kingside, "k"), (self.black_queenside, "q")]
        return "".join(ch for on, ch in flags if on) or "-"

    @classmethod
    def from_fen(cls, text: str) -> "CastlingRights":
        return cls("K" in text, "Q" in text, "k" in text, "q" in text)


@dataclass
class ChessState:
    """Canonical chess position. board[0] is rank 8, board[0][0] is a8."""

    board: List[List[str]]
    side_to_move: str = "white"
    castling: CastlingRights = field(default_factory=CastlingRights)
    en_passant: Optional[str] = None
    halfmove_clock: int = 0
    fullmove_number: int = 1
    last_move: Optional[str] = None
    check_square: Optional[str] = None


def encode_fen(state: ChessState) -> str:
    ranks = []
    for row in state.board:
        out = ""
        empty = 0
        for cell in row:
            if cell == EMPTY:
                empty += 1
                continue
            if empty:
                out += str(empty)
                empty = 0
            out += cell
        if empty:
            out += str(empty)
        ranks.append(out)
    return " ".join([
        "/".join(ranks),
        "w" if state.side_to_move == "white" else "b",
        state.castling.to_fen(),
        state.en_passant or "-",
        str(state.halfmove_clock),
        str(state.fullmove_number),
    ])


def decode_fen(fen: str) -> ChessState:
    """Parse a canonical FEN; raises ValueError on anything encode_fen would not produce."""
    parts = (fen or "").split(" ")
    if len(parts) != 6:
        raise ValueError(f"expected 6 FEN fields, got {len(parts)}")
    placement, side, castling, ep, halfmove, fullmove = parts

    rows = placement.split("/")
    if len(rows) != 8:
        raise ValueError(f"expected 8 ranks, got {len(rows)}")
    board: List[List[str]] = []
    for rank_text in rows:
        row: List[str] = []
        prev_digit = False
        for ch in rank_text:
            if ch.isdigit():
                if prev_digit or ch in "09":
                    raise ValueError(f"bad empty-square run in rank '{rank_text}'")
                row.extend([EMPTY] * int(ch))
                prev_digit = True
            elif ch in PIECES:
                row.append(ch)
                prev_digit = False
            else:
                raise ValueError(f"unknown piece '{ch}'")
        if len(row) != 8:
            raise ValueError(f"rank '{rank_text}' has {len(row)} squares")
        board.append(row)

    if side not in ("w", "b"):
        raise ValueError(f"bad side to move '{side}'")
    if not _CASTLING_RE.match(castling) or castling == "":
        raise ValueError(f"bad castling field '{castling}'")
    if not _EP_RE.match(ep):
        raise ValueError(f"bad en passant field '{ep}'")
    if not _COUNTER_RE.match(halfmove) or not _COUNTER_RE.match(fullmove) or fullmove == "0":
        raise ValueError("bad move counters")

    return ChessState(
        board=board,
        side_to_move="white" if side == "w" else "black",
        castling=CastlingRights.from_fen(castling),
        en_passant=None if ep == "-" else ep,
        halfmove_clock=int(halfmove),
        fullmove_number=int(fullmove),
    )


def check_resulting_fen(fen: str) -> ChessState:
    """Decode an oracle-supplied FEN and reject structurally impossible positions."""
    state = decode_fen(fen)
    status = chess.Board(fen).status()
    if status & _STRUCTURAL_FLAGS:
        raise ValueError(f"impossible position ({status!r})")
    return state


def _first_fen_fields(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    tokens = value.split()[:6]
    if not tokens:
        return None
    # replies sometimes end the sentence right after the FEN: "... e3 0 1."
    tokens[-1] = tokens[-1].rstrip(".,;")
    return " ".join(tokens)


def _other_side(side: str) -> str:
    return "black" if side == "white" else "white"


class ChessAdapter(GameAdapter):
    tag = "chess"
    sides = ("white", "black")

    def __init__(self, prompt_cfg=None, glyphs: str = "unicode", perspective: str = "white") -> None:
        super().__init__(prompt_cfg=prompt_cfg, glyphs=glyphs)
        self.perspective = perspective
        self.state = decode_fen(START_FEN)

    # -- state -------------------------------------------------------------
    def initialize_state(self) -> None:
        self.state = decode_fen(START_FEN)

    def fen(self) -> str:
        return encode_fen(self.state)

    def dump_state(self) -> Dict[str, Any]:
        return {
            "fen": encode_fen(self.state),
            "last_move": self.state.last_move,
            "check_square": self.state.check_square,
            "perspective": self.perspective,
        }

    def load_state(self, doc: Dict[str, Any]) -> None:
        if not isinstance(doc, dict) or "fen" not in doc:
            raise ValueError("chess adapter state needs a 'fen' field")
        state = decode_fen(doc["fen"])
        state.last_move = doc.get("last_move")
        state.check_square = doc.get("check_square")
        self.perspective = doc.get("perspective") or "white"
        self.state = state

    # -- prompt helpers ----------------------------------------------------
    def _history_text(self, session: "GameSession") -> str:
        lines = []
        for mv in session.move_history:
            slot = session.slot_of(mv.player_id)
            side = self.side_of(slot).capitalize() if slot else "?"
            lines.append(f"{side}: {mv.normalized_move or mv.raw_text}")
        return "\n".join(lines) or "(none)"

    def _base_values(self, session: "GameSession") -> Dict[str, str]:
        return {
            "FEN": self.fen(),
            "SIDE_TO_MOVE": self.side_of(session.current_turn).capitalize(),
            "LAST_MOVE": self.state.last_move or "none (start of game)",
            "HISTORY": self._history_text(session),
        }

    # -- oracle protocol ---------------------------------------------------
    def build_move_prompt(self, session: "GameSession", player_id: str, move_text: str) -> str:
        slot = session.slot_of(player_id) or session.current_turn
        values = self._base_values(session)
        values.update({
            "PLAYER_NAME": session.player(slot).display_name,
            "PLAYER_SIDE": self.side_of(slot).capitalize(),
            "MOVE_TEXT": move_text.strip(),
        })
        return render_custom_prompt(self.prompt_cfg.validate_template, values)

    def parse_move_response(self, session: "GameSession", response: str) -> MoveVerdict:
        side = self.side_of(session.current_turn)
        fields = parse_fields(response)
        validity = parse_bool(fields.get("VALIDITY"))
        valid = validity is True
        verdict = MoveVerdict(
            valid=valid,
            reason=parse_text(fields.get("REASON")) or ("" if valid else "illegal move"),
            normalized_move=extract_move_token(fields.get("NORMALIZED_MOVE"), side),
            is_check=bool(parse_bool(fields.get("CHECK"))),
            is_checkmate=bool(parse_bool(fields.get("CHECKMATE"))),
            is_draw=bool(parse_bool(fields.get("DRAW"))),
            check_square=parse_square(fields.get("CHECK_SQUARE")),
            is_capture=bool(parse_bool(fields.get("CAPTURE"))),
            moved_piece=parse_text(fields.get("MOVED_PIECE")),
            resulting_state=_first_fen_fields(parse_text(fields.get("RESULTING_STATE"))),
            raw=response,
        )
        if validity is None:
            verdict.protocol_error = True
            verdict.reason = "reply has no readable VALIDITY field"
            return verdict
        if not valid:
            return verdict

        problem = None
        if not verdict.normalized_move:
            problem = "reply asserted validity without a normalized move"
        elif not verdict.resulting_state:
            problem = "reply asserted validity without a resulting state"
        else:
            try:
                check_resulting_fen(verdict.resulting_state)
            except ValueError as e:
                problem = f"resulting state is not a usable FEN ({e})"
        if problem:
            verdict.valid = False
            verdict.protocol_error = True
            verdict.reason = problem
            return verdict
        if verdict.is_checkmate and verdict.is_draw:
            log.warning("Oracle flagged both checkmate and draw for %s; treating as checkmate", verdict.normalized_move)
            verdict.is_draw = False
        return verdict

    def build_generate_prompt(self, session: "GameSession", rejected: List[RejectedAttempt]) -> str:
        values = self._base_values(session)
        if session.move_history:
            values["LAST_MOVE"] = self.move_label(session.move_history[-1].normalized_move or session.move_history[-1].raw_text)
        rejected_text = ""
        if rejected:
            lines = [REJECTED_HEADER]
            for idx, attempt in enumerate(rejected, start=1):
                lines.append(f'- Attempt {idx}: "{attempt.move_text}" - Reason: {attempt.reason}')
            lines.append("")
            lines.append(REJECTED_FOOTER)
            rejected_text = "\n".join(lines) + "\n"
        values["REJECTED"] = rejected_text
        return render_custom_prompt(self.prompt_cfg.generate_template, values)

    def parse_generated_response(self, session: "GameSession", response: str) -> GeneratedCandidate:
        side = self.side_of(session.current_turn)
        fields = parse_fields(response)
        move = extract_move_token(fields.get("MOVE"), side)
        if not move and "MOVE" not in fields:
            # bare move on the first line, e.g. "e7e5\nEXPLANATION: ..."
            lines = [ln for ln in (response or "").strip().splitlines() if ln.strip("` ")]
            first = lines[0] if lines else ""
            if not parse_fields(first):
                move = extract_move_token(first, side)
        return GeneratedCandidate(
            move_text=move,
            explanation=parse_text(fields.get("EXPLANATION")) or "",
            is_check=parse_bool(fields.get("CHECK")),
            is_checkmate=parse_bool(fields.get("CHECKMATE")),
            is_draw=parse_bool(fields.get("DRAW")),
            resulting_state=_first_fen_fields(parse_text(fields.get("RESULTING_STATE"))),
            raw=response or "",
        )

    def apply_move(self, session: "GameSession", verdict: MoveVerdict) -> None:
        new_state = check_resulting_fen(verdict.resulting_state or "")
        expected = _other_side(self.side_of(session.current_turn))
        if new_state.side_to_move != expected:
            log.warning(
                "Oracle resulting state has %s to move after %s; forcing %s",
                new_state.side_to_move, verdict.normalized_move, expected,
            )
            new_state.side_to_move = expected
        new_state.last_move = verdict.normalized_move
        new_state.check_square = verdict.check_square if (verdict.is_check or verdict.is_checkmate) else None
        self.state = new_state

    # -- presentation ------------------------------------------------------
    def looks_like_move(self, text: str) -> bool:
        t = (text or "").strip()
        return any(p.search(t) for p in _MOVE_PATTERNS)

    def announce(self, verdict: MoveVerdict) -> str:
        if verdict.is_checkmate:
            intro = "Checkmate! My final move is:"
        elif verdict.is_check:
            intro = "Check! I moved:"
        elif verdict.is_capture:
            intro = "I captured:"
        else:
            intro = "I moved:"
        return f"{intro} {verdict.normalized_move}"

    def highlights(self) -> List[str]:
        squares: List[str] = []
        lm = self.state.last_move
        if lm and len(lm) >= 4:
            squares.extend([lm[:2], lm[2:4]])
        if self.state.check_square:
            squares.append(self.state.check_square)
        return squares

    def render(self, session: "GameSession") -> str:
        status = ""
        if session.is_finished():
            status = session.end_message()
        elif self.state.check_square:
            status = "Check!"

        if session.is_finished():
            turn = "Game over."
        else:
            slot = session.current_turn
            turn = f"Turn of {session.player(slot).display_name} ({self.side_of(slot).capitalize()})"

        board = render_board(
            self.state.board,
            orientation=self.perspective,
            highlights=self.highlights(),
            glyphs=glyph_table(self.glyphs),
        )
        message = f"{status}\n\n" if status else ""
        message += f"{board}\n{turn}"

        history = session.move_history
        if history:
            start = max(0, len(history) - 5)
            parts = []
            for idx in range(start, len(history)):
                mv = history[idx]
                is_white = session.slot_of(mv.player_id) == "player1"
                parts.append(f"{idx // 2 + 1}{'.' if is_white else '...'} {mv.normalized_move or mv.raw_text}")
            message += f"\n\nRecent moves: {' '.join(parts)}"
        return message

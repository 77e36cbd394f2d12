"""
Tolerant parsing helpers for fixed-label oracle replies.

The oracle is asked to answer with one `LABEL: value` pair per line. Replies
drift: markdown bold, bullets, [brackets], quotes, code fences, missing or
extra fields. Helpers here never raise on bad input; they return None for
anything they cannot read and leave the decision to the caller.
"""
from __future__ import annotations

import re
from typing import Dict, Optional

UCI_RE = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$", re.I)
_UCI_SEARCH_RE = re.compile(r"(?<![a-z0-9])([a-h][1-8])[-\s]?([a-h][1-8])(?:=?([qrbn]))?(?![a-z0-9])", re.I)
_CASTLE_RE = re.compile(r"(?<![a-z0-9-])([o0]-[o0](?:-[o0])?)(?![a-z0-9-])", re.I)
_FIELD_RE = re.compile(r"^[\s>*_`•-]*([A-Za-z][A-Za-z0-9 _-]{0,40}?)[\s*_`]*:\s*(.*)$")
_SQUARE_RE = re.compile(r"^[a-h][1-8]$", re.I)

_TRUE = {"true", "yes", "y", "1", "si", "sí", "verdadero"}
_FALSE = {"false", "no", "n", "0", "falso"}
_NONE = {"", "none", "null", "n/a", "na", "-", "ninguno", "nothing"}
# leading verdict word of an annotated value, e.g. "true (black has no legal moves)"
_BOOL_WORD_RE = re.compile(r"^(true|false|yes|no|s[ií]|verdadero|falso)\b", re.I)


def _strip_code_fence(text: str) -> str:
    """Remove simple ``` fences if present."""
    text = text.strip()
    if text.startswith("```") and text.endswith("```"):
        inner = text.split("\n", 1)
        if len(inner) == 2:
            return inner[1].rsplit("\n", 1)[0].strip()
    return text


def _clean_value(value: str) -> str:
    value = value.strip().strip("*_`").strip()
    if len(value) >= 2 and value[0] == "[" and value[-1] == "]":
        value = value[1:-1].strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1].strip()
    return value


def normalize_label(label: str) -> str:
    return re.sub(r"[\s-]+", "_", label.strip()).upper()


def parse_fields(text: str) -> Dict[str, str]:
    """Return {LABEL: value} for every `LABEL: value` line; the first occurrence of a label wins."""
    fields: Dict[str, str] = {}
    for line in _strip_code_fence(text or "").splitlines():
        m = _FIELD_RE.match(line)
        if not m:
            continue
        label = normalize_label(m.group(1))
        if label not in fields:
            fields[label] = _clean_value(m.group(2))
    return fields


def parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    token = _clean_value(value).lower().rstrip(".")
    if token in _TRUE:
        return True
    if token in _FALSE:
        return False
    m = _BOOL_WORD_RE.match(token)
    if m:
        return m.group(1) in _TRUE
    return None


def parse_square(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    token = _clean_value(value).lower().rstrip(".")
    if token in _NONE or not _SQUARE_RE.match(token):
        return None
    return token


def parse_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    token = _clean_value(value)
    return None if token.lower() in _NONE else token


def extract_move_token(value: Optional[str], side: str = "white") -> Optional[str]:
    """Pull a coordinate move (e2e4, e7e8q) out of free text; castling tokens map to the side's king move."""
    if not value:
        return None
    m = _UCI_SEARCH_RE.search(value)
    if m:
        return (m.group(1) + m.group(2) + (m.group(3) or "")).lower()
    c = _CASTLE_RE.search(value)
    if c:
        rank = "1" if side == "white" else "8"
        long_side = c.group(1).count("-") == 2
        return f"e{rank}c{rank}" if long_side else f"e{rank}g{rank}"
    return None


__all__ = [
    "UCI_RE",
    "parse_fields",
    "parse_bool",
    "parse_square",
    "parse_text",
    "extract_move_token",
    "normalize_label",
]

"""
Fixed-width board rendering for chat clients.

render_board() is pure: it takes a grid (row 0 is the top rank from the first
player's side) and display options, and returns text. Highlighted squares are
bracketed, e.g. [♙].
"""
from __future__ import annotations

import string
from typing import Iterable, Mapping, Optional, Sequence

import chess

UNICODE_GLYPHS: Mapping[str, str] = {**chess.UNICODE_PIECE_SYMBOLS, " ": " "}
ASCII_GLYPHS: Mapping[str, str] = {**{p: p for p in "KQRBNPkqrbnp"}, " ": " "}

GLYPH_TABLES = {
    "unicode": UNICODE_GLYPHS,
    "ascii": ASCII_GLYPHS,
}


def glyph_table(name: str) -> Mapping[str, str]:
    return GLYPH_TABLES.get((name or "unicode").lower(), UNICODE_GLYPHS)


def _border(left: str, mid: str, right: str, cols: int, indent: str) -> str:
    return indent + left + mid.join(["───"] * cols) + right


def render_board(
    grid: Sequence[Sequence[str]],
    orientation: str = "white",
    highlights: Optional[Iterable[str]] = None,
    glyphs: Mapping[str, str] = UNICODE_GLYPHS,
    files: Optional[str] = None,
    fence: bool = True,
) -> str:
    """Render a rectangular grid with file letters above/below and rank numbers on both sides.

    orientation: "white" shows grid row 0 at the top; "black" flips ranks and files.
    highlights: square names (e.g. "e2", "e4") to bracket.
    glyphs: cell value -> display character; unknown values are shown as-is.
    """
    rows = len(grid)
    cols = len(grid[0]) if rows else 0
    if any(len(r) != cols for r in grid):
        raise ValueError("grid must be rectangular")
    files = files or string.ascii_lowercase[:cols]
    if len(files) < cols:
        raise ValueError(f"need {cols} file labels, got {len(files)}")
    marked = {sq.lower() for sq in (highlights or ())}
    flipped = (orientation or "white").lower() == "black"

    row_order = list(range(rows))
    col_order = list(range(cols))
    if flipped:
        row_order.reverse()
        col_order.reverse()

    label_w = len(str(rows))
    indent = " " * (label_w + 1)
    legend = indent + " " + "".join(f" {files[c]}  " for c in col_order).rstrip()

    lines = [legend, _border("┌", "┬", "┐", cols, indent)]
    for i, r in enumerate(row_order):
        rank = str(rows - r)
        cells = []
        for c in col_order:
            value = grid[r][c]
            symbol = glyphs.get(value, value) or " "
            if f"{files[c]}{rank}" in marked:
                cells.append(f"[{symbol}]")
            else:
                cells.append(f" {symbol} ")
        lines.append(f"{rank.rjust(label_w)} │" + "│".join(cells) + f"│ {rank}")
        if i < rows - 1:
            lines.append(_border("├", "┼", "┤", cols, indent))
    lines.append(_border("└", "┴", "┘", cols, indent))
    lines.append(legend)

    text = "\n".join(lines)
    return f"```\n{text}\n```" if fence else text

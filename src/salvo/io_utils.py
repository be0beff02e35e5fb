# io_utils.py
"""
Text rendering helpers shared by the console front end
–––––––––––––––––––––––––––––––––––––––––––––––––––––––
• grid_rows()      – Board → [". . S X …", …] (ships optionally revealed)
• two_grid_lines() – two boards side by side with headers and A–J / 1–10 labels
"""

from typing import List
import logging

from .battleship import Board, Cell

logger = logging.getLogger("salvo.io_utils")

WATER = "."
SHIP = "S"
MISS = "o"
HIT = "X"
SUNK = "#"


def cell_symbol(cell: Cell, *, reveal: bool = False) -> str:
    if cell.is_sunk:
        return SUNK
    if cell.is_shot:
        return HIT if cell.has_ship else MISS
    if reveal and cell.has_ship:
        return SHIP
    return WATER


def grid_rows(board: Board, *, reveal: bool = False) -> List[str]:
    logger.debug("grid_rows() start – reveal=%s", reveal)
    rows: list[str] = []
    for r in range(board.size):
        rows.append(" ".join(cell_symbol(board.grid[r][c], reveal=reveal) for c in range(board.size)))
    return rows


def two_grid_lines(
    left_rows: List[str],
    right_rows: List[str],
    *,
    header_left: str,
    header_right: str,
) -> List[str]:
    """Lay out two square boards side-by-side with custom headers."""
    if not left_rows or not right_rows:
        return []

    columns = len(left_rows[0].split())
    numeric_header = "   " + " ".join(f"{i:>2}" for i in range(1, columns + 1))
    board_width = len(numeric_header)

    lines = [
        f"{f'[{header_left}]'.center(board_width)}   {f'[{header_right}]'.center(board_width)}",
        f"{numeric_header}   {numeric_header}",
    ]
    for idx in range(len(left_rows)):
        label = chr(ord("A") + idx)
        left = " ".join(f"{c:>2}" for c in left_rows[idx].split())
        right = " ".join(f"{c:>2}" for c in right_rows[idx].split())
        lines.append(f"{label:2} {left}   {label:2} {right}")
    return lines

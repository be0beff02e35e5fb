import re

from .battleship import Position

# Regex for valid coordinates A1–J10
COORD_RE = re.compile(r"^[A-J](10|[1-9])$")


def coord_to_position(coord: str) -> Position:
    """
    Convert a coordinate like 'A1' through 'J10' to a zero-based Position.
    """
    coord = coord.strip().upper()
    if not COORD_RE.match(coord):
        raise ValueError(f"Invalid coordinate: {coord!r}")
    row = ord(coord[0]) - ord("A")
    col = int(coord[1:]) - 1
    return Position(row, col)


def format_coord(position: Position) -> str:
    """
    Convert a zero-based Position to a coordinate string like 'A1'.
    """
    return f"{chr(ord('A') + position.row)}{position.col + 1}"

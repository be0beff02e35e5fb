from dataclasses import dataclass
from typing import Optional, Union

from .battleship import Position
from .coord_utils import COORD_RE, coord_to_position


class CommandParseError(Exception):
    """Raised when a line cannot be parsed as a valid command."""


@dataclass(frozen=True)
class PlaceCommand:
    position: Position
    horizontal: Optional[bool] = None  # None -> keep the current orientation


@dataclass(frozen=True)
class FireCommand:
    position: Position


@dataclass(frozen=True)
class SimpleCommand:
    verb: str  # ROTATE | AUTO | START | SHOW | NEW | QUIT


Command = Union[PlaceCommand, FireCommand, SimpleCommand]

SIMPLE_VERBS = {"ROTATE", "AUTO", "START", "SHOW", "NEW", "QUIT"}


def _parse_coord(arg: str) -> Position:
    coord = arg.strip().upper()
    if not COORD_RE.match(coord):
        raise CommandParseError(f"Invalid coordinate: {coord}")
    return coord_to_position(coord)


def parse_command(line: str) -> Command:
    if line is None:
        raise CommandParseError("No command to parse")
    raw = line.strip()
    if not raw:
        raise CommandParseError("Empty command")
    parts = raw.split()
    verb = parts[0].upper()
    if verb == "FIRE":
        if len(parts) != 2:
            raise CommandParseError("FIRE requires a coordinate")
        return FireCommand(_parse_coord(parts[1]))
    elif verb == "PLACE":
        if len(parts) not in (2, 3):
            raise CommandParseError("Syntax: PLACE <coord> [H|V]")
        horizontal = None
        if len(parts) == 3:
            orient = parts[2].upper()
            if orient not in ("H", "V"):
                raise CommandParseError("Orientation must be H or V")
            horizontal = orient == "H"
        return PlaceCommand(_parse_coord(parts[1]), horizontal)
    elif verb in SIMPLE_VERBS and len(parts) == 1:
        return SimpleCommand(verb)
    else:
        raise CommandParseError(f"Unknown command: {raw}")

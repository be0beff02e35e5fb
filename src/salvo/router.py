"""Translate GameSession events into console messages.

All player-facing wording for shots, placement and turn changes is kept here;
GameSession itself only emits structured Event objects.
"""

from __future__ import annotations

import logging
from typing import Callable

from .battleship import Position, ShotResult
from .coord_utils import format_coord
from .events import Category, Event
from .state import Winner

logger = logging.getLogger(__name__)

_RESULT_TEXT = {
    ShotResult.HIT: "HIT",
    ShotResult.MISS: "MISS",
    ShotResult.SUNK: "SUNK",
    ShotResult.ALREADY_SHOT: "ALREADY SHOT",
}


class EventRouter:
    """Session subscriber that converts `Event` → one line of text per event."""

    def __init__(self, write: Callable[[str], None]) -> None:
        self._write = write

    # ------------------------------------------------------------------
    # Public dispatch entry
    # ------------------------------------------------------------------
    def __call__(self, ev: Event) -> None:  # GameSession calls router(event)
        try:
            self.dispatch(ev)
        except Exception:  # noqa: BLE001
            logger.exception("Event routing failed for %s", ev)

    # ------------------------------------------------------------------
    # Internal dispatch
    # ------------------------------------------------------------------
    def dispatch(self, ev: Event) -> None:
        cat = ev.category
        if cat is Category.TURN:
            self._handle_turn(ev)
        elif cat is Category.PLACEMENT:
            self._handle_placement(ev)
        elif cat is Category.SYSTEM:
            self._handle_system(ev)
        else:  # pragma: no cover – unknown category
            logger.debug("Ignoring event %s", ev)

    # ------------------------------------------------------------------
    # Category handlers
    # ------------------------------------------------------------------
    def _handle_turn(self, ev: Event) -> None:
        t = ev.type
        p = ev.payload
        if t == "shot":
            coord = format_coord(Position(p["row"], p["col"]))
            who = "COMPUTER" if p["computer"] else "YOU"
            self._write(f"{who} fired at {coord}: {_RESULT_TEXT[p['result']]}")
        elif t == "start":
            self._write(f"INFO Game started – {p['ships']} ships each")
        elif t == "turn":
            self._write("INFO YOUR TURN – FIRE <coord>" if p["player_turn"] else "INFO Computer is thinking…")
        elif t == "end":
            self._write("YOU HAVE WON" if p["winner"] is Winner.PLAYER else "YOU HAVE LOST")
        else:
            logger.debug("Unhandled TURN event: %s", ev)

    def _handle_placement(self, ev: Event) -> None:
        p = ev.payload
        if ev.type == "placed":
            coord = format_coord(Position(p["row"], p["col"]))
            self._write(f"INFO {p['ship']} placed at {coord} {'H' if p['horizontal'] else 'V'}")
        elif ev.type == "rejected":
            self._write(f"ERR Cannot place {p['ship']} there – overlap / out-of-bounds")
        elif ev.type == "auto":
            self._write("INFO Fleet placed automatically")

    def _handle_system(self, ev: Event) -> None:
        if ev.type == "reset":
            self._write("INFO New game – place your ships")
        elif ev.type == "loaded":
            self._write(f"INFO Saved game restored ({ev.payload['phase'].lower().replace('_', ' ')})")

"""Lightweight event model used by GameSession to decouple game logic from presentation.

The goal is to emit strongly-typed events that a front end can translate into
redraws and other subscribers (e.g. logging) can consume without polling the
session or parsing free-text strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Dict


class Category(Enum):
    """High-level event categories."""

    PLACEMENT = auto()  # ship placed / rejected before the match
    TURN = auto()  # per-turn lifecycle (start, shot, turn change, end)
    SYSTEM = auto()  # reset, load


@dataclass(slots=True)
class Event:
    """Immutable event emitted by GameSession."""

    category: Category
    type: str  # finer-grained identifier, e.g. "shot", "turn", "end"
    payload: Dict[str, Any]


Subscriber = Callable[[Event], None]

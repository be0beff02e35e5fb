"""
Ship placement for both sides.

Human path:
    ctl = PlacementController(board, fleet)
    ok = ctl.place_current_ship(Position(2, 3))   # False -> prompt again

Computer path:
    place_fleet_randomly(board, fleet, rng=rng)

Random placement draws a uniform anchor and orientation for each ship. If a
ship exhausts its attempt budget (earlier hulls can fragment the free space),
the board is cleared and the whole fleet is placed again from scratch.
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional, Sequence

from . import config as _cfg
from .battleship import FLEET_CELLS, Board, Position, Ship

logger = logging.getLogger(__name__)


class PlacementExhaustedError(RuntimeError):
    """Raised when random fleet placement hits the global restart cap."""


class PlacementController:
    """Walks a human through placing *fleet* on *board* one ship at a time."""

    def __init__(self, board: Board, fleet: Sequence[Ship], *, horizontal: bool = True) -> None:
        self.board = board
        self.fleet = list(fleet)
        self.horizontal = horizontal

    @property
    def current_index(self) -> int:
        """Index of the first unplaced ship (== total_ships once done)."""
        for idx, ship in enumerate(self.fleet):
            if not ship.placed:
                return idx
        return len(self.fleet)

    @property
    def total_ships(self) -> int:
        return len(self.fleet)

    @property
    def current_ship(self) -> Optional[Ship]:
        idx = self.current_index
        return self.fleet[idx] if idx < len(self.fleet) else None

    @property
    def all_ships_placed(self) -> bool:
        return all(ship.placed for ship in self.fleet)

    def toggle_orientation(self) -> bool:
        self.horizontal = not self.horizontal
        return self.horizontal

    def place_current_ship(self, position: Position) -> bool:
        ship = self.current_ship
        if ship is None:
            return False
        return self.board.place_ship(ship, position, self.horizontal)

    def place_ship(self, ship: Ship, position: Position, horizontal: bool) -> bool:
        """Place a specific ship of this fleet; foreign ships are rejected."""
        if not any(s is ship for s in self.fleet):
            return False
        return self.board.place_ship(ship, position, horizontal)


def _try_place(board: Board, ship: Ship, rng: random.Random, attempts: int) -> bool:
    for _ in range(attempts):
        anchor = Position(rng.randrange(board.size), rng.randrange(board.size))
        horizontal = rng.random() < 0.5
        if board.can_place(ship.size, anchor, horizontal):
            return board.place_ship(ship, anchor, horizontal)
    return False


def place_fleet_randomly(
    board: Board,
    fleet: Sequence[Ship],
    *,
    rng: Optional[random.Random] = None,
    attempts: int | None = None,
    max_restarts: int | None = None,
) -> int:
    """Randomly position every ship of *fleet* on an emptied *board*.

    Returns the number of full restarts that were needed. Raises
    PlacementExhaustedError if *max_restarts* is reached.
    """
    rng = rng or random.Random()
    attempts = _cfg.PLACEMENT_ATTEMPTS if attempts is None else attempts
    max_restarts = _cfg.PLACEMENT_RESTARTS if max_restarts is None else max_restarts
    expected_cells = sum(ship.size for ship in fleet)

    for restart in range(max_restarts + 1):
        board.clear()
        for ship in fleet:
            ship.reset()
        if all(_try_place(board, ship, rng, attempts) for ship in fleet) and fleet_is_valid(
            board, fleet, expected_cells
        ):
            if restart:
                logger.debug("Fleet placed after %d restart(s)", restart)
            return restart
        logger.debug("Placement stalled on attempt %d – restarting from an empty board", restart + 1)

    board.clear()
    raise PlacementExhaustedError(f"Could not place {len(fleet)} ships after {max_restarts} restarts")


def fleet_is_valid(board: Board, fleet: Sequence[Ship], expected_cells: int = FLEET_CELLS) -> bool:
    """Check the post-placement invariant: every ship placed, cells disjoint, cell count exact."""
    if len(board.ships) != len(fleet) or not all(ship.placed for ship in fleet):
        return False
    occupied: List[Position] = board.occupied_positions()
    return len(occupied) == expected_cells and len(set(occupied)) == expected_cells

"""
battleship.py

Core data structures for the naval combat game:
 - Position, an immutable (row, col) board address
 - ShipType / Ship, the four fixed ship classes and their hit bookkeeping
 - Cell, the per-square state owned by a Board
 - Board, which validates placements, resolves shots and reports defeat
 - build_fleet(), the standard ten-ship roster for one side
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from .config import BOARD_SIZE


@dataclass(frozen=True, order=True)
class Position:
    """Zero-based (row, col) address; hashable so it can key sets and dicts."""

    row: int
    col: int

    def in_bounds(self, size: int = BOARD_SIZE) -> bool:
        return 0 <= self.row < size and 0 <= self.col < size

    def __str__(self) -> str:
        return f"({self.row}, {self.col})"


class ShotResult(enum.Enum):
    """Outcome of Board.receive_shot()."""

    HIT = "hit"
    MISS = "miss"
    SUNK = "sunk"
    ALREADY_SHOT = "already_shot"


class ShipType(enum.Enum):
    """The four ship classes; the value is the hull length."""

    AIRCRAFT_CARRIER = 4
    SUBMARINE = 3
    DESTROYER = 2
    FRIGATE = 1

    @property
    def size(self) -> int:
        return self.value

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").capitalize()


# Standard roster: one carrier, two submarines, three destroyers, four frigates.
FLEET_COMPOSITION = (
    (ShipType.AIRCRAFT_CARRIER, 1),
    (ShipType.SUBMARINE, 2),
    (ShipType.DESTROYER, 3),
    (ShipType.FRIGATE, 4),
)

FLEET_SIZE = sum(count for _, count in FLEET_COMPOSITION)  # 10
FLEET_CELLS = sum(kind.size * count for kind, count in FLEET_COMPOSITION)  # 20


class ShipStateError(RuntimeError):
    """Raised when a ship is asked to take a hit after it has already sunk."""


@dataclass(eq=False)
class Ship:
    """A single hull. Identity matters: boards reference ships by object."""

    kind: ShipType
    hit_count: int = 0
    placed: bool = False
    positions: List[Position] = field(default_factory=list)

    @property
    def size(self) -> int:
        return self.kind.size

    @property
    def name(self) -> str:
        return self.kind.label

    @property
    def is_sunk(self) -> bool:
        return self.hit_count >= self.size

    def hit(self) -> bool:
        """Register one hit. Returns True if this hit sank the ship."""
        if self.is_sunk:
            raise ShipStateError(f"{self.name} is already sunk ({self.hit_count}/{self.size})")
        self.hit_count += 1
        return self.is_sunk

    def reset(self) -> None:
        """Return the ship to its unplaced, undamaged state."""
        self.hit_count = 0
        self.placed = False
        self.positions = []


def build_fleet() -> List[Ship]:
    """Return a fresh, unplaced ten-ship fleet, largest hull first."""
    return [Ship(kind) for kind, count in FLEET_COMPOSITION for _ in range(count)]


def ship_positions(anchor: Position, size: int, horizontal: bool) -> List[Position]:
    """Cells covered by a hull of *size* starting at *anchor*.

    Horizontal ships extend along the columns, vertical ones along the rows.
    No bounds checking is done here.
    """
    if horizontal:
        return [Position(anchor.row, anchor.col + i) for i in range(size)]
    return [Position(anchor.row + i, anchor.col) for i in range(size)]


@dataclass
class Cell:
    has_ship: bool = False
    is_shot: bool = False
    is_sunk: bool = False
    ship: Optional[Ship] = None

    def reset(self) -> None:
        self.has_ship = False
        self.is_shot = False
        self.is_sunk = False
        self.ship = None


class Board:
    """
    Represents one side's square grid and the ships placed on it.

    We store:
      - self.grid: size x size matrix of Cell objects, owned exclusively by this board
      - self.ships: ships successfully placed, in placement order

    Every ship in self.ships is marked placed and each of its positions maps to
    a cell whose ``ship`` attribute points back at it.
    """

    def __init__(self, size: int = BOARD_SIZE):
        self.size = size
        self.grid: List[List[Cell]] = [[Cell() for _ in range(size)] for _ in range(size)]
        self.ships: List[Ship] = []

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #
    def get_cell(self, position: Position) -> Cell:
        """Return the cell at *position*; out-of-range positions raise IndexError."""
        if not position.in_bounds(self.size):
            raise IndexError(f"Position {position} outside {self.size}x{self.size} board")
        return self.grid[position.row][position.col]

    def positions(self) -> Iterator[Position]:
        for r in range(self.size):
            for c in range(self.size):
                yield Position(r, c)

    def occupied_positions(self) -> List[Position]:
        return [pos for ship in self.ships for pos in ship.positions]

    # ------------------------------------------------------------------ #
    # Placement
    # ------------------------------------------------------------------ #
    def can_place(self, size: int, anchor: Position, horizontal: bool) -> bool:
        """Return True if a hull of *size* fits at *anchor* without overlap.

        Ships may touch each other; only sharing a square is forbidden.
        """
        for pos in ship_positions(anchor, size, horizontal):
            if not pos.in_bounds(self.size):
                return False
            if self.grid[pos.row][pos.col].has_ship:
                return False
        return True

    def place_ship(self, ship: Ship, anchor: Position, horizontal: bool) -> bool:
        """Place *ship* at *anchor*; returns False and leaves the board untouched if invalid."""
        if ship.placed or not self.can_place(ship.size, anchor, horizontal):
            return False
        occupied = ship_positions(anchor, ship.size, horizontal)
        for pos in occupied:
            cell = self.grid[pos.row][pos.col]
            cell.has_ship = True
            cell.ship = ship
        ship.positions = occupied
        ship.placed = True
        self.ships.append(ship)
        return True

    def clear(self) -> None:
        """Wipe every cell and forget all ships (which become unplaced again)."""
        for row in self.grid:
            for cell in row:
                cell.reset()
        for ship in self.ships:
            ship.reset()
        self.ships = []

    # ------------------------------------------------------------------ #
    # Shots
    # ------------------------------------------------------------------ #
    def receive_shot(self, position: Position) -> ShotResult:
        """Resolve a shot at *position*. Repeat shots return ALREADY_SHOT and change nothing."""
        cell = self.get_cell(position)
        if cell.is_shot:
            return ShotResult.ALREADY_SHOT
        cell.is_shot = True
        if not cell.has_ship:
            return ShotResult.MISS

        ship = cell.ship
        if ship is None:
            raise ShipStateError(f"Cell {position} is marked occupied but has no ship")
        if ship.hit():
            for pos in ship.positions:
                self.grid[pos.row][pos.col].is_sunk = True
            return ShotResult.SUNK
        return ShotResult.HIT

    def all_ships_sunk(self) -> bool:
        """Return True if every placed ship has sunk (vacuously True on an empty board)."""
        return all(ship.is_sunk for ship in self.ships)

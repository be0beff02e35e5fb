"""Game-wide state: the two players, their boards and the turn/winner flags.

A computer player is an ordinary Player with a targeting strategy attached;
"is this the AI" is answered by ``player.targeting is not None``.
"""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass, field
from typing import List, Optional

from . import config as _cfg
from .battleship import Board, Ship, build_fleet
from .targeting import TargetingStrategy


class Winner(enum.Enum):
    NONE = "none"
    PLAYER = "player"
    COMPUTER = "computer"


class Phase(enum.Enum):
    NOT_STARTED = "not_started"
    PLAYER_TURN = "player_turn"
    COMPUTER_TURN = "computer_turn"
    OVER = "over"


@dataclass
class Player:
    name: str
    ships: List[Ship] = field(default_factory=build_fleet)
    score: int = 0
    ships_sunk: int = 0
    shots_fired: int = 0
    targeting: Optional[TargetingStrategy] = None

    @property
    def is_computer(self) -> bool:
        return self.targeting is not None


@dataclass
class GameState:
    """Everything a snapshot must capture.

    ``player_board`` holds the human's fleet (the computer shoots at it);
    ``computer_board`` holds the computer's fleet (the human shoots at it).
    """

    player_board: Board
    computer_board: Board
    player: Player
    computer: Player
    is_player_turn: bool = True
    game_started: bool = False
    game_over: bool = False
    winner: Winner = Winner.NONE
    horizontal: bool = True

    @property
    def phase(self) -> Phase:
        if self.game_over:
            return Phase.OVER
        if not self.game_started:
            return Phase.NOT_STARTED
        return Phase.PLAYER_TURN if self.is_player_turn else Phase.COMPUTER_TURN


def new_game_state(*, rng: Optional[random.Random] = None) -> GameState:
    """Fresh state: empty boards, unplaced fleets, human to move once started."""
    return GameState(
        player_board=Board(),
        computer_board=Board(),
        player=Player(_cfg.PLAYER_NAME),
        computer=Player(_cfg.COMPUTER_NAME, targeting=TargetingStrategy(rng=rng)),
    )

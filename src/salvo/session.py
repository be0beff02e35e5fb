"""Human-vs-computer game session: turn sequencing, win detection and the computer's moves.

Lifecycle
---------
NOT_STARTED   ships are placed with place_ship() / place_current_ship()
PLAYER_TURN   fire() resolves a shot on the computer's board
COMPUTER_TURN the computer fires after a fixed thinking delay on a timer thread
OVER          terminal; the winner is recorded exactly once

Rules
-----
• A HIT or SUNK keeps the turn with the side that fired; a MISS hands it over.
• Shots that are out of bounds or repeat a square raise InvalidShotError and
  change nothing, so no turn is consumed.
• Every state change happens under one re-entrant lock, so readers never see a
  half-resolved turn, and the player cannot fire while the computer's move is
  pending.
• reset_game() / load() bump a generation counter; a computer move scheduled
  for an older generation finds the counter changed and does nothing.
"""

from __future__ import annotations

import contextlib
import copy
import logging
import random
import threading
from typing import Iterable, Iterator, Optional

from . import config as _cfg
from .battleship import Board, Position, Ship, ShotResult
from .events import Category, Event, Subscriber
from .persistence import SaveWorker, snapshot_to_dict
from .placement import PlacementController, fleet_is_valid, place_fleet_randomly
from .state import GameState, Phase, Player, Winner, new_game_state

logger = logging.getLogger(__name__)


class GameError(Exception):
    """Base for rule violations reported back to the caller."""


class InvalidShotError(GameError):
    """Shot outside the board or at a square that was already fired at."""


class GameStateError(GameError):
    """Action not allowed in the current phase (not started, not your turn, game over…)."""


class GameSession:
    """Owns one GameState and every operation that mutates it."""

    def __init__(
        self,
        state: GameState | None = None,
        *,
        saver: SaveWorker | None = None,
        subscribers: Iterable[Subscriber] = (),
        think_delay: float | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._rng = rng or random.Random()
        self._saver = saver
        self._subs: list[Subscriber] = list(subscribers)
        self.think_delay = _cfg.THINK_DELAY if think_delay is None else think_delay

        # Bumped whenever the state is replaced; stale computer moves compare against it.
        self._generation = 0
        self._timer: threading.Timer | None = None
        # Set while no computer move is pending or running.
        self._idle = threading.Event()
        self._idle.set()

        self.state = state or new_game_state(rng=self._rng)
        self.placement = PlacementController(
            self.state.player_board, self.state.player.ships, horizontal=self.state.horizontal
        )

    # -------------------- read access --------------------
    @contextlib.contextmanager
    def locked(self) -> Iterator[GameState]:
        """Hold the session lock while reading the live state (e.g. for rendering)."""
        with self._lock:
            yield self.state

    def snapshot(self) -> GameState:
        """Deep copy of the current state, taken atomically."""
        with self._lock:
            return copy.deepcopy(self.state)

    @property
    def phase(self) -> Phase:
        with self._lock:
            return self.state.phase

    @property
    def winner(self) -> Winner:
        with self._lock:
            return self.state.winner

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no computer move is pending; returns False on timeout."""
        return self._idle.wait(timeout)

    # -------------------- event bus --------------------
    def subscribe(self, cb: Subscriber) -> None:
        """Allow external components (front end / logger) to receive game events."""
        with self._lock:
            self._subs.append(cb)

    def _emit(self, ev: Event) -> None:
        for cb in tuple(self._subs):
            try:
                cb(ev)
            except Exception:
                # A broken subscriber must not corrupt the turn being resolved
                logger.exception("Event subscriber failed for %s/%s", ev.category.name, ev.type)

    # -------------------- placement --------------------
    def place_ship(self, ship: Ship, position: Position, horizontal: bool) -> bool:
        with self._lock:
            if self.state.game_started:
                logger.debug("Placement refused – game already started")
                return False
            ok = self.placement.place_ship(ship, position, horizontal)
            self._emit_placement(ship, position, horizontal, ok)
            return ok

    def place_current_ship(self, position: Position) -> bool:
        with self._lock:
            ship = self.placement.current_ship
            if self.state.game_started or ship is None:
                return False
            ok = self.placement.place_current_ship(position)
            self._emit_placement(ship, position, self.placement.horizontal, ok)
            return ok

    def toggle_orientation(self) -> bool:
        with self._lock:
            self.state.horizontal = self.placement.toggle_orientation()
            return self.state.horizontal

    def place_ships_randomly(self) -> None:
        """Lay out the human fleet automatically (before the game starts)."""
        with self._lock:
            if self.state.game_started:
                raise GameStateError("Ships cannot be moved once the game has started")
            place_fleet_randomly(self.state.player_board, self.state.player.ships, rng=self._rng)
            self._emit(Event(Category.PLACEMENT, "auto", {"ships": len(self.state.player_board.ships)}))

    def _emit_placement(self, ship: Ship, position: Position, horizontal: bool, ok: bool) -> None:
        payload = {"ship": ship.name, "row": position.row, "col": position.col, "horizontal": horizontal}
        self._emit(Event(Category.PLACEMENT, "placed" if ok else "rejected", payload))

    # -------------------- lifecycle --------------------
    def start_game(self) -> None:
        """Place the computer fleet and hand the first shot to the human."""
        with self._lock:
            st = self.state
            if st.game_started:
                raise GameStateError("Game already started")
            if not self.placement.all_ships_placed:
                raise GameStateError(
                    f"Place all ships first ({self.placement.current_index}/{self.placement.total_ships} placed)"
                )

            for attempt in range(1, _cfg.PLACEMENT_RESTARTS + 1):
                place_fleet_randomly(st.computer_board, st.computer.ships, rng=self._rng)
                if fleet_is_valid(st.computer_board, st.computer.ships):
                    break
                logger.warning("Computer fleet failed validation on attempt %d – placing again", attempt)
            else:
                raise RuntimeError("Computer fleet could not be placed")

            if st.computer.targeting is not None:
                st.computer.targeting.reset()
            st.game_started = True
            st.game_over = False
            st.winner = Winner.NONE
            st.is_player_turn = True
            logger.info("Game started – %d ships per side", len(st.computer_board.ships))
            self._emit(Event(Category.TURN, "start", {"ships": len(st.computer_board.ships)}))
            self._emit(Event(Category.TURN, "turn", {"player_turn": True}))
            self._request_save()

    def reset_game(self) -> None:
        """Abandon the current match (including any pending computer move) and start over."""
        with self._lock:
            self._replace_state(new_game_state(rng=self._rng))
            logger.info("Game reset")
            self._emit(Event(Category.SYSTEM, "reset", {}))
            self._request_save()

    def load(self, state: GameState) -> None:
        """Adopt a restored snapshot and resume a pending computer run if there was one."""
        with self._lock:
            self._replace_state(state)
            logger.info("Game loaded – phase=%s", state.phase.name)
            self._emit(Event(Category.SYSTEM, "loaded", {"phase": state.phase.name}))
            if state.phase is Phase.COMPUTER_TURN:
                self._schedule_computer_move()

    def shutdown(self) -> None:
        """Cancel pending work, write a final snapshot and stop the save worker."""
        with self._lock:
            self._cancel_pending()
            self._request_save()
        if self._saver is not None:
            self._saver.close()

    def _replace_state(self, state: GameState) -> None:
        self._cancel_pending()
        self.state = state
        self.placement = PlacementController(state.player_board, state.player.ships, horizontal=state.horizontal)

    def _cancel_pending(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._idle.set()

    # -------------------- shots --------------------
    def fire(self, position: Position) -> ShotResult:
        """Human shot at the computer's board."""
        with self._lock:
            st = self.state
            phase = st.phase
            if phase is Phase.NOT_STARTED:
                raise GameStateError("Game has not started")
            if phase is Phase.OVER:
                raise GameStateError("Game is over")
            if phase is Phase.COMPUTER_TURN:
                raise GameStateError("Not your turn – wait for the computer")
            if not position.in_bounds(st.computer_board.size):
                raise InvalidShotError(f"Position {position} is off the board")
            if st.computer_board.get_cell(position).is_shot:
                raise InvalidShotError(f"Already fired at {position}")

            result = self._resolve(st.player, st.computer_board, position)
            if result is ShotResult.MISS and not st.game_over:
                st.is_player_turn = False
                logger.info("Player missed at %s – computer's turn", position)
                self._emit(Event(Category.TURN, "turn", {"player_turn": False}))
                self._schedule_computer_move()
            self._request_save()
            return result

    def _resolve(self, attacker: Player, board: Board, position: Position) -> ShotResult:
        """Apply one validated shot and update the attacker's score and counters."""
        result = board.receive_shot(position)
        attacker.shots_fired += 1
        if result in (ShotResult.HIT, ShotResult.SUNK):
            attacker.score += _cfg.HIT_SCORE
        logger.debug("%s fired at %s → %s", attacker.name, position, result.name)
        self._emit(
            Event(
                Category.TURN,
                "shot",
                {
                    "attacker": attacker.name,
                    "computer": attacker.is_computer,
                    "row": position.row,
                    "col": position.col,
                    "result": result,
                },
            )
        )
        if result is ShotResult.SUNK:
            attacker.ships_sunk += 1
            self._check_game_over()
        return result

    def _check_game_over(self) -> None:
        st = self.state
        if st.game_over:
            return
        player_lost = st.player_board.all_ships_sunk()
        computer_lost = st.computer_board.all_ships_sunk()
        if not (player_lost or computer_lost):
            return
        st.game_over = True
        st.winner = Winner.COMPUTER if player_lost else Winner.PLAYER
        self._cancel_pending()
        logger.info("Game over – %s wins", st.winner.name)
        self._emit(Event(Category.TURN, "end", {"winner": st.winner}))

    # -------------------- computer turn --------------------
    def _schedule_computer_move(self) -> None:
        self._idle.clear()
        timer = threading.Timer(self.think_delay, self._computer_move, args=(self._generation,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _computer_move(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug("Dropping stale computer move (generation %d)", generation)
                return
            self._timer = None
            st = self.state
            if st.phase is not Phase.COMPUTER_TURN:
                self._idle.set()
                return
            try:
                position = self._pick_target(st)
                result = self._resolve(st.computer, st.player_board, position)
                if result is ShotResult.MISS:
                    st.is_player_turn = True
                    logger.info("Computer missed at %s – player's turn", position)
                    self._emit(Event(Category.TURN, "turn", {"player_turn": True}))
                elif not st.game_over:
                    self._schedule_computer_move()
                self._request_save()
            except Exception:
                logger.exception("Computer move failed – returning the turn to the player")
                self._cancel_pending()
                st.is_player_turn = True
                self._emit(Event(Category.TURN, "turn", {"player_turn": True}))
                self._request_save()
                return
            if self._timer is None:
                self._idle.set()

    def _pick_target(self, st: GameState) -> Position:
        targeting = st.computer.targeting
        if targeting is None:
            raise GameStateError("Computer player has no targeting strategy")
        # Stale pool entries plus one refill bound the number of draws
        for _ in range(2 * st.player_board.size ** 2 + 1):
            position = targeting.generate_shot()
            if not st.player_board.get_cell(position).is_shot:
                return position
        raise GameStateError("No untried squares left on the player's board")

    # -------------------- persistence --------------------
    def _request_save(self) -> None:
        if self._saver is None:
            return
        self._saver.submit(snapshot_to_dict(self.state))

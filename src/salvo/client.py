"""Console front end and process entry point.

Loads the previous game on start (unless --new), runs a line-based command
loop on stdin and writes a final snapshot on exit.
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
from pathlib import Path
from typing import Callable, Optional, TextIO

from . import config as _cfg
from .commands import CommandParseError, FireCommand, PlaceCommand, SimpleCommand, parse_command
from .io_utils import grid_rows, two_grid_lines
from .persistence import SaveWorker, SnapshotError, load_game
from .router import EventRouter
from .session import GameError, GameSession
from .state import Phase

logger = logging.getLogger(__name__)

HELP = "Commands: PLACE <coord> [H|V] | ROTATE | AUTO | START | FIRE <coord> | SHOW | NEW | QUIT"


def render(session: GameSession, write: Callable[[str], None]) -> None:
    with session.locked() as st:
        lines = two_grid_lines(
            grid_rows(st.player_board, reveal=True),
            grid_rows(st.computer_board),
            header_left=f"{st.player.name} {st.player.score}",
            header_right=f"{st.computer.name} {st.computer.score}",
        )
    write("\n".join(lines))


def _prompt_next(session: GameSession, write: Callable[[str], None]) -> None:
    phase = session.phase
    if phase is Phase.NOT_STARTED:
        ship = session.placement.current_ship
        if ship is None:
            write("INFO All ships placed – START when ready")
        else:
            orient = "H" if session.placement.horizontal else "V"
            write(f"INFO Place {ship.name} (size {ship.size}, {orient}) – PLACE <coord> [H|V]")
    elif phase is Phase.PLAYER_TURN:
        write("INFO YOUR TURN – FIRE <coord>")
    elif phase is Phase.OVER:
        write("INFO Game over – NEW to play again or QUIT")


def run_console(session: GameSession, reader: TextIO, write: Callable[[str], None]) -> None:
    """Blocking command loop; returns on QUIT or end of input."""
    write(HELP)
    render(session, write)
    _prompt_next(session, write)
    for line in reader:
        if not line.strip():
            continue
        try:
            cmd = parse_command(line)
        except CommandParseError as e:
            write(f"ERR {e}")
            continue

        try:
            if isinstance(cmd, PlaceCommand):
                if cmd.horizontal is not None and cmd.horizontal != session.placement.horizontal:
                    session.toggle_orientation()
                session.place_current_ship(cmd.position)
            elif isinstance(cmd, FireCommand):
                session.fire(cmd.position)
                # Let the computer finish its run before redrawing
                session.wait_idle()
            elif isinstance(cmd, SimpleCommand):
                if cmd.verb == "QUIT":
                    return
                elif cmd.verb == "ROTATE":
                    write(f"INFO Orientation: {'H' if session.toggle_orientation() else 'V'}")
                elif cmd.verb == "AUTO":
                    session.place_ships_randomly()
                elif cmd.verb == "START":
                    session.start_game()
                elif cmd.verb == "NEW":
                    session.reset_game()
        except GameError as e:
            write(f"ERR {e}")
            continue
        render(session, write)
        _prompt_next(session, write)


def _restore(session: GameSession, path: Path, rng: Optional[random.Random]) -> None:
    try:
        state = load_game(path, rng=rng)
    except SnapshotError:
        logger.warning("Ignoring unreadable save file %s", path, exc_info=True)
        return
    if state is not None:
        session.load(state)


def main(argv: list[str] | None = None) -> None:  # pragma: no cover – side-effect entrypoint
    parser = argparse.ArgumentParser(description="Salvo – naval combat against the computer")
    parser.add_argument("--new", action="store_true", help="Ignore any saved game.")
    parser.add_argument("--save-file", type=Path, default=None, help="Snapshot file path.")
    parser.add_argument("--think-delay", type=float, default=None, help="Computer delay in seconds.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible games.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity.")
    parser.add_argument("-q", "--quiet", dest="quiet", action="store_true", help="Only log errors.")
    args = parser.parse_args(argv)

    # Determine log level from CLI flags:
    if args.quiet:
        level = logging.ERROR
    elif args.debug or _cfg.DEBUG:
        level = logging.DEBUG
    elif args.verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    rng = random.Random(args.seed) if args.seed is not None else None
    save_path = args.save_file or _cfg.SAVE_PATH
    saver = SaveWorker(save_path, player_data_path=_cfg.PLAYER_DATA_PATH)
    session = GameSession(
        saver=saver,
        subscribers=[EventRouter(print)],
        think_delay=args.think_delay,
        rng=rng,
    )
    if not args.new:
        _restore(session, save_path, rng)

    try:
        run_console(session, sys.stdin, print)
    except KeyboardInterrupt:
        sys.stderr.write("\n")
    finally:
        session.shutdown()
        logger.info("Game saved to %s", save_path)


if __name__ == "__main__":  # pragma: no cover
    main()

import logging
import random
import sys
from pathlib import Path

import pytest

# Ensure local `src` directory is importable before project is installed.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from salvo.battleship import Position  # noqa: E402
from salvo.session import GameSession  # noqa: E402

# Suppress INFO & DEBUG logs from timer threads during tests
logging.basicConfig(level=logging.WARNING)

# (anchor, horizontal) for the standard fleet in build_fleet() order:
# carrier, 2x submarine, 3x destroyer, 4x frigate
FIXED_LAYOUT = [
    (Position(0, 0), True),
    (Position(2, 0), True),
    (Position(4, 0), True),
    (Position(6, 0), True),
    (Position(8, 0), True),
    (Position(0, 6), True),
    (Position(9, 9), True),
    (Position(7, 9), True),
    (Position(5, 9), True),
    (Position(3, 9), True),
]


def place_fixed_fleet(session: GameSession) -> None:
    """Lay out the human fleet deterministically via the public placement API."""
    for ship, (anchor, horizontal) in zip(session.state.player.ships, FIXED_LAYOUT):
        assert session.place_ship(ship, anchor, horizontal)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def session_factory(rng):
    """Factory for sessions with zero think delay; pending computer moves are cancelled on teardown."""
    created = []

    def _factory(**kwargs) -> GameSession:
        kwargs.setdefault("think_delay", 0.0)
        kwargs.setdefault("rng", rng)
        sess = GameSession(**kwargs)
        created.append(sess)
        return sess

    yield _factory
    for sess in created:
        sess.reset_game()


@pytest.fixture
def started_session(session_factory) -> GameSession:
    """Session with the fixed human layout, game started, human to move."""
    sess = session_factory()
    place_fixed_fleet(sess)
    sess.start_game()
    return sess

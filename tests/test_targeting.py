import random

from salvo.battleship import Position
from salvo.targeting import TargetingStrategy


def test_hundred_shots_cover_the_board_without_repeats() -> None:
    strat = TargetingStrategy(rng=random.Random(99))
    shots = [strat.generate_shot() for _ in range(100)]
    assert len(set(shots)) == 100
    assert set(shots) == {Position(r, c) for r in range(10) for c in range(10)}
    assert strat.remaining == []


def test_every_shot_in_bounds() -> None:
    strat = TargetingStrategy(rng=random.Random(5))
    for _ in range(250):
        assert strat.generate_shot().in_bounds()


def test_exhausted_pool_refills() -> None:
    strat = TargetingStrategy(rng=random.Random(1))
    for _ in range(100):
        strat.generate_shot()
    extra = strat.generate_shot()
    assert extra.in_bounds()
    assert len(strat.remaining) == 99


def test_reset_refills_pool() -> None:
    strat = TargetingStrategy(rng=random.Random(2))
    first = strat.generate_shot()
    assert first not in strat.remaining
    assert len(strat.remaining) == 99
    strat.reset()
    assert len(strat.remaining) == 100
    assert first in strat.remaining


def test_restore_limits_pool() -> None:
    strat = TargetingStrategy(rng=random.Random(3))
    strat.restore([Position(1, 1), Position(2, 2)])
    assert {strat.generate_shot(), strat.generate_shot()} == {Position(1, 1), Position(2, 2)}

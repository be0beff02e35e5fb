import io

import pytest

from salvo.client import _restore, run_console
from salvo.persistence import write_snapshot, snapshot_to_dict
from salvo.router import EventRouter
from salvo.state import Phase


def _run(session, script):
    out = []
    run_console(session, io.StringIO(script), out.append)
    return out


def test_auto_start_quit(session_factory):
    sess = session_factory()
    out = _run(sess, "AUTO\nSTART\nQUIT\nSTART\n")
    assert sess.phase is Phase.PLAYER_TURN
    assert out[0].startswith("Commands:")
    assert out[-1] == "INFO YOUR TURN – FIRE <coord>"
    assert not any(line.startswith("ERR") for line in out)


def test_errors_are_reported_and_loop_continues(session_factory):
    sess = session_factory()
    out = _run(sess, "FIRE A1\nBOGUS\nSTART\n")
    errors = [line for line in out if line.startswith("ERR")]
    assert len(errors) == 3
    assert "not started" in errors[0]
    assert "Unknown command" in errors[1]
    assert "Place all ships" in errors[2]


def test_place_with_orientation(session_factory):
    sess = session_factory()
    _run(sess, "PLACE A1 V\nPLACE A3\n")
    carrier, sub = sess.state.player.ships[:2]
    assert carrier.positions[-1].row == 3
    assert sub.positions[-1].row == 2  # vertical carries over


@pytest.mark.timeout(20)
def test_fire_waits_for_computer(session_factory):
    sess = session_factory()
    sess.subscribe(EventRouter(lambda _line: None))
    _run(sess, "AUTO\nSTART\n")
    water = next(
        p for p in sess.state.computer_board.positions() if not sess.state.computer_board.get_cell(p).has_ship
    )
    coord = f"{chr(ord('A') + water.row)}{water.col + 1}"
    _run(sess, f"FIRE {coord}\n")
    assert sess.phase in (Phase.PLAYER_TURN, Phase.OVER)
    assert sess.state.computer.shots_fired >= 1


def test_restore_ignores_corrupt_file(tmp_path, session_factory, caplog):
    path = tmp_path / "save.bin"
    path.write_bytes(b"garbage that is not a save file")
    sess = session_factory()
    _restore(sess, path, None)
    assert sess.phase is Phase.NOT_STARTED
    assert "unreadable save file" in caplog.text


def test_restore_loads_saved_game(tmp_path, session_factory, started_session):
    path = tmp_path / "save.bin"
    write_snapshot(path, snapshot_to_dict(started_session.state))
    sess = session_factory()
    _restore(sess, path, None)
    assert sess.phase is Phase.PLAYER_TURN


def test_restore_ignores_unreadable_path(tmp_path, session_factory, caplog):
    sess = session_factory()
    _restore(sess, tmp_path, None)
    assert sess.phase is Phase.NOT_STARTED
    assert "unreadable save file" in caplog.text

import json

import pytest

from salvo.battleship import ShotResult
from salvo.persistence import (
    FLAG_SEALED,
    HEADER_LEN,
    HEADER_STRUCT,
    SaveWorker,
    SnapshotError,
    load_game,
    pack_snapshot,
    read_snapshot,
    snapshot_from_dict,
    snapshot_to_dict,
    unpack_snapshot,
    write_snapshot,
)
from salvo.state import Phase, Winner

from conftest import place_fixed_fleet

KEY = bytes(range(16))


def _played(started_session):
    """Fire one hit and one sure miss so both boards carry shots."""
    st = started_session.state
    ship_cell = st.computer_board.ships[0].positions[0]
    water = next(p for p in st.computer_board.positions() if not st.computer_board.get_cell(p).has_ship)
    started_session.fire(ship_cell)
    started_session.fire(water)
    assert started_session.wait_idle(5)
    return snapshot_to_dict(st)


# -------------------- dict snapshot --------------------


@pytest.mark.timeout(10)
def test_snapshot_round_trip_preserves_game(started_session):
    snap = _played(started_session)
    restored = snapshot_from_dict(json.loads(json.dumps(snap)))
    st = started_session.state

    assert restored.phase is st.phase
    assert restored.winner is Winner.NONE
    assert restored.player.score == st.player.score
    assert restored.player.shots_fired == 2
    assert restored.computer.shots_fired == st.computer.shots_fired
    for live, copy in ((st.player_board, restored.player_board), (st.computer_board, restored.computer_board)):
        assert len(copy.ships) == 10
        for pos in live.positions():
            a, b = live.get_cell(pos), copy.get_cell(pos)
            assert (a.has_ship, a.is_shot, a.is_sunk) == (b.has_ship, b.is_shot, b.is_sunk)
    assert restored.computer.is_computer
    assert set(restored.computer.targeting.remaining) == set(st.computer.targeting.remaining)


def test_restored_cells_point_at_restored_ships(started_session):
    restored = snapshot_from_dict(snapshot_to_dict(started_session.state))
    for ship in restored.player_board.ships:
        assert ship in restored.player.ships
        for pos in ship.positions:
            assert restored.player_board.get_cell(pos).ship is ship


def test_overlapping_ships_rejected(started_session):
    snap = snapshot_to_dict(started_session.state)
    ships = snap["player"]["ships"]
    ships[1]["positions"] = ships[0]["positions"][:3]
    with pytest.raises(SnapshotError):
        snapshot_from_dict(snap)


def test_hit_count_must_match_shots(started_session):
    snap = snapshot_to_dict(started_session.state)
    snap["player"]["ships"][0]["hit_count"] = 2
    with pytest.raises(SnapshotError, match="hit count"):
        snapshot_from_dict(snap)


def test_missing_field_is_snapshot_error(started_session):
    snap = snapshot_to_dict(started_session.state)
    del snap["computer_board"]
    with pytest.raises(SnapshotError):
        snapshot_from_dict(snap)


# -------------------- framing --------------------


def test_header_layout():
    blob = pack_snapshot({"a": 1})
    magic, version, flags, length, _crc = HEADER_STRUCT.unpack(blob[:HEADER_LEN])
    assert HEADER_LEN == 16
    assert (magic, version, flags) == (0x5A1F, 1, 0)
    assert length == len(blob) - HEADER_LEN
    assert unpack_snapshot(blob) == {"a": 1}


def test_corrupted_payload_fails_crc():
    blob = bytearray(pack_snapshot({"score": 100}))
    blob[-2] ^= 0xFF
    with pytest.raises(SnapshotError, match="CRC"):
        unpack_snapshot(bytes(blob))


def test_bad_magic_rejected():
    blob = bytearray(pack_snapshot({"score": 100}))
    blob[0] ^= 0xFF
    with pytest.raises(SnapshotError, match="magic"):
        unpack_snapshot(bytes(blob))


def test_truncated_file_rejected():
    blob = pack_snapshot({"score": 100})
    with pytest.raises(SnapshotError):
        unpack_snapshot(blob[:10])
    with pytest.raises(SnapshotError, match="length"):
        unpack_snapshot(blob[:-1])


def test_sealed_round_trip():
    blob = pack_snapshot({"secret": True}, KEY)
    assert HEADER_STRUCT.unpack(blob[:HEADER_LEN])[2] & FLAG_SEALED
    assert b"secret" not in blob
    assert unpack_snapshot(blob, KEY) == {"secret": True}


def test_sealed_without_key():
    blob = pack_snapshot({"secret": True}, KEY)
    with pytest.raises(SnapshotError, match="no key"):
        unpack_snapshot(blob)


def test_sealed_wrong_key():
    blob = pack_snapshot({"secret": True}, KEY)
    with pytest.raises(SnapshotError, match="authentication"):
        unpack_snapshot(blob, bytes([0xFF] * 16))


# -------------------- files --------------------


def test_write_and_load_game(tmp_path, started_session):
    path = tmp_path / "save.bin"
    write_snapshot(path, snapshot_to_dict(started_session.state))
    assert not (tmp_path / "save.bin.tmp").exists()
    state = load_game(path)
    assert state.phase is Phase.PLAYER_TURN
    assert len(state.computer_board.ships) == 10


def test_missing_file_loads_nothing(tmp_path):
    assert read_snapshot(tmp_path / "absent.bin") is None
    assert load_game(tmp_path / "absent.bin") is None


def test_save_worker_writes_latest(tmp_path):
    path = tmp_path / "nested" / "save.bin"
    data = tmp_path / "player_data.txt"
    worker = SaveWorker(path, player_data_path=data)
    try:
        for score in range(5):
            worker.submit({"player": {"name": "Player", "score": score, "ships_sunk": 0}})
        worker.flush()
    finally:
        worker.close()
    assert worker.failures == 0
    assert 1 <= worker.writes <= 5
    assert read_snapshot(path)["player"]["score"] == 4
    lines = data.read_text(encoding="utf-8").splitlines()
    assert lines[:3] == ["Player: Player", "Score: 4", "Ships Sunk: 0"]
    assert lines[3].startswith("Date: ")


def test_save_worker_failure_is_contained(tmp_path):
    target = tmp_path / "is_a_dir"
    target.mkdir()
    errors = []
    worker = SaveWorker(target, on_error=errors.append)
    worker.submit({"player": {"name": "Player", "score": 0, "ships_sunk": 0}})
    worker.flush()
    worker.close()
    assert worker.failures == 1
    assert worker.writes == 0
    assert len(errors) == 1


def test_submit_after_close_is_ignored(tmp_path):
    worker = SaveWorker(tmp_path / "save.bin")
    worker.close()
    worker.submit({"player": {}})
    assert not (tmp_path / "save.bin").exists()


@pytest.mark.timeout(10)
def test_session_saves_every_turn(tmp_path, session_factory):
    path = tmp_path / "save.bin"
    worker = SaveWorker(path)
    sess = session_factory(saver=worker)
    place_fixed_fleet(sess)
    sess.start_game()
    target = sess.state.computer_board.ships[0].positions[0]
    assert sess.fire(target) in (ShotResult.HIT, ShotResult.SUNK)
    worker.flush()
    saved = load_game(path)
    assert saved.computer_board.get_cell(target).is_shot
    assert saved.player.score == 100

    sess.shutdown()
    assert worker.writes >= 1


@pytest.mark.timeout(10)
def test_loaded_computer_turn_resumes(session_factory):
    sess = session_factory()
    place_fixed_fleet(sess)
    sess.start_game()
    st = sess.state
    st.is_player_turn = False
    snap = snapshot_to_dict(st)
    st.is_player_turn = True

    restored = snapshot_from_dict(snap)
    assert restored.phase is Phase.COMPUTER_TURN
    other = session_factory()
    other.load(restored)
    assert other.wait_idle(5)
    assert restored.computer.shots_fired >= 1


def test_wrong_length_key_is_snapshot_error(tmp_path):
    path = tmp_path / "save.bin"
    write_snapshot(path, {"secret": True}, KEY)
    with pytest.raises(SnapshotError):
        load_game(path, key=b"\xab\xcd")


def test_unreadable_save_path_is_snapshot_error(tmp_path):
    with pytest.raises(SnapshotError, match="Cannot read"):
        read_snapshot(tmp_path)


def test_raising_error_callback_keeps_worker_alive(tmp_path):
    target = tmp_path / "save.bin"
    target.mkdir()

    def on_error(exc):
        target.rmdir()
        raise RuntimeError("reporter bug")

    worker = SaveWorker(target, on_error=on_error)
    try:
        worker.submit({"player": {"name": "Player", "score": 1, "ships_sunk": 0}})
        worker.flush()
        assert worker.failures == 1
        assert worker._thread.is_alive()

        worker.submit({"player": {"name": "Player", "score": 2, "ships_sunk": 0}})
        worker.flush()
    finally:
        worker.close()
    assert worker.writes == 1
    assert read_snapshot(target)["player"]["score"] == 2

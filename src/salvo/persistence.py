"""Save-file snapshots and the background save worker.

File layout (16-byte header + payload):
0-1  : 0x5A1F       magic bytes
2    : version (1)
3    : flags (bit 0 = AES-GCM sealed payload)
4-7  : len u32 (payload length)
8-11 : CRC-32 over header[0:8]+payload
12-15: reserved (zero)
16-  : UTF-8 JSON snapshot, or nonce+ciphertext+tag when sealed

The in-memory GameState is always the source of truth; saving is best effort.
"""

from __future__ import annotations

import datetime
import json
import logging
import os
import queue
import struct
import threading
import zlib
from pathlib import Path
from typing import Any, Callable, Dict, Final, List, Optional

from . import config as _cfg
from .battleship import Board, Position, Ship, ShipType
from .encryption import InvalidTag, open_sealed, seal
from .state import GameState, Player, Winner
from .targeting import TargetingStrategy

logger = logging.getLogger(__name__)

MAGIC: Final[int] = 0x5A1F
VERSION: Final[int] = 1
FLAG_SEALED: Final[int] = 0x01

HEADER_STRUCT = struct.Struct(">HBBII4x")
HEADER_LEN: Final[int] = HEADER_STRUCT.size  # 16


class SnapshotError(Exception):
    """Raised when a save file cannot be decoded into a consistent GameState."""


# ---------------------------------------------------------------------------
# GameState <-> plain dict
# ---------------------------------------------------------------------------


def _pos_list(positions: List[Position]) -> List[List[int]]:
    return [[p.row, p.col] for p in positions]


def _player_to_dict(player: Player) -> Dict[str, Any]:
    return {
        "name": player.name,
        "score": player.score,
        "ships_sunk": player.ships_sunk,
        "shots_fired": player.shots_fired,
        "ships": [
            {"kind": ship.kind.name, "hit_count": ship.hit_count, "positions": _pos_list(ship.positions)}
            for ship in player.ships
        ],
    }


def _board_to_dict(board: Board, fleet: List[Ship]) -> Dict[str, Any]:
    index = {id(ship): i for i, ship in enumerate(fleet)}
    return {
        "size": board.size,
        "ships": [index[id(ship)] for ship in board.ships],
        "shots": [[p.row, p.col] for p in board.positions() if board.grid[p.row][p.col].is_shot],
    }


def snapshot_to_dict(state: GameState) -> Dict[str, Any]:
    """Full deep copy of *state* as JSON-compatible primitives."""
    targeting = state.computer.targeting
    return {
        "player": _player_to_dict(state.player),
        "computer": _player_to_dict(state.computer),
        "player_board": _board_to_dict(state.player_board, state.player.ships),
        "computer_board": _board_to_dict(state.computer_board, state.computer.ships),
        "is_player_turn": state.is_player_turn,
        "game_started": state.game_started,
        "game_over": state.game_over,
        "winner": state.winner.value,
        "horizontal": state.horizontal,
        "computer_untried": _pos_list(targeting.remaining) if targeting is not None else None,
    }


def _player_from_dict(data: Dict[str, Any], targeting: Optional[TargetingStrategy] = None) -> Player:
    ships = [Ship(ShipType[entry["kind"]]) for entry in data["ships"]]
    return Player(
        name=data["name"],
        ships=ships,
        score=int(data["score"]),
        ships_sunk=int(data["ships_sunk"]),
        shots_fired=int(data.get("shots_fired", 0)),
        targeting=targeting,
    )


def _restore_board(data: Dict[str, Any], ship_data: List[Dict[str, Any]], fleet: List[Ship]) -> Board:
    board = Board(int(data["size"]))
    for idx in data["ships"]:
        ship = fleet[idx]
        positions = [Position(r, c) for r, c in ship_data[idx]["positions"]]
        if not positions:
            raise SnapshotError(f"{ship.name} listed on board without positions")
        horizontal = len(positions) == 1 or positions[0].row == positions[1].row
        if not board.place_ship(ship, positions[0], horizontal) or ship.positions != positions:
            raise SnapshotError(f"{ship.name} positions {positions} are not a valid placement")

    for r, c in data["shots"]:
        pos = Position(r, c)
        if not pos.in_bounds(board.size):
            raise SnapshotError(f"Shot {pos} outside board")
        board.grid[r][c].is_shot = True

    for ship in board.ships:
        hits = sum(1 for p in ship.positions if board.grid[p.row][p.col].is_shot)
        recorded = int(ship_data[fleet.index(ship)]["hit_count"])
        if recorded != hits:
            raise SnapshotError(f"{ship.name} hit count {recorded} disagrees with {hits} shot cells")
        ship.hit_count = hits
        if ship.is_sunk:
            for p in ship.positions:
                board.grid[p.row][p.col].is_sunk = True
    return board


def snapshot_from_dict(data: Dict[str, Any], *, rng=None) -> GameState:
    """Rebuild a GameState from snapshot_to_dict() output, validating consistency."""
    try:
        targeting = TargetingStrategy(rng=rng)
        player = _player_from_dict(data["player"])
        computer = _player_from_dict(data["computer"], targeting=targeting)
        player_board = _restore_board(data["player_board"], data["player"]["ships"], player.ships)
        computer_board = _restore_board(data["computer_board"], data["computer"]["ships"], computer.ships)

        untried = data.get("computer_untried")
        if untried is None:
            targeting.restore(p for p in player_board.positions() if not player_board.get_cell(p).is_shot)
        else:
            targeting.restore(Position(r, c) for r, c in untried)

        return GameState(
            player_board=player_board,
            computer_board=computer_board,
            player=player,
            computer=computer,
            is_player_turn=bool(data["is_player_turn"]),
            game_started=bool(data["game_started"]),
            game_over=bool(data["game_over"]),
            winner=Winner(data["winner"]),
            horizontal=bool(data.get("horizontal", True)),
        )
    except SnapshotError:
        raise
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise SnapshotError(f"Malformed snapshot: {exc!r}") from exc


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------


def pack_snapshot(snapshot: Dict[str, Any], key: bytes | None = None) -> bytes:
    """Serialise *snapshot* into a framed save-file blob (sealed when *key* is given)."""
    flags = FLAG_SEALED if key else 0
    payload = json.dumps(snapshot, separators=(",", ":")).encode()
    if key:
        payload = seal(key, payload, aad=struct.pack(">HBB", MAGIC, VERSION, flags))
    head = struct.pack(">HBBI", MAGIC, VERSION, flags, len(payload))
    crc = zlib.crc32(head + payload) & 0xFFFFFFFF
    return HEADER_STRUCT.pack(MAGIC, VERSION, flags, len(payload), crc) + payload


def unpack_snapshot(data: bytes, key: bytes | None = None) -> Dict[str, Any]:
    if len(data) < HEADER_LEN:
        raise SnapshotError("Incomplete header")
    magic, version, flags, length, crc = HEADER_STRUCT.unpack(data[:HEADER_LEN])
    if magic != MAGIC or version != VERSION:
        raise SnapshotError("magic/version mismatch")
    payload = data[HEADER_LEN:]
    if len(payload) != length:
        raise SnapshotError(f"Payload length {len(payload)} != header length {length}")
    if zlib.crc32(data[:8] + payload) & 0xFFFFFFFF != crc:
        raise SnapshotError("CRC mismatch")
    if flags & FLAG_SEALED:
        if not key:
            raise SnapshotError("Save file is encrypted but no key is configured")
        try:
            payload = open_sealed(key, payload, aad=data[:4])
        except (InvalidTag, ValueError) as exc:
            raise SnapshotError("Save file authentication failed") from exc
    try:
        obj = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SnapshotError("Snapshot payload is not valid JSON") from exc
    if not isinstance(obj, dict):
        raise SnapshotError("Snapshot payload is not an object")
    return obj


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def write_snapshot(path: Path, snapshot: Dict[str, Any], key: bytes | None = None) -> None:
    """Write atomically: temp file in the same directory, then os.replace()."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(pack_snapshot(snapshot, key))
    os.replace(tmp, path)


def read_snapshot(path: Path, key: bytes | None = None) -> Dict[str, Any] | None:
    path = Path(path)
    if not path.exists():
        return None
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise SnapshotError(f"Cannot read save file {path}: {exc}") from exc
    return unpack_snapshot(data, key)


def load_game(path: Path | None = None, key: bytes | None = None, *, rng=None) -> GameState | None:
    """Return the saved GameState, or None when no save file exists."""
    path = _cfg.SAVE_PATH if path is None else path
    key = _cfg.SAVE_KEY if key is None else key
    snapshot = read_snapshot(path, key)
    if snapshot is None:
        logger.info("No saved game at %s", path)
        return None
    state = snapshot_from_dict(snapshot, rng=rng)
    logger.info("Loaded saved game from %s", path)
    return state


def save_player_data(path: Path, snapshot: Dict[str, Any]) -> None:
    """Plain-text score summary for the human player."""
    player = snapshot["player"]
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [
        f"Player: {player['name']}",
        f"Score: {player['score']}",
        f"Ships Sunk: {player['ships_sunk']}",
        f"Date: {datetime.datetime.now().isoformat(timespec='seconds')}",
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


# ---------------------------------------------------------------------------
# Background worker
# ---------------------------------------------------------------------------

_STOP = object()


class SaveWorker:
    """Single daemon thread that writes snapshots in submission order.

    submit() never blocks the caller. Snapshots that queue up while a write is
    in progress are coalesced so only the newest one is written.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        player_data_path: Path | None = None,
        key: bytes | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self.path = Path(_cfg.SAVE_PATH if path is None else path)
        self.player_data_path = player_data_path
        self.key = _cfg.SAVE_KEY if key is None else key
        self.on_error = on_error
        self.writes = 0
        self.failures = 0
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name="salvo-save", daemon=True)
        self._thread.start()

    def submit(self, snapshot: Dict[str, Any]) -> None:
        if self._closed:
            logger.warning("Save requested after worker closed – ignored")
            return
        self._queue.put(snapshot)

    def flush(self) -> None:
        """Block until every submitted snapshot has been handled."""
        self._queue.join()

    def close(self, timeout: float | None = 5.0) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(_STOP)
        self._thread.join(timeout)

    # ------------------------------------------------------------------
    def _run(self) -> None:
        while True:
            items = [self._queue.get()]
            while True:
                try:
                    items.append(self._queue.get_nowait())
                except queue.Empty:
                    break
            snapshots = [item for item in items if item is not _STOP]
            try:
                if snapshots:
                    self._write(snapshots[-1])
            finally:
                for _ in items:
                    self._queue.task_done()
            if len(snapshots) != len(items):
                return

    def _write(self, snapshot: Dict[str, Any]) -> None:
        try:
            write_snapshot(self.path, snapshot, self.key)
            if self.player_data_path is not None:
                save_player_data(self.player_data_path, snapshot)
        except Exception as exc:
            self.failures += 1
            logger.exception("Saving game to %s failed", self.path)
            if self.on_error is not None:
                try:
                    self.on_error(exc)
                except Exception:
                    logger.exception("Save error callback failed")
            return
        self.writes += 1
        logger.debug("Game saved to %s", self.path)

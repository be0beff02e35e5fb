"""Central configuration for runtime-tunable parameters.

All tunables can be overridden via environment variables so that the
interactive game runs with a human-friendly "thinking" delay by default,
while the automated test-suite can drop it to zero.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


# ===========================================================================
# Game Constants
# ===========================================================================
# Width and height of the square board. Fixed: the fleet invariants
# (10 ships / 20 cells) are defined for a 10x10 grid only.
BOARD_SIZE: int = 10

# Points awarded to the firing side for every HIT or SUNK result.
HIT_SCORE: int = 100

PLAYER_NAME: str = "Player"
COMPUTER_NAME: str = "Computer"


# ===========================================================================
# Computer Opponent
# ===========================================================================
# SALVO_THINK_DELAY: Fixed delay (in seconds) before every computer shot.
#   Defaults to 1.0. Set to 0 for instant replies.
#   Example: export SALVO_THINK_DELAY=0.25
THINK_DELAY: float = float(os.getenv("SALVO_THINK_DELAY", "1.0"))

# SALVO_PLACEMENT_ATTEMPTS: Random draws tried per ship before the whole
#   fleet placement is restarted from an empty board.
#   Defaults to 500.
PLACEMENT_ATTEMPTS: int = int(os.getenv("SALVO_PLACEMENT_ATTEMPTS", "500"))

# SALVO_PLACEMENT_RESTARTS: Upper bound on full-board restarts. Reaching it
#   is treated as a fatal error.
#   Defaults to 1000.
PLACEMENT_RESTARTS: int = int(os.getenv("SALVO_PLACEMENT_RESTARTS", "1000"))


# ===========================================================================
# Persistence
# ===========================================================================
# SALVO_SAVE_PATH: Snapshot file written after every turn and read on start.
#   Example: export SALVO_SAVE_PATH=/tmp/salvo.bin
SAVE_PATH: Path = Path(os.getenv("SALVO_SAVE_PATH", "saves/battleship_save.bin"))

# SALVO_PLAYER_DATA_PATH: Human-readable score summary refreshed on every save.
PLAYER_DATA_PATH: Path = Path(os.getenv("SALVO_PLAYER_DATA_PATH", "data/player_data.txt"))

# SALVO_SAVE_KEY: AES key (hex, 16/24/32 bytes) used to seal save files.
#   Defaults to empty (plain CRC-checked snapshots).
SAVE_KEY_HEX: str = os.getenv("SALVO_SAVE_KEY", "")


def parse_save_key(text: str) -> bytes | None:
    """Decode a hex AES key; malformed or wrong-length values disable sealing."""
    if not text:
        return None
    try:
        key = bytes.fromhex(text)
    except ValueError:
        logger.warning("SALVO_SAVE_KEY is not valid hex – save files will not be sealed")
        return None
    if len(key) not in (16, 24, 32):
        logger.warning("SALVO_SAVE_KEY must be 16/24/32 bytes, got %d – save files will not be sealed", len(key))
        return None
    return key


SAVE_KEY: bytes | None = parse_save_key(SAVE_KEY_HEX)


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# SALVO_DEBUG: If "1", enables detailed debug logging across modules.
#   Defaults to "0" (disabled).
DEBUG: bool = os.getenv("SALVO_DEBUG", "0") == "1"

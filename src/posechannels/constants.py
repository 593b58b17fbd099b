"""Shared constants and paths for posechannels."""

from pathlib import Path

# Package paths
PACKAGE_ROOT = Path(__file__).parent
ASSETS_DIR = PACKAGE_ROOT / "assets"
CONFIG_DIR = ASSETS_DIR / "config"

# Channel space
RESERVED_CHANNEL_COUNT = 3      # Slots 0-2, free for non-skeletal channels
ROOT_CHANNEL_START = RESERVED_CHANNEL_COUNT
ROOT_CHANNEL_COUNT = 12         # 3 position + 4 rotation + 5 spare
ROOT_CHANNEL_END = ROOT_CHANNEL_START + ROOT_CHANNEL_COUNT  # 15, exclusive

# Offsets inside the root range (relative to ROOT_CHANNEL_START)
ROOT_POSITION_OFFSET = 0
ROOT_ROTATION_OFFSET = 3

AXIS_NAMES = ("x", "y", "z")
QUAT_AXIS_NAMES = ("x", "y", "z", "w")

# Visemes
VISEME_BASE_INDEX = 80
VISEME_CHANNEL_COUNT = 3
VISEME_SHAPE_PREFIX = "v_"

# Unwritten channels (locked axes, unbound bones, spare root slots)
DEFAULT_FILL_VALUE = 0.0

# Recording defaults
DEFAULT_RECORD_FPS = 30

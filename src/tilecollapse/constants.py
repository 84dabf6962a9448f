"""Contains global constants and default values used throughout the project."""

# === RANDOM NUMBER GENERATION ===

LCG_MULTIPLIER: int = 1664525
LCG_INCREMENT: int = 1013904223
LCG_MODULUS: int = 2**32

# === MODEL CONSTANTS ===

# Weight assumed for every tile type that has no explicit entry in the weighting.
DEFAULT_TILE_WEIGHT: int = 1

# Tile index stored in numpy tile arrays for cells that have not been collapsed yet.
UNSET_TILE_INDEX: int = -1

# Keys of the rule wire shape, in the order the directions are evaluated.
RULE_KEYS: tuple[str, str, str, str] = ("up", "down", "left", "right")

# === LOGGING ===

LOGGER_NAME: str = "tilecollapse"
LOG_FILE_MAX_BYTES: int = 5 * 1024 * 1024
LOG_FILE_BACKUP_COUNT: int = 3
LOG_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-45s | %(message)s"
LOG_CONSOLE_FORMAT: str = "%(levelname)-8s | %(name)-30s | %(message)s"
LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

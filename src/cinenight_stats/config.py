"""
Configuration constants for the movie-night statistics engine.

This module centralizes all thresholds and tunable parameters.
Values can be overridden via environment variables.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_float_env(key: str, default: float, min_val: float = 0) -> float:
    """
    Safely parse float from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated float value
    """
    try:
        val = float(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    """
    Safely parse integer from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated integer value
    """
    try:
        val = int(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


# History source (CLI only; the engine itself takes in-memory collections)
HISTORY_PATH = Path(os.environ.get("CINENIGHT_HISTORY", "data/history.json"))
EXPORT_PREFIX = "cinenight_history"

# Score thresholds (ratings live on a 0-10 scale)
WIN_THRESHOLD = _get_float_env("CINENIGHT_WIN_THRESHOLD", 8.0, min_val=0.0)
STREAK_THRESHOLD = _get_float_env("CINENIGHT_STREAK_THRESHOLD", 7.5, min_val=0.0)

# List sizes
LEADERBOARD_SIZE = _get_int_env("CINENIGHT_LEADERBOARD_SIZE", 5, min_val=1)
AFFINITY_SIZE = _get_int_env("CINENIGHT_AFFINITY_SIZE", 3, min_val=1)
TOP_PICKS_SIZE = 5
GROUP_REF_SIZE = 5
GENRE_RADAR_AXES = 6

# Runtime buckets in minutes: short < 90 <= medium <= 120 < long
RUNTIME_SHORT_MAX = 90
RUNTIME_MEDIUM_MAX = 120

# Achievements
MILESTONE_VIEWINGS = (50, 100)
MILESTONE_PICKS = 10
WEEK_SECONDS = 7 * 24 * 3600

# Minimum samples before a correlation or z-score is reported
MIN_CORRELATION_PAIRS = 2
MIN_BIAS_SAMPLES = 3

# Agreement tones for the per-viewing sample stdev
SPREAD_TIGHT = 0.9   # below: tight agreement
SPREAD_SPLIT = 1.5   # above: very split

# Deterministic jitter
JITTER_BUCKETS = 1000
DEFAULT_JITTER_SPREAD = 1.0

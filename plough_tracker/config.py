"""Central configuration for the plough tracking engine.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Endpoints and paths can be overridden through environment
variables (optionally via a local `.env`).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env from the current directory or any parent folder.
load_dotenv()


# ---------------------------------------------------------------------------
# Units and earth model
# ---------------------------------------------------------------------------
# Sole unit conversion used for reporting areas.
SQUARE_METERS_PER_ACRE = 4046.8564224

# Spherical earth radius (metres) used for area, distance and grid spacing.
EARTH_RADIUS_M = 6378137.0


# ---------------------------------------------------------------------------
# GPS gating
# ---------------------------------------------------------------------------
# Fixes reporting a horizontal accuracy worse than this (metres) are dropped.
GPS_ACCURACY_THRESHOLD_M = _env_float("GPS_ACCURACY_THRESHOLD_M", 12.0)

# Auto-walk capture records a corner when the heading turns by more than this.
HEADING_CHANGE_THRESHOLD_DEG = _env_float("HEADING_CHANGE_THRESHOLD_DEG", 30.0)

# Location stream settings while walking the boundary.
CAPTURE_TIME_INTERVAL_MS = _env_int("CAPTURE_TIME_INTERVAL_MS", 800)
CAPTURE_DISTANCE_INTERVAL_M = _env_float("CAPTURE_DISTANCE_INTERVAL_M", 0.4)

# Location stream settings during a ploughing session.
TRACKING_TIME_INTERVAL_MS = _env_int("TRACKING_TIME_INTERVAL_MS", 600)
TRACKING_DISTANCE_INTERVAL_M = _env_float("TRACKING_DISTANCE_INTERVAL_M", 0.3)

# Attempts made while waiting for the first position before giving up.
INITIAL_FIX_MAX_ATTEMPTS = _env_int("INITIAL_FIX_MAX_ATTEMPTS", 30)
INITIAL_FIX_RETRY_SECONDS = _env_float("INITIAL_FIX_RETRY_SECONDS", 1.0)


# ---------------------------------------------------------------------------
# Coverage grid
# ---------------------------------------------------------------------------
# Working width of the implement (metres). Grid cells are half this wide.
PLOUGH_WIDTH_M = _env_float("PLOUGH_WIDTH_M", 2.0)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------
# Directory (absolute or relative) used by the file-backed session store.
SESSION_STORE_DIR = os.getenv("SESSION_STORE_DIR", "plough_sessions")

# Store keys shared with the mobile client.
BOUNDARY_DRAFT_KEY = "lastBoundary"
PLOUGH_SESSION_KEY = "lastPloughSession"

# Remove the stored boundary draft once the boundary has been finalized.
CLEAR_DRAFT_ON_FINALIZE = _env_bool("CLEAR_DRAFT_ON_FINALIZE", True)


# ---------------------------------------------------------------------------
# Sync endpoint
# ---------------------------------------------------------------------------
# Endpoint receiving registrations, boundaries and session summaries. Leave
# empty to keep everything local.
SYNC_URL = os.getenv("PLOUGH_SYNC_URL", "")

# Request timeout in seconds.
REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 15)

# Retry/backoff for transient network or server errors.
SYNC_MAX_RETRIES = _env_int("SYNC_MAX_RETRIES", 3)
SYNC_BACKOFF_FACTOR = _env_float("SYNC_BACKOFF_FACTOR", 1.0)

# Threads used for fire-and-forget submissions.
SYNC_MAX_WORKERS = _env_int("SYNC_MAX_WORKERS", 2)

"""General utility helpers shared across modules."""

from __future__ import annotations

import json
from typing import Any

from .config import SQUARE_METERS_PER_ACRE


def square_meters_to_acres(value: float) -> float:
    """Convert square metres to acres."""

    return value / SQUARE_METERS_PER_ACRE


def json_dumps_sorted(value: Any) -> str:
    """Return compact canonical JSON (sorted keys) for stored snapshots."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"))

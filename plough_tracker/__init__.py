"""Field boundary capture and ploughing coverage tracking engine."""

from .boundary import BoundaryBuilder, BoundaryState
from .capture import AutoCapture, acquire_initial_fix, add_current_position
from .errors import (
    GpsUnreliable,
    IncompleteBoundary,
    PloughTrackerError,
    SelfIntersectingBoundary,
    SyncFailure,
)
from .gps_filter import CaptureMode, GpsFilter
from .grid import CoverageGrid, GridCell
from .models import (
    CoverageSessionSummary,
    FarmerProfile,
    FinalizedBoundary,
    GeoPoint,
    GpsFix,
)
from .session_store import FileSessionStore, InMemorySessionStore
from .tracker import CoverageTracker, TrackerState

__all__ = [
    "AutoCapture",
    "BoundaryBuilder",
    "BoundaryState",
    "CaptureMode",
    "CoverageGrid",
    "CoverageSessionSummary",
    "CoverageTracker",
    "FarmerProfile",
    "FileSessionStore",
    "FinalizedBoundary",
    "GeoPoint",
    "GpsFilter",
    "GpsFix",
    "GpsUnreliable",
    "GridCell",
    "IncompleteBoundary",
    "InMemorySessionStore",
    "PloughTrackerError",
    "SelfIntersectingBoundary",
    "SyncFailure",
    "TrackerState",
    "acquire_initial_fix",
    "add_current_position",
]

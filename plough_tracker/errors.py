"""Central error types used across the engine."""

from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .models import GeoPoint


class PloughTrackerError(RuntimeError):
    """Base error for boundary capture and coverage tracking failures."""


class IncompleteBoundary(PloughTrackerError):
    """Raised when a boundary is finalized before it forms a valid polygon."""


class SelfIntersectingBoundary(PloughTrackerError):
    """Raised when the boundary edges cross each other."""

    def __init__(self, message: str, kinks: Sequence["GeoPoint"] = ()) -> None:
        super().__init__(message)
        self.kinks = tuple(kinks)


class GpsUnreliable(PloughTrackerError):
    """Raised when a manually requested position is not accurate enough."""

    def __init__(self, message: str, accuracy_m: float | None = None) -> None:
        super().__init__(message)
        self.accuracy_m = accuracy_m


class SyncFailure(PloughTrackerError):
    """Raised when the sync endpoint cannot be reached or rejects a payload."""


class SessionStoreError(PloughTrackerError):
    """Raised when a snapshot cannot be written to or removed from the store."""


class SnapshotFormatError(PloughTrackerError):
    """Raised when a persisted snapshot cannot be decoded."""


class IncompleteRegistration(PloughTrackerError):
    """Raised when a farmer registration is missing required fields."""


__all__ = [
    "PloughTrackerError",
    "IncompleteBoundary",
    "SelfIntersectingBoundary",
    "GpsUnreliable",
    "SyncFailure",
    "SessionStoreError",
    "SnapshotFormatError",
    "IncompleteRegistration",
]

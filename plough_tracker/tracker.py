"""Live coverage accounting for a ploughing session.

The tracker consumes GPS fixes while a session is active, counts visits per
grid cell and derives covered area, progress and speed. Covered area grows
only on a cell's first visit; revisits are kept for overlap highlighting.
The session snapshot is written on every first visit (not on revisits) and
restored verbatim on construction so an interrupted session can resume.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .capture import LocationSource, Subscription, acquire_initial_fix
from .config import (
    GPS_ACCURACY_THRESHOLD_M,
    PLOUGH_SESSION_KEY,
    TRACKING_DISTANCE_INTERVAL_M,
    TRACKING_TIME_INTERVAL_MS,
)
from .errors import SessionStoreError, SnapshotFormatError
from .geo_math import distance_m
from .gps_filter import is_accurate
from .grid import CoverageGrid, GridCell
from .models import CoverageSessionSummary, FarmerProfile, GpsFix
from .session_store import SessionStore
from .snapshots import PloughSnapshot, decode_plough_snapshot, encode_plough_snapshot
from .utils import square_meters_to_acres

Clock = Callable[[], float]
WallClock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TrackerState(str, enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"


class CoverageTracker:
    """Per-cell visit accounting over a fixed :class:`CoverageGrid`.

    Pass ``await_fix=True`` to :meth:`start` or :meth:`resume` to wait for
    the first position before the session begins; otherwise the host must
    call :func:`acquire_initial_fix` itself beforehand.
    """

    def __init__(
        self,
        grid: CoverageGrid,
        *,
        farmer: FarmerProfile | None = None,
        store: SessionStore | None = None,
        source: LocationSource | None = None,
        accuracy_threshold_m: float = GPS_ACCURACY_THRESHOLD_M,
        clock: Clock = time.monotonic,
        wall_clock: WallClock = _utc_now,
    ) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self._grid = grid
        self._farmer = farmer
        self._store = store
        self._source = source
        self._accuracy_threshold_m = accuracy_threshold_m
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = threading.RLock()
        self._subscription: Subscription | None = None

        self._state = TrackerState.IDLE
        self._counts: Dict[int, int] = {}
        self._covered_sq_m = 0.0
        self._progress = 0.0
        self._elapsed_base = 0.0
        self._started_at: float | None = None
        self._previous_fix: GpsFix | None = None
        self._speed_mps = 0.0
        self._restored = False
        self._restore_session()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def grid(self) -> CoverageGrid:
        return self._grid

    @property
    def restored(self) -> bool:
        """True when a persisted session was adopted on construction."""

        return self._restored

    @property
    def covered_area_square_meters(self) -> float:
        return self._covered_sq_m

    @property
    def covered_area_acres(self) -> float:
        return square_meters_to_acres(self._covered_sq_m)

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def speed_mps(self) -> float:
        return self._speed_mps

    @property
    def elapsed_seconds(self) -> float:
        with self._lock:
            if self._started_at is None:
                return self._elapsed_base
            return self._elapsed_base + max(0.0, self._clock() - self._started_at)

    @property
    def visit_counts(self) -> Dict[int, int]:
        with self._lock:
            return dict(self._counts)

    def visit_count(self, cell_id: int) -> int:
        return self._counts.get(cell_id, 0)

    @property
    def overlap_cell_ids(self) -> List[int]:
        """Cells ploughed more than once, for highlighting overlap."""

        with self._lock:
            return sorted(cid for cid, count in self._counts.items() if count > 1)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(
        self,
        *,
        await_fix: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> bool:
        """Begin a fresh session, discarding any restored coverage.

        With ``await_fix`` the first position is acquired from the location
        source before anything is cleared; returns False (and stays idle)
        when no fix arrives or ``cancel_event`` is set.
        """

        if await_fix and not self._await_initial_fix(cancel_event):
            return False
        with self._lock:
            self._counts.clear()
            self._covered_sq_m = 0.0
            self._progress = 0.0
            self._elapsed_base = 0.0
            self._restored = False
            self._clear_snapshot()
            self._activate()
        self._log.info(
            "Ploughing session started cells=%d field=%.2f ac",
            len(self._grid),
            square_meters_to_acres(self._grid.field_area_square_meters),
        )
        return True

    def resume(
        self,
        *,
        await_fix: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> bool:
        """Activate without clearing, continuing a restored session."""

        if self._state is TrackerState.ACTIVE:
            return True
        if await_fix and not self._await_initial_fix(cancel_event):
            return False
        with self._lock:
            if self._state is TrackerState.ACTIVE:
                return True
            self._activate()
        self._log.info(
            "Ploughing session resumed visited=%d progress=%.3f",
            len(self._counts),
            self._progress,
        )
        return True

    def stop(self) -> CoverageSessionSummary:
        """End the session and return its summary.

        Unsubscribing and clearing the stored snapshot are both safe when
        the tracker is already idle.
        """

        with self._lock:
            elapsed = self.elapsed_seconds
            self._elapsed_base = elapsed
            self._started_at = None
            self._state = TrackerState.IDLE
            subscription, self._subscription = self._subscription, None
            summary = self._summary(elapsed)
        if subscription is not None:
            subscription.remove()
        self._clear_snapshot()
        self._log.info(
            "Ploughing session stopped ploughed=%.2f ac progress=%.3f elapsed=%.0fs",
            summary.ploughed_area_acres,
            summary.progress,
            summary.elapsed_seconds,
        )
        return summary

    # ------------------------------------------------------------------
    # Fix handling
    # ------------------------------------------------------------------
    def on_fix(self, fix: GpsFix) -> Optional[GridCell]:
        """Account for one fix; returns the matched cell, if any."""

        with self._lock:
            if self._state is not TrackerState.ACTIVE:
                return None
            if not is_accurate(fix, self._accuracy_threshold_m):
                self._log.debug("Ignoring fix accuracy=%.1fm", fix.accuracy_m)
                return None
            self._update_speed(fix)
            cell = self._grid.locate(fix.point)
            if cell is None:
                self._log.debug(
                    "Fix outside grid lat=%.7f lon=%.7f", fix.latitude, fix.longitude
                )
                return None
            previous = self._counts.get(cell.id, 0)
            self._counts[cell.id] = previous + 1
            if previous == 0:
                self._covered_sq_m += self._grid.cell_area_square_meters
                self._progress = self._compute_progress()
                self._persist_snapshot()
        return cell

    def _update_speed(self, fix: GpsFix) -> None:
        previous = self._previous_fix
        self._previous_fix = fix
        if previous is None:
            self._speed_mps = 0.0
            return
        dt_s = (fix.timestamp_ms - previous.timestamp_ms) / 1000.0
        if dt_s <= 0:
            return
        self._speed_mps = distance_m(previous.point, fix.point) / dt_s

    def _compute_progress(self) -> float:
        field_area = self._grid.field_area_square_meters
        if field_area <= 0:
            return 0.0
        return min(self._covered_sq_m / field_area, 1.0)

    def _await_initial_fix(self, cancel_event: threading.Event | None) -> bool:
        if self._source is None:
            return True
        fix = acquire_initial_fix(self._source, cancel_event=cancel_event)
        if fix is None:
            self._log.warning("Ploughing session not started: no initial fix")
            return False
        return True

    def _activate(self) -> None:
        self._state = TrackerState.ACTIVE
        self._started_at = self._clock()
        self._previous_fix = None
        self._speed_mps = 0.0
        if self._source is not None and self._subscription is None:
            self._subscription = self._source.watch_position(
                self.on_fix,
                time_interval_ms=TRACKING_TIME_INTERVAL_MS,
                distance_interval_m=TRACKING_DISTANCE_INTERVAL_M,
            )

    def _summary(self, elapsed: float) -> CoverageSessionSummary:
        farmer = self._farmer
        return CoverageSessionSummary(
            farm_id=farmer.id if farmer else None,
            farmer_name=farmer.name if farmer else None,
            ploughed_area_acres=square_meters_to_acres(self._covered_sq_m),
            field_area_acres=self._grid.boundary.area_acres,
            progress=self._progress,
            elapsed_seconds=elapsed,
            timestamp=self._wall_clock(),
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _persist_snapshot(self) -> None:
        if self._store is None:
            return
        snapshot = PloughSnapshot.from_counts(
            self._counts,
            covered_area_square_meters=self._covered_sq_m,
            progress=self._progress,
            elapsed_seconds=self.elapsed_seconds,
        )
        try:
            self._store.set(PLOUGH_SESSION_KEY, encode_plough_snapshot(snapshot))
        except SessionStoreError as exc:
            self._log.warning("Failed to persist ploughing session: %s", exc)

    def _clear_snapshot(self) -> None:
        if self._store is None:
            return
        try:
            self._store.remove(PLOUGH_SESSION_KEY)
        except SessionStoreError as exc:
            self._log.warning("Failed to clear ploughing session: %s", exc)

    def _restore_session(self) -> None:
        if self._store is None:
            return
        raw = self._store.get(PLOUGH_SESSION_KEY)
        if raw is None:
            return
        try:
            snapshot = decode_plough_snapshot(raw)
        except SnapshotFormatError as exc:
            self._log.warning("Ignoring unreadable ploughing session: %s", exc)
            return
        self._counts = snapshot.counts()
        self._covered_sq_m = snapshot.covered_area_square_meters
        self._progress = snapshot.progress
        self._elapsed_base = snapshot.elapsed_seconds
        self._restored = True
        self._log.info(
            "Restored ploughing session visited=%d progress=%.3f elapsed=%.0fs",
            len(self._counts),
            self._progress,
            self._elapsed_base,
        )


__all__ = ["CoverageTracker", "TrackerState"]

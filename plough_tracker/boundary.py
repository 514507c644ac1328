"""Operator-drawn field boundary: capture, validation and area.

The builder owns the ring of confirmed points. It never rejects a point:
every mutation appends or removes and then recomputes validity and area, so
the operator can always recover with :meth:`BoundaryBuilder.undo` or
:meth:`BoundaryBuilder.reset`. Each mutation also writes a draft snapshot so
an interrupted capture can resume.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import List, Optional, Tuple

from .config import BOUNDARY_DRAFT_KEY, CLEAR_DRAFT_ON_FINALIZE
from .errors import (
    IncompleteBoundary,
    SelfIntersectingBoundary,
    SessionStoreError,
    SnapshotFormatError,
)
from .geo_math import find_kinks, polygon_area
from .models import FinalizedBoundary, GeoPoint, Ring
from .session_store import SessionStore
from .snapshots import BoundaryDraft, decode_boundary_draft, encode_boundary_draft
from .utils import square_meters_to_acres


class BoundaryState(str, enum.Enum):
    EMPTY = "empty"
    CAPTURING = "capturing"
    INVALID = "invalid"
    COMPLETE = "complete"


class BoundaryBuilder:
    """Mutable ring of boundary points with derived state and area."""

    def __init__(self, store: SessionStore | None = None) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self._store = store
        self._lock = threading.RLock()
        self._points: List[GeoPoint] = []
        self._state = BoundaryState.EMPTY
        self._area_sq_m = 0.0
        self._kinks: Tuple[GeoPoint, ...] = ()
        self._restore_draft()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def state(self) -> BoundaryState:
        return self._state

    @property
    def points(self) -> Ring:
        with self._lock:
            return tuple(self._points)

    @property
    def area_square_meters(self) -> float:
        return self._area_sq_m

    @property
    def area_acres(self) -> float:
        return square_meters_to_acres(self._area_sq_m)

    @property
    def valid(self) -> bool:
        return self._state is BoundaryState.COMPLETE

    @property
    def kinks(self) -> Tuple[GeoPoint, ...]:
        return self._kinks

    def __len__(self) -> int:
        return len(self._points)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_point(self, point: GeoPoint) -> BoundaryState:
        """Append ``point`` and recompute state.

        Raises:
            SelfIntersectingBoundary: the ring now has crossing edges. The
                point is kept; ``undo()`` or ``reset()`` recovers.
        """

        with self._lock:
            self._points.append(point)
            state = self._recompute()
            self._persist_draft()
        if state is BoundaryState.INVALID:
            raise SelfIntersectingBoundary(
                "Boundary lines are crossing. Please adjust your boundary.",
                kinks=self._kinks,
            )
        return state

    def undo(self) -> BoundaryState:
        """Remove the last point; no-op on an empty ring."""

        with self._lock:
            if not self._points:
                return self._state
            self._points.pop()
            state = self._recompute()
            self._persist_draft()
        return state

    def reset(self) -> None:
        with self._lock:
            self._points.clear()
            self._recompute()
            self._clear_draft()
        self._log.info("Boundary reset")

    def finalize(self) -> FinalizedBoundary:
        """Freeze the current ring.

        Raises:
            IncompleteBoundary: fewer than 3 points, crossing edges, or a
                degenerate ring with no area.
        """

        with self._lock:
            if self._state is not BoundaryState.COMPLETE or self._area_sq_m <= 0:
                raise IncompleteBoundary(
                    "Please mark at least 3 points to define your field boundary."
                )
            boundary = FinalizedBoundary(
                ring=tuple(self._points), area_square_meters=self._area_sq_m
            )
            if CLEAR_DRAFT_ON_FINALIZE:
                self._clear_draft()
        self._log.info(
            "Boundary finalized points=%d area=%.2f ac",
            len(boundary.ring),
            boundary.area_acres,
        )
        return boundary

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _recompute(self) -> BoundaryState:
        count = len(self._points)
        self._kinks = ()
        if count == 0:
            self._state = BoundaryState.EMPTY
            self._area_sq_m = 0.0
        elif count < 3:
            self._state = BoundaryState.CAPTURING
            self._area_sq_m = 0.0
        else:
            kinks = find_kinks(self._points)
            if kinks:
                self._state = BoundaryState.INVALID
                self._area_sq_m = 0.0
                self._kinks = tuple(kinks)
                self._log.warning(
                    "Boundary self-intersects at %d location(s)", len(kinks)
                )
            else:
                self._state = BoundaryState.COMPLETE
                self._area_sq_m = polygon_area(self._points)
        self._log.debug(
            "Boundary points=%d state=%s area=%.1f m2",
            count,
            self._state.value,
            self._area_sq_m,
        )
        return self._state

    def _persist_draft(self) -> None:
        if self._store is None:
            return
        draft = BoundaryDraft(points=list(self._points), area_acres=self.area_acres)
        try:
            self._store.set(BOUNDARY_DRAFT_KEY, encode_boundary_draft(draft))
        except SessionStoreError as exc:
            self._log.warning("Failed to persist boundary draft: %s", exc)

    def _clear_draft(self) -> None:
        if self._store is None:
            return
        try:
            self._store.remove(BOUNDARY_DRAFT_KEY)
        except SessionStoreError as exc:
            self._log.warning("Failed to clear boundary draft: %s", exc)

    def _restore_draft(self) -> None:
        if self._store is None:
            return
        raw: Optional[bytes] = self._store.get(BOUNDARY_DRAFT_KEY)
        if raw is None:
            return
        try:
            draft = decode_boundary_draft(raw)
        except SnapshotFormatError as exc:
            self._log.warning("Ignoring unreadable boundary draft: %s", exc)
            return
        self._points = list(draft.points)
        self._recompute()
        self._log.info(
            "Restored boundary draft points=%d state=%s",
            len(self._points),
            self._state.value,
        )


__all__ = ["BoundaryBuilder", "BoundaryState"]

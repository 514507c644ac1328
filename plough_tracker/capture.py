"""Boundary capture workflow on top of an external location source.

The location source is supplied by the host (a phone GPS bridge, an NMEA
reader, a replayed track). It delivers fixes one at a time; this module
wires them through :class:`GpsFilter` into a :class:`BoundaryBuilder` and
owns the subscription lifecycle.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Protocol

from .boundary import BoundaryBuilder, BoundaryState
from .config import (
    CAPTURE_DISTANCE_INTERVAL_M,
    CAPTURE_TIME_INTERVAL_MS,
    GPS_ACCURACY_THRESHOLD_M,
    INITIAL_FIX_MAX_ATTEMPTS,
    INITIAL_FIX_RETRY_SECONDS,
)
from .errors import GpsUnreliable, SelfIntersectingBoundary
from .gps_filter import CaptureMode, GpsFilter, check_manual_fix
from .models import GpsFix

LOGGER = logging.getLogger(__name__)

FixCallback = Callable[[GpsFix], None]


class Subscription(Protocol):
    def remove(self) -> None: ...


class LocationSource(Protocol):
    """Host-provided access to the device position."""

    def current_position(self) -> Optional[GpsFix]:
        """Return the most accurate one-shot fix, or None when unavailable."""
        ...

    def watch_position(
        self,
        callback: FixCallback,
        *,
        time_interval_ms: int,
        distance_interval_m: float,
    ) -> Subscription: ...


def acquire_initial_fix(
    source: LocationSource,
    *,
    cancel_event: threading.Event | None = None,
    max_attempts: int = INITIAL_FIX_MAX_ATTEMPTS,
    retry_seconds: float = INITIAL_FIX_RETRY_SECONDS,
) -> Optional[GpsFix]:
    """Wait for the first position before a capture or tracking phase.

    Returns None when cancelled or when no fix arrived within
    ``max_attempts`` polls.
    """

    for attempt in range(1, max(1, max_attempts) + 1):
        if cancel_event is not None and cancel_event.is_set():
            LOGGER.info("Initial fix acquisition cancelled")
            return None
        fix = source.current_position()
        if fix is not None:
            LOGGER.info(
                "Initial fix acquired attempt=%d accuracy=%.1fm",
                attempt,
                fix.accuracy_m,
            )
            return fix
        if cancel_event is not None:
            if cancel_event.wait(retry_seconds):
                LOGGER.info("Initial fix acquisition cancelled")
                return None
        elif retry_seconds > 0:
            time.sleep(retry_seconds)
    LOGGER.warning("No initial fix after %d attempts", max_attempts)
    return None


def add_current_position(
    builder: BoundaryBuilder,
    source: LocationSource,
    *,
    threshold_m: float = GPS_ACCURACY_THRESHOLD_M,
) -> BoundaryState:
    """Manual "Add point": take one fix and append it when accurate.

    Raises:
        GpsUnreliable: no fix, or accuracy worse than ``threshold_m``.
        SelfIntersectingBoundary: propagated from the builder.
    """

    fix = source.current_position()
    if fix is None:
        raise GpsUnreliable("No GPS position available")
    check_manual_fix(fix, threshold_m)
    return builder.add_point(fix.point)


class AutoCapture:
    """Walk-the-boundary capture: subscribes to the stream and adds corners.

    Pass ``await_fix=True`` to :meth:`start` to wait for the first position
    before subscribing; otherwise the host must call
    :func:`acquire_initial_fix` itself beforehand.
    """

    def __init__(
        self,
        builder: BoundaryBuilder,
        source: LocationSource,
        gps_filter: GpsFilter | None = None,
        *,
        time_interval_ms: int = CAPTURE_TIME_INTERVAL_MS,
        distance_interval_m: float = CAPTURE_DISTANCE_INTERVAL_M,
    ) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self._builder = builder
        self._source = source
        self._filter = gps_filter or GpsFilter(CaptureMode.AUTO)
        self._time_interval_ms = time_interval_ms
        self._distance_interval_m = distance_interval_m
        # Re-entrant: a source may deliver a cached fix inside watch_position.
        self._lock = threading.RLock()
        self._active = False
        self._subscription: Subscription | None = None
        self._last_accuracy_m: float | None = None

    @property
    def capturing(self) -> bool:
        return self._active

    @property
    def last_accuracy_m(self) -> float | None:
        return self._last_accuracy_m

    def start(
        self,
        *,
        await_fix: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> bool:
        """Subscribe to the location stream.

        Returns False when ``await_fix`` is set and no initial fix arrived
        (or ``cancel_event`` fired); nothing is subscribed in that case.
        """

        if self._active:
            return True
        if await_fix:
            fix = acquire_initial_fix(self._source, cancel_event=cancel_event)
            if fix is None:
                self._log.warning("Auto capture not started: no initial fix")
                return False
        with self._lock:
            if self._active:
                return True
            self._filter.reset()
            self._active = True
            try:
                self._subscription = self._source.watch_position(
                    self.on_fix,
                    time_interval_ms=self._time_interval_ms,
                    distance_interval_m=self._distance_interval_m,
                )
            except Exception:
                self._active = False
                raise
        self._log.info("Auto capture started")
        return True

    def stop(self) -> None:
        """Unsubscribe from the stream; safe to call when not capturing.

        Waits for a fix already being processed, so no point is added after
        this returns.
        """

        with self._lock:
            was_active = self._active
            self._active = False
            subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.remove()
        if not was_active:
            return
        self._log.info(
            "Auto capture stopped points=%d state=%s",
            len(self._builder),
            self._builder.state.value,
        )

    def on_fix(self, fix: GpsFix) -> None:
        with self._lock:
            if not self._active:
                return
            self._last_accuracy_m = fix.accuracy_m
            if not self._filter.accept(fix):
                return
            try:
                self._builder.add_point(fix.point)
            except SelfIntersectingBoundary as exc:
                # Streaming flows stay silent; the builder state reports INVALID.
                self._log.warning("Auto capture produced a crossing boundary: %s", exc)


__all__ = [
    "AutoCapture",
    "LocationSource",
    "Subscription",
    "acquire_initial_fix",
    "add_current_position",
]

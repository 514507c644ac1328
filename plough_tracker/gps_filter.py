"""Gating of raw GPS fixes before they reach the boundary builder."""

from __future__ import annotations

import enum
import logging
from typing import Optional

from .config import GPS_ACCURACY_THRESHOLD_M, HEADING_CHANGE_THRESHOLD_DEG
from .errors import GpsUnreliable
from .models import GpsFix

LOGGER = logging.getLogger(__name__)


class CaptureMode(str, enum.Enum):
    MANUAL = "manual"
    AUTO = "auto"


def is_accurate(fix: GpsFix, threshold_m: float = GPS_ACCURACY_THRESHOLD_M) -> bool:
    return fix.accuracy_m <= threshold_m


def heading_delta(a: float, b: float) -> float:
    """Return the shorter-arc difference between two headings (0..180)."""

    diff = abs(a - b) % 360.0
    return 360.0 - diff if diff > 180.0 else diff


def normalize_heading(heading: Optional[float]) -> Optional[float]:
    """Map unknown headings (missing or negative) to None."""

    if heading is None or heading < 0:
        return None
    return heading % 360.0


def check_manual_fix(
    fix: GpsFix, threshold_m: float = GPS_ACCURACY_THRESHOLD_M
) -> GpsFix:
    """Validate the fix taken when the operator presses "Add point".

    Raises:
        GpsUnreliable: accuracy is worse than ``threshold_m``.
    """

    if not is_accurate(fix, threshold_m):
        raise GpsUnreliable(
            "Please wait for better GPS signal before adding point.",
            accuracy_m=fix.accuracy_m,
        )
    return fix


class GpsFilter:
    """Decides which streamed fixes become boundary points.

    Manual mode only applies the accuracy gate. Auto mode additionally keeps
    the heading of the last accepted fix and emits a point each time the
    walker turns by more than the heading threshold, which places points at
    field corners.
    """

    def __init__(
        self,
        mode: CaptureMode = CaptureMode.AUTO,
        *,
        accuracy_threshold_m: float = GPS_ACCURACY_THRESHOLD_M,
        heading_threshold_deg: float = HEADING_CHANGE_THRESHOLD_DEG,
    ) -> None:
        self.mode = mode
        self.accuracy_threshold_m = accuracy_threshold_m
        self.heading_threshold_deg = heading_threshold_deg
        self._previous_heading: Optional[float] = None
        self._accepted = 0

    @property
    def previous_heading(self) -> Optional[float]:
        return self._previous_heading

    @property
    def accepted_count(self) -> int:
        return self._accepted

    def reset(self) -> None:
        self._previous_heading = None
        self._accepted = 0

    def accept(self, fix: GpsFix) -> bool:
        if not is_accurate(fix, self.accuracy_threshold_m):
            LOGGER.debug("Dropping fix accuracy=%.1fm", fix.accuracy_m)
            return False
        if self.mode is CaptureMode.MANUAL:
            self._accepted += 1
            return True

        heading = normalize_heading(fix.heading_deg)
        if heading is None:
            # Without a heading only the first point of a walk is taken.
            if self._accepted:
                return False
            self._accepted += 1
            return True
        if self._previous_heading is not None and (
            heading_delta(heading, self._previous_heading)
            <= self.heading_threshold_deg
        ):
            return False
        LOGGER.debug(
            "Heading change accepted previous=%s current=%.1f",
            self._previous_heading,
            heading,
        )
        self._previous_heading = heading
        self._accepted += 1
        return True


__all__ = [
    "CaptureMode",
    "GpsFilter",
    "check_manual_fix",
    "heading_delta",
    "is_accurate",
    "normalize_heading",
]

"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable boundaries, a scripted
location source and a controllable clock shared across the test modules.
"""
from __future__ import annotations

import os
import sys
from typing import Callable, List, Optional

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from plough_tracker.models import FarmerProfile, FinalizedBoundary, GeoPoint, GpsFix
from plough_tracker.geo_math import polygon_area
from plough_tracker.session_store import InMemorySessionStore


# --- Factory helpers -------------------------------------------------
def make_fix(lat, lon, *, accuracy=3.0, heading=None, t_ms=0):
    return GpsFix(latitude=lat, longitude=lon, accuracy_m=accuracy, timestamp_ms=t_ms, heading_deg=heading)


def square_ring(side_deg=0.001):
    return (
        GeoPoint(0.0, 0.0),
        GeoPoint(0.0, side_deg),
        GeoPoint(side_deg, side_deg),
        GeoPoint(side_deg, 0.0),
    )


def finalized(ring):
    return FinalizedBoundary(ring=tuple(ring), area_square_meters=polygon_area(ring))


class FakeSubscription:
    def __init__(self, source: "FakeLocationSource", callback: Callable[[GpsFix], None]):
        self.source = source
        self.callback = callback
        self.remove_calls = 0

    def remove(self) -> None:
        self.remove_calls += 1
        if self in self.source.active:
            self.source.active.remove(self)


class FakeLocationSource:
    """Scripted positions for one-shot queries plus a push-style stream."""

    def __init__(self, positions: Optional[List[Optional[GpsFix]]] = None):
        self.positions = list(positions or [])
        self.active: List[FakeSubscription] = []
        self.watch_calls: List[dict] = []

    def current_position(self) -> Optional[GpsFix]:
        if not self.positions:
            return None
        return self.positions.pop(0)

    def watch_position(self, callback, *, time_interval_ms, distance_interval_m):
        self.watch_calls.append(
            {"time_interval_ms": time_interval_ms, "distance_interval_m": distance_interval_m}
        )
        sub = FakeSubscription(self, callback)
        self.active.append(sub)
        return sub

    def emit(self, fix: GpsFix) -> None:
        for sub in list(self.active):
            sub.callback(fix)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def location_source():
    return FakeLocationSource()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def farmer():
    return FarmerProfile(
        name="Asha",
        farm_id="17",
        phone="9000000000",
        village="Kheda",
        district="Anand",
        state="Gujarat",
        farm_size="3",
        crop_type="Wheat",
        operator_name="Ravi",
        operator_phone="9111111111",
    )


@pytest.fixture
def small_square_boundary():
    # ~44.5 m square at the equator; with a 20 m implement this is a 5x5 grid.
    return finalized(square_ring(0.0004))

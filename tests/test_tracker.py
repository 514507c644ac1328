"""Tests for CoverageTracker visit accounting, progress and session restore."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

import pytest

from conftest import FakeClock, FakeLocationSource, make_fix
from plough_tracker.config import (
    PLOUGH_SESSION_KEY,
    TRACKING_DISTANCE_INTERVAL_M,
    TRACKING_TIME_INTERVAL_MS,
)
from plough_tracker.grid import CoverageGrid
from plough_tracker.models import GeoPoint
from plough_tracker.session_store import InMemorySessionStore
from plough_tracker.snapshots import decode_plough_snapshot
from plough_tracker.tracker import CoverageTracker, TrackerState
from plough_tracker.utils import square_meters_to_acres

FIXED_NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


class _CountingStore(InMemorySessionStore):
    def __init__(self) -> None:
        super().__init__()
        self.set_calls = 0

    def set(self, key: str, value: bytes) -> None:
        self.set_calls += 1
        super().set(key, value)


def _center(cell) -> GeoPoint:
    lats = [pt.latitude for pt in cell.polygon]
    lons = [pt.longitude for pt in cell.polygon]
    return GeoPoint((min(lats) + max(lats)) / 2, (min(lons) + max(lons)) / 2)


def _fix_at(point: GeoPoint, **kwargs):
    return make_fix(point.latitude, point.longitude, **kwargs)


@pytest.fixture
def grid(small_square_boundary) -> CoverageGrid:
    return CoverageGrid.build(small_square_boundary, cell_width_m=20.0)


def _tracker(grid, **kwargs) -> CoverageTracker:
    kwargs.setdefault("wall_clock", lambda: FIXED_NOW)
    return CoverageTracker(grid, **kwargs)


def test_fixes_ignored_while_idle(grid) -> None:
    tracker = _tracker(grid)
    assert tracker.state is TrackerState.IDLE
    assert tracker.on_fix(_fix_at(_center(grid.cell(0)))) is None
    assert tracker.visit_counts == {}
    assert tracker.covered_area_square_meters == 0


def test_inaccurate_fix_is_ignored(grid) -> None:
    tracker = _tracker(grid)
    tracker.start()
    assert tracker.on_fix(_fix_at(_center(grid.cell(0)), accuracy=30.0)) is None
    assert tracker.visit_counts == {}


def test_revisits_count_but_add_area_once(grid) -> None:
    store = _CountingStore()
    tracker = _tracker(grid, store=store)
    tracker.start()
    center = _center(grid.cell(3))

    for _ in range(3):
        assert tracker.on_fix(_fix_at(center)) == grid.cell(3)

    assert tracker.visit_count(3) == 3
    assert tracker.covered_area_square_meters == pytest.approx(100.0)
    assert tracker.covered_area_acres == pytest.approx(square_meters_to_acres(100.0))
    assert tracker.progress == pytest.approx(100.0 / grid.field_area_square_meters)
    assert tracker.overlap_cell_ids == [3]
    # Only the first visit writes a snapshot.
    assert store.set_calls == 1


def test_progress_caps_at_one(grid) -> None:
    tracker = _tracker(grid)
    tracker.start()
    for cell in grid:
        tracker.on_fix(_fix_at(_center(cell)))
    # 25 cells of 100 m^2 exceed the ~1983 m^2 field.
    assert tracker.covered_area_square_meters == pytest.approx(2500.0)
    assert tracker.progress == 1.0
    assert tracker.overlap_cell_ids == []


def test_progress_never_decreases(grid) -> None:
    tracker = _tracker(grid)
    tracker.start()
    seen = []
    for cell in list(grid)[:5] + list(grid)[:5]:
        tracker.on_fix(_fix_at(_center(cell)))
        seen.append(tracker.progress)
    assert seen == sorted(seen)


def test_fix_outside_grid_is_not_counted(grid) -> None:
    tracker = _tracker(grid)
    tracker.start()
    assert tracker.on_fix(make_fix(0.01, 0.01)) is None
    assert tracker.visit_counts == {}


def test_speed_from_consecutive_fixes(grid) -> None:
    tracker = _tracker(grid)
    tracker.start()
    a = _center(grid.cell(0))
    b = _center(grid.cell(1))
    tracker.on_fix(_fix_at(a, t_ms=0))
    assert tracker.speed_mps == 0.0
    tracker.on_fix(_fix_at(b, t_ms=5000))
    # Adjacent cell centres are one 10 m cell side apart.
    assert tracker.speed_mps == pytest.approx(2.0, rel=1e-3)
    # A repeated timestamp leaves the last speed untouched.
    tracker.on_fix(_fix_at(a, t_ms=5000))
    assert tracker.speed_mps == pytest.approx(2.0, rel=1e-3)


def test_elapsed_time_follows_clock(grid, clock: FakeClock) -> None:
    tracker = _tracker(grid, clock=clock)
    tracker.start()
    clock.advance(42.0)
    assert tracker.elapsed_seconds == pytest.approx(42.0)
    summary = tracker.stop()
    clock.advance(100.0)
    assert summary.elapsed_seconds == pytest.approx(42.0)
    assert tracker.elapsed_seconds == pytest.approx(42.0)


def test_start_subscribes_with_tracking_intervals(
    grid, location_source: FakeLocationSource
) -> None:
    tracker = _tracker(grid, source=location_source)
    tracker.start()
    assert location_source.watch_calls == [
        {
            "time_interval_ms": TRACKING_TIME_INTERVAL_MS,
            "distance_interval_m": TRACKING_DISTANCE_INTERVAL_M,
        }
    ]
    location_source.emit(_fix_at(_center(grid.cell(7))))
    assert tracker.visit_count(7) == 1


def test_stop_unsubscribes_and_clears_snapshot(
    grid, store, location_source: FakeLocationSource
) -> None:
    tracker = _tracker(grid, store=store, source=location_source)
    tracker.start()
    location_source.emit(_fix_at(_center(grid.cell(0))))
    assert store.get(PLOUGH_SESSION_KEY) is not None

    subscription = location_source.active[0]
    tracker.stop()
    tracker.stop()
    assert subscription.remove_calls == 1
    assert tracker.state is TrackerState.IDLE
    assert store.get(PLOUGH_SESSION_KEY) is None

    location_source.emit(_fix_at(_center(grid.cell(1))))
    assert tracker.visit_count(1) == 0


def test_summary_carries_farmer_and_areas(grid, farmer, clock: FakeClock) -> None:
    tracker = _tracker(grid, farmer=farmer, clock=clock)
    tracker.start()
    tracker.on_fix(_fix_at(_center(grid.cell(0))))
    clock.advance(90.0)
    summary = tracker.stop()

    assert summary.farm_id == "M017"
    assert summary.farmer_name == "Asha"
    assert summary.ploughed_area_acres == pytest.approx(square_meters_to_acres(100.0))
    assert summary.field_area_acres == pytest.approx(grid.boundary.area_acres)
    assert summary.progress == pytest.approx(tracker.progress)
    assert summary.elapsed_seconds == pytest.approx(90.0)
    assert summary.timestamp == FIXED_NOW


def test_summary_without_farmer(grid) -> None:
    tracker = _tracker(grid)
    tracker.start()
    summary = tracker.stop()
    assert summary.farm_id is None
    assert summary.farmer_name is None
    assert summary.ploughed_area_acres == 0


def test_snapshot_written_on_first_visit(grid, store, clock: FakeClock) -> None:
    tracker = _tracker(grid, store=store, clock=clock)
    tracker.start()
    clock.advance(12.0)
    tracker.on_fix(_fix_at(_center(grid.cell(2))))
    tracker.on_fix(_fix_at(_center(grid.cell(2))))

    snapshot = decode_plough_snapshot(store.get(PLOUGH_SESSION_KEY))
    # The revisit did not rewrite the stored count.
    assert snapshot.counts() == {2: 1}
    assert snapshot.covered_area_square_meters == pytest.approx(100.0)
    assert snapshot.elapsed_seconds == pytest.approx(12.0)


def test_interrupted_session_is_restored_and_resumed(grid, store, clock: FakeClock) -> None:
    first = _tracker(grid, store=store, clock=clock)
    first.start()
    for cell_id in (0, 1, 2):
        first.on_fix(_fix_at(_center(grid.cell(cell_id))))
    clock.advance(30.0)
    first.on_fix(_fix_at(_center(grid.cell(3))))
    # The process dies here; nothing calls stop().

    second = _tracker(grid, store=store, clock=clock)
    assert second.restored
    assert second.state is TrackerState.IDLE
    assert second.visit_counts == {0: 1, 1: 1, 2: 1, 3: 1}
    assert second.covered_area_square_meters == pytest.approx(400.0)
    assert second.elapsed_seconds == pytest.approx(30.0)

    second.resume()
    assert second.state is TrackerState.ACTIVE
    second.on_fix(_fix_at(_center(grid.cell(4))))
    assert second.covered_area_square_meters == pytest.approx(500.0)
    clock.advance(5.0)
    assert second.elapsed_seconds == pytest.approx(35.0)


def test_start_discards_restored_session(grid, store) -> None:
    first = _tracker(grid, store=store)
    first.start()
    first.on_fix(_fix_at(_center(grid.cell(0))))

    second = _tracker(grid, store=store)
    assert second.restored
    second.start()
    assert not second.restored
    assert second.visit_counts == {}
    assert second.progress == 0


def test_resume_when_active_is_noop(grid, location_source: FakeLocationSource) -> None:
    tracker = _tracker(grid, source=location_source)
    tracker.start()
    tracker.resume()
    assert len(location_source.watch_calls) == 1


def test_unreadable_session_is_ignored(grid, store, caplog: pytest.LogCaptureFixture) -> None:
    store.set(PLOUGH_SESSION_KEY, b"[1, 2")
    with caplog.at_level(logging.WARNING, logger="CoverageTracker"):
        tracker = _tracker(grid, store=store)
    assert not tracker.restored
    assert "unreadable ploughing session" in caplog.text


def test_start_removes_discarded_snapshot(grid, store) -> None:
    first = _tracker(grid, store=store)
    first.start()
    for cell_id in range(5):
        first.on_fix(_fix_at(_center(grid.cell(cell_id))))

    second = _tracker(grid, store=store)
    assert second.restored
    second.start()
    assert store.get(PLOUGH_SESSION_KEY) is None

    # Crash before the new session reaches any cell.
    third = _tracker(grid, store=store)
    assert not third.restored
    assert third.visit_counts == {}


def test_start_can_wait_for_initial_fix(grid) -> None:
    source = FakeLocationSource([make_fix(0.0, 0.0)])
    tracker = _tracker(grid, source=source)
    assert tracker.start(await_fix=True, cancel_event=threading.Event())
    assert tracker.state is TrackerState.ACTIVE
    assert source.positions == []
    assert len(source.watch_calls) == 1


def test_cancelled_initial_fix_keeps_restored_session(grid, store) -> None:
    first = _tracker(grid, store=store)
    first.start()
    first.on_fix(_fix_at(_center(grid.cell(0))))

    cancel = threading.Event()
    cancel.set()
    source = FakeLocationSource([make_fix(0.0, 0.0)])
    second = _tracker(grid, store=store, source=source)
    assert not second.start(await_fix=True, cancel_event=cancel)
    assert not second.resume(await_fix=True, cancel_event=cancel)
    assert second.state is TrackerState.IDLE
    assert second.visit_counts == {0: 1}
    assert store.get(PLOUGH_SESSION_KEY) is not None
    assert source.watch_calls == []

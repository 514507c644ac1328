from datetime import datetime, timezone

import pytest

from conftest import finalized, square_ring
from plough_tracker.config import SQUARE_METERS_PER_ACRE
from plough_tracker.models import CoverageSessionSummary, FarmerProfile, GpsFix
from plough_tracker.sync.session import create_default_session
from plough_tracker.utils import json_dumps_sorted, square_meters_to_acres


def test_farmer_id_and_missing_fields():
    farmer = FarmerProfile(name="Asha", farm_id="42")
    assert farmer.id == "M042"
    missing = farmer.missing_fields()
    assert "name" not in missing
    assert "phone" in missing and "operator_phone" in missing
    assert len(missing) == 8


def test_finalized_boundary_acres():
    boundary = finalized(square_ring())
    assert boundary.area_acres == pytest.approx(boundary.area_square_meters / SQUARE_METERS_PER_ACRE)
    assert square_meters_to_acres(SQUARE_METERS_PER_ACRE) == pytest.approx(1.0)


def test_gps_fix_point():
    fix = GpsFix(latitude=1.5, longitude=2.5, accuracy_m=3.0, timestamp_ms=10)
    assert fix.point.as_lonlat() == (2.5, 1.5)
    assert fix.heading_deg is None


def test_summary_payload_is_json_ready():
    summary = CoverageSessionSummary(
        farm_id=None,
        farmer_name=None,
        ploughed_area_acres=0.0,
        field_area_acres=2.0,
        progress=0.0,
        elapsed_seconds=0.0,
        timestamp=datetime(2024, 1, 2, tzinfo=timezone.utc),
    )
    payload = summary.to_payload()
    assert payload["farmId"] is None
    assert payload["timestamp"] == "2024-01-02T00:00:00+00:00"


def test_json_dumps_sorted_is_compact_and_ordered():
    text = json_dumps_sorted({"b": 1.5, "a": [1, 2], "c": "hi"})
    assert text == '{"a":[1,2],"b":1.5,"c":"hi"}'


def test_default_session_retries_posts():
    session = create_default_session()
    adapter = session.get_adapter("https://example.com")
    retry = adapter.max_retries
    assert 503 in retry.status_forcelist
    assert "POST" in retry.allowed_methods
    assert session.headers["Content-Type"] == "application/json"

"""JSON codecs for the snapshots kept in the session store.

Ring point order and cell id/count pairs round-trip exactly; floats are
written with ``repr`` precision by :mod:`json`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from .errors import SnapshotFormatError
from .models import GeoPoint
from .utils import json_dumps_sorted

SNAPSHOT_VERSION = 1


@dataclass(slots=True)
class BoundaryDraft:
    """Unfinished boundary: ring in capture order and its area in acres."""

    points: List[GeoPoint]
    area_acres: float = 0.0


@dataclass(slots=True)
class PloughSnapshot:
    """Visit counts and derived progress of an interrupted ploughing session."""

    cells: List[Tuple[int, int]] = field(default_factory=list)
    covered_area_square_meters: float = 0.0
    progress: float = 0.0
    elapsed_seconds: float = 0.0

    @classmethod
    def from_counts(
        cls,
        counts: Mapping[int, int],
        *,
        covered_area_square_meters: float,
        progress: float,
        elapsed_seconds: float,
    ) -> "PloughSnapshot":
        return cls(
            cells=sorted((int(k), int(v)) for k, v in counts.items()),
            covered_area_square_meters=covered_area_square_meters,
            progress=progress,
            elapsed_seconds=elapsed_seconds,
        )

    def counts(self) -> Dict[int, int]:
        return {cell_id: count for cell_id, count in self.cells}


def encode_boundary_draft(draft: BoundaryDraft) -> bytes:
    payload = {
        "version": SNAPSHOT_VERSION,
        "coords": [
            {"latitude": pt.latitude, "longitude": pt.longitude}
            for pt in draft.points
        ],
        "area": draft.area_acres,
    }
    return json_dumps_sorted(payload).encode("utf-8")


def decode_boundary_draft(raw: bytes) -> BoundaryDraft:
    data = _load_object(raw)
    coords = data.get("coords")
    if not isinstance(coords, list):
        raise SnapshotFormatError("Boundary draft is missing 'coords'")
    try:
        points = [
            GeoPoint(float(item["latitude"]), float(item["longitude"]))
            for item in coords
        ]
        area = float(data.get("area", 0.0))
    except (KeyError, TypeError, ValueError) as exc:
        raise SnapshotFormatError("Boundary draft has malformed coordinates") from exc
    return BoundaryDraft(points=points, area_acres=area)


def encode_plough_snapshot(snapshot: PloughSnapshot) -> bytes:
    payload = {
        "version": SNAPSHOT_VERSION,
        "cells": [[cell_id, count] for cell_id, count in snapshot.cells],
        "coveredArea": snapshot.covered_area_square_meters,
        "progress": snapshot.progress,
        "elapsedSeconds": snapshot.elapsed_seconds,
    }
    return json_dumps_sorted(payload).encode("utf-8")


def decode_plough_snapshot(raw: bytes) -> PloughSnapshot:
    data = _load_object(raw)
    cells_raw = data.get("cells") or []
    if not isinstance(cells_raw, list):
        raise SnapshotFormatError("Plough snapshot 'cells' must be a list")
    try:
        cells = [(int(cell_id), int(count)) for cell_id, count in cells_raw]
        return PloughSnapshot(
            cells=cells,
            covered_area_square_meters=float(data.get("coveredArea", 0.0)),
            progress=float(data.get("progress", 0.0)),
            elapsed_seconds=float(data.get("elapsedSeconds", 0.0)),
        )
    except (TypeError, ValueError) as exc:
        raise SnapshotFormatError("Plough snapshot has malformed values") from exc


def _load_object(raw: bytes) -> Dict[str, Any]:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise SnapshotFormatError("Snapshot is not valid JSON") from exc
    if not isinstance(data, dict):
        raise SnapshotFormatError(
            f"Snapshot has unexpected type {type(data).__name__}"
        )
    return data


__all__ = [
    "BoundaryDraft",
    "PloughSnapshot",
    "encode_boundary_draft",
    "decode_boundary_draft",
    "encode_plough_snapshot",
    "decode_plough_snapshot",
]

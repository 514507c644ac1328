"""GeoJSON export of a boundary and the cells ploughed within it."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from .grid import CoverageGrid
from .models import FarmerProfile, FinalizedBoundary, GeoPoint


def ring_coordinates(ring: Sequence[GeoPoint]) -> List[List[float]]:
    """Closed ``[lon, lat]`` coordinate list as GeoJSON expects."""

    coords = [[pt.longitude, pt.latitude] for pt in ring]
    if coords and coords[0] != coords[-1]:
        coords.append(list(coords[0]))
    return coords


def boundary_feature(
    boundary: FinalizedBoundary, farmer: FarmerProfile | None = None
) -> Dict[str, Any]:
    properties: Dict[str, Any] = {"areaAcres": boundary.area_acres}
    if farmer is not None:
        properties["farmer"] = farmer.to_payload()
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [ring_coordinates(boundary.ring)]},
        "properties": properties,
    }


def coverage_feature_collection(
    grid: CoverageGrid,
    visit_counts: Mapping[int, int],
    farmer: FarmerProfile | None = None,
) -> Dict[str, Any]:
    """Boundary feature followed by every visited cell with its visit count."""

    features = [boundary_feature(grid.boundary, farmer)]
    for cell in grid:
        count = visit_counts.get(cell.id, 0)
        if count <= 0:
            continue
        features.append(
            {
                "type": "Feature",
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [ring_coordinates(cell.polygon)],
                },
                "properties": {"cellId": cell.id, "visitCount": count},
            }
        )
    return {"type": "FeatureCollection", "features": features}


__all__ = ["boundary_feature", "coverage_feature_collection", "ring_coordinates"]

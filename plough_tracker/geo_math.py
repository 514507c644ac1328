"""Pure geometry helpers for boundary validation and coverage grids.

Coordinates are WGS84 degrees. Planar predicates (orientation, crossing
number, bounding boxes) operate directly on longitude/latitude pairs, which
is accurate enough at field scale. Areas and distances are geodesic on a
spherical earth through :class:`pyproj.Geod`.
"""

from __future__ import annotations

import math
from typing import List, NamedTuple, Sequence

import numpy as np
import shapely
from numpy.typing import NDArray
from pyproj import Geod
from shapely.geometry import Polygon

from .config import EARTH_RADIUS_M, SQUARE_METERS_PER_ACRE
from .models import GeoPoint, Ring

CoordArray = NDArray[np.float64]

# Shared spherical geodesic solver (flattening 0).
_GEOD = Geod(a=EARTH_RADIUS_M, f=0.0)


class BoundingBox(NamedTuple):
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float


def distance_m(a: GeoPoint, b: GeoPoint) -> float:
    """Return the geodesic distance between two points in metres."""

    _az12, _az21, dist = _GEOD.inv(a.longitude, a.latitude, b.longitude, b.latitude)
    return float(dist)


def polygon_area(ring: Sequence[GeoPoint]) -> float:
    """Return the absolute geodesic area (m^2) of ``ring`` treated as closed."""

    if len(ring) < 3:
        return 0.0
    lons = [pt.longitude for pt in ring]
    lats = [pt.latitude for pt in ring]
    area, _perimeter = _GEOD.polygon_area_perimeter(lons, lats)
    return abs(float(area))


def polygon_area_acres(ring: Sequence[GeoPoint]) -> float:
    return polygon_area(ring) / SQUARE_METERS_PER_ACRE


def segments_intersect(
    a1: GeoPoint, a2: GeoPoint, b1: GeoPoint, b2: GeoPoint
) -> bool:
    """Return True when segment ``a1-a2`` touches or crosses ``b1-b2``."""

    o1 = _orientation(a1, a2, b1)
    o2 = _orientation(a1, a2, b2)
    o3 = _orientation(b1, b2, a1)
    o4 = _orientation(b1, b2, a2)
    if o1 != o2 and o3 != o4:
        return True
    # Collinear cases: an endpoint lying on the other segment.
    if o1 == 0 and _on_segment(a1, b1, a2):
        return True
    if o2 == 0 and _on_segment(a1, b2, a2):
        return True
    if o3 == 0 and _on_segment(b1, a1, b2):
        return True
    if o4 == 0 and _on_segment(b1, a2, b2):
        return True
    return False


def find_kinks(ring: Sequence[GeoPoint]) -> List[GeoPoint]:
    """Return the locations where non-adjacent edges of the closed ring meet.

    Edges that share a ring vertex (consecutive edges, plus the closing edge
    and the first edge) are never reported.
    """

    count = len(ring)
    if count < 4:
        return []
    edges = [(ring[i], ring[(i + 1) % count]) for i in range(count)]
    kinks: List[GeoPoint] = []
    for i in range(count):
        a1, a2 = edges[i]
        for j in range(i + 2, count):
            if i == 0 and j == count - 1:
                continue
            b1, b2 = edges[j]
            if segments_intersect(a1, a2, b1, b2):
                kinks.append(_intersection_point(a1, a2, b1, b2))
    return kinks


def is_self_intersecting(ring: Sequence[GeoPoint]) -> bool:
    return bool(find_kinks(ring))


def point_in_polygon(point: GeoPoint, ring: Sequence[GeoPoint]) -> bool:
    """Crossing-number test of ``point`` against the closed ``ring``.

    Edges are half-open, so a point on an edge shared by two adjacent cells
    belongs to exactly one of them.
    """

    if len(ring) < 3:
        return False
    coords = _as_lonlat_array(ring)
    xs = coords[:, 0]
    ys = coords[:, 1]
    next_xs = np.roll(xs, -1)
    next_ys = np.roll(ys, -1)
    x, y = point.longitude, point.latitude
    straddles = (ys > y) != (next_ys > y)
    if not straddles.any():
        return False
    x0 = xs[straddles]
    y0 = ys[straddles]
    x1 = next_xs[straddles]
    y1 = next_ys[straddles]
    x_cross = x0 + (y - y0) * (x1 - x0) / (y1 - y0)
    crossings = int(np.count_nonzero(x < x_cross))
    return crossings % 2 == 1


def bounding_box(ring: Sequence[GeoPoint]) -> BoundingBox:
    if not ring:
        raise ValueError("Cannot compute the bounding box of an empty ring")
    coords = _as_lonlat_array(ring)
    min_lon, min_lat = coords.min(axis=0)
    max_lon, max_lat = coords.max(axis=0)
    return BoundingBox(float(min_lat), float(min_lon), float(max_lat), float(max_lon))


def square_grid(bbox: BoundingBox, cell_side_m: float) -> List[Ring]:
    """Tessellate ``bbox`` into axis-aligned squares of ``cell_side_m`` metres.

    Cells start at the minimum corner and are emitted column by column (west
    to east, south to north within a column). The last row and column may
    extend past the box edge.
    """

    if cell_side_m <= 0:
        raise ValueError("cell_side_m must be greater than zero")
    lat_step = math.degrees(cell_side_m / EARTH_RADIUS_M)
    mid_lat = math.radians((bbox.min_lat + bbox.max_lat) / 2.0)
    lon_step = lat_step / max(math.cos(mid_lat), 1e-12)
    columns = _step_count(bbox.max_lon - bbox.min_lon, lon_step)
    rows = _step_count(bbox.max_lat - bbox.min_lat, lat_step)

    cells: List[Ring] = []
    for col in range(columns):
        lon0 = bbox.min_lon + col * lon_step
        lon1 = lon0 + lon_step
        for row in range(rows):
            lat0 = bbox.min_lat + row * lat_step
            lat1 = lat0 + lat_step
            cells.append(
                (
                    GeoPoint(lat0, lon0),
                    GeoPoint(lat0, lon1),
                    GeoPoint(lat1, lon1),
                    GeoPoint(lat1, lon0),
                )
            )
    return cells


def intersects(ring_a: Sequence[GeoPoint], ring_b: Sequence[GeoPoint]) -> bool:
    """Return True when the two closed rings share any point.

    Covers a vertex of one ring inside the other, crossing edges, and one
    ring fully containing the other.
    """

    return _as_polygon(ring_a).intersects(_as_polygon(ring_b))


def boxes_intersecting(
    bounds: CoordArray, ring: Sequence[GeoPoint]
) -> NDArray[np.bool_]:
    """Vectorised :func:`intersects` of axis-aligned boxes against ``ring``.

    ``bounds`` rows are ``(min_lon, min_lat, max_lon, max_lat)``. The ring
    polygon is built and prepared once for the whole batch.
    """

    if len(bounds) == 0:
        return np.zeros(0, dtype=bool)
    polygon = _as_polygon(ring)
    shapely.prepare(polygon)
    boxes = shapely.box(bounds[:, 0], bounds[:, 1], bounds[:, 2], bounds[:, 3])
    return np.asarray(shapely.intersects(boxes, polygon), dtype=bool)


def _orientation(p: GeoPoint, q: GeoPoint, r: GeoPoint) -> int:
    value = (q.latitude - p.latitude) * (r.longitude - q.longitude) - (
        q.longitude - p.longitude
    ) * (r.latitude - q.latitude)
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def _on_segment(p: GeoPoint, q: GeoPoint, r: GeoPoint) -> bool:
    """Return True when collinear point ``q`` lies within segment ``p-r``."""

    return min(p.longitude, r.longitude) <= q.longitude <= max(
        p.longitude, r.longitude
    ) and min(p.latitude, r.latitude) <= q.latitude <= max(p.latitude, r.latitude)


def _intersection_point(
    a1: GeoPoint, a2: GeoPoint, b1: GeoPoint, b2: GeoPoint
) -> GeoPoint:
    x1, y1 = a1.longitude, a1.latitude
    x2, y2 = a2.longitude, a2.latitude
    x3, y3 = b1.longitude, b1.latitude
    x4, y4 = b2.longitude, b2.latitude
    denom = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if denom == 0:
        # Overlapping collinear edges: report a shared endpoint.
        if _on_segment(a1, b1, a2):
            return b1
        if _on_segment(a1, b2, a2):
            return b2
        if _on_segment(b1, a1, b2):
            return a1
        return a2
    t = ((x1 - x3) * (y3 - y4) - (y1 - y3) * (x3 - x4)) / denom
    return GeoPoint(y1 + t * (y2 - y1), x1 + t * (x2 - x1))


def _step_count(extent: float, step: float) -> int:
    # Small tolerance keeps float noise from adding a sliver column.
    return max(1, math.ceil(extent / step - 1e-9))


def _as_lonlat_array(ring: Sequence[GeoPoint]) -> CoordArray:
    return np.asarray([(pt.longitude, pt.latitude) for pt in ring], dtype=float)


def _as_polygon(ring: Sequence[GeoPoint]) -> Polygon:
    if len(ring) < 3:
        raise ValueError("A polygon ring needs at least 3 points")
    return Polygon([pt.as_lonlat() for pt in ring])


__all__ = [
    "BoundingBox",
    "bounding_box",
    "boxes_intersecting",
    "distance_m",
    "find_kinks",
    "intersects",
    "is_self_intersecting",
    "point_in_polygon",
    "polygon_area",
    "polygon_area_acres",
    "segments_intersect",
    "square_grid",
]

"""Fixed tessellation of a finalized boundary into coverage cells."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from .config import PLOUGH_WIDTH_M
from .geo_math import bounding_box, boxes_intersecting, point_in_polygon, square_grid
from .models import FinalizedBoundary, GeoPoint, Ring

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GridCell:
    id: int
    polygon: Ring


@dataclass(frozen=True)
class CoverageGrid:
    """Immutable ordered set of cells covering a boundary.

    Each cell is half the implement width on a side, so two adjacent passes
    mark distinct cells. Rebuild with :meth:`build` whenever the boundary
    changes; a grid is never mutated in place.
    """

    boundary: FinalizedBoundary
    cell_width_m: float
    cells: Tuple[GridCell, ...]
    # Per-cell (min_lon, min_lat, max_lon, max_lat), rows in id order.
    _bounds: NDArray[np.float64] = field(repr=False, compare=False)

    @classmethod
    def build(
        cls, boundary: FinalizedBoundary, cell_width_m: float = PLOUGH_WIDTH_M
    ) -> "CoverageGrid":
        if cell_width_m <= 0:
            raise ValueError("cell_width_m must be greater than zero")
        bbox = bounding_box(boundary.ring)
        candidates = square_grid(bbox, cell_width_m / 2.0)
        candidate_bounds = _ring_bounds(candidates)
        hits = boxes_intersecting(candidate_bounds, boundary.ring)
        kept = [ring for ring, hit in zip(candidates, hits) if hit]
        cells = tuple(GridCell(id=idx, polygon=ring) for idx, ring in enumerate(kept))
        bounds = candidate_bounds[hits]
        LOGGER.info(
            "Built coverage grid cells=%d candidates=%d cell_side=%.2fm",
            len(cells),
            len(candidates),
            cell_width_m / 2.0,
        )
        return cls(
            boundary=boundary,
            cell_width_m=cell_width_m,
            cells=cells,
            _bounds=bounds,
        )

    @property
    def cell_side_m(self) -> float:
        return self.cell_width_m / 2.0

    @property
    def cell_area_square_meters(self) -> float:
        return self.cell_side_m**2

    @property
    def field_area_square_meters(self) -> float:
        return self.boundary.area_square_meters

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[GridCell]:
        return iter(self.cells)

    def cell(self, cell_id: int) -> GridCell:
        return self.cells[cell_id]

    def locate(self, point: GeoPoint) -> Optional[GridCell]:
        """Return the first cell in id order containing ``point``.

        A vectorised bounds check narrows the search before the exact
        crossing-number test, so the first-match order is preserved.
        """

        if not self.cells:
            return None
        x, y = point.longitude, point.latitude
        b = self._bounds
        mask = (b[:, 0] <= x) & (x <= b[:, 2]) & (b[:, 1] <= y) & (y <= b[:, 3])
        for idx in np.flatnonzero(mask):
            cell = self.cells[int(idx)]
            if point_in_polygon(point, cell.polygon):
                return cell
        return None


def _ring_bounds(rings: List[Ring]) -> NDArray[np.float64]:
    if not rings:
        return np.empty((0, 4), dtype=float)
    # Square cells: shape (n, 4 corners, lon/lat).
    coords = np.asarray(
        [[pt.as_lonlat() for pt in ring] for ring in rings], dtype=float
    )
    return np.hstack([coords.min(axis=1), coords.max(axis=1)])


__all__ = ["CoverageGrid", "GridCell"]

"""Geometry normalisation for areal units.

Reduces a unit boundary to the set of its vertex coordinates, quantised onto a
grid whose cell size is the vertex tolerance. Contiguity only looks at shared
vertices, so nothing beyond vertex extraction happens here.

Accepted boundary representations:
- shapely ``Polygon``, ``MultiPolygon`` or a ``GeometryCollection`` of them
- WKT strings
- GeoJSON-style mappings with ``type`` and ``coordinates``
- raw nested sequences of ``(x, y)`` pairs (one ring, several rings, or
  GeoJSON multipolygon coordinate nesting)
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from shapely import geometry as shapely_geometry
from shapely.errors import ShapelyError
from shapely.geometry.base import BaseGeometry
from shapely.wkt import loads as wkt_loads

from arealflow.core.errors import InvalidGeometry
from arealflow.core.utils import validate_bounds

DEFAULT_VERTEX_TOLERANCE = 1e-7

# Quantised coordinates must stay inside int64.
_MAX_GRID_INDEX = 2.0**62

_NEIGHBOR_OFFSETS = tuple(
    (dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)
)


@dataclass(frozen=True, slots=True)
class VertexSet:
    """Deduplicated vertex buckets of one areal unit.

    Attributes:
        buckets: Grid cells (ix, iy) holding at least one vertex
        points: Raw coordinates of the vertices in each bucket
        tolerance: Grid cell size the buckets were quantised with
        bounds: Bounding box (minx, miny, maxx, maxy) of the raw vertices
        n_rings: Number of rings contributing vertices
        n_vertices: Raw vertex count before deduplication
    """

    buckets: frozenset[tuple[int, int]]
    points: Mapping[tuple[int, int], tuple[tuple[float, float], ...]]
    tolerance: float
    bounds: tuple[float, float, float, float]
    n_rings: int
    n_vertices: int

    def shares_vertex(self, other: VertexSet) -> bool:
        """Return True when the units have a vertex in common within tolerance.

        Vertices in the same bucket always match. Rounding can split two nearly
        equal coordinates across a bucket boundary, so the eight surrounding
        buckets are searched too and a hit there is confirmed on raw coordinates.
        """
        if not self.buckets.isdisjoint(other.buckets):
            return True

        small, large = (self, other) if len(self) <= len(other) else (other, self)
        tolerance = max(self.tolerance, other.tolerance)
        for ix, iy in small.buckets:
            for dx, dy in _NEIGHBOR_OFFSETS:
                cell = (ix + dx, iy + dy)
                if cell not in large.buckets:
                    continue
                for x0, y0 in small.points[(ix, iy)]:
                    for x1, y1 in large.points[cell]:
                        if abs(x0 - x1) <= tolerance and abs(y0 - y1) <= tolerance:
                            return True
        return False

    def __len__(self) -> int:
        return len(self.buckets)


def extract_vertices(
    geom: Any,
    tolerance: float = DEFAULT_VERTEX_TOLERANCE,
    *,
    unit_id: Hashable | None = None,
) -> VertexSet:
    """
    Normalise a unit boundary into its quantised vertex set.

    Args:
        geom: Boundary in any accepted representation
        tolerance: Coordinate-equality tolerance (grid cell size)
        unit_id: Optional id used to label errors

    Returns:
        VertexSet with one bucket per distinct vertex

    Raises:
        ValueError: If tolerance is not a positive finite number
        InvalidGeometry: If the boundary has no rings, malformed rings or
            non-finite coordinates
    """
    if not (tolerance > 0 and np.isfinite(tolerance)):
        raise ValueError(f"vertex tolerance must be a positive finite number, got {tolerance!r}")

    rings = _to_rings(geom, unit_id)
    if not rings:
        raise InvalidGeometry("geometry has no rings", unit_id)

    for index, ring in enumerate(rings):
        _check_ring(ring, index, unit_id)

    coords = np.vstack(rings)
    scaled = coords / tolerance
    if np.abs(scaled).max() >= _MAX_GRID_INDEX:
        raise InvalidGeometry(
            f"coordinates too large for vertex tolerance {tolerance!r}", unit_id
        )

    grid = np.floor(scaled + 0.5).astype(np.int64)
    grouped: dict[tuple[int, int], set[tuple[float, float]]] = {}
    for (ix, iy), (x, y) in zip(grid.tolist(), coords.tolist()):
        grouped.setdefault((int(ix), int(iy)), set()).add((float(x), float(y)))
    points = {cell: tuple(sorted(xy)) for cell, xy in grouped.items()}

    bounds = validate_bounds(
        (
            float(coords[:, 0].min()),
            float(coords[:, 1].min()),
            float(coords[:, 0].max()),
            float(coords[:, 1].max()),
        )
    )

    return VertexSet(
        buckets=frozenset(points),
        points=points,
        tolerance=float(tolerance),
        bounds=bounds,
        n_rings=len(rings),
        n_vertices=int(coords.shape[0]),
    )


def to_wkt(geom: Any, *, unit_id: Hashable | None = None) -> str:
    """
    Serialise a boundary to WKT for tabular storage.

    Raw ring sequences become a MultiPolygon with one part per ring, which
    keeps their vertex set unchanged.

    Raises:
        InvalidGeometry: If the boundary cannot be interpreted
    """
    if isinstance(geom, str):
        return geom
    if isinstance(geom, BaseGeometry):
        return geom.wkt
    if isinstance(geom, Mapping):
        try:
            return shapely_geometry.shape(geom).wkt
        except (KeyError, TypeError, ValueError, AttributeError, ShapelyError) as exc:
            raise InvalidGeometry(f"unparseable GeoJSON geometry: {exc}", unit_id) from exc

    rings = _to_rings(geom, unit_id)
    if not rings:
        raise InvalidGeometry("geometry has no rings", unit_id)
    for index, ring in enumerate(rings):
        _check_ring(ring, index, unit_id)
    return shapely_geometry.MultiPolygon([shapely_geometry.Polygon(ring) for ring in rings]).wkt


def _to_rings(geom: Any, unit_id: Hashable | None) -> list[np.ndarray]:
    """Dispatch on the boundary representation and return (k, 2) ring arrays."""
    if geom is None:
        raise InvalidGeometry("geometry is missing", unit_id)

    if isinstance(geom, str):
        try:
            geom = wkt_loads(geom)
        except (ShapelyError, ValueError) as exc:
            raise InvalidGeometry(f"unparseable WKT: {exc}", unit_id) from exc
    elif isinstance(geom, Mapping):
        try:
            geom = shapely_geometry.shape(geom)
        except (KeyError, TypeError, ValueError, AttributeError, ShapelyError) as exc:
            raise InvalidGeometry(f"unparseable GeoJSON geometry: {exc}", unit_id) from exc

    if isinstance(geom, BaseGeometry):
        return _shapely_rings(geom, unit_id)

    if isinstance(geom, (Sequence, np.ndarray)) and not isinstance(geom, (str, bytes)):
        return _raw_rings(geom, unit_id)

    raise InvalidGeometry(f"unsupported geometry type {type(geom).__name__}", unit_id)


def _shapely_rings(geom: BaseGeometry, unit_id: Hashable | None) -> list[np.ndarray]:
    if geom.is_empty:
        return []

    if isinstance(geom, shapely_geometry.Polygon):
        rings = [geom.exterior, *geom.interiors]
        return [np.asarray(ring.coords, dtype=float)[:, :2] for ring in rings]

    if isinstance(geom, (shapely_geometry.MultiPolygon, shapely_geometry.GeometryCollection)):
        parts = [part for part in geom.geoms if not part.is_empty]
        polygonal = [
            part
            for part in parts
            if isinstance(part, (shapely_geometry.Polygon, shapely_geometry.MultiPolygon))
        ]
        if parts and not polygonal:
            raise InvalidGeometry(
                f"expected polygonal geometry, got {geom.geom_type} without polygons", unit_id
            )
        rings: list[np.ndarray] = []
        for part in polygonal:
            rings.extend(_shapely_rings(part, unit_id))
        return rings

    raise InvalidGeometry(f"expected polygonal geometry, got {geom.geom_type}", unit_id)


def _is_coordinate(value: Any) -> bool:
    if isinstance(value, (str, bytes)):
        return False
    if not isinstance(value, (Sequence, np.ndarray)) or len(value) < 2:
        return False
    return all(isinstance(v, (int, float, np.integer, np.floating)) for v in value)


def _raw_rings(obj: Any, unit_id: Hashable | None) -> list[np.ndarray]:
    """Flatten arbitrarily nested coordinate sequences into ring arrays."""
    if len(obj) == 0:
        return []

    if _is_coordinate(obj[0]):
        if not all(_is_coordinate(point) for point in obj):
            raise InvalidGeometry("ring mixes coordinates with other values", unit_id)
        try:
            ring = np.asarray([tuple(point)[:2] for point in obj], dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidGeometry(f"ring coordinates are not numeric: {exc}", unit_id) from exc
        return [ring]

    rings: list[np.ndarray] = []
    for part in obj:
        if isinstance(part, (str, bytes)) or not isinstance(part, (Sequence, np.ndarray)):
            raise InvalidGeometry(f"malformed ring entry {part!r}", unit_id)
        rings.extend(_raw_rings(part, unit_id))
    return rings


def _check_ring(ring: np.ndarray, index: int, unit_id: Hashable | None) -> None:
    if ring.ndim != 2 or ring.shape[1] != 2:
        raise InvalidGeometry(f"ring {index} is not a sequence of 2D coordinates", unit_id)
    if not np.isfinite(ring).all():
        raise InvalidGeometry(f"ring {index} has non-finite coordinates", unit_id)
    distinct = np.unique(ring, axis=0)
    if distinct.shape[0] < 3:
        raise InvalidGeometry(
            f"ring {index} has {distinct.shape[0]} distinct vertices (need at least 3)", unit_id
        )

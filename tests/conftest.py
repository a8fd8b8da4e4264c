"""Common test fixtures and utilities."""

import polars as pl
import pytest
from shapely import geometry

from arealflow.core.hotspots import ArealUnit


def square(x: float, y: float, size: float = 1.0) -> geometry.Polygon:
    """Axis-aligned square with lower-left corner at (x, y)."""
    return geometry.box(x, y, x + size, y + size)


# Three triangles meeting only at the origin: every pair shares exactly one vertex.
TRIANGLE_A = geometry.Polygon([(0, 0), (1, 0), (1, 1)])
TRIANGLE_B = geometry.Polygon([(0, 0), (-1, 1), (-1, 0)])
TRIANGLE_C = geometry.Polygon([(0, 0), (0, -1), (1, -1)])


@pytest.fixture
def chain_units() -> list[ArealUnit]:
    """Five unit squares in a row: 1-2-3-4-5."""
    values = [1.0, 2.0, 3.0, 4.0, 5.0]
    return [ArealUnit(id=i + 1, geometry=square(i, 0), attribute=v) for i, v in enumerate(values)]


@pytest.fixture
def triangle_units() -> list[ArealUnit]:
    """Mutually adjacent triangle (10, 10, 100) plus three far-away islands of value 10."""
    return [
        ArealUnit(id="a", geometry=TRIANGLE_A, attribute=10.0),
        ArealUnit(id="b", geometry=TRIANGLE_B, attribute=10.0),
        ArealUnit(id="c", geometry=TRIANGLE_C, attribute=100.0),
        ArealUnit(id="x", geometry=square(10, 10), attribute=10.0),
        ArealUnit(id="y", geometry=square(20, 20), attribute=10.0),
        ArealUnit(id="z", geometry=square(30, 30), attribute=10.0),
    ]


@pytest.fixture
def island_units() -> list[ArealUnit]:
    """Chain of four units valued 5 and one isolated unit valued 20."""
    units = [ArealUnit(id=f"u{i}", geometry=square(i, 0), attribute=5.0) for i in range(4)]
    units.append(ArealUnit(id="island", geometry=square(10, 10), attribute=20.0))
    return units


@pytest.fixture
def grid_table() -> pl.DataFrame:
    """3x3 grid of unit squares as a WKT table with a hot corner."""
    ids = []
    wkts = []
    values = []
    for row in range(3):
        for col in range(3):
            ids.append(row * 3 + col)
            wkts.append(square(col, row).wkt)
            values.append(100.0 if (row, col) == (0, 0) else float(row + col))
    return pl.DataFrame({"id": ids, "geometry": wkts, "value": values})

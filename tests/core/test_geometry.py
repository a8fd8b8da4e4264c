"""Tests for boundary normalisation into vertex sets."""

from __future__ import annotations

import math

import numpy as np
import pytest
from shapely import geometry

from arealflow.core.errors import InvalidGeometry
from arealflow.core.geometry import extract_vertices, to_wkt

UNIT_SQUARE = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)]


class TestExtractVertices:
    """Tests for extract_vertices."""

    def test_polygon_closing_vertex_is_deduplicated(self) -> None:
        """Test that the repeated closing coordinate maps to one bucket."""
        vs = extract_vertices(geometry.box(0, 0, 1, 1))

        assert len(vs) == 4
        assert vs.n_rings == 1
        assert vs.n_vertices == 5
        assert vs.bounds == (0.0, 0.0, 1.0, 1.0)

    def test_representations_agree(self) -> None:
        """Test that shapely, WKT, GeoJSON and raw rings give the same buckets."""
        polygon = geometry.Polygon(UNIT_SQUARE)
        geojson = {"type": "Polygon", "coordinates": [UNIT_SQUARE + [UNIT_SQUARE[0]]]}

        expected = extract_vertices(polygon).buckets
        assert extract_vertices(polygon.wkt).buckets == expected
        assert extract_vertices(geojson).buckets == expected
        assert extract_vertices(UNIT_SQUARE).buckets == expected
        assert extract_vertices([UNIT_SQUARE]).buckets == expected
        assert extract_vertices(np.array(UNIT_SQUARE)).buckets == expected

    def test_multipolygon_with_hole_collects_all_rings(self) -> None:
        """Test that exteriors and holes of every part contribute vertices."""
        with_hole = geometry.Polygon(
            [(0, 0), (4, 0), (4, 4), (0, 4)],
            holes=[[(1, 1), (2, 1), (2, 2), (1, 2)]],
        )
        multi = geometry.MultiPolygon([with_hole, geometry.box(10, 10, 11, 11)])

        vs = extract_vertices(multi)

        assert vs.n_rings == 3
        assert len(vs) == 12

    def test_vertices_within_tolerance_share_a_bucket(self) -> None:
        """Test that nearly equal coordinates are treated as the same vertex."""
        left = extract_vertices(geometry.box(0, 0, 1, 1), tolerance=1e-6)
        right = extract_vertices(geometry.box(1 + 1e-9, 0, 2, 1), tolerance=1e-6)

        assert left.shares_vertex(right)

    def test_distant_vertices_do_not_match(self) -> None:
        """Test that vertices further apart than the tolerance stay distinct."""
        left = extract_vertices(geometry.box(0, 0, 1, 1), tolerance=1e-7)
        right = extract_vertices(geometry.box(1.001, 0, 2, 1), tolerance=1e-7)

        assert not left.shares_vertex(right)

    @pytest.mark.parametrize("tolerance", [0.0, -1.0, math.inf, math.nan])
    def test_rejects_bad_tolerance(self, tolerance: float) -> None:
        """Test that tolerance must be positive and finite."""
        with pytest.raises(ValueError, match="tolerance"):
            extract_vertices(geometry.box(0, 0, 1, 1), tolerance=tolerance)


class TestInvalidGeometry:
    """Tests for geometries that cannot be normalised."""

    @pytest.mark.parametrize(
        "geom",
        [
            None,
            "POLYGON EMPTY",
            "not wkt at all",
            [],
            [(0, 0), (1, 1)],
            [(0, 0), (1, 0), (0, 0)],
            [(0, 0), (math.nan, 0), (1, 1)],
            [(0, 0), (math.inf, 0), (1, 1)],
            geometry.Point(0, 0),
            geometry.LineString([(0, 0), (1, 1)]),
            {"type": "Polygon"},
            42,
        ],
    )
    def test_raises_invalid_geometry(self, geom: object) -> None:
        """Test that malformed boundaries raise InvalidGeometry."""
        with pytest.raises(InvalidGeometry):
            extract_vertices(geom)

    def test_error_carries_unit_id(self) -> None:
        """Test that the unit id is attached to the error."""
        with pytest.raises(InvalidGeometry, match="Unit 'tract-7'") as excinfo:
            extract_vertices(None, unit_id="tract-7")

        assert excinfo.value.unit_id == "tract-7"

    def test_invalid_geometry_is_value_error(self) -> None:
        """Test that callers catching ValueError also catch InvalidGeometry."""
        with pytest.raises(ValueError):
            extract_vertices([])


class TestToWkt:
    """Tests for WKT serialisation of boundaries."""

    def test_wkt_string_passes_through(self) -> None:
        """Test that WKT input is returned unchanged."""
        wkt = "POLYGON ((0 0, 1 0, 1 1, 0 0))"
        assert to_wkt(wkt) == wkt

    def test_raw_rings_keep_their_vertices(self) -> None:
        """Test that serialising raw rings preserves the vertex set."""
        rings = [UNIT_SQUARE, [(5, 5), (6, 5), (6, 6)]]

        wkt = to_wkt(rings)

        assert wkt.startswith("MULTIPOLYGON")
        assert extract_vertices(wkt).buckets == extract_vertices(rings).buckets

    def test_geojson_mapping(self) -> None:
        """Test that GeoJSON mappings are converted via shapely."""
        geojson = {"type": "Polygon", "coordinates": [UNIT_SQUARE + [UNIT_SQUARE[0]]]}
        assert to_wkt(geojson).startswith("POLYGON")

    def test_malformed_input_raises(self) -> None:
        """Test that unusable input raises InvalidGeometry."""
        with pytest.raises(InvalidGeometry):
            to_wkt([(0, 0), (1, 1)])

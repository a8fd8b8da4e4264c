"""Tests for queen contiguity graph construction."""

from __future__ import annotations

import numpy as np
import pytest
from shapely import geometry

from arealflow.core.contiguity import NeighborGraph, build_queen_graph
from arealflow.core.errors import DuplicateUnit
from arealflow.core.hotspots import ArealUnit


def _build(units: list[ArealUnit], **kwargs) -> NeighborGraph:
    return build_queen_graph([u.id for u in units], [u.geometry for u in units], **kwargs)


class TestBuildQueenGraph:
    """Tests for build_queen_graph."""

    def test_chain_degrees(self, chain_units: list[ArealUnit]) -> None:
        """Test that a five-unit chain has end degree 1 and inner degree 2."""
        graph = _build(chain_units)

        assert graph.cardinalities == {1: 1, 2: 2, 3: 2, 4: 2, 5: 1}
        assert graph.neighbors(3) == (2, 4)
        assert graph.n_edges == 4
        assert graph.isolates == ()

    def test_single_shared_vertex_is_enough(self, triangle_units: list[ArealUnit]) -> None:
        """Test that units touching at one point are queen neighbours."""
        graph = _build(triangle_units)

        assert graph.neighbors("a") == ("b", "c")
        assert graph.neighbors("b") == ("a", "c")
        assert graph.neighbors("c") == ("a", "b")
        assert graph.isolates == ("x", "y", "z")

    def test_corner_contact_in_grid(self) -> None:
        """Test that diagonal squares in a grid are neighbours (queen, not rook)."""
        ids = ["sw", "se", "nw", "ne"]
        geoms = [
            geometry.box(0, 0, 1, 1),
            geometry.box(1, 0, 2, 1),
            geometry.box(0, 1, 1, 2),
            geometry.box(1, 1, 2, 2),
        ]
        graph = build_queen_graph(ids, geoms)

        assert graph.neighbors("sw") == ("se", "nw", "ne")
        assert all(graph.degree(unit_id) == 3 for unit_id in ids)

    def test_graph_is_symmetric_without_self_edges(self, chain_units: list[ArealUnit]) -> None:
        """Test symmetry and absence of self-edges."""
        graph = _build(chain_units)

        assert graph.is_symmetric()
        for unit_id in graph:
            assert unit_id not in graph.neighbors(unit_id)
            for neighbor in graph.neighbors(unit_id):
                assert unit_id in graph.neighbors(neighbor)

    def test_prefilter_matches_all_pairs(self) -> None:
        """Test that the spatial index never changes the resulting graph."""
        rng = np.random.default_rng(7)
        ids = []
        geoms = []
        for row in range(6):
            for col in range(6):
                if rng.random() < 0.25:
                    continue
                ids.append(f"{row}-{col}")
                geoms.append(geometry.box(col, row, col + 1, row + 1))

        fast = build_queen_graph(ids, geoms, prefilter=True)
        naive = build_queen_graph(ids, geoms, prefilter=False)

        assert fast == naive

    def test_invalid_geometry_becomes_island(self) -> None:
        """Test that a unit with a malformed boundary is isolated, not fatal."""
        ids = [1, 2, 3]
        geoms = [geometry.box(0, 0, 1, 1), None, geometry.box(1, 0, 2, 1)]

        graph = build_queen_graph(ids, geoms)

        assert graph.invalid_ids == (2,)
        assert graph.neighbors(2) == ()
        assert graph.neighbors(1) == (3,)

    def test_duplicate_ids_raise_before_geometry_work(self) -> None:
        """Test that duplicate ids fail even when geometries are unusable."""
        with pytest.raises(DuplicateUnit) as excinfo:
            build_queen_graph(["a", "b", "a"], [None, None, None])

        assert excinfo.value.duplicates == ["a"]

    def test_length_mismatch(self) -> None:
        """Test that ids and geometries must align."""
        with pytest.raises(ValueError, match="must align"):
            build_queen_graph([1, 2], [geometry.box(0, 0, 1, 1)])

    def test_empty_input(self) -> None:
        """Test that an empty unit list yields an empty graph."""
        graph = build_queen_graph([], [])

        assert graph.n == 0
        assert graph.n_edges == 0

    def test_tolerance_controls_matching(self) -> None:
        """Test that a small gap is bridged only by a coarse enough tolerance."""
        geoms = [geometry.box(0, 0, 1, 1), geometry.box(1.0004, 0, 2, 1)]

        assert build_queen_graph(["l", "r"], geoms, tolerance=1e-7).n_edges == 0
        assert build_queen_graph(["l", "r"], geoms, tolerance=1e-2).n_edges == 1

    @pytest.mark.parametrize("prefilter", [True, False])
    def test_shared_edge_on_bucket_boundary(self, prefilter: bool) -> None:
        """Test that coordinates one float step apart match across a rounding boundary."""
        x = 1.00000015
        shifted = float(np.nextafter(x, 0.0))
        geoms = [geometry.box(0, 0, x, 1), geometry.box(shifted, 0, 2, 1)]

        graph = build_queen_graph(["l", "r"], geoms, tolerance=1e-7, prefilter=prefilter)

        assert graph.neighbors("l") == ("r",)
        assert graph.degree("r") == 1

    def test_adjacent_bucket_beyond_tolerance(self) -> None:
        """Test that vertices in adjacent cells but further apart than tolerance stay apart."""
        geoms = [geometry.box(0, 0, 1, 1), geometry.box(1 + 1.4e-7, 0, 2, 1)]

        assert build_queen_graph(["l", "r"], geoms, tolerance=1e-7).n_edges == 0

    def test_deterministic(self, chain_units: list[ArealUnit]) -> None:
        """Test that repeated builds are identical."""
        assert _build(chain_units) == _build(chain_units)


class TestNeighborGraph:
    """Tests for the NeighborGraph container."""

    def test_neighbour_order_follows_input_order(self) -> None:
        """Test that neighbour lists are sorted by input position."""
        graph = NeighborGraph(["c", "a", "b"], {"c": ["b", "a"], "a": ["c"], "b": ["c"]})

        assert graph.neighbors("c") == ("a", "b")

    def test_rejects_self_edges(self) -> None:
        """Test that self-edges are refused."""
        with pytest.raises(ValueError, match="Self-edge"):
            NeighborGraph([1, 2], {1: [1]})

    def test_rejects_unknown_ids(self) -> None:
        """Test that adjacency may only reference known ids."""
        with pytest.raises(ValueError, match="unknown"):
            NeighborGraph([1, 2], {1: [3]})

    def test_components(self, triangle_units: list[ArealUnit]) -> None:
        """Test connected component labelling with islands."""
        graph = _build(triangle_units)
        labels = graph.component_labels

        assert graph.n_components == 4
        assert labels["a"] == labels["b"] == labels["c"]
        assert len({labels["x"], labels["y"], labels["z"]}) == 3

    def test_edge_exports(self, chain_units: list[ArealUnit]) -> None:
        """Test edge list, COO index and frame exports."""
        graph = _build(chain_units)

        assert list(graph.edges()) == [(1, 2), (2, 3), (3, 4), (4, 5)]

        edge_index = graph.to_edge_index()
        assert edge_index.shape == (2, 8)
        assert edge_index.dtype == np.int64

        df = graph.to_frame()
        assert df.columns == ["focal", "neighbor"]
        assert df.height == 8

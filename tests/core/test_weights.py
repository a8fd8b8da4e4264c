"""Tests for spatial weights."""

from __future__ import annotations

import numpy as np
import pytest

from arealflow.core.contiguity import NeighborGraph
from arealflow.core.errors import DuplicateUnit, InconsistentInput
from arealflow.core.weights import SpatialWeights


@pytest.fixture
def star_graph() -> NeighborGraph:
    """Hub 'h' touching three leaves plus an island 'i'."""
    return NeighborGraph(
        ["h", "l1", "l2", "l3", "i"],
        {"h": ["l1", "l2", "l3"], "l1": ["h"], "l2": ["h"], "l3": ["h"]},
    )


class TestFromGraph:
    """Tests for binary weights derived from a graph."""

    def test_binary_rows(self, star_graph: NeighborGraph) -> None:
        """Test that each edge becomes a weight-1 entry."""
        weights = SpatialWeights.from_graph(star_graph)

        assert weights.transform == "B"
        assert not weights.self_included
        assert weights.row("h") == (("l1", 1.0), ("l2", 1.0), ("l3", 1.0))
        assert weights.row("i") == ()
        assert weights.row_sums == {"h": 3.0, "l1": 1.0, "l2": 1.0, "l3": 1.0, "i": 0.0}

    def test_ids_follow_graph(self, star_graph: NeighborGraph) -> None:
        """Test that row order matches the graph input order."""
        weights = SpatialWeights.from_graph(star_graph)

        assert weights.ids == star_graph.ids
        assert [unit_id for unit_id, _ in weights.items()] == list(star_graph.ids)


class TestSelfLoops:
    """Tests for self-included weights."""

    def test_every_row_gains_one_self_entry(self, star_graph: NeighborGraph) -> None:
        """Test self-loop completeness, islands included."""
        weights = SpatialWeights.from_graph(star_graph).with_self_loops()

        assert weights.self_included
        for unit_id, row in weights.items():
            self_entries = [w for neighbor, w in row if neighbor == unit_id]
            assert self_entries == [1.0]
            assert weights.row_sum(unit_id) == star_graph.degree(unit_id) + 1

        assert weights.row("i") == (("i", 1.0),)

    def test_self_entry_sorted_by_position(self, star_graph: NeighborGraph) -> None:
        """Test that the self entry sits at its input position inside the row."""
        weights = SpatialWeights.from_graph(star_graph).with_self_loops()

        assert [neighbor for neighbor, _ in weights.row("l2")] == ["h", "l2"]

    def test_cannot_add_twice(self, star_graph: NeighborGraph) -> None:
        """Test that self-loops are only added once."""
        weights = SpatialWeights.from_graph(star_graph).with_self_loops()

        with pytest.raises(ValueError, match="already"):
            weights.with_self_loops()

    def test_requires_binary(self, star_graph: NeighborGraph) -> None:
        """Test that row-standardized weights refuse self-loops."""
        weights = SpatialWeights.from_graph(star_graph).row_standardized()

        with pytest.raises(ValueError, match="binary"):
            weights.with_self_loops()


class TestRowStandardized:
    """Tests for row standardisation."""

    def test_rows_sum_to_one(self, star_graph: NeighborGraph) -> None:
        """Test that non-empty rows sum to one and islands stay empty."""
        weights = SpatialWeights.from_graph(star_graph).row_standardized()

        assert weights.transform == "R"
        assert weights.row_sum("h") == pytest.approx(1.0)
        assert weights.row("h")[0][1] == pytest.approx(1 / 3)
        assert weights.row("i") == ()

    def test_dense_matrix(self, star_graph: NeighborGraph) -> None:
        """Test the dense export used for inspection."""
        dense = SpatialWeights.from_graph(star_graph).with_self_loops().to_dense()

        assert dense.shape == (5, 5)
        assert np.array_equal(np.diag(dense), np.ones(5))
        assert np.array_equal(dense, dense.T)


class TestValidation:
    """Tests for constructor checks."""

    def test_unknown_transform(self) -> None:
        """Test that only B and R are accepted."""
        with pytest.raises(ValueError, match="transform"):
            SpatialWeights(["a"], {}, transform="V")  # type: ignore[arg-type]

    def test_duplicate_ids(self) -> None:
        """Test that ids must be unique."""
        with pytest.raises(DuplicateUnit):
            SpatialWeights(["a", "a"], {})

    def test_unknown_row(self) -> None:
        """Test that rows for unknown ids are inconsistent input."""
        with pytest.raises(InconsistentInput) as excinfo:
            SpatialWeights(["a"], {"b": [("a", 1.0)]})

        assert excinfo.value.unexpected == ["b"]

    def test_unknown_neighbour(self) -> None:
        """Test that entries may only reference known ids."""
        with pytest.raises(InconsistentInput):
            SpatialWeights(["a"], {"a": [("z", 1.0)]})

    def test_repeated_neighbour(self) -> None:
        """Test that a row may list a neighbour only once."""
        with pytest.raises(ValueError, match="repeats"):
            SpatialWeights(["a", "b"], {"a": [("b", 1.0), ("b", 1.0)]})

    def test_long_frame(self, star_graph: NeighborGraph) -> None:
        """Test the long-format export."""
        df = SpatialWeights.from_graph(star_graph).to_frame()

        assert df.columns == ["focal", "neighbor", "weight"]
        assert df.height == 6
        assert df["weight"].sum() == 6.0

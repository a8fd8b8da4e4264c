"""Tests for joining results onto unit metadata."""

from __future__ import annotations

import polars as pl
import pytest

from arealflow.core.assembler import assemble_results, results_to_frame
from arealflow.core.autocorrelation import LocalStatisticResult
from arealflow.core.schema import HotspotCategory


@pytest.fixture
def results() -> list[LocalStatisticResult]:
    return [
        LocalStatisticResult(
            id=1, z_score=2.5, p_value=0.012, category=HotspotCategory.HIGH_CLUSTER
        ),
        LocalStatisticResult(id=2, z_score=0.1, p_value=0.92, category=HotspotCategory.NONE),
        LocalStatisticResult(id=3, z_score=None, p_value=None, category=HotspotCategory.UNDEFINED),
    ]


class TestResultsToFrame:
    """Tests for results_to_frame."""

    def test_columns_and_nulls(self, results: list[LocalStatisticResult]) -> None:
        """Test that undefined results become nulls with an UNDEFINED label."""
        df = results_to_frame(results)

        assert df.columns == ["id", "z_score", "p_value", "category"]
        assert df.schema["z_score"] == pl.Float64
        assert df["z_score"].null_count() == 1
        assert df["category"].to_list() == ["HIGH_CLUSTER", "NONE", "UNDEFINED"]


class TestAssembleResults:
    """Tests for assemble_results."""

    def test_full_match(self, results: list[LocalStatisticResult]) -> None:
        """Test that matching ids join without drops."""
        units = pl.DataFrame({"id": [3, 1, 2], "name": ["c", "a", "b"]})

        assembled = assemble_results(results, units)

        assert assembled.dropped == 0
        assert assembled.frame.height == 3
        row = assembled.frame.filter(pl.col("id") == 1)
        assert row["name"].item() == "a"
        assert row["category"].item() == "HIGH_CLUSTER"

    def test_partial_coverage_counts_drops(self, results: list[LocalStatisticResult]) -> None:
        """Test that ids present on one side only are dropped and counted."""
        units = pl.DataFrame({"id": [1, 2, 4, 5], "name": ["a", "b", "d", "e"]})

        assembled = assemble_results(results, units)

        assert assembled.frame["id"].sort().to_list() == [1, 2]
        assert assembled.unmatched_results == 1
        assert assembled.unmatched_units == 2
        assert assembled.dropped == 3

    def test_custom_id_column(self, results: list[LocalStatisticResult]) -> None:
        """Test joining on a differently named id column."""
        units = pl.DataFrame({"tract": [1, 2, 3], "pop": [10, 20, 30]})

        assembled = assemble_results(results, units, id_col="tract")

        assert set(assembled.frame.columns) == {"tract", "pop", "z_score", "p_value", "category"}

    def test_missing_id_column(self, results: list[LocalStatisticResult]) -> None:
        """Test that the id column must exist."""
        with pytest.raises(ValueError, match="id column"):
            assemble_results(results, pl.DataFrame({"other": [1]}))

    def test_clashing_columns(self, results: list[LocalStatisticResult]) -> None:
        """Test that existing result columns are not silently overwritten."""
        units = pl.DataFrame({"id": [1], "category": ["x"]})

        with pytest.raises(ValueError, match="result columns"):
            assemble_results(results, units)

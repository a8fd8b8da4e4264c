"""Join local statistic results back onto caller-supplied unit metadata."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import polars as pl

from arealflow.core.autocorrelation import LocalStatisticResult
from arealflow.core.utils import get_logger

logger = get_logger(__name__)

RESULT_COLUMNS = ("z_score", "p_value", "category")


@dataclass(frozen=True)
class AssembledResult:
    """Joined output plus counts of records that found no partner.

    Attributes:
        frame: Unit metadata with z_score, p_value and category columns
        unmatched_results: Results whose id has no metadata row
        unmatched_units: Metadata rows whose id has no result
    """

    frame: pl.DataFrame
    unmatched_results: int
    unmatched_units: int

    @property
    def dropped(self) -> int:
        """Total records dropped from either side of the join."""
        return self.unmatched_results + self.unmatched_units


def results_to_frame(
    results: Sequence[LocalStatisticResult],
    *,
    id_col: str = "id",
) -> pl.DataFrame:
    """Convert results to a polars DataFrame (id, z_score, p_value, category)."""
    return pl.DataFrame(
        {
            id_col: [r.id for r in results],
            "z_score": pl.Series([r.z_score for r in results], dtype=pl.Float64),
            "p_value": pl.Series([r.p_value for r in results], dtype=pl.Float64),
            "category": pl.Series([r.category.value for r in results], dtype=pl.Utf8),
        }
    )


def assemble_results(
    results: Sequence[LocalStatisticResult],
    units: pl.DataFrame,
    *,
    id_col: str = "id",
) -> AssembledResult:
    """
    Join results onto unit metadata by id.

    Ids present on only one side are dropped and counted rather than raising,
    since mapping and tabulation tolerate partial coverage.

    Args:
        results: Output of the Gi* calculator
        units: Caller metadata with one row per unit
        id_col: Id column in *units*

    Returns:
        AssembledResult with the inner-joined frame and drop counts
    """
    if id_col not in units.columns:
        raise ValueError(f"Unit frame has no id column {id_col!r}")
    clashes = [col for col in RESULT_COLUMNS if col in units.columns]
    if clashes:
        raise ValueError(f"Unit frame already has result columns: {clashes}")

    result_frame = results_to_frame(results, id_col=id_col)
    id_dtype = units.schema[id_col]
    if result_frame.schema[id_col] != id_dtype:
        result_frame = result_frame.with_columns(pl.col(id_col).cast(id_dtype, strict=False))

    frame = units.join(result_frame, on=id_col, how="inner")

    unmatched_results = result_frame.join(units.select(id_col), on=id_col, how="anti").height
    unmatched_units = units.join(result_frame.select(id_col), on=id_col, how="anti").height

    if unmatched_results or unmatched_units:
        logger.warning(
            "Dropped %d results without unit rows and %d unit rows without results",
            unmatched_results,
            unmatched_units,
        )
    logger.info("Assembled %d classified units", frame.height)

    return AssembledResult(
        frame=frame,
        unmatched_results=unmatched_results,
        unmatched_units=unmatched_units,
    )

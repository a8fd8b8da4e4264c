"""Single-call hotspot analysis over a snapshot of areal units.

Data flow::

    units -> vertex sets -> queen graph -> binary weights
          -> self-included weights -> baseline -> Gi* per unit -> categories
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Hashable, Iterable
from dataclasses import dataclass, field
from typing import Any

import polars as pl

from arealflow.core.assembler import results_to_frame
from arealflow.core.autocorrelation import (
    GlobalBaseline,
    LocalStatisticResult,
    compute_baseline,
    gi_star,
)
from arealflow.core.contiguity import NeighborGraph, build_queen_graph
from arealflow.core.errors import DuplicateUnit
from arealflow.core.schema import HotspotCategory, HotspotConfig
from arealflow.core.steps.validation import ValidationReport, validate_contiguity_artifacts
from arealflow.core.utils import find_duplicates, get_logger
from arealflow.core.weights import SpatialWeights

logger = get_logger(__name__)


@dataclass(frozen=True)
class ArealUnit:
    """One areal unit: unique id, polygon boundary and an optional attribute."""

    id: Hashable
    geometry: Any
    attribute: float | None = None


@dataclass(frozen=True)
class HotspotAnalysis:
    """Outcome of ``analyze_hotspots``.

    Attributes:
        results: One classified result per input unit, in input order
        graph: Queen contiguity graph
        weights: Self-included binary weights used for scoring
        baseline: Global mean/std reduction
        report: Structural validation of graph and weights
        dropped: Input units that ended up without a result
    """

    results: list[LocalStatisticResult]
    graph: NeighborGraph
    weights: SpatialWeights
    baseline: GlobalBaseline
    report: ValidationReport = field(default_factory=ValidationReport)
    dropped: int = 0

    @property
    def invalid_ids(self) -> tuple[Hashable, ...]:
        """Units isolated because their geometry was invalid."""
        return self.graph.invalid_ids

    def category_counts(self) -> dict[HotspotCategory, int]:
        counts = Counter(result.category for result in self.results)
        return {category: counts.get(category, 0) for category in HotspotCategory}

    def to_frame(self, *, id_col: str = "id") -> pl.DataFrame:
        """Results as a DataFrame (id, z_score, p_value, category)."""
        return results_to_frame(self.results, id_col=id_col)


def analyze_hotspots(
    units: Iterable[ArealUnit],
    config: HotspotConfig | None = None,
) -> HotspotAnalysis:
    """
    Classify every unit as part of a high cluster, low cluster, or neither.

    Args:
        units: Areal units with unique ids
        config: Engine options; defaults when None

    Returns:
        HotspotAnalysis carrying the same id set as the input

    Raises:
        DuplicateUnit: If two units share an id (before any graph work)
    """
    config = config or HotspotConfig()
    units = list(units)
    ids = [unit.id for unit in units]

    duplicates = find_duplicates(ids)
    if duplicates:
        raise DuplicateUnit(duplicates)

    logger.info("Analysing %d units (vertex_tolerance=%g)", len(units), config.vertex_tolerance)

    graph = build_queen_graph(
        ids,
        [unit.geometry for unit in units],
        tolerance=config.vertex_tolerance,
        prefilter=config.prefilter,
    )
    weights = SpatialWeights.from_graph(graph).with_self_loops()
    values = {unit.id: unit.attribute for unit in units}

    results = gi_star(
        weights,
        values,
        high_threshold=config.high_threshold,
        low_threshold=config.low_threshold,
    )
    report = validate_contiguity_artifacts(graph, weights)
    if not report.is_valid:
        logger.error(report.summary())

    dropped = len(set(ids) - {result.id for result in results})
    if dropped:
        logger.warning("%d units have no hotspot result", dropped)

    return HotspotAnalysis(
        results=results,
        graph=graph,
        weights=weights,
        baseline=compute_baseline(values.values()),
        report=report,
        dropped=dropped,
    )

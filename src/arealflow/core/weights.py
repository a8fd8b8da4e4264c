"""Sparse spatial weights built from a neighbour graph."""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator, Mapping, Sequence
from typing import Any, Literal

import numpy as np
import polars as pl

from arealflow.core.contiguity import NeighborGraph
from arealflow.core.errors import DuplicateUnit, InconsistentInput
from arealflow.core.utils import find_duplicates, get_logger

logger = get_logger(__name__)

UnitId = Hashable
WeightsTransform = Literal["B", "R"]

TRANSFORMS: dict[str, str] = {
    "B": "binary",
    "R": "row-standardized",
}


class SpatialWeights:
    """
    Sparse weights: for every unit, a row of (neighbour_id, weight) pairs.

    Rows follow the unit input order and entries inside a row follow the
    neighbour's input position. Instances are immutable; transformations
    return new objects.

    Attributes:
        transform: "B" for binary weights, "R" for row-standardized weights
        self_included: Whether every row carries a (self_id, w) entry
    """

    def __init__(
        self,
        ids: Sequence[UnitId],
        rows: Mapping[UnitId, Iterable[tuple[UnitId, float]]],
        *,
        transform: WeightsTransform = "B",
        self_included: bool = False,
    ) -> None:
        """
        Initialize SpatialWeights.

        Args:
            ids: Unit ids in input order
            rows: Row entries keyed by unit id (missing ids get empty rows)
            transform: Weighting scheme code
            self_included: Whether rows contain self-loops

        Raises:
            DuplicateUnit: If ids repeat
            InconsistentInput: If rows reference ids outside the unit set
            ValueError: If transform is unknown or a row repeats a neighbour
        """
        if transform not in TRANSFORMS:
            raise ValueError(
                f"Unknown weights transform {transform!r}; expected one of {list(TRANSFORMS)}"
            )

        self._ids = tuple(ids)
        duplicates = find_duplicates(self._ids)
        if duplicates:
            raise DuplicateUnit(duplicates)
        self._position = {unit_id: pos for pos, unit_id in enumerate(self._ids)}

        unexpected = [unit_id for unit_id in rows if unit_id not in self._position]
        if unexpected:
            raise InconsistentInput(
                f"Weights rows reference unknown unit ids: {unexpected[:10]}",
                unexpected=unexpected,
            )

        normalised: dict[UnitId, tuple[tuple[UnitId, float], ...]] = {}
        for unit_id in self._ids:
            entries = [(neighbor, float(weight)) for neighbor, weight in rows.get(unit_id, ())]
            unknown = [neighbor for neighbor, _ in entries if neighbor not in self._position]
            if unknown:
                raise InconsistentInput(
                    f"Weights row {unit_id!r} references unknown neighbours: {unknown[:10]}",
                    unexpected=unknown,
                )
            repeated = find_duplicates(neighbor for neighbor, _ in entries)
            if repeated:
                raise ValueError(f"Weights row {unit_id!r} repeats neighbours: {repeated}")
            entries.sort(key=lambda entry: self._position[entry[0]])
            normalised[unit_id] = tuple(entries)

        self._rows = normalised
        self.transform: WeightsTransform = transform
        self.self_included = self_included

    @classmethod
    def from_graph(cls, graph: NeighborGraph) -> SpatialWeights:
        """Binary weights: weight 1 for every graph edge, no normalisation."""
        rows = {
            unit_id: [(neighbor, 1.0) for neighbor in graph.neighbors(unit_id)]
            for unit_id in graph.ids
        }
        weights = cls(graph.ids, rows, transform="B", self_included=False)
        logger.debug("Materialised binary weights for %d units", weights.n)
        return weights

    def with_self_loops(self) -> SpatialWeights:
        """
        Add a (self_id, 1) entry to every row, islands included.

        Only defined for binary weights that do not already include self-loops;
        the Gi* statistic scores on this form.

        Returns:
            New self-included binary SpatialWeights
        """
        if self.transform != "B":
            raise ValueError("Self-loops can only be added to binary weights")
        if self.self_included:
            raise ValueError("Weights already include self-loops")

        rows = {unit_id: [*row, (unit_id, 1.0)] for unit_id, row in self._rows.items()}
        return SpatialWeights(self._ids, rows, transform="B", self_included=True)

    def row_standardized(self) -> SpatialWeights:
        """Rescale every non-empty row to sum to 1; empty rows stay empty."""
        rows: dict[UnitId, list[tuple[UnitId, float]]] = {}
        for unit_id, row in self._rows.items():
            total = sum(weight for _, weight in row)
            if total == 0:
                rows[unit_id] = list(row)
            else:
                rows[unit_id] = [(neighbor, weight / total) for neighbor, weight in row]
        return SpatialWeights(self._ids, rows, transform="R", self_included=self.self_included)

    @property
    def ids(self) -> tuple[UnitId, ...]:
        return self._ids

    @property
    def n(self) -> int:
        return len(self._ids)

    def row(self, unit_id: UnitId) -> tuple[tuple[UnitId, float], ...]:
        """Entries of the row for *unit_id* or raise KeyError."""
        return self._rows[unit_id]

    def row_sum(self, unit_id: UnitId) -> float:
        return float(sum(weight for _, weight in self._rows[unit_id]))

    @property
    def row_sums(self) -> dict[UnitId, float]:
        return {unit_id: self.row_sum(unit_id) for unit_id in self._ids}

    @property
    def cardinalities(self) -> dict[UnitId, int]:
        """Number of entries per row (self-loop counted when present)."""
        return {unit_id: len(row) for unit_id, row in self._rows.items()}

    def items(self) -> Iterator[tuple[UnitId, tuple[tuple[UnitId, float], ...]]]:
        """Iterate (unit_id, row) pairs in input order."""
        for unit_id in self._ids:
            yield unit_id, self._rows[unit_id]

    def to_dense(self) -> np.ndarray:
        """Dense (n, n) weights matrix in id order."""
        matrix = np.zeros((self.n, self.n), dtype=float)
        for unit_id, row in self._rows.items():
            i = self._position[unit_id]
            for neighbor, weight in row:
                matrix[i, self._position[neighbor]] = weight
        return matrix

    def to_frame(self) -> pl.DataFrame:
        """Long-format weights with columns focal, neighbor, weight."""
        focal: list[Any] = []
        neighbor: list[Any] = []
        weight: list[float] = []
        for unit_id, row in self.items():
            for other, value in row:
                focal.append(unit_id)
                neighbor.append(other)
                weight.append(value)
        return pl.DataFrame(
            {"focal": focal, "neighbor": neighbor, "weight": pl.Series(weight, dtype=pl.Float64)}
        )

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._position

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SpatialWeights):
            return NotImplemented
        return (
            self._ids == other._ids
            and self._rows == other._rows
            and self.transform == other.transform
            and self.self_included == other.self_included
        )

    def __repr__(self) -> str:
        return (
            f"SpatialWeights(n={self.n}, transform={TRANSFORMS[self.transform]}, "
            f"self_included={self.self_included})"
        )

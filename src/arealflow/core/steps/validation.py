"""Validation utilities for contiguity graphs and spatial weights.

This module provides validation checks for:
- Graph symmetry and absence of self-edges
- Weights membership in the unit set
- Row sums matching graph degrees
- Self-loop completeness for Gi* weights
- Units isolated because of invalid geometry
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable
from dataclasses import dataclass, field
from typing import Any

from arealflow.core.contiguity import NeighborGraph
from arealflow.core.utils import get_logger
from arealflow.core.weights import SpatialWeights

logger = get_logger(__name__)

_ROW_SUM_TOLERANCE = 1e-9


@dataclass
class ValidationResult:
    """Result of a validation check."""

    is_valid: bool
    check_name: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    severity: str = "error"  # error, warning, info


@dataclass
class ValidationReport:
    """Collection of validation results."""

    results: list[ValidationResult] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """Check if all validations passed (no errors)."""
        return all(r.is_valid or r.severity != "error" for r in self.results)

    @property
    def errors(self) -> list[ValidationResult]:
        """Get all error-level failures."""
        return [r for r in self.results if not r.is_valid and r.severity == "error"]

    @property
    def warnings(self) -> list[ValidationResult]:
        """Get all warning-level issues."""
        return [r for r in self.results if not r.is_valid and r.severity == "warning"]

    def add(self, result: ValidationResult) -> None:
        """Add a validation result."""
        self.results.append(result)

    def summary(self) -> str:
        """Generate a summary string."""
        n_passed = sum(1 for r in self.results if r.is_valid)
        n_errors = len(self.errors)
        n_warnings = len(self.warnings)

        lines = [
            f"Validation Summary: {n_passed}/{len(self.results)} passed",
            f"  Errors: {n_errors}",
            f"  Warnings: {n_warnings}",
        ]

        if self.errors:
            lines.append("\nErrors:")
            for e in self.errors:
                lines.append(f"  - {e.check_name}: {e.message}")

        if self.warnings:
            lines.append("\nWarnings:")
            for w in self.warnings:
                lines.append(f"  - {w.check_name}: {w.message}")

        return "\n".join(lines)


# -----------------------------------------------------------------------------
# Graph Validators
# -----------------------------------------------------------------------------


def validate_graph_symmetry(graph: NeighborGraph) -> ValidationResult:
    """Validate that every edge (i, j) is matched by (j, i).

    Args:
        graph: Neighbour graph to check

    Returns:
        ValidationResult indicating pass/fail
    """
    asymmetric = [
        (unit_id, neighbor)
        for unit_id in graph.ids
        for neighbor in graph.neighbors(unit_id)
        if unit_id not in graph.neighbors(neighbor)
    ]
    is_valid = not asymmetric

    return ValidationResult(
        is_valid=is_valid,
        check_name="graph_symmetry",
        message=(
            "Neighbour graph is symmetric"
            if is_valid
            else f"Found {len(asymmetric)} one-directional edges"
        ),
        details={"asymmetric_edges": asymmetric[:20], "n_asymmetric": len(asymmetric)},
        severity="error" if not is_valid else "info",
    )


def validate_no_self_edges(graph: NeighborGraph) -> ValidationResult:
    """Validate that no unit lists itself as a contiguity neighbour."""
    offenders = [unit_id for unit_id in graph.ids if unit_id in graph.neighbors(unit_id)]
    is_valid = not offenders

    return ValidationResult(
        is_valid=is_valid,
        check_name="no_self_edges",
        message=(
            "Neighbour graph has no self-edges"
            if is_valid
            else f"Found {len(offenders)} units listed as their own neighbour"
        ),
        details={"units": offenders[:20]},
        severity="error" if not is_valid else "info",
    )


def validate_invalid_geometries(graph: NeighborGraph) -> ValidationResult:
    """Report units isolated because their geometry failed normalisation.

    Invalid geometries never abort a run, so this is a warning.
    """
    invalid = list(graph.invalid_ids)
    is_valid = not invalid

    return ValidationResult(
        is_valid=is_valid,
        check_name="invalid_geometries",
        message=(
            "All unit geometries were usable"
            if is_valid
            else f"{len(invalid)} units isolated due to invalid geometry"
        ),
        details={"units": invalid[:20], "n_invalid": len(invalid)},
        severity="warning" if not is_valid else "info",
    )


# -----------------------------------------------------------------------------
# Weights Validators
# -----------------------------------------------------------------------------


def validate_weights_membership(
    weights: SpatialWeights,
    unit_ids: Iterable[Hashable],
) -> ValidationResult:
    """Validate that weights rows and entries only reference known units.

    Args:
        weights: Weights to check
        unit_ids: The original unit id set

    Returns:
        ValidationResult indicating pass/fail
    """
    known = set(unit_ids)
    row_ids = set(weights.ids)
    referenced = {neighbor for _, row in weights.items() for neighbor, _ in row}

    unknown = sorted(map(repr, (row_ids | referenced) - known))
    uncovered = sorted(map(repr, known - row_ids))
    is_valid = not unknown and not uncovered

    issues = []
    if unknown:
        issues.append(f"{len(unknown)} unknown ids referenced")
    if uncovered:
        issues.append(f"{len(uncovered)} units without a weights row")

    return ValidationResult(
        is_valid=is_valid,
        check_name="weights_membership",
        message=(
            "Weights reference only known units"
            if is_valid
            else f"Weights membership issues: {'; '.join(issues)}"
        ),
        details={"unknown": unknown[:20], "uncovered": uncovered[:20]},
        severity="error" if not is_valid else "info",
    )


def validate_binary_row_sums(graph: NeighborGraph, weights: SpatialWeights) -> ValidationResult:
    """Validate binary row sums against graph degrees.

    Row sum must equal degree(i), or degree(i) + 1 for self-included weights.
    """
    if weights.transform != "B":
        return ValidationResult(
            is_valid=True,
            check_name="binary_row_sums",
            message=f"Skipped: weights transform is {weights.transform!r}",
            severity="info",
        )

    offset = 1 if weights.self_included else 0
    mismatches: list[dict[str, Any]] = []
    for unit_id in graph.ids:
        expected = graph.degree(unit_id) + offset
        actual = weights.row_sum(unit_id)
        if abs(actual - expected) > _ROW_SUM_TOLERANCE:
            mismatches.append({"id": unit_id, "expected": expected, "actual": actual})

    is_valid = not mismatches

    return ValidationResult(
        is_valid=is_valid,
        check_name="binary_row_sums",
        message=(
            "Row sums match graph degrees"
            if is_valid
            else f"Found {len(mismatches)} rows whose sum differs from the degree"
        ),
        details={"mismatches": mismatches[:20], "self_included": weights.self_included},
        severity="error" if not is_valid else "info",
    )


def validate_self_loops(weights: SpatialWeights) -> ValidationResult:
    """Validate that every row has exactly one self entry with weight 1.

    Args:
        weights: Self-included binary weights

    Returns:
        ValidationResult indicating pass/fail
    """
    bad_rows = []
    for unit_id, row in weights.items():
        self_entries = [weight for neighbor, weight in row if neighbor == unit_id]
        if len(self_entries) != 1 or self_entries[0] != 1.0:
            bad_rows.append(unit_id)

    is_valid = not bad_rows

    return ValidationResult(
        is_valid=is_valid,
        check_name="self_loops",
        message=(
            "Every row carries a unit self-loop"
            if is_valid
            else f"Found {len(bad_rows)} rows without a single weight-1 self-loop"
        ),
        details={"units": bad_rows[:20]},
        severity="error" if not is_valid else "info",
    )


# -----------------------------------------------------------------------------
# Comprehensive Validation
# -----------------------------------------------------------------------------


def validate_contiguity_artifacts(
    graph: NeighborGraph,
    weights: SpatialWeights | None = None,
) -> ValidationReport:
    """Run all structural checks on a graph and, optionally, its weights.

    Args:
        graph: Neighbour graph
        weights: Weights derived from *graph*

    Returns:
        ValidationReport with all check results
    """
    report = ValidationReport()

    report.add(validate_graph_symmetry(graph))
    report.add(validate_no_self_edges(graph))
    report.add(validate_invalid_geometries(graph))

    if weights is not None:
        report.add(validate_weights_membership(weights, graph.ids))
        report.add(validate_binary_row_sums(graph, weights))
        if weights.self_included:
            report.add(validate_self_loops(weights))

    logger.debug(report.summary())
    return report

"""Local Getis-Ord Gi* statistic and hotspot classification.

The computation runs in two phases:

1. Reduce: the global mean and population standard deviation of every unit
   with a defined attribute value (``compute_baseline``).
2. Map: a z-score per unit from its self-included weights row, scored
   against that single shared baseline.

For unit i with weights w_ij over its row::

    W_i   = sum_j w_ij
    W2_i  = sum_j w_ij ** 2
    Gi*_i = (sum_j w_ij x_j - mean * W_i)
            / (std * sqrt((n * W2_i - W_i ** 2) / (n - 1)))

where n counts units with a defined value. Units whose row touches a missing
value, or whose denominator is degenerate, get ``HotspotCategory.UNDEFINED``
instead of a z-score.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

from arealflow.core.errors import InconsistentInput
from arealflow.core.schema import HotspotCategory
from arealflow.core.utils import get_logger, is_missing
from arealflow.core.weights import SpatialWeights

logger = get_logger(__name__)

UnitId = Hashable

DEFAULT_HIGH_THRESHOLD = 2.0
DEFAULT_LOW_THRESHOLD = -2.0

# Relative size below which the variance term counts as zero.
_DEGENERATE_EPS = 1e-12


@dataclass(frozen=True, slots=True)
class GlobalBaseline:
    """Study-area reduction shared by every per-unit score.

    Attributes:
        n: Number of units with a defined attribute value
        mean: Mean of the defined values (None when n == 0)
        std: Population standard deviation (ddof=0); exactly 0 when all
            defined values are identical
    """

    n: int
    mean: float | None
    std: float | None

    @property
    def is_degenerate(self) -> bool:
        """True when no unit can be scored against this baseline."""
        return self.n <= 1 or not self.std


@dataclass(frozen=True, slots=True)
class LocalStatisticResult:
    """Gi* outcome for one unit."""

    id: UnitId
    z_score: float | None
    p_value: float | None
    category: HotspotCategory

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "z_score": self.z_score,
            "p_value": self.p_value,
            "category": self.category.value,
        }


def classify_z_score(
    z_score: float | None,
    high_threshold: float = DEFAULT_HIGH_THRESHOLD,
    low_threshold: float = DEFAULT_LOW_THRESHOLD,
) -> HotspotCategory:
    """
    Map a z-score onto a hotspot category.

    Args:
        z_score: Gi* z-score, or None when undefined
        high_threshold: Inclusive cutoff for HIGH_CLUSTER
        low_threshold: Inclusive cutoff for LOW_CLUSTER

    Returns:
        HotspotCategory
    """
    if z_score is None:
        return HotspotCategory.UNDEFINED
    if z_score >= high_threshold:
        return HotspotCategory.HIGH_CLUSTER
    if z_score <= low_threshold:
        return HotspotCategory.LOW_CLUSTER
    return HotspotCategory.NONE


def compute_baseline(values: Iterable[float | None]) -> GlobalBaseline:
    """
    Reduce attribute values to the global mean and standard deviation.

    Args:
        values: Attribute values; None and NaN are skipped

    Returns:
        GlobalBaseline over the defined values
    """
    defined = [float(v) for v in values if not is_missing(v)]
    if not defined:
        return GlobalBaseline(n=0, mean=None, std=None)

    arr = np.asarray(defined, dtype=float)
    if not np.isfinite(arr).all():
        raise ValueError("Attribute values must be finite numbers or missing")

    mean = float(arr.mean())
    std = 0.0 if arr.min() == arr.max() else float(arr.std(ddof=0))
    return GlobalBaseline(n=len(defined), mean=mean, std=std)


def gi_star(
    weights: SpatialWeights,
    values: Mapping[UnitId, Any],
    *,
    high_threshold: float = DEFAULT_HIGH_THRESHOLD,
    low_threshold: float = DEFAULT_LOW_THRESHOLD,
) -> list[LocalStatisticResult]:
    """
    Compute the local Getis-Ord Gi* z-score for every unit and classify it.

    Args:
        weights: Self-included weights (see SpatialWeights.with_self_loops)
        values: Attribute value per unit id; None or NaN marks a missing value
        high_threshold: z-score at or above which a unit is HIGH_CLUSTER
        low_threshold: z-score at or below which a unit is LOW_CLUSTER

    Returns:
        One LocalStatisticResult per unit, in weights id order

    Raises:
        InconsistentInput: If weights and values cover different unit ids
        ValueError: If weights lack self-loops or thresholds are inverted
        TypeError: If an attribute value is not numeric
    """
    if not low_threshold < high_threshold:
        raise ValueError(
            f"low_threshold ({low_threshold}) must be below high_threshold ({high_threshold})"
        )
    if not weights.self_included:
        raise ValueError("Gi* requires self-included weights; call with_self_loops() first")

    _check_consistency(weights, values)
    x = _coerce_values(weights, values)

    baseline = compute_baseline(x.values())
    logger.debug(
        "Gi* baseline: n=%d, mean=%s, std=%s", baseline.n, baseline.mean, baseline.std
    )
    if baseline.is_degenerate:
        logger.warning(
            "Degenerate attribute baseline (n=%d, std=%s); every unit is UNDEFINED",
            baseline.n,
            baseline.std,
        )

    results: list[LocalStatisticResult] = []
    for unit_id, row in weights.items():
        z_score = _local_z(row, x, baseline)
        p_value = math.erfc(abs(z_score) / math.sqrt(2.0)) if z_score is not None else None
        results.append(
            LocalStatisticResult(
                id=unit_id,
                z_score=z_score,
                p_value=p_value,
                category=classify_z_score(z_score, high_threshold, low_threshold),
            )
        )

    counts = Counter(result.category.value for result in results)
    logger.info("Gi* classified %d units: %s", len(results), dict(sorted(counts.items())))
    return results


def _check_consistency(weights: SpatialWeights, values: Mapping[UnitId, Any]) -> None:
    weight_ids = set(weights.ids)
    value_ids = set(values)
    if weight_ids == value_ids:
        return

    missing = [unit_id for unit_id in weights.ids if unit_id not in value_ids]
    unexpected = [unit_id for unit_id in values if unit_id not in weight_ids]
    parts = []
    if missing:
        parts.append(f"{len(missing)} weighted units lack attribute entries {missing[:10]}")
    if unexpected:
        parts.append(f"{len(unexpected)} attribute entries lack weights rows {unexpected[:10]}")
    raise InconsistentInput(
        "Weights and attribute ids disagree: " + "; ".join(parts),
        missing=missing,
        unexpected=unexpected,
    )


def _coerce_values(
    weights: SpatialWeights, values: Mapping[UnitId, Any]
) -> dict[UnitId, float | None]:
    coerced: dict[UnitId, float | None] = {}
    for unit_id in weights.ids:
        value = values[unit_id]
        if is_missing(value):
            coerced[unit_id] = None
            continue
        if isinstance(value, (str, bytes)):
            raise TypeError(f"Attribute value for unit {unit_id!r} is not numeric: {value!r}")
        try:
            coerced[unit_id] = float(value)
        except (TypeError, ValueError) as exc:
            raise TypeError(
                f"Attribute value for unit {unit_id!r} is not numeric: {value!r}"
            ) from exc
    return coerced


def _local_z(
    row: tuple[tuple[UnitId, float], ...],
    x: Mapping[UnitId, float | None],
    baseline: GlobalBaseline,
) -> float | None:
    if baseline.is_degenerate or baseline.mean is None or baseline.std is None:
        return None

    local: list[tuple[float, float]] = []
    for neighbor, weight in row:
        value = x[neighbor]
        if value is None:
            return None
        local.append((weight, value))

    w_sum = math.fsum(w for w, _ in local)
    if w_sum == 0:
        return None
    w_sq_sum = math.fsum(w * w for w, _ in local)

    n = baseline.n
    inner = (n * w_sq_sum - w_sum * w_sum) / (n - 1)
    if inner <= _DEGENERATE_EPS * n * w_sq_sum:
        return None

    numerator = math.fsum(w * v for w, v in local) - baseline.mean * w_sum
    denominator = baseline.std * math.sqrt(inner)
    return numerator / denominator

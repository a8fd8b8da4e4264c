"""Utility functions and helpers."""

import logging
import math
from collections.abc import Hashable, Iterable
from typing import Any


# Logging setup
def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with standardized configuration.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger


# Data validation helpers
def validate_bounds(
    bounds: tuple[float, float, float, float],
) -> tuple[float, float, float, float]:
    """
    Validate and normalize spatial bounds.

    Degenerate boxes (zero width or height) are accepted since a single
    polygon ring can still be thin along one axis after quantisation.

    Args:
        bounds: (minx, miny, maxx, maxy)

    Returns:
        Validated bounds

    Raises:
        ValueError: If bounds are invalid
    """
    minx, miny, maxx, maxy = bounds

    if not all(math.isfinite(value) for value in bounds):
        raise ValueError(f"Bounds must be finite: {bounds}")
    if minx > maxx:
        raise ValueError(f"minx ({minx}) must not exceed maxx ({maxx})")
    if miny > maxy:
        raise ValueError(f"miny ({miny}) must not exceed maxy ({maxy})")

    return (minx, miny, maxx, maxy)


def is_missing(value: Any) -> bool:
    """Return True for None and NaN attribute values."""
    if value is None:
        return True
    try:
        return math.isnan(value)
    except TypeError:
        return False


def find_duplicates(ids: Iterable[Hashable]) -> list[Hashable]:
    """Return ids that occur more than once, in first-repeat order."""
    seen: set[Hashable] = set()
    duplicates: list[Hashable] = []
    for unit_id in ids:
        if unit_id in seen and unit_id not in duplicates:
            duplicates.append(unit_id)
        seen.add(unit_id)
    return duplicates

"""Exception types raised by the contiguity and hotspot engine."""

from __future__ import annotations

from collections.abc import Hashable, Sequence


class ArealflowError(ValueError):
    """Base class for arealflow input errors."""


class InvalidGeometry(ArealflowError):
    """A unit boundary has no vertices or contains malformed rings."""

    def __init__(self, message: str, unit_id: Hashable | None = None) -> None:
        self.unit_id = unit_id
        if unit_id is not None:
            message = f"Unit {unit_id!r}: {message}"
        super().__init__(message)


class DuplicateUnit(ArealflowError):
    """Two or more input records share the same unit id."""

    def __init__(self, duplicates: Sequence[Hashable]) -> None:
        self.duplicates = list(duplicates)
        preview = ", ".join(repr(d) for d in self.duplicates[:10])
        if len(self.duplicates) > 10:
            preview += ", ..."
        super().__init__(f"Duplicate unit ids: {preview}")


class InconsistentInput(ArealflowError):
    """Unit id sets disagree between a weights structure and its attribute mapping."""

    def __init__(
        self,
        message: str,
        *,
        missing: Sequence[Hashable] = (),
        unexpected: Sequence[Hashable] = (),
    ) -> None:
        self.missing = list(missing)
        self.unexpected = list(unexpected)
        super().__init__(message)

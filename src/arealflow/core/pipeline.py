"""Pipeline orchestration for unit-table analysis steps.

Steps declare which contiguity artefacts (``graph``, ``weights``) they need
attached before they run and which ones they attach. The pipeline checks those
declarations while it runs and, after every step, that the unit table, graph
and weights still describe the same set of units.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Hashable, Sequence
from dataclasses import dataclass

from arealflow.core.unit_frame import UnitFrame
from arealflow.core.utils import get_logger

logger = get_logger(__name__)

ARTIFACTS = frozenset({"graph", "weights"})


class Step(ABC):
    """
    Base class for pipeline steps.

    A step is a stateless transformation that takes a UnitFrame and returns a
    new UnitFrame over the same units.

    Attributes:
        requires: Artefacts that must be attached to the input frame
        provides: Artefacts the step attaches to its output
    """

    requires: frozenset[str] = frozenset()
    provides: frozenset[str] = frozenset()

    @abstractmethod
    def run(self, unit_frame: UnitFrame) -> UnitFrame:
        """Execute the step transformation and return the modified frame."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


@dataclass(frozen=True, slots=True)
class StepRecord:
    """What one step did during the most recent run."""

    name: str
    added_columns: tuple[str, ...]
    attached: tuple[str, ...]
    seconds: float


def attached_artifacts(unit_frame: UnitFrame) -> frozenset[str]:
    """Names of the artefacts currently attached to *unit_frame*."""
    present = set()
    if unit_frame.graph is not None:
        present.add("graph")
    if unit_frame.weights is not None:
        present.add("weights")
    return frozenset(present)


def unmet_requirements(steps: Sequence[Step]) -> dict[str, str]:
    """
    Artefacts the input frame must already carry for *steps* to run.

    Returns:
        Mapping of artefact name to the first step that needs it without an
        earlier step providing it
    """
    provided: set[str] = set()
    unmet: dict[str, str] = {}
    for step in steps:
        for artifact in sorted(step.requires - provided):
            unmet.setdefault(artifact, type(step).__name__)
        provided |= step.provides
    return unmet


class Pipeline:
    """
    A sequence of steps applied to a UnitFrame.

    Attributes:
        steps: Steps in execution order
        history: One StepRecord per step of the most recent successful run
    """

    def __init__(self, steps: Sequence[Step]) -> None:
        for step in steps:
            unknown = (step.requires | step.provides) - ARTIFACTS
            if unknown:
                raise ValueError(
                    f"Step {type(step).__name__} declares unknown artefacts: {sorted(unknown)}"
                )
        self.steps = list(steps)
        self.history: list[StepRecord] = []
        logger.info("Created pipeline: %s", " -> ".join(self.step_names) or "<empty>")

    @property
    def step_names(self) -> list[str]:
        return [type(step).__name__ for step in self.steps]

    @property
    def requires(self) -> frozenset[str]:
        """Artefacts the input frame must carry before the first step."""
        return frozenset(unmet_requirements(self.steps))

    def run(self, unit_frame: UnitFrame) -> UnitFrame:
        """
        Run every step in order.

        Raises:
            ValueError: If a step runs without an artefact it requires, changes
                the unit set, attaches a graph or weights over other units, or
                drops columns or provenance from the schema
            TypeError: If a step does not return a UnitFrame
        """
        unit_ids = unit_frame.unit_ids()
        logger.info(
            "Running %d steps over %d units (%s)",
            len(self.steps),
            len(unit_ids),
            unit_frame.metadata.dataset_name,
        )

        history: list[StepRecord] = []
        current = unit_frame
        for position, step in enumerate(self.steps, 1):
            name = type(step).__name__
            missing = step.requires - attached_artifacts(current)
            if missing:
                raise ValueError(
                    f"Step {name} needs {', '.join(sorted(missing))} attached; "
                    "add a step that provides it earlier in the pipeline"
                )

            before = set(current.lazy_frame.collect_schema().names())
            started = time.perf_counter()
            try:
                result = step.run(current)
            except Exception as e:
                logger.error("Step %d/%d %s failed: %s", position, len(self.steps), name, e)
                raise
            elapsed = time.perf_counter() - started

            if not isinstance(result, UnitFrame):
                raise TypeError(
                    f"Step {name} returned {type(result).__name__} instead of UnitFrame"
                )
            _check_same_units(name, unit_ids, result)

            issues = current.schema.compatibility_issues(result.schema)
            if issues:
                raise ValueError(
                    f"Step {name} produced incompatible schema: {'; '.join(issues)}"
                )

            added = tuple(
                column
                for column in result.lazy_frame.collect_schema().names()
                if column not in before
            )
            record = StepRecord(
                name=name,
                added_columns=added,
                attached=tuple(sorted(attached_artifacts(result))),
                seconds=elapsed,
            )
            history.append(record)
            logger.info(
                "Step %d/%d %s: +%d columns, attached=%s (%.3fs)",
                position,
                len(self.steps),
                name,
                len(added),
                list(record.attached),
                elapsed,
            )
            current = result

        self.history = history
        return current

    def add_step(self, step: Step) -> Pipeline:
        """Append *step* and return self for chaining."""
        self.steps.append(step)
        return self

    def __repr__(self) -> str:
        return f"Pipeline({' -> '.join(self.step_names)})"

    def __len__(self) -> int:
        return len(self.steps)


def _check_same_units(step_name: str, unit_ids: list[Hashable], result: UnitFrame) -> None:
    """Raise unless the table, graph and weights of *result* all cover *unit_ids*."""
    expected = set(unit_ids)
    produced = result.unit_ids()
    if len(produced) != len(unit_ids) or set(produced) != expected:
        added = len(set(produced) - expected)
        removed = len(expected - set(produced))
        raise ValueError(
            f"Step {step_name} changed the unit set ({added} added, {removed} removed)"
        )

    if result.graph is not None and set(result.graph.ids) != expected:
        raise ValueError(f"Step {step_name} attached a graph over a different unit set")
    if result.weights is not None and set(result.weights.ids) != expected:
        raise ValueError(f"Step {step_name} attached weights over a different unit set")

"""Named, validated constructors for pipeline steps.

Steps are registered under a name with an optional pydantic config model that
validates their parameters. Third-party packages can contribute steps through
the ``arealflow.steps`` entry point group: each entry point resolves to a
callable that receives the registry.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from importlib import metadata
from typing import Any

from pydantic import BaseModel

from arealflow.core.pipeline import Pipeline, Step, unmet_requirements
from arealflow.core.schema import AnalysisConfig
from arealflow.core.utils import get_logger

logger = get_logger(__name__)

StepDefinition = str | tuple[str, Mapping[str, Any] | None] | Mapping[str, Any]

STEP_TAGS = frozenset({"spatial", "weights", "statistic"})


@dataclass(frozen=True, slots=True)
class StepSpec:
    """A registered step: its class, tags and parameter model."""

    name: str
    cls: type[Step]
    tags: frozenset[str] = field(default_factory=frozenset)
    description: str | None = None
    config_model: type[BaseModel] | None = None

    @property
    def requires(self) -> frozenset[str]:
        return self.cls.requires

    @property
    def provides(self) -> frozenset[str]:
        return self.cls.provides


def parse_step_definition(entry: StepDefinition) -> tuple[str, dict[str, Any]]:
    """
    Normalise one step definition into ``(name, params)``.

    Accepted forms are a bare name, a ``(name, params)`` tuple, or a mapping
    with ``name`` and optional ``params`` (or ``config``) keys, which is how
    YAML configs spell steps.
    """
    if isinstance(entry, str):
        return entry, {}
    if isinstance(entry, tuple) and len(entry) == 2:
        name, params = entry
    elif isinstance(entry, Mapping):
        name = entry.get("name")
        params = entry.get("params", entry.get("config"))
        if not isinstance(name, str):
            raise ValueError("Step mapping must include a string 'name' key")
    else:
        raise TypeError(
            "Step definitions must be a name, a (name, params) tuple or a mapping with 'name'"
        )
    if params is not None and not isinstance(params, Mapping):
        raise TypeError(f"Params for step {name!r} must be a mapping")
    return name, dict(params or {})


class StepRegistry:
    """Registry of the steps a pipeline can be built from."""

    entry_point_group = "arealflow.steps"

    def __init__(self) -> None:
        self._specs: dict[str, StepSpec] = {}

    def register(
        self,
        name: str,
        step_cls: type[Step],
        *,
        tags: Iterable[str] | None = None,
        description: str | None = None,
        config_model: type[BaseModel] | None = None,
    ) -> StepSpec:
        """
        Register *step_cls* under *name*.

        Raises:
            ValueError: If the name is taken or a tag is not one of STEP_TAGS
            TypeError: If the class is not a Step or the config model is not
                a pydantic model
        """
        if name in self._specs:
            raise ValueError(f"Step already registered: {name}")
        if not (isinstance(step_cls, type) and issubclass(step_cls, Step)):
            raise TypeError(f"Step {name!r} must be a Step subclass")
        if config_model is not None and not (
            isinstance(config_model, type) and issubclass(config_model, BaseModel)
        ):
            raise TypeError("config_model must inherit from pydantic.BaseModel")

        tag_set = frozenset(tags or ())
        unsupported = tag_set - STEP_TAGS
        if unsupported:
            raise ValueError(f"Unsupported step tags: {sorted(unsupported)}")

        spec = StepSpec(name, step_cls, tag_set, description, config_model)
        self._specs[name] = spec
        logger.debug(
            "Registered step %s (requires=%s, provides=%s)",
            name,
            sorted(spec.requires),
            sorted(spec.provides),
        )
        return spec

    def load_entry_points(self) -> int:
        """Call every registration hook in the entry point group; return how many ran."""
        loaded = 0
        for ep in metadata.entry_points(group=self.entry_point_group):
            try:
                hook = ep.load()
            except Exception as exc:  # pragma: no cover - broken plugins are reported, not fatal
                logger.error("Failed to load step entry point %s: %s", ep.name, exc)
                continue
            if not callable(hook):  # pragma: no cover
                logger.warning("Step entry point %s is not callable; skipping", ep.name)
                continue
            hook(self)
            loaded += 1
        return loaded

    def get(self, name: str) -> StepSpec:
        """Return the spec registered under *name* or raise KeyError."""
        return self._specs[name]

    def list(self, *, tag: str | None = None) -> list[StepSpec]:
        """Registered specs in registration order, optionally only those with *tag*."""
        return [spec for spec in self._specs.values() if tag is None or tag in spec.tags]

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def create(self, name: str, *, params: Mapping[str, Any] | None = None) -> Step:
        """
        Instantiate step *name*.

        Params go through the step's config model when it has one, so defaults
        and constraints come from that model.

        Raises:
            KeyError: If no step is registered under *name*
            pydantic.ValidationError: If params fail the config model
        """
        spec = self.get(name)
        kwargs = dict(params or {})
        if spec.config_model is not None:
            kwargs = spec.config_model(**kwargs).model_dump()
        return spec.cls(**kwargs)

    def build_pipeline(self, steps: Iterable[StepDefinition]) -> Pipeline:
        """Construct a Pipeline from step definitions (see parse_step_definition)."""
        instances = [
            self.create(name, params=params)
            for name, params in map(parse_step_definition, steps)
        ]
        return Pipeline(instances)

    def hotspot_pipeline(self, config: AnalysisConfig) -> Pipeline:
        """
        Build the pipeline an analysis config describes.

        Explicit ``config.steps`` win. Otherwise contiguity and weights are
        built from ``config.hotspot`` and one ``getis_ord`` step is added per
        value column.

        Raises:
            ValueError: If a step needs an artefact no earlier step provides;
                unit tables read from disk never carry a graph or weights
        """
        if config.steps:
            pipeline = self.build_pipeline(config.steps)
        else:
            hotspot = config.hotspot
            definitions: list[StepDefinition] = [
                (
                    "contiguity",
                    {"vertex_tolerance": hotspot.vertex_tolerance, "prefilter": hotspot.prefilter},
                ),
                ("spatial_weights", {"transform": "B", "include_self": hotspot.include_self}),
            ]
            definitions.extend(
                (
                    "getis_ord",
                    {
                        "value_col": column,
                        "high_threshold": hotspot.high_threshold,
                        "low_threshold": hotspot.low_threshold,
                    },
                )
                for column in config.value_cols
            )
            pipeline = self.build_pipeline(definitions)

        unmet = unmet_requirements(pipeline.steps)
        if unmet:
            detail = ", ".join(f"{step} needs {artifact}" for artifact, step in unmet.items())
            raise ValueError(f"Pipeline steps are out of order: {detail}")
        return pipeline

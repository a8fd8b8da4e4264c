"""UnitFrame: central abstraction for areal unit tables."""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping, Sequence
from typing import Any

import polars as pl

from arealflow.core.contiguity import NeighborGraph
from arealflow.core.errors import DuplicateUnit, InvalidGeometry
from arealflow.core.geometry import to_wkt
from arealflow.core.schema import FeatureProvenance, UnitMetadata, UnitSchema
from arealflow.core.utils import find_duplicates, get_logger, is_missing
from arealflow.core.weights import SpatialWeights

logger = get_logger(__name__)

_NUMERIC_DTYPES = (
    pl.Int8,
    pl.Int16,
    pl.Int32,
    pl.Int64,
    pl.UInt8,
    pl.UInt16,
    pl.UInt32,
    pl.UInt64,
    pl.Float32,
    pl.Float64,
)


class UnitFrame:
    """
    Central abstraction for areal unit data.

    Wraps a Polars LazyFrame (one row per unit) with schema and metadata, and
    carries the contiguity artefacts derived from it. Every transformation
    returns a new UnitFrame.

    Attributes:
        lazy_frame: The underlying Polars LazyFrame
        schema: Column structure (id, geometry, attributes)
        metadata: Dataset metadata and feature catalog
        graph: Queen contiguity graph, once built
        weights: Spatial weights, once materialised
    """

    def __init__(
        self,
        lazy_frame: pl.LazyFrame,
        schema: UnitSchema,
        metadata: UnitMetadata,
        *,
        graph: NeighborGraph | None = None,
        weights: SpatialWeights | None = None,
    ) -> None:
        """
        Initialize a UnitFrame.

        Args:
            lazy_frame: Polars LazyFrame containing the unit table
            schema: Schema describing the table
            metadata: Metadata about the dataset
            graph: Optional contiguity graph over the unit ids
            weights: Optional spatial weights over the unit ids
        """
        self.lazy_frame = lazy_frame

        # Keep schema and metadata provenance in sync.
        combined_provenance = dict(metadata.feature_provenance)
        combined_provenance.update(schema.feature_provenance)

        if combined_provenance != metadata.feature_provenance:
            metadata = metadata.model_copy(update={"feature_provenance": combined_provenance})
        if combined_provenance != schema.feature_provenance:
            schema = schema.model_copy(update={"feature_provenance": combined_provenance})

        self.schema = schema
        self.metadata = metadata
        self.graph = graph
        self.weights = weights
        logger.debug(
            f"Created UnitFrame for dataset '{metadata.dataset_name}' "
            f"with id_col='{schema.id_col}'"
        )

    @classmethod
    def from_frame(
        cls,
        frame: pl.DataFrame | pl.LazyFrame,
        *,
        id_col: str = "id",
        geometry_col: str = "geometry",
        attribute_cols: Sequence[str] | None = None,
        dataset_name: str = "units",
        crs: str | None = None,
    ) -> UnitFrame:
        """
        Wrap a unit table.

        Args:
            frame: One row per unit
            id_col: Unique id column
            geometry_col: Boundary column (WKT strings)
            attribute_cols: Numeric attribute columns; inferred when None
            dataset_name: Dataset label for metadata
            crs: Optional CRS label (never transformed)

        Returns:
            UnitFrame over *frame*
        """
        lf = frame.lazy() if isinstance(frame, pl.DataFrame) else frame
        columns = lf.collect_schema()

        missing = [col for col in (id_col, geometry_col) if col not in columns]
        if missing:
            raise ValueError(f"Unit table is missing required columns: {missing}")

        if attribute_cols is None:
            attribute_cols = [
                name
                for name, dtype in columns.items()
                if name not in (id_col, geometry_col) and dtype in _NUMERIC_DTYPES
            ]
        else:
            unknown = [col for col in attribute_cols if col not in columns]
            if unknown:
                raise ValueError(f"Unit table is missing attribute columns: {unknown}")

        schema = UnitSchema(
            id_col=id_col,
            geometry_col=geometry_col,
            attribute_cols=list(attribute_cols),
        )
        metadata = UnitMetadata(dataset_name=dataset_name, crs=crs)
        return cls(lf, schema, metadata)

    @classmethod
    def from_units(
        cls,
        units: Iterable[Any],
        *,
        attribute_col: str = "attribute",
        dataset_name: str = "units",
        crs: str | None = None,
    ) -> UnitFrame:
        """
        Build a UnitFrame from ArealUnit-like records (id, geometry, attribute).

        Geometries are stored as WKT; boundaries that cannot be serialised are
        stored as null and end up isolated when the graph is built.
        """
        ids: list[Any] = []
        wkts: list[str | None] = []
        values: list[float | None] = []
        for unit in units:
            ids.append(unit.id)
            try:
                wkts.append(to_wkt(unit.geometry, unit_id=unit.id))
            except InvalidGeometry as exc:
                logger.warning("Storing null geometry: %s", exc)
                wkts.append(None)
            values.append(None if is_missing(unit.attribute) else float(unit.attribute))

        df = pl.DataFrame(
            {
                "id": ids,
                "geometry": pl.Series(wkts, dtype=pl.Utf8),
                attribute_col: pl.Series(values, dtype=pl.Float64),
            }
        )
        return cls.from_frame(
            df,
            attribute_cols=[attribute_col],
            dataset_name=dataset_name,
            crs=crs,
        )

    def with_lazy_frame(self, lazy_frame: pl.LazyFrame) -> UnitFrame:
        """
        Create a new UnitFrame with a different LazyFrame.

        Args:
            lazy_frame: New LazyFrame to wrap

        Returns:
            New UnitFrame with updated LazyFrame
        """
        return self._spawn(lazy_frame=lazy_frame)

    def with_metadata(self, **updates: Any) -> UnitFrame:
        """
        Create a new UnitFrame with updated metadata.

        Args:
            **updates: Metadata fields to update

        Returns:
            New UnitFrame with updated metadata
        """
        new_metadata = self.metadata.model_copy(update=updates)
        return self._spawn(metadata=new_metadata)

    def with_graph(self, graph: NeighborGraph) -> UnitFrame:
        """Attach a contiguity graph; any weights derived from an older graph are dropped."""
        return UnitFrame(self.lazy_frame, self.schema, self.metadata, graph=graph, weights=None)

    def with_weights(self, weights: SpatialWeights) -> UnitFrame:
        """Attach spatial weights."""
        return self._spawn(weights=weights)

    def _spawn(
        self,
        *,
        lazy_frame: pl.LazyFrame | None = None,
        schema: UnitSchema | None = None,
        metadata: UnitMetadata | None = None,
        weights: SpatialWeights | None = None,
    ) -> UnitFrame:
        """Internal helper to create new UnitFrame instances preserving invariants."""

        return UnitFrame(
            lazy_frame if lazy_frame is not None else self.lazy_frame,
            schema or self.schema,
            metadata or self.metadata,
            graph=self.graph,
            weights=weights if weights is not None else self.weights,
        )

    def register_feature(
        self,
        name: str,
        info: dict[str, Any],
        *,
        provenance: FeatureProvenance | None = None,
    ) -> UnitFrame:
        """Return a new UnitFrame with feature catalog updated.

        Args:
            name: Feature identifier to register.
            info: Arbitrary metadata describing the feature.
            provenance: Optional provenance record; inferred from *info* when omitted.

        Returns:
            UnitFrame whose metadata includes the registered feature.
        """
        catalog = dict(self.metadata.feature_catalog)
        catalog[name] = info

        if provenance is None:
            provenance = FeatureProvenance(
                produced_by=info.get("source_step"),
                inputs=list(info.get("inputs", [])),
                tags=set(info.get("tags", [])),
                description=info.get("description"),
                metadata={
                    k: v
                    for k, v in info.items()
                    if k not in {"source_step", "inputs", "tags", "description"}
                },
            )

        metadata_provenance = dict(self.metadata.feature_provenance)
        metadata_provenance[name] = provenance

        schema_provenance = dict(self.schema.feature_provenance)
        schema_provenance[name] = provenance

        logger.debug(
            "Registering feature '%s' on dataset '%s'",
            name,
            self.metadata.dataset_name,
        )

        return self._spawn(
            schema=self.schema.model_copy(update={"feature_provenance": schema_provenance}),
            metadata=self.metadata.model_copy(
                update={
                    "feature_catalog": catalog,
                    "feature_provenance": metadata_provenance,
                }
            ),
        )

    def with_unit_columns(self, columns: Mapping[str, pl.Series]) -> UnitFrame:
        """Return a new UnitFrame with row-aligned columns added or replaced."""
        df = self.collect()
        for name, series in columns.items():
            if len(series) != df.height:
                raise ValueError(
                    f"Column '{name}' has {len(series)} values for {df.height} units"
                )
        df = df.with_columns([series.alias(name) for name, series in columns.items()])
        return self.with_lazy_frame(df.lazy())

    def unit_ids(self) -> list[Hashable]:
        """Return unit ids in row order.

        Raises:
            DuplicateUnit: If the id column repeats a value
            ValueError: If an id is null
        """
        ids = self.lazy_frame.select(self.schema.id_col).collect().to_series().to_list()
        if any(unit_id is None for unit_id in ids):
            raise ValueError(f"Column '{self.schema.id_col}' contains null unit ids")
        duplicates = find_duplicates(ids)
        if duplicates:
            raise DuplicateUnit(duplicates)
        return ids

    def geometries(self) -> list[Any]:
        """Return boundaries in row order."""
        return (
            self.lazy_frame.select(self.schema.geometry_col).collect().to_series().to_list()
        )

    def attribute_values(self, column: str) -> dict[Hashable, Any]:
        """Map unit id to the value of *column* (None where null)."""
        df = self.lazy_frame.select(self.schema.id_col, column).collect()
        return dict(zip(df[self.schema.id_col].to_list(), df[column].to_list()))

    def collect(self) -> pl.DataFrame:
        """Materialize the lazy frame into a DataFrame."""

        logger.debug("Collecting UnitFrame for dataset '%s'", self.metadata.dataset_name)
        return self.lazy_frame.collect()

    def head(self, n: int = 5) -> pl.DataFrame:
        """Collect the first *n* rows."""

        return self.lazy_frame.head(n).collect()

    def count(self) -> int:
        """Return the number of units."""

        df = self.lazy_frame.select(pl.len().alias("_count"))
        result = df.collect()
        rows = result.rows()
        return int(rows[0][0]) if rows else 0

    def __repr__(self) -> str:
        """String representation of the UnitFrame."""

        return (
            "UnitFrame(\n"
            f"  dataset={self.metadata.dataset_name},\n"
            f"  id_col={self.schema.id_col},\n"
            f"  attributes={self.schema.attribute_cols},\n"
            f"  graph={self.graph!r},\n"
            f"  weights={self.weights!r}\n"
            ")"
        )

    def __len__(self) -> int:
        """Return the number of units."""

        return self.count()

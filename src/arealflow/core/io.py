"""Reading unit tables and writing classified results."""

from __future__ import annotations

import json
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import polars as pl
from shapely.errors import ShapelyError
from shapely.geometry import shape

from arealflow.core.utils import get_logger

logger = get_logger(__name__)


class TableFormat(str, Enum):
    """File formats understood by ``read_units`` and ``write_results``."""

    CSV = "csv"
    PARQUET = "parquet"
    GEOJSON = "geojson"

    @classmethod
    def from_path(cls, path: Path) -> TableFormat:
        suffix = path.suffix.lower().lstrip(".")
        if suffix in {"json", "geojson"}:
            return cls.GEOJSON
        if suffix in {"parquet", "pq"}:
            return cls.PARQUET
        if suffix == "csv":
            return cls.CSV
        raise ValueError(f"Unsupported file extension: {path.suffix!r}")


def read_units(
    path: Path | str,
    *,
    id_col: str = "id",
    geometry_col: str = "geometry",
) -> pl.DataFrame:
    """
    Read a unit table from disk.

    CSV and Parquet files must carry boundaries as WKT in *geometry_col*.
    GeoJSON FeatureCollections are flattened to one row per feature, with
    properties as columns and the geometry serialised to WKT.

    Args:
        path: Input file (.csv, .parquet, .geojson or .json)
        id_col: Unit id column (a GeoJSON feature ``id`` fills it when absent)
        geometry_col: Column receiving or holding the WKT boundary

    Returns:
        DataFrame with one row per unit
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Unit table not found: {path}")

    fmt = TableFormat.from_path(path)
    if fmt == TableFormat.CSV:
        df = pl.read_csv(path)
    elif fmt == TableFormat.PARQUET:
        df = pl.read_parquet(path)
    else:
        df = _read_geojson(path, id_col=id_col, geometry_col=geometry_col)

    missing = [col for col in (id_col, geometry_col) if col not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing required columns: {missing}")

    logger.info(f"Read {df.height} units from {path} as {fmt.value}")
    return df


def _read_geojson(path: Path, *, id_col: str, geometry_col: str) -> pl.DataFrame:
    data = json.loads(path.read_text())
    if data.get("type") != "FeatureCollection":
        raise ValueError(f"{path} is not a GeoJSON FeatureCollection")

    records: list[dict[str, Any]] = []
    for index, feature in enumerate(data.get("features", [])):
        record = dict(feature.get("properties") or {})
        if id_col not in record:
            record[id_col] = feature.get("id", index)

        geometry = feature.get("geometry")
        if geometry is None:
            record[geometry_col] = None
        else:
            try:
                record[geometry_col] = shape(geometry).wkt
            except (KeyError, TypeError, ValueError, AttributeError, ShapelyError) as exc:
                # Left unparsed; the contiguity builder isolates it
                logger.warning("Feature %r has an unreadable geometry: %s", record[id_col], exc)
                record[geometry_col] = None
        records.append(record)

    if not records:
        return pl.DataFrame(
            {id_col: pl.Series([], dtype=pl.Int64), geometry_col: pl.Series([], dtype=pl.Utf8)}
        )
    return pl.from_dicts(records, infer_schema_length=None)


def write_results(
    df: pl.DataFrame,
    path: Path | str,
    *,
    metadata: Mapping[str, Any] | None = None,
) -> Path:
    """
    Write a result table as CSV or Parquet.

    Args:
        df: Table to write
        path: Destination (.csv or .parquet)
        metadata: Optional run metadata written to a ``.meta.json`` sidecar

    Returns:
        The path written to
    """
    path = Path(path)
    fmt = TableFormat.from_path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == TableFormat.CSV:
        df.write_csv(path)
    elif fmt == TableFormat.PARQUET:
        df.write_parquet(path)
    else:
        raise ValueError("Results can only be written as CSV or Parquet")

    if metadata is not None:
        meta_path = path.with_suffix(".meta.json")
        meta_path.write_text(json.dumps(dict(metadata), indent=2, default=str))

    logger.info(f"Wrote {df.height} rows to {path}")
    return path

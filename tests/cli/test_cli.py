"""Tests for the Typer command-line interface."""

from __future__ import annotations

from pathlib import Path

import polars as pl
import pytest
import yaml  # type: ignore[import-untyped]
from typer.testing import CliRunner

from arealflow import __version__
from arealflow.cli.main import app

runner = CliRunner()


@pytest.fixture
def grid_csv(tmp_path: Path, grid_table: pl.DataFrame) -> Path:
    path = tmp_path / "grid.csv"
    grid_table.write_csv(path)
    return path


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "analysis.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "dataset_name": "grid",
                "value_cols": ["value"],
                "hotspot": {"high_threshold": 1.5, "low_threshold": -1.5},
            }
        )
    )
    return path


def test_version() -> None:
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_list_steps() -> None:
    result = runner.invoke(app, ["list-steps"])

    assert result.exit_code == 0
    for name in ("contiguity", "spatial_weights", "getis_ord"):
        assert name in result.output


def test_list_steps_by_tag() -> None:
    result = runner.invoke(app, ["list-steps", "--tag", "weights"])

    assert result.exit_code == 0
    assert "spatial_weights" in result.output
    assert "getis_ord" not in result.output


def test_hotspots_writes_results(grid_csv: Path, config_path: Path, tmp_path: Path) -> None:
    output = tmp_path / "gi.parquet"

    result = runner.invoke(
        app,
        [
            "hotspots",
            "--input",
            str(grid_csv),
            "--config",
            str(config_path),
            "--output",
            str(output),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Scored 9 units" in result.output
    df = pl.read_parquet(output)
    assert {"value_gi_star", "value_gi_p", "value_hotspot", "n_neighbors"} <= set(df.columns)
    assert output.with_suffix(".meta.json").exists()


def test_hotspots_value_col_without_config(grid_csv: Path) -> None:
    result = runner.invoke(app, ["hotspots", "--input", str(grid_csv), "--value-col", "value"])

    assert result.exit_code == 0, result.output
    assert "value: HIGH_CLUSTER=" in result.output


def test_hotspots_requires_value_columns(grid_csv: Path) -> None:
    result = runner.invoke(app, ["hotspots", "--input", str(grid_csv)])

    assert result.exit_code == 1


def test_hotspots_duplicate_ids(tmp_path: Path, grid_table: pl.DataFrame) -> None:
    path = tmp_path / "dupes.csv"
    grid_table.with_columns(pl.lit(1).alias("id")).write_csv(path)

    result = runner.invoke(app, ["hotspots", "--input", str(path), "--value-col", "value"])

    assert result.exit_code == 1


def test_hotspots_non_numeric_values(tmp_path: Path, grid_table: pl.DataFrame) -> None:
    path = tmp_path / "text_values.csv"
    grid_table.head(3).with_columns(pl.Series("v", ["1", "x", "3"])).write_csv(path)

    result = runner.invoke(app, ["hotspots", "--input", str(path), "--value-col", "v"])

    assert result.exit_code == 1
    assert not isinstance(result.exception, TypeError)
    assert "not numeric" in result.output


def test_neighbors_exports_edges(grid_csv: Path, tmp_path: Path) -> None:
    output = tmp_path / "edges.csv"

    result = runner.invoke(app, ["neighbors", "--input", str(grid_csv), "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert "9 units, 20 edges, 0 islands" in result.output
    assert pl.read_csv(output).height == 40


def test_validate_config(config_path: Path) -> None:
    result = runner.invoke(app, ["validate", "--config", str(config_path)])

    assert result.exit_code == 0
    assert "Valid analysis configuration" in result.output


def test_validate_rejects_bad_config(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({"value_cols": ["v"], "hotspot": {"include_self": False}}))

    result = runner.invoke(app, ["validate", "--config", str(path)])

    assert result.exit_code == 1


def test_validate_rejects_unknown_step(tmp_path: Path) -> None:
    path = tmp_path / "steps.yaml"
    path.write_text(yaml.safe_dump({"value_cols": ["v"], "steps": ["no_such_step"]}))

    result = runner.invoke(app, ["validate", "--config", str(path)])

    assert result.exit_code == 1


def test_missing_config_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["validate", "--config", str(tmp_path / "absent.yaml")])

    assert result.exit_code == 1


def test_validate_rejects_out_of_order_steps(tmp_path: Path) -> None:
    path = tmp_path / "order.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "value_cols": ["v"],
                "steps": [{"name": "getis_ord", "params": {"value_col": "v"}}, "contiguity"],
            }
        )
    )

    result = runner.invoke(app, ["validate", "--config", str(path)])

    assert result.exit_code == 1
    assert "GetisOrdStep needs graph" in result.output


def test_validate_prints_pipeline(config_path: Path) -> None:
    result = runner.invoke(app, ["validate", "--config", str(config_path)])

    assert "ContiguityStep -> SpatialWeightsStep -> GetisOrdStep" in result.output


def test_list_steps_shows_artifacts() -> None:
    result = runner.invoke(app, ["list-steps", "--tag", "weights"])

    assert "needs: graph; attaches: weights" in result.output

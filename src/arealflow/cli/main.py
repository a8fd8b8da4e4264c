"""Main CLI application using Typer."""

from pathlib import Path
from typing import Annotated, Any

import typer
import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from arealflow.core.errors import ArealflowError
from arealflow.core.registry import StepRegistry
from arealflow.core.schema import AnalysisConfig, HotspotCategory
from arealflow.core.unit_frame import UnitFrame

app = typer.Typer(help="Arealflow: queen contiguity and Gi* hotspot analysis for areal units")

# --------------------------------------------------------------------------- #
# Global registry (lazily populated via entry points on first access)
# --------------------------------------------------------------------------- #
_step_registry: StepRegistry | None = None


def get_step_registry() -> StepRegistry:
    """Return the global step registry, loading entry points on first call."""
    global _step_registry
    if _step_registry is None:
        _step_registry = StepRegistry()
        _step_registry.load_entry_points()
        if "getis_ord" not in _step_registry:
            # Not installed with entry points metadata; fall back to built-ins
            from arealflow.core.steps.registration import register_builtin_steps

            register_builtin_steps(_step_registry)
    return _step_registry


def _load_config(config: str) -> dict[str, Any]:
    config_path = Path(config)
    if not config_path.exists():
        typer.echo(f"Error: Config file not found: {config}", err=True)
        raise typer.Exit(code=1) from None

    with open(config_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if not isinstance(config_dict, dict):
        typer.echo(f"Error: Config file must contain a mapping: {config}", err=True)
        raise typer.Exit(code=1) from None
    return config_dict


@app.command()
def hotspots(
    input_path: str = typer.Option(..., "--input", help="Unit table (.csv, .parquet, .geojson)"),
    config: str | None = typer.Option(None, help="Path to analysis config YAML"),
    value_col: list[str] | None = typer.Option(None, help="Attribute column(s) to score"),
    output: str | None = typer.Option(None, help="Output path for results (.csv, .parquet)"),
) -> None:
    """
    Classify every unit as a high-value cluster, low-value cluster, or neither.

    Example:
        arealflow hotspots --input tracts.geojson --value-col crime_rate --output gi.parquet
    """
    from arealflow.core.io import read_units, write_results

    config_dict = _load_config(config) if config else {}
    if value_col:
        config_dict["value_cols"] = list(value_col)

    try:
        analysis = AnalysisConfig(**config_dict)
    except ValidationError as e:
        typer.echo(f"Error: Invalid configuration: {e}", err=True)
        raise typer.Exit(code=1) from None

    try:
        df = read_units(input_path, id_col=analysis.id_col, geometry_col=analysis.geometry_col)
        frame = UnitFrame.from_frame(
            df,
            id_col=analysis.id_col,
            geometry_col=analysis.geometry_col,
            dataset_name=analysis.dataset_name,
        )
        pipeline = get_step_registry().hotspot_pipeline(analysis)
        result = pipeline.run(frame)
    except (ArealflowError, FileNotFoundError, KeyError, TypeError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None

    table = result.collect()
    typer.echo(f"Scored {table.height} units ({result.graph!r})")
    for column in analysis.value_cols:
        hotspot_col = f"{column}_hotspot"
        if hotspot_col not in table.columns:
            continue
        counts = table[hotspot_col].value_counts()
        by_category = dict(zip(counts[hotspot_col].to_list(), counts["count"].to_list()))
        summary = ", ".join(
            f"{category.value}={by_category.get(category.value, 0)}"
            for category in HotspotCategory
        )
        typer.echo(f"  {column}: {summary}")

    if output:
        write_results(
            table,
            output,
            metadata={
                "dataset_name": result.metadata.dataset_name,
                "vertex_tolerance": result.metadata.vertex_tolerance,
                "features": sorted(result.metadata.feature_catalog),
            },
        )
        typer.echo(f"Wrote results to {output}")


@app.command()
def neighbors(
    input_path: str = typer.Option(..., "--input", help="Unit table (.csv, .parquet, .geojson)"),
    id_col: str = typer.Option("id", help="Unit id column"),
    geometry_col: str = typer.Option("geometry", help="Boundary column (WKT)"),
    tolerance: float = typer.Option(1e-7, help="Shared-vertex tolerance"),
    output: str | None = typer.Option(None, help="Output path for the edge list"),
) -> None:
    """Build the queen contiguity graph and report or export its edges."""
    from arealflow.core.contiguity import build_queen_graph
    from arealflow.core.io import read_units, write_results

    try:
        df = read_units(input_path, id_col=id_col, geometry_col=geometry_col)
        frame = UnitFrame.from_frame(df, id_col=id_col, geometry_col=geometry_col)
        graph = build_queen_graph(frame.unit_ids(), frame.geometries(), tolerance=tolerance)
    except (ArealflowError, FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None

    typer.echo(
        f"{graph.n} units, {graph.n_edges} edges, {len(graph.isolates)} islands, "
        f"{graph.n_components} components"
    )
    if graph.invalid_ids:
        typer.echo(f"Invalid geometries: {', '.join(map(str, graph.invalid_ids))}")

    if output:
        write_results(graph.to_frame(), output)
        typer.echo(f"Wrote edge list to {output}")


@app.command()
def validate(
    config: str = typer.Option(..., help="Path to config YAML to validate"),
) -> None:
    """Validate an analysis configuration file."""
    config_dict = _load_config(config)

    try:
        analysis = AnalysisConfig(**config_dict)
        pipeline = get_step_registry().hotspot_pipeline(analysis)
    except (ValidationError, KeyError, TypeError, ValueError) as e:
        typer.echo(f"Error: Invalid configuration: {e}", err=True)
        raise typer.Exit(code=1) from None

    typer.echo(f"✓ Valid analysis configuration: {config}")
    typer.echo(f"  {pipeline!r}")


@app.command()
def version() -> None:
    """Show arealflow version."""
    from arealflow import __version__

    typer.echo(f"arealflow version {__version__}")


# --------------------------------------------------------------------------- #
# Registry inspection commands
# --------------------------------------------------------------------------- #


@app.command()
def list_steps(
    tag: Annotated[str | None, typer.Option(help="Filter steps by tag")] = None,
) -> None:
    """List registered pipeline steps."""
    registry = get_step_registry()
    specs = registry.list(tag=tag)

    if not specs:
        typer.echo("No steps registered" + (f" with tag '{tag}'" if tag else ""))
        return

    typer.echo("Registered steps:")
    for spec in specs:
        tags_str = ", ".join(sorted(spec.tags)) if spec.tags else "none"
        desc = spec.description or ""
        typer.echo(f"  {spec.name}  [tags: {tags_str}]")
        if desc:
            typer.echo(f"      {desc}")
        if spec.requires or spec.provides:
            needs = ", ".join(sorted(spec.requires)) or "-"
            gives = ", ".join(sorted(spec.provides)) or "-"
            typer.echo(f"      needs: {needs}; attaches: {gives}")


if __name__ == "__main__":
    app()

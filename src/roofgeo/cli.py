"""
roofgeo CLI.

Command-line interface for reconstructing roofs from footprint files.

Input files are JSON: a bare list of [lng, lat] pairs, a GeoJSON Polygon or
Feature, or an object {"footprint": [...], "hints": [...], "pitch": "6/12"}.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .analysis.deviation import Benchmark, analyze_deviations, measurement_from_result, summarize_deviations
from .analysis.footprint_check import check_footprint
from .analysis.roof_engine import RoofEngine
from .core.config import settings
from .core.models import Point
from .export.geojson import write_geojson
from .export.wkt import result_to_wkt
from .reporting.console_report import print_geometry_report
from .utils.logging_config import setup_logging
from .utils.validation import ValidationError, validate_footprint

app = typer.Typer(
    name="roofgeo",
    help="roofgeo - Roof geometry reconstruction from building footprints",
    add_completion=False,
)
console = Console()


def load_footprint_file(path: Path) -> tuple[list, list, Optional[str]]:
    """
    Read (footprint, hints, pitch) from a JSON file.

    Raises:
        ValidationError: If the file does not hold a recognizable footprint
    """
    with open(path, encoding="utf-8") as f:
        data: Any = json.load(f)

    hints: list = []
    pitch = None

    if isinstance(data, dict) and data.get("type") == "Feature":
        data = data.get("geometry") or {}
    if isinstance(data, dict) and data.get("type") == "Polygon":
        rings = data.get("coordinates") or []
        if not rings:
            raise ValidationError(f"{path}: Polygon has no rings", field="footprint")
        return rings[0], hints, pitch
    if isinstance(data, dict) and "footprint" in data:
        return data["footprint"], data.get("hints") or [], data.get("pitch")
    if isinstance(data, list):
        return data, hints, pitch

    raise ValidationError(
        f"{path}: unrecognized footprint file",
        field="footprint",
        suggestions=[
            "Use a list of [lng, lat] pairs",
            "Use a GeoJSON Polygon or Feature",
            'Use {"footprint": [...], "hints": [...], "pitch": "6/12"}',
        ],
    )


@app.command()
def reconstruct(
    input_file: Path = typer.Argument(..., help="Footprint JSON file"),
    pitch: Optional[str] = typer.Option(None, "--pitch", "-p", help="Predominant pitch, e.g. 6/12 or flat"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write GeoJSON to this path"),
    expected_area: Optional[float] = typer.Option(
        None, "--expected-area", help="Benchmark roof area (sqft) for deviation checks"
    ),
    show_wkt: bool = typer.Option(False, "--wkt/--no-wkt", help="Print every line as WKT"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
):
    """
    Reconstruct roof geometry for one footprint file.

    Prints facets, linear totals, deviation alerts and warnings.
    """
    setup_logging(log_level)

    try:
        footprint, hints, file_pitch = load_footprint_file(input_file)
        result = RoofEngine(settings).reconstruct(
            footprint,
            hints=hints,
            predominant_pitch=pitch or file_pitch or settings.default_pitch,
            footprint_id=input_file.stem,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid input:[/red] {e}")
        for suggestion in e.suggestions:
            console.print(f"  [dim]- {suggestion}[/dim]")
        raise typer.Exit(1)

    alerts = analyze_deviations(
        measurement_from_result(result),
        Benchmark(expected_area_sqft=expected_area) if expected_area else None,
    )
    print_geometry_report(result, alerts, console=console)
    console.print(f"\n{summarize_deviations(alerts).summary}")

    if show_wkt:
        table = Table(title="WKT")
        table.add_column("Line", style="cyan")
        table.add_column("WKT", style="white")
        for line_id, text in result_to_wkt(result).items():
            table.add_row(line_id, text)
        console.print(table)

    if output:
        write_geojson(result, output, name=input_file.stem)


@app.command()
def check(
    input_file: Path = typer.Argument(..., help="Footprint JSON file"),
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Footprint provenance, e.g. osm_buildings"),
):
    """Check a footprint for residential plausibility."""
    try:
        footprint, _, _ = load_footprint_file(input_file)
        ring = [Point(lng, lat) for lng, lat in validate_footprint(footprint)]
    except ValidationError as e:
        console.print(f"[red]Invalid input:[/red] {e}")
        raise typer.Exit(1)

    result = check_footprint(ring, source=source)
    metrics = result.metrics

    status = "[green]VALID[/green]" if result.valid else "[red]INVALID[/red]"
    console.print(Panel.fit(
        f"{status}   Confidence: {result.confidence:.0%}\n"
        f"Area: {metrics.area_sqft:,.0f} sqft   Perimeter: {metrics.perimeter_ft:,.1f} ft\n"
        f"Vertices: {metrics.vertex_count}   Aspect ratio: {metrics.aspect_ratio:.2f}   "
        f"Compactness: {metrics.compactness:.2f}",
        title="Footprint Check",
        border_style="blue",
    ))
    for error in result.errors:
        console.print(f"  [red]x[/red] {error}")
    for warning in result.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")

    if not result.valid:
        raise typer.Exit(2)


@app.command()
def version():
    """Show version information."""
    from . import __version__
    console.print(f"roofgeo v{__version__}")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()

"""
Console report for reconstructed roofs.

Renders a GeometryResult (and optional deviation alerts) as rich tables.
"""

from __future__ import annotations

from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..analysis.deviation import DeviationAlert
from ..core.models import GeometryResult, LineType

QUALITY_STYLES = {
    "excellent": "bold green",
    "good": "green",
    "fair": "yellow",
    "simplified": "yellow",
    "poor": "red",
}

SEVERITY_STYLES = {
    "critical": "bold red",
    "error": "red",
    "warning": "yellow",
    "info": "dim",
}


def facet_table(result: GeometryResult) -> Table:
    table = Table(title="Roof Facets")
    table.add_column("Facet", style="cyan")
    table.add_column("Direction", style="white")
    table.add_column("Pitch", style="white")
    table.add_column("Plan sqft", justify="right")
    table.add_column("True sqft", justify="right")
    table.add_column("Confidence", justify="right", style="green")

    for facet in result.facets:
        table.add_row(
            facet.id,
            f"{facet.direction} ({facet.azimuth_deg:.0f}°)",
            facet.pitch,
            f"{facet.plan_area_sqft:,.0f}",
            f"{facet.true_area_sqft:,.0f}",
            f"{facet.confidence:.0%}",
        )
    if result.facets:
        table.add_row(
            "[bold]Total[/bold]", "", result.predominant_pitch,
            f"{result.total_plan_area_sqft:,.0f}", f"{result.total_true_area_sqft:,.0f}", "",
        )
    return table


def linear_table(result: GeometryResult) -> Table:
    table = Table(title="Linear Features")
    table.add_column("Type", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Total ft", justify="right", style="green")

    for line_type in LineType:
        count = sum(1 for line in result.all_lines if line.line_type == line_type)
        table.add_row(line_type.value, str(count), f"{result.total_length(line_type):,.1f}")
    return table


def alert_table(alerts: List[DeviationAlert]) -> Table:
    table = Table(title="Deviation Alerts")
    table.add_column("Severity")
    table.add_column("Rule", style="cyan")
    table.add_column("Description", style="white")
    table.add_column("Action", style="dim")

    for alert in alerts:
        style = SEVERITY_STYLES.get(alert.severity, "white")
        table.add_row(
            f"[{style}]{alert.severity.upper()}[/{style}]",
            alert.rule_name,
            alert.description,
            alert.recommended_action,
        )
    return table


def print_geometry_report(
    result: GeometryResult,
    alerts: Optional[List[DeviationAlert]] = None,
    console: Optional[Console] = None,
) -> None:
    """Print a summary panel, facet and line tables, alerts and warnings."""
    console = console or Console()
    style = QUALITY_STYLES.get(result.quality.value, "white")
    method = result.facet_method.value if result.facet_method else "none"

    console.print(Panel(
        f"Shape: {result.shape.value}   Quality: [{style}]{result.quality.value}[/{style}]   "
        f"Method: {method}\n"
        f"Footprint: {result.footprint_area_sqft:,.0f} sqft, perimeter {result.perimeter_ft:,.1f} ft\n"
        f"Topology score: {result.topology_score:.0f}   Constraint score: {result.constraint_score:.0f}   "
        f"Confidence: {result.confidence:.0%}",
        title="Roof Geometry",
        style="bold blue",
    ))

    if result.facets:
        console.print(facet_table(result))
    console.print(linear_table(result))

    if alerts:
        console.print(alert_table(alerts))

    if result.warnings:
        console.print("\n[bold]Warnings:[/bold]")
        for warning in result.warnings:
            console.print(f"  [yellow]![/yellow] {warning}")

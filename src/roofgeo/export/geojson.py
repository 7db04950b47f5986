"""
GeoJSON / dict serialization of roof geometry.

Produces plain JSON-ready structures for persistence and mapping
collaborators. Coordinates are (lng, lat) in CRS84.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from rich.console import Console

from ..core.models import Facet, GeometryResult, Point, SkeletonLine
from .wkt import polygon_to_wkt, to_wkt

console = Console()


def _coords(p: Point) -> list[float]:
    return [p.x, p.y]


def _closed(ring: tuple[Point, ...]) -> list[list[float]]:
    coords = [_coords(p) for p in ring]
    if coords and coords[0] != coords[-1]:
        coords.append(coords[0])
    return coords


def line_to_dict(line: SkeletonLine) -> dict[str, Any]:
    return {
        "id": line.id,
        "type": line.line_type.value,
        "start": _coords(line.start),
        "end": _coords(line.end),
        "length_ft": line.length_ft,
        "connected_to": sorted(line.connected_to),
        "wkt": to_wkt(line),
    }


def facet_to_dict(facet: Facet) -> dict[str, Any]:
    return {
        "id": facet.id,
        "index": facet.index,
        "polygon": _closed(facet.polygon),
        "plan_area_sqft": facet.plan_area_sqft,
        "true_area_sqft": facet.true_area_sqft,
        "reported_area_sqft": facet.reported_area_sqft,
        "pitch": facet.pitch,
        "azimuth_deg": facet.azimuth_deg,
        "direction": facet.direction,
        "confidence": facet.confidence,
        "source": facet.source.value,
        "color": facet.color,
        "wkt": polygon_to_wkt(facet.polygon),
    }


def result_to_dict(result: GeometryResult) -> dict[str, Any]:
    """Flat, JSON-ready record of a GeometryResult."""
    return {
        "shape": result.shape.value,
        "quality": result.quality.value,
        "facet_method": result.facet_method.value if result.facet_method else None,
        "predominant_pitch": result.predominant_pitch,
        "footprint_area_sqft": result.footprint_area_sqft,
        "perimeter_ft": result.perimeter_ft,
        "total_plan_area_sqft": result.total_plan_area_sqft,
        "total_true_area_sqft": result.total_true_area_sqft,
        "linear_totals_ft": result.linear_totals,
        "topology_score": result.topology_score,
        "constraint_score": result.constraint_score,
        "confidence": result.confidence,
        "perimeter": _closed(result.perimeter),
        "facets": [facet_to_dict(f) for f in result.facets],
        "lines": [line_to_dict(line) for line in result.all_lines],
        "warnings": list(result.warnings),
    }


def result_to_geojson(result: GeometryResult, name: str = "roof") -> dict[str, Any]:
    """
    GeoJSON FeatureCollection: the footprint, one Polygon per facet and one
    LineString per roof line.
    """
    features: list[dict[str, Any]] = []

    if result.perimeter:
        features.append({
            "type": "Feature",
            "geometry": {"type": "Polygon", "coordinates": [_closed(result.perimeter)]},
            "properties": {
                "kind": "footprint",
                "shape": result.shape.value,
                "quality": result.quality.value,
                "area_sqft": result.footprint_area_sqft,
                "perimeter_ft": result.perimeter_ft,
            },
        })

    for facet in result.facets:
        features.append({
            "type": "Feature",
            "geometry": {"type": "Polygon", "coordinates": [_closed(facet.polygon)]},
            "properties": {
                "kind": "facet",
                "id": facet.id,
                "pitch": facet.pitch,
                "direction": facet.direction,
                "plan_area_sqft": facet.plan_area_sqft,
                "true_area_sqft": facet.true_area_sqft,
                "color": facet.color,
            },
        })

    for line in result.all_lines:
        features.append({
            "type": "Feature",
            "geometry": {"type": "LineString", "coordinates": [_coords(line.start), _coords(line.end)]},
            "properties": {"kind": line.line_type.value, "id": line.id, "length_ft": line.length_ft},
        })

    return {
        "type": "FeatureCollection",
        "name": name,
        "crs": {
            "type": "name",
            "properties": {"name": "urn:ogc:def:crs:OGC:1.3:CRS84"},
        },
        "features": features,
    }


def write_geojson(result: GeometryResult, output_path: Path | str, name: str = "roof") -> Path:
    """Write ``result_to_geojson`` to a file."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(result_to_geojson(result, name), f, indent=2, ensure_ascii=False)

    console.print(f"[green]Exported GeoJSON: {output_path}[/green]")
    return output_path

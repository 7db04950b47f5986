"""
WKT export and parsing for roof lines.

Coordinates are written with ``repr`` so parsing a written line string
reproduces the exact floats.
"""

from __future__ import annotations

import re

from ..core.models import GeometryResult, Point, SkeletonLine
from ..utils.validation import ValidationError, validate_coordinates

_LINESTRING = re.compile(r"^\s*LINESTRING\s*\((?P<body>[^()]*)\)\s*$", re.IGNORECASE)
_POLYGON = re.compile(r"^\s*POLYGON\s*\(\((?P<body>[^()]*)\)\)\s*$", re.IGNORECASE)


def _format_point(p: Point) -> str:
    return f"{p.x!r} {p.y!r}"


def to_wkt(line: SkeletonLine) -> str:
    """``LINESTRING(lng lat, lng lat)`` for a line in geographic coordinates."""
    return f"LINESTRING({_format_point(line.start)}, {_format_point(line.end)})"


def polygon_to_wkt(ring: tuple[Point, ...] | list[Point]) -> str:
    """``POLYGON((...))`` for an open ring; the closing vertex is added."""
    points = list(ring)
    if points and points[0] != points[-1]:
        points.append(points[0])
    return f"POLYGON(({', '.join(_format_point(p) for p in points)}))"


def _parse_points(body: str, text: str) -> list[Point]:
    points = []
    for chunk in body.split(","):
        parts = chunk.split()
        if len(parts) != 2:
            raise ValidationError(f"Malformed WKT coordinate {chunk.strip()!r} in {text!r}", field="wkt")
        try:
            lng, lat = float(parts[0]), float(parts[1])
        except ValueError:
            raise ValidationError(f"Non-numeric WKT coordinate {chunk.strip()!r}", field="wkt") from None
        points.append(Point(*validate_coordinates(lng, lat)))
    return points


def parse_wkt_linestring(text: str) -> list[Point]:
    """
    Parse a WKT LINESTRING into points.

    Raises:
        ValidationError: If the text is not a LINESTRING with >= 2 coordinates
    """
    if not isinstance(text, str):
        raise ValidationError(f"WKT must be a string, got {text!r}", field="wkt")
    match = _LINESTRING.match(text)
    if not match:
        raise ValidationError(
            f"Not a WKT LINESTRING: {text!r}",
            field="wkt",
            suggestions=["Expected LINESTRING(lng lat, lng lat)"],
        )
    points = _parse_points(match.group("body"), text)
    if len(points) < 2:
        raise ValidationError(f"LINESTRING needs at least 2 coordinates: {text!r}", field="wkt")
    return points


def parse_wkt_polygon(text: str) -> list[Point]:
    """Parse a single-ring WKT POLYGON into an open ring."""
    match = _POLYGON.match(text) if isinstance(text, str) else None
    if not match:
        raise ValidationError(f"Not a single-ring WKT POLYGON: {text!r}", field="wkt")
    points = _parse_points(match.group("body"), text)
    if len(points) > 1 and points[0] == points[-1]:
        points = points[:-1]
    return points


def result_to_wkt(result: GeometryResult) -> dict[str, str]:
    """Map every line id (ridges, hips, valleys, eaves, rakes) to its WKT."""
    return {line.id: to_wkt(line) for line in result.all_lines}

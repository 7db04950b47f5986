"""
Perimeter classification - every footprint edge becomes an eave or a rake.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from ..core.models import LineType, Point, SkeletonLine
from .primitives import bounds, distance, edge_angle_deg, midpoint, point_segment_distance

# Edges within this of the ridge direction run along it
EAVE_PARALLEL_DEG = 45.0


def _axial_diff(a: float, b: float) -> float:
    """Angle between two undirected lines, in [0, 90]."""
    d = abs(a - b) % 180.0
    return min(d, 180.0 - d)


def classify_perimeter(
    ring: Sequence[Point],
    interior_lines: Iterable[SkeletonLine],
) -> tuple[list[SkeletonLine], list[SkeletonLine]]:
    """
    Split the ring's edges into eaves and rakes.

    An edge whose corners both carry a hip or valley is an eave (a hipped
    edge). Otherwise the edge is an eave when it runs within 45 deg of the
    nearest ridge, and a rake (gable end) when it does not. Without ridges
    the bounding box's long axis stands in for the ridge.

    Args:
        ring: Open CCW ring in local feet
        interior_lines: Ridges, hips and valleys of the same ring

    Returns:
        (eaves, rakes); their lengths always sum to the ring perimeter
    """
    lines = list(interior_lines)
    ridges = [line for line in lines if line.line_type == LineType.RIDGE]
    sloped_corners = {
        p for line in lines if line.line_type in (LineType.HIP, LineType.VALLEY)
        for p in line.endpoints
    }

    box = bounds(ring)
    fallback_axis = 0.0 if box.width >= box.height else 90.0

    eaves: list[SkeletonLine] = []
    rakes: list[SkeletonLine] = []
    n = len(ring)
    for i in range(n):
        start, end = ring[i], ring[(i + 1) % n]
        if distance(start, end) == 0:
            continue

        if start in sloped_corners and end in sloped_corners:
            is_eave = True
        else:
            if ridges:
                mid = midpoint(start, end)
                nearest = min(ridges, key=lambda r: point_segment_distance(mid, r.start, r.end))
                ridge_axis = edge_angle_deg(nearest.start, nearest.end)
            else:
                ridge_axis = fallback_axis
            is_eave = _axial_diff(edge_angle_deg(start, end), ridge_axis) < EAVE_PARALLEL_DEG

        if is_eave:
            eaves.append(SkeletonLine.create(f"eave_{i}", LineType.EAVE, start, end))
        else:
            rakes.append(SkeletonLine.create(f"rake_{i}", LineType.RAKE, start, end))

    return eaves, rakes


def linear_totals(lines: Iterable[SkeletonLine]) -> dict[str, float]:
    """Total length in feet per line type (every type present, zero if absent)."""
    totals = {lt.value: 0.0 for lt in LineType}
    for line in lines:
        totals[line.line_type.value] += line.length_ft
    return totals

"""
Footprint Preprocessor - clean up a raw footprint ring before skeleton work.

Steps (each best-effort, never raising):
1. Remove consecutive duplicate vertices
2. Point-line-distance (Douglas-Peucker) reduction on the closed ring
3. Snap near-right corners and near-diagonal edges
4. Straighten near-parallel edges to a shared mean bearing
5. Validate vertex count and self-intersection

Correction passes (3, 4) are discarded when they introduce a
self-intersection or move the enclosed area beyond the configured drift.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from shapely.geometry import Polygon
from shapely.geometry.polygon import orient

from ..core.config import Settings, resolve_settings
from ..core.models import Point
from .primitives import (
    angle_diff,
    circular_mean_deg,
    distance,
    edge_angle_deg,
    has_self_intersection,
    interior_angle,
    midpoint,
    perpendicular_distance,
    polygon_area,
)

logger = logging.getLogger(__name__)

DIAGONAL_TARGETS = (45.0, 135.0, 225.0, 315.0)

# Angles closer than this to their target are already exact
ANGLE_EPSILON_DEG = 1e-7

# Overhang corner growth is capped at twice the offset
EAVE_MITRE_LIMIT = 2.0


@dataclass(frozen=True)
class SimplifyStats:
    """What simplification did to a ring."""
    original_vertex_count: int
    simplified_vertex_count: int
    removed_duplicates: int
    snapped_angles: int
    straightened_edges: int
    original_area: float
    simplified_area: float
    is_valid: bool
    warnings: tuple[str, ...] = ()

    @property
    def area_change_pct(self) -> float:
        if self.original_area == 0:
            return 0.0
        return abs(self.simplified_area - self.original_area) / self.original_area * 100


# =============================================================================
# INDIVIDUAL PASSES
# =============================================================================


def remove_duplicates(ring: Sequence[Point], tolerance: float = 0.001) -> list[Point]:
    """Drop vertices within ``tolerance`` of their predecessor (closing pair included)."""
    result: list[Point] = []
    for p in ring:
        if result and distance(result[-1], p) <= tolerance:
            continue
        result.append(p)
    while len(result) > 1 and distance(result[0], result[-1]) <= tolerance:
        result.pop()
    return result


def _douglas_peucker(chain: Sequence[Point], tolerance: float) -> list[Point]:
    if len(chain) < 3:
        return list(chain)

    start, end = chain[0], chain[-1]
    max_dist = -1.0
    index = 0
    for i in range(1, len(chain) - 1):
        d = perpendicular_distance(chain[i], start, end)
        if d > max_dist:
            max_dist = d
            index = i

    if max_dist > tolerance:
        left = _douglas_peucker(chain[: index + 1], tolerance)
        right = _douglas_peucker(chain[index:], tolerance)
        return left[:-1] + right
    return [start, end]


def douglas_peucker_ring(ring: Sequence[Point], tolerance: float) -> list[Point]:
    """
    Point-line-distance reduction of a closed (open-form) ring.

    The ring is cut at vertex 0 and the vertex farthest from it, so the
    closing chord is reduced like every other edge.
    """
    n = len(ring)
    if n <= 3:
        return list(ring)

    far = max(range(1, n), key=lambda i: distance(ring[0], ring[i]))
    first = _douglas_peucker(list(ring[: far + 1]), tolerance)
    second = _douglas_peucker(list(ring[far:]) + [ring[0]], tolerance)
    reduced = first[:-1] + second[:-1]

    # Vertex 0 survives the split unconditionally; drop it if it is collinear
    if len(reduced) > 3 and perpendicular_distance(reduced[0], reduced[-1], reduced[1]) <= tolerance:
        reduced = reduced[1:]
    return reduced


def snap_right_angles(ring: Sequence[Point], tolerance_deg: float) -> tuple[list[Point], int]:
    """
    Move vertices whose corner is within tolerance of 90/270 deg onto an
    exact right angle.

    The vertex is projected onto the circle whose diameter joins its
    neighbours (every point on it sees them at 90 deg).
    """
    result = list(ring)
    n = len(result)
    snapped = 0
    if n < 4:
        return result, 0

    for i in range(n):
        prev, curr, nxt = result[i - 1], result[i], result[(i + 1) % n]
        angle = interior_angle(prev, curr, nxt)
        deviation = min(abs(angle - 90.0), abs(angle - 270.0))
        if deviation > tolerance_deg or deviation < ANGLE_EPSILON_DEG:
            continue

        center = midpoint(prev, nxt)
        radius = distance(prev, nxt) / 2
        offset = distance(center, curr)
        if radius == 0 or offset == 0:
            continue
        result[i] = Point(
            center.x + (curr.x - center.x) * radius / offset,
            center.y + (curr.y - center.y) * radius / offset,
        )
        snapped += 1

    return result, snapped


def snap_diagonals(ring: Sequence[Point], tolerance_deg: float) -> tuple[list[Point], int]:
    """Rotate edges within tolerance of 45/135/225/315 deg onto the diagonal."""
    result = list(ring)
    n = len(result)
    snapped = 0
    if n < 3:
        return result, 0

    for i in range(n):
        start, end = result[i], result[(i + 1) % n]
        length = distance(start, end)
        if length == 0:
            continue
        angle = edge_angle_deg(start, end)
        for target in DIAGONAL_TARGETS:
            deviation = angle_diff(angle, target)
            if ANGLE_EPSILON_DEG <= deviation <= tolerance_deg:
                rad = math.radians(target)
                result[(i + 1) % n] = Point(start.x + math.cos(rad) * length, start.y + math.sin(rad) * length)
                snapped += 1
                break

    return result, snapped


def straighten_edges(ring: Sequence[Point], bucket_deg: float = 5.0) -> tuple[list[Point], int]:
    """
    Align edges whose bearings share a bucket to the bucket's mean bearing.

    Bearings are compared modulo 180 so antiparallel edges share a bucket;
    each edge keeps its own sense. The edge's start stays fixed and its end
    vertex moves.
    """
    result = list(ring)
    n = len(result)
    if n < 4:
        return result, 0

    buckets: dict[float, list[int]] = {}
    for i in range(n):
        axial = edge_angle_deg(result[i], result[(i + 1) % n]) % 180.0
        key = (round(axial / bucket_deg) * bucket_deg) % 180.0
        buckets.setdefault(key, []).append(i)

    straightened = 0
    for edge_indices in buckets.values():
        if len(edge_indices) < 2:
            continue

        # Axial mean: double the angles so 0 and 180 coincide
        doubled = [
            (2 * edge_angle_deg(result[i], result[(i + 1) % n])) % 360.0 for i in edge_indices
        ]
        weights = [distance(result[i], result[(i + 1) % n]) for i in edge_indices]
        if sum(weights) == 0:
            continue
        mean_axis = circular_mean_deg(doubled, weights) / 2.0

        for i in edge_indices:
            start, end = result[i], result[(i + 1) % n]
            length = distance(start, end)
            if length == 0:
                continue
            angle = edge_angle_deg(start, end)
            target = mean_axis if angle_diff(angle, mean_axis) <= 90 else (mean_axis + 180.0) % 360.0
            if angle_diff(angle, target) < ANGLE_EPSILON_DEG:
                continue
            rad = math.radians(target)
            result[(i + 1) % n] = Point(start.x + math.cos(rad) * length, start.y + math.sin(rad) * length)
            straightened += 1

    return result, straightened


# =============================================================================
# PIPELINE
# =============================================================================


def _pass_is_safe(before: Sequence[Point], after: Sequence[Point], max_drift_pct: float) -> bool:
    if has_self_intersection(after):
        return False
    area_before = polygon_area(before)
    if area_before == 0:
        return True
    drift = abs(polygon_area(after) - area_before) / area_before * 100
    return drift <= max_drift_pct


def simplify(
    ring: Sequence[Point],
    tolerance_ft: Optional[float] = None,
    angle_tolerance_deg: Optional[float] = None,
    settings: Optional[Settings] = None,
) -> tuple[list[Point], SimplifyStats]:
    """
    Simplify and regularize a footprint ring in local feet.

    Args:
        ring: Open or closed ring of local points
        tolerance_ft: Douglas-Peucker tolerance (default from settings)
        angle_tolerance_deg: Snap window for right angles and diagonals
        settings: Optional settings override

    Returns:
        (simplified open ring, SimplifyStats). Problems are reported in
        ``stats.warnings``; the best-effort ring is always returned.
    """
    cfg = resolve_settings(settings)
    tolerance = cfg.simplify_tolerance_ft if tolerance_ft is None else tolerance_ft
    angle_tol = cfg.angle_tolerance_deg if angle_tolerance_deg is None else angle_tolerance_deg

    warnings: list[str] = []
    original = list(ring)
    if len(original) > 1 and original[0] == original[-1]:
        original = original[:-1]
    original_area = polygon_area(original)

    points = remove_duplicates(original, cfg.duplicate_tolerance_ft)
    removed = len(original) - len(points)

    if len(points) >= 4:
        reduced = douglas_peucker_ring(points, tolerance)
        if len(reduced) >= 3 and not has_self_intersection(reduced):
            points = reduced
        else:
            warnings.append("Point reduction collapsed the ring; keeping deduplicated vertices")

    snapped_total = 0
    straightened = 0

    candidate, count = snap_right_angles(points, angle_tol)
    if count and _pass_is_safe(points, candidate, cfg.max_area_drift_pct):
        points = candidate
        snapped_total += count
    elif count:
        logger.debug("Right-angle snap discarded: distorts ring")

    candidate, count = snap_diagonals(points, angle_tol)
    if count and _pass_is_safe(points, candidate, cfg.max_area_drift_pct):
        points = candidate
        snapped_total += count
    elif count:
        logger.debug("Diagonal snap discarded: distorts ring")

    candidate, count = straighten_edges(points, cfg.straighten_bucket_deg)
    if count and _pass_is_safe(points, candidate, cfg.max_area_drift_pct):
        points = candidate
        straightened = count
    elif count:
        logger.debug("Edge straightening discarded: distorts ring")

    if len(points) > len(original):
        points = original

    is_valid = True
    if len(points) < cfg.min_vertex_count:
        warnings.append(f"Polygon has fewer than {cfg.min_vertex_count} vertices ({len(points)})")
        is_valid = False
    if has_self_intersection(points):
        warnings.append("Polygon has self-intersection")
        is_valid = False

    stats = SimplifyStats(
        original_vertex_count=len(original),
        simplified_vertex_count=len(points),
        removed_duplicates=removed,
        snapped_angles=snapped_total,
        straightened_edges=straightened,
        original_area=original_area,
        simplified_area=polygon_area(points),
        is_valid=is_valid,
        warnings=tuple(warnings),
    )
    logger.debug(
        f"Simplified ring {stats.original_vertex_count} -> {stats.simplified_vertex_count} vertices, "
        f"{snapped_total} snapped, {straightened} straightened"
    )
    return points, stats


def apply_eave_offset(ring: Sequence[Point], offset_ft: float) -> list[Point]:
    """
    Grow a footprint outward by the soffit overhang.

    Uses a mitred buffer; acute corners are limited to twice the offset.
    Returns the ring unchanged for non-positive offsets or invalid rings.
    """
    points = list(ring)
    if offset_ft <= 0 or len(points) < 3:
        return points

    polygon = Polygon([p.as_tuple() for p in points])
    if not polygon.is_valid or polygon.area == 0:
        logger.warning("Eave offset skipped: footprint polygon is invalid")
        return points

    grown = orient(
        polygon.buffer(offset_ft, join_style="mitre", mitre_limit=EAVE_MITRE_LIMIT),
        sign=1.0,
    )
    return [Point(x, y) for x, y in list(grown.exterior.coords)[:-1]]

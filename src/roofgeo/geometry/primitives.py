"""
Geometry primitives.

Pure planar and great-circle math shared by every stage. Planar functions
work in any Cartesian unit; the engine uses local feet (see ``LocalFrame``).
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

from ..core.models import BoundingBox, FEET_PER_DEGREE, Point

EARTH_RADIUS_FT = 20_902_231.0
SQFT_PER_SQM = 10.7639

# Determinants below this are treated as parallel
PARALLEL_EPSILON = 1e-10


# =============================================================================
# DISTANCES AND CONVERSIONS
# =============================================================================


def haversine_ft(a: Point, b: Point) -> float:
    """Great-circle distance in feet between two (lng, lat) points."""
    lat1, lat2 = math.radians(a.y), math.radians(b.y)
    dlat = lat2 - lat1
    dlng = math.radians(b.x - a.x)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_FT * math.asin(min(1.0, math.sqrt(h)))


def distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def midpoint(a: Point, b: Point) -> Point:
    return Point((a.x + b.x) / 2, (a.y + b.y) / 2)


def degrees_to_feet(d_lng: float, d_lat: float, latitude: float) -> tuple[float, float]:
    """Convert a (lng, lat) degree offset at ``latitude`` to feet."""
    return (d_lng * FEET_PER_DEGREE * math.cos(math.radians(latitude)), d_lat * FEET_PER_DEGREE)


def feet_to_degrees(dx_ft: float, dy_ft: float, latitude: float) -> tuple[float, float]:
    """Convert an (x, y) feet offset at ``latitude`` to degrees."""
    return (dx_ft / (FEET_PER_DEGREE * math.cos(math.radians(latitude))), dy_ft / FEET_PER_DEGREE)


# =============================================================================
# RINGS
# =============================================================================


def open_ring(ring: Sequence[Point]) -> list[Point]:
    """Drop a duplicated closing vertex, if present."""
    points = list(ring)
    if len(points) > 1 and points[0] == points[-1]:
        points = points[:-1]
    return points


def close_ring(ring: Sequence[Point]) -> list[Point]:
    points = list(ring)
    if points and points[0] != points[-1]:
        points.append(points[0])
    return points


def signed_area(ring: Sequence[Point]) -> float:
    """Shoelace area; positive for counter-clockwise rings."""
    if len(ring) < 3:
        return 0.0
    xs = np.array([p.x for p in ring], dtype=float)
    ys = np.array([p.y for p in ring], dtype=float)
    return float(0.5 * (np.dot(xs, np.roll(ys, -1)) - np.dot(np.roll(xs, -1), ys)))


def polygon_area(ring: Sequence[Point]) -> float:
    return abs(signed_area(ring))


def is_ccw(ring: Sequence[Point]) -> bool:
    return signed_area(ring) > 0


def ensure_ccw(ring: Sequence[Point]) -> list[Point]:
    points = list(ring)
    if signed_area(points) < 0:
        points.reverse()
    return points


def centroid(ring: Sequence[Point]) -> Point:
    """
    Area-weighted polygon centroid.

    Falls back to the vertex mean for zero-area rings.
    """
    if not ring:
        raise ValueError("centroid of an empty ring")
    area = signed_area(ring)
    if abs(area) < 1e-12:
        return vertex_mean(ring)

    cx = cy = 0.0
    n = len(ring)
    for i in range(n):
        a, b = ring[i], ring[(i + 1) % n]
        f = a.x * b.y - b.x * a.y
        cx += (a.x + b.x) * f
        cy += (a.y + b.y) * f
    return Point(cx / (6 * area), cy / (6 * area))


def vertex_mean(points: Sequence[Point]) -> Point:
    return Point(sum(p.x for p in points) / len(points), sum(p.y for p in points) / len(points))


def bounds(points: Sequence[Point]) -> BoundingBox:
    xs = [p.x for p in points]
    ys = [p.y for p in points]
    return BoundingBox(min(xs), min(ys), max(xs), max(ys))


def perimeter_length(ring: Sequence[Point]) -> float:
    n = len(ring)
    if n < 2:
        return 0.0
    return sum(distance(ring[i], ring[(i + 1) % n]) for i in range(n))


def geo_perimeter_ft(ring: Sequence[Point]) -> float:
    """Perimeter of a (lng, lat) ring in feet, by haversine."""
    n = len(ring)
    if n < 2:
        return 0.0
    return sum(haversine_ft(ring[i], ring[(i + 1) % n]) for i in range(n))


def geo_ring_area_sqft(ring: Sequence[Point]) -> float:
    """Plan area of a (lng, lat) ring in square feet, locally linearized."""
    if len(ring) < 3:
        return 0.0
    mean_lat = sum(p.y for p in ring) / len(ring)
    origin = ring[0]
    local = []
    for p in ring:
        dx, dy = degrees_to_feet(p.x - origin.x, p.y - origin.y, mean_lat)
        local.append(Point(dx, dy))
    return polygon_area(local)


# =============================================================================
# VECTORS AND ANGLES
# =============================================================================


def cross(o: Point, a: Point, b: Point) -> float:
    """Z component of (a - o) x (b - o)."""
    return (a.x - o.x) * (b.y - o.y) - (a.y - o.y) * (b.x - o.x)


def turn_cross(prev: Point, curr: Point, nxt: Point) -> float:
    """
    Cross product of edge (prev->curr) with edge (curr->next).

    Negative at a reflex vertex of a counter-clockwise ring.
    """
    e1x, e1y = curr.x - prev.x, curr.y - prev.y
    e2x, e2y = nxt.x - curr.x, nxt.y - curr.y
    return e1x * e2y - e1y * e2x


def interior_angle(prev: Point, curr: Point, nxt: Point) -> float:
    """Interior angle in degrees [0, 360) at ``curr`` of a CCW ring."""
    v1x, v1y = prev.x - curr.x, prev.y - curr.y
    v2x, v2y = nxt.x - curr.x, nxt.y - curr.y
    # Sweep from the outgoing edge to the incoming edge, counter-clockwise
    angle = math.degrees(math.atan2(v2x * v1y - v2y * v1x, v2x * v1x + v2y * v1y))
    return angle % 360.0


def bearing_deg(a: Point, b: Point) -> float:
    """Compass bearing from a to b in a local frame (0=N, 90=E)."""
    return math.degrees(math.atan2(b.x - a.x, b.y - a.y)) % 360.0


def edge_angle_deg(a: Point, b: Point) -> float:
    """Math angle of the edge a->b, counter-clockwise from +x, in [0, 360)."""
    return math.degrees(math.atan2(b.y - a.y, b.x - a.x)) % 360.0


def angle_diff(a: float, b: float) -> float:
    """Smallest absolute difference between two angles in degrees."""
    d = abs(a - b) % 360.0
    return 360.0 - d if d > 180.0 else d


def circular_mean_deg(angles: Sequence[float], weights: Optional[Sequence[float]] = None) -> float:
    if not angles:
        raise ValueError("circular mean of no angles")
    radians = np.radians(np.asarray(angles, dtype=float))
    w = np.ones_like(radians) if weights is None else np.asarray(weights, dtype=float)
    s = float(np.sum(w * np.sin(radians)))
    c = float(np.sum(w * np.cos(radians)))
    return math.degrees(math.atan2(s, c)) % 360.0


def interior_bisector(prev: Point, curr: Point, nxt: Point) -> Optional[Point]:
    """
    Unit vector bisecting the interior angle at ``curr`` of a CCW ring.

    Returns None for zero-length edges.
    """
    l1 = distance(prev, curr)
    l2 = distance(curr, nxt)
    if l1 == 0 or l2 == 0:
        return None

    ux = (prev.x - curr.x) / l1 + (nxt.x - curr.x) / l2
    uy = (prev.y - curr.y) / l1 + (nxt.y - curr.y) / l2
    length = math.hypot(ux, uy)
    if length < 1e-12:
        # Straight angle: interior side is the left normal of the edge
        ex, ey = (nxt.x - curr.x) / l2, (nxt.y - curr.y) / l2
        return Point(-ey, ex)

    ux, uy = ux / length, uy / length
    # The sum of edge directions points into the narrower wedge; for a
    # reflex vertex that wedge is outside the polygon
    if turn_cross(prev, curr, nxt) < 0:
        ux, uy = -ux, -uy
    return Point(ux, uy)


def rotate_about(p: Point, pivot: Point, degrees: float) -> Point:
    """Rotate ``p`` counter-clockwise around ``pivot``."""
    r = math.radians(degrees)
    dx, dy = p.x - pivot.x, p.y - pivot.y
    return Point(
        pivot.x + dx * math.cos(r) - dy * math.sin(r),
        pivot.y + dx * math.sin(r) + dy * math.cos(r),
    )


# =============================================================================
# SEGMENTS
# =============================================================================


def segment_intersection(
    p1: Point, p2: Point, p3: Point, p4: Point
) -> Optional[tuple[Point, float, float]]:
    """
    Intersection of the infinite lines through p1-p2 and p3-p4.

    Returns (point, t, u) with point = p1 + t(p2 - p1) = p3 + u(p4 - p3),
    or None when the lines are (nearly) parallel.
    """
    d1x, d1y = p2.x - p1.x, p2.y - p1.y
    d2x, d2y = p4.x - p3.x, p4.y - p3.y
    den = d1x * d2y - d1y * d2x
    if abs(den) < PARALLEL_EPSILON:
        return None
    t = ((p3.x - p1.x) * d2y - (p3.y - p1.y) * d2x) / den
    u = ((p3.x - p1.x) * d1y - (p3.y - p1.y) * d1x) / den
    return Point(p1.x + t * d1x, p1.y + t * d1y), t, u


def segments_intersect(p1: Point, p2: Point, p3: Point, p4: Point) -> bool:
    """True when closed segments p1-p2 and p3-p4 touch or cross."""
    d1 = cross(p3, p4, p1)
    d2 = cross(p3, p4, p2)
    d3 = cross(p1, p2, p3)
    d4 = cross(p1, p2, p4)

    if ((d1 > 0 > d2) or (d1 < 0 < d2)) and ((d3 > 0 > d4) or (d3 < 0 < d4)):
        return True

    def on_segment(a: Point, b: Point, c: Point) -> bool:
        return min(a.x, b.x) <= c.x <= max(a.x, b.x) and min(a.y, b.y) <= c.y <= max(a.y, b.y)

    if d1 == 0 and on_segment(p3, p4, p1):
        return True
    if d2 == 0 and on_segment(p3, p4, p2):
        return True
    if d3 == 0 and on_segment(p1, p2, p3):
        return True
    if d4 == 0 and on_segment(p1, p2, p4):
        return True
    return False


def ray_segment_intersection(origin: Point, direction: Point, a: Point, b: Point) -> Optional[Point]:
    """
    First hit of the ray origin + t*direction (t > 0) on segment a-b.

    Returns None when parallel or missing the segment.
    """
    hit = segment_intersection(origin, Point(origin.x + direction.x, origin.y + direction.y), a, b)
    if hit is None:
        return None
    point, t, u = hit
    if t > 0 and 0 <= u <= 1:
        return point
    return None


def point_segment_distance(p: Point, a: Point, b: Point) -> float:
    dx, dy = b.x - a.x, b.y - a.y
    seg_len2 = dx * dx + dy * dy
    if seg_len2 == 0:
        return distance(p, a)
    t = max(0.0, min(1.0, ((p.x - a.x) * dx + (p.y - a.y) * dy) / seg_len2))
    return distance(p, Point(a.x + t * dx, a.y + t * dy))


def perpendicular_distance(p: Point, a: Point, b: Point) -> float:
    """Distance from ``p`` to the infinite line through a and b."""
    length = distance(a, b)
    if length == 0:
        return distance(p, a)
    return abs(cross(a, b, p)) / length


def has_self_intersection(ring: Sequence[Point]) -> bool:
    """
    O(n^2) check of non-adjacent edge pairs of a closed ring.
    """
    n = len(ring)
    if n < 4:
        return False
    for i in range(n):
        a1, a2 = ring[i], ring[(i + 1) % n]
        for j in range(i + 1, n):
            # Adjacent edges share a vertex
            if j == i + 1 or (i == 0 and j == n - 1):
                continue
            if segments_intersect(a1, a2, ring[j], ring[(j + 1) % n]):
                return True
    return False

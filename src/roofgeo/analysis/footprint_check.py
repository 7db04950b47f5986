"""
Footprint plausibility checks.

Sanity metrics for a geographic footprint before (or alongside) roof
reconstruction: area, perimeter, aspect ratio and compactness, short edges
and self-intersection. Each finding lowers a confidence multiplier.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..core.models import Point
from ..geometry.primitives import (
    geo_perimeter_ft,
    geo_ring_area_sqft,
    has_self_intersection,
    haversine_ft,
    open_ring,
)

logger = logging.getLogger(__name__)

# Residential footprint area limits (sqft)
MIN_AREA_SQFT = 500
SMALL_AREA_SQFT = 800
LARGE_AREA_SQFT = 10_000
MAX_AREA_SQFT = 50_000

MIN_ASPECT_RATIO = 0.2
MAX_ASPECT_RATIO = 5.0
MIN_COMPACTNESS = 0.3
SHORT_EDGE_FT = 1.0

# Confidence multipliers by footprint provenance
SOURCE_CONFIDENCE = {
    "google_solar_api": 0.98,
    "mapbox_vector": 0.96,
    "manual": 0.95,
    "microsoft_buildings": 0.92,
    "regrid_parcel": 0.90,
    "osm_overpass": 0.88,
    "osm_buildings": 0.88,
    "ai_vision_detected": 0.85,
    "ai_detection": 0.65,
    "solar_bbox_fallback": 0.55,
}


@dataclass
class FootprintMetrics:
    area_sqft: float = 0.0
    perimeter_ft: float = 0.0
    vertex_count: int = 0
    aspect_ratio: float = 1.0
    compactness: float = 0.0
    short_edge_count: int = 0


@dataclass
class FootprintCheck:
    """Outcome of a footprint plausibility check."""

    valid: bool
    confidence: float
    metrics: FootprintMetrics
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def aspect_ratio(ring: Sequence[Point]) -> float:
    """Bounding-box width / height in ground feet (1.0 when degenerate)."""
    if len(ring) < 3:
        return 1.0
    min_lng = min(p.x for p in ring)
    max_lng = max(p.x for p in ring)
    min_lat = min(p.y for p in ring)
    max_lat = max(p.y for p in ring)

    height = haversine_ft(Point(min_lng, min_lat), Point(min_lng, max_lat))
    width = haversine_ft(Point(min_lng, min_lat), Point(max_lng, min_lat))
    if height == 0:
        return 1.0
    return width / height


def compactness(area_sqft: float, perimeter_ft: float) -> float:
    """Isoperimetric quotient 4*pi*A/P^2: 1 for a circle, toward 0 for slivers."""
    if perimeter_ft == 0:
        return 0.0
    return 4 * math.pi * area_sqft / (perimeter_ft * perimeter_ft)


def check_footprint(ring_geo: Sequence[Point], source: Optional[str] = None) -> FootprintCheck:
    """
    Check a (lng, lat) footprint for residential plausibility.

    Args:
        ring_geo: Footprint ring, open or closed
        source: Optional provenance key (see ``SOURCE_CONFIDENCE``)

    Returns:
        FootprintCheck with metrics, findings and a confidence in [0, 1]
    """
    ring = open_ring(ring_geo)
    errors: List[str] = []
    warnings: List[str] = []
    confidence = 1.0

    area = geo_ring_area_sqft(ring)
    perimeter = geo_perimeter_ft(ring)
    metrics = FootprintMetrics(
        area_sqft=area,
        perimeter_ft=perimeter,
        vertex_count=len(ring),
        aspect_ratio=aspect_ratio(ring),
        compactness=compactness(area, perimeter),
    )

    if metrics.vertex_count < 3:
        errors.append("Polygon must have at least 3 vertices")
        confidence = 0.0
    if metrics.vertex_count < 4:
        warnings.append("Polygon has very few vertices - may be oversimplified")
        confidence *= 0.8

    if area < MIN_AREA_SQFT:
        errors.append(f"Area too small: {area:.0f} sqft (minimum {MIN_AREA_SQFT} sqft)")
        confidence *= 0.3
    elif area < SMALL_AREA_SQFT:
        warnings.append(f"Area is small: {area:.0f} sqft - verify measurement")
        confidence *= 0.9

    if area > MAX_AREA_SQFT:
        errors.append(f"Area too large: {area:.0f} sqft (maximum {MAX_AREA_SQFT:,} sqft for residential)")
        confidence *= 0.3
    elif area > LARGE_AREA_SQFT:
        warnings.append(f"Large area: {area:.0f} sqft - verify for residential property")
        confidence *= 0.9

    if metrics.aspect_ratio < MIN_ASPECT_RATIO or metrics.aspect_ratio > MAX_ASPECT_RATIO:
        warnings.append(f"Unusual aspect ratio: {metrics.aspect_ratio:.2f} (typical range: 0.5-2.0)")
        confidence *= 0.85

    if metrics.compactness < MIN_COMPACTNESS:
        warnings.append(f"Low compactness: {metrics.compactness:.2f} - shape may be irregular")
        confidence *= 0.9

    n = len(ring)
    metrics.short_edge_count = sum(
        1 for i in range(n) if n > 1 and haversine_ft(ring[i], ring[(i + 1) % n]) < SHORT_EDGE_FT
    )
    if metrics.short_edge_count:
        warnings.append(f"{metrics.short_edge_count} very short edge(s) detected (<1 ft)")
        confidence *= max(0.8, 1 - metrics.short_edge_count * 0.05)

    if has_self_intersection(ring):
        errors.append("Polygon appears to self-intersect")
        confidence *= 0.5

    if source is not None:
        factor = SOURCE_CONFIDENCE.get(source)
        if factor is None:
            logger.debug(f"Unknown footprint source '{source}'; no confidence adjustment")
        else:
            confidence *= factor
        if source == "solar_bbox_fallback":
            warnings.append("Rectangular bounding box footprint - area likely overestimated by 15-25%")

    return FootprintCheck(
        valid=not errors,
        confidence=max(0.0, min(1.0, confidence)),
        metrics=metrics,
        errors=errors,
        warnings=warnings,
    )

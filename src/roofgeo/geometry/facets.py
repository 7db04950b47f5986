"""
Facet Assembler - build planar roof facets from the best available source.

Methods are tried in priority order and the first that produces at least
two facets wins:

1. Hint centers        - >= 2 hints carrying a center point
2. Hint bounding boxes - box midpoints standing in for centers
3. Azimuth clustering  - >= 2 hints grouped into N/E/S/W buckets, each
                         bucket claiming the perimeter edges that face it
4. Skeleton split      - plain rectangle with one ridge, cut along the ridge
5. Perimeter fallback  - the whole footprint as one facet

Every method runs in local feet. Hint coordinates are geographic and are
converted through the caller's ``LocalFrame``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from shapely.geometry import LineString, Polygon
from shapely.geometry.polygon import orient
from shapely.ops import split

from ..core.config import Settings, resolve_settings
from ..core.models import (
    DirectionGroups,
    Facet,
    FacetSource,
    LocalFrame,
    Point,
    QualityTier,
    SolarSegmentHint,
)
from ..core.pitch import calculate_slope_factor, degrees_to_pitch
from ..utils.validation import FLAT_PITCH
from .primitives import (
    SQFT_PER_SQM,
    angle_diff,
    bearing_deg,
    centroid,
    circular_mean_deg,
    distance,
    midpoint,
    polygon_area,
)
from .skeleton import SkeletonResult

logger = logging.getLogger(__name__)

FACET_PALETTE = (
    "rgba(59, 130, 246, 0.35)",   # blue
    "rgba(34, 197, 94, 0.35)",    # green
    "rgba(251, 191, 36, 0.35)",   # yellow
    "rgba(239, 68, 68, 0.35)",    # red
    "rgba(139, 92, 246, 0.35)",   # purple
    "rgba(236, 72, 153, 0.35)",   # pink
    "rgba(20, 184, 166, 0.35)",   # teal
    "rgba(249, 115, 22, 0.35)",   # orange
)

DIRECTION_LABELS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")

# A method yielding fewer facets than this declines
MIN_FACETS = 2

# Positioned-hint quality thresholds
EXCELLENT_COVERAGE = 0.7
EXCELLENT_CONFIDENCE = 0.8


@dataclass(frozen=True)
class FacetAssembly:
    """Facets produced by one assembly method."""
    facets: tuple[Facet, ...]
    method: FacetSource
    quality: QualityTier
    warnings: tuple[str, ...] = ()


def facet_color(index: int) -> str:
    """Display color for the facet at ``index`` (cycles through the palette)."""
    return FACET_PALETTE[index % len(FACET_PALETTE)]


def direction_label(azimuth: float) -> str:
    """8-way compass label for an azimuth in degrees."""
    return DIRECTION_LABELS[int(((azimuth % 360.0) + 22.5) // 45.0) % 8]


def facet_confidence(has_pitch: bool, has_area: bool, plan_area_sqft: float, min_area_sqft: float = 10.0) -> float:
    confidence = 0.9
    if not has_pitch:
        confidence -= 0.1
    if not has_area:
        confidence -= 0.15
    if plan_area_sqft < min_area_sqft:
        confidence -= 0.2
    return max(0.0, min(1.0, confidence))


def predominant_pitch(facets: Sequence[Facet]) -> str:
    """Pitch covering the most plan area; "flat" when there are no facets."""
    weights: dict[str, float] = {}
    for facet in facets:
        weights[facet.pitch] = weights.get(facet.pitch, 0.0) + facet.plan_area_sqft
    if not weights:
        return FLAT_PITCH
    return max(weights, key=weights.get)


def _build_facet(
    index: int,
    polygon: Sequence[Point],
    pitch: str,
    azimuth: float,
    source: FacetSource,
    has_pitch: bool,
    reported_area_sqft: Optional[float],
    min_area_sqft: float,
) -> Facet:
    plan_area = polygon_area(polygon)
    return Facet(
        id=f"F{index + 1}",
        index=index,
        polygon=tuple(polygon),
        plan_area_sqft=plan_area,
        true_area_sqft=plan_area * calculate_slope_factor(pitch),
        pitch=pitch,
        azimuth_deg=azimuth % 360.0,
        direction=direction_label(azimuth),
        confidence=facet_confidence(has_pitch, reported_area_sqft is not None, plan_area, min_area_sqft),
        source=source,
        color=facet_color(index),
        reported_area_sqft=reported_area_sqft,
    )


def _hint_pitch(hint: SolarSegmentHint, fallback: str) -> tuple[str, bool]:
    if hint.pitch_degrees is None:
        return fallback, False
    return degrees_to_pitch(hint.pitch_degrees), True


def _hint_area(hint: SolarSegmentHint) -> Optional[float]:
    return None if hint.area_m2 is None else hint.area_m2 * SQFT_PER_SQM


# =============================================================================
# METHODS 1 + 2: POSITIONED HINTS
# =============================================================================


def _positioned_facets(
    ring: Sequence[Point],
    placed: Sequence[tuple[SolarSegmentHint, Point]],
    pitch: str,
    source: FacetSource,
    cfg: Settings,
) -> list[Facet]:
    """
    One facet per hint: the perimeter vertices facing the hint's azimuth,
    closed through a ridge point pulled from the hint center toward the
    roof centroid.
    """
    roof_center = centroid(ring)
    facets: list[Facet] = []
    for hint, center in placed:
        ridge_point = Point(
            center.x + cfg.ridge_point_factor * (roof_center.x - center.x),
            center.y + cfg.ridge_point_factor * (roof_center.y - center.y),
        )
        azimuth = hint.azimuth_degrees
        if azimuth is None:
            azimuth = bearing_deg(roof_center, center)

        facing = [v for v in ring if angle_diff(bearing_deg(roof_center, v), azimuth) < 90.0]
        if len(facing) < 2:
            continue
        # Angles are measured from the direction behind the ridge point so the
        # atan2 wrap never falls inside the facing run
        behind = math.atan2(math.cos(math.radians(azimuth)), math.sin(math.radians(azimuth))) + math.pi
        facing.sort(key=lambda v: (math.atan2(v.y - ridge_point.y, v.x - ridge_point.x) - behind) % math.tau)
        polygon = facing + [ridge_point]
        if not Polygon([p.as_tuple() for p in polygon]).is_valid:
            logger.debug(f"{source.value}: facet for azimuth {azimuth:.0f} is not a simple polygon; skipped")
            continue

        facet_pitch, has_pitch = _hint_pitch(hint, pitch)
        facet = _build_facet(
            len(facets), polygon, facet_pitch, azimuth, source, has_pitch, _hint_area(hint), cfg.min_facet_area_sqft,
        )
        if facet.plan_area_sqft > 0:
            facets.append(facet)
    return facets


def _place_hints(
    hints: Sequence[SolarSegmentHint],
    frame: Optional[LocalFrame],
    use_boxes: bool,
) -> list[tuple[SolarSegmentHint, Point]]:
    placed = []
    for hint in hints:
        if use_boxes:
            geo = hint.box_center
        else:
            geo = Point(*hint.center) if hint.center is not None else None
        if geo is None:
            continue
        placed.append((hint, frame.to_local(geo) if frame is not None else geo))
    return placed


# =============================================================================
# METHOD 3: AZIMUTH CLUSTERS
# =============================================================================


def _bucket_edges(ring: Sequence[Point], label: str, roof_center: Point) -> list[int]:
    """Ring edge indices whose midpoints face ``label``, as one contiguous run."""
    n = len(ring)
    member = [
        DirectionGroups.bucket_for(bearing_deg(roof_center, midpoint(ring[i], ring[(i + 1) % n]))) == label
        for i in range(n)
    ]
    if not any(member):
        return []
    if all(member):
        return list(range(n))
    # Start after a non-member so a run crossing index 0 stays contiguous
    first_gap = member.index(False)
    order = [(first_gap + 1 + k) % n for k in range(n)]
    return [i for i in order if member[i]]


def _azimuth_facets(
    ring: Sequence[Point],
    groups: DirectionGroups,
    skeleton: Optional[SkeletonResult],
    pitch: str,
    cfg: Settings,
) -> list[Facet]:
    roof_center = centroid(ring)
    ridge_ends = [p for line in (skeleton.ridges if skeleton else ()) for p in line.endpoints]
    n = len(ring)

    facets: list[Facet] = []
    for label, nominal, hints in groups.items():
        if not hints:
            continue
        edges = _bucket_edges(ring, label, roof_center)
        if not edges:
            continue

        outline = [ring[i] for i in edges] + [ring[(edges[-1] + 1) % n]]
        run_center = centroid(outline) if len(outline) >= 3 else midpoint(outline[0], outline[-1])
        apex = min(ridge_ends, key=lambda p: distance(p, run_center)) if ridge_ends else roof_center
        polygon = outline + [apex]

        azimuths = [h.azimuth_degrees for h in hints]
        azimuth = circular_mean_deg(azimuths) if azimuths else nominal

        pitched = [h for h in hints if h.pitch_degrees is not None]
        if pitched:
            weights = [h.area_m2 or 1.0 for h in pitched]
            mean_deg = sum(h.pitch_degrees * w for h, w in zip(pitched, weights)) / sum(weights)
            facet_pitch, has_pitch = degrees_to_pitch(mean_deg), True
        else:
            facet_pitch, has_pitch = pitch, False

        areas = [h.area_m2 for h in hints if h.area_m2 is not None]
        reported = sum(areas) * SQFT_PER_SQM if areas else None

        facet = _build_facet(
            len(facets), polygon, facet_pitch, azimuth, FacetSource.AZIMUTH_CLUSTERS,
            has_pitch, reported, cfg.min_facet_area_sqft,
        )
        if facet.plan_area_sqft > 0:
            facets.append(facet)
    return facets


# =============================================================================
# METHOD 4: SKELETON SPLIT
# =============================================================================


def _skeleton_split(
    ring: Sequence[Point],
    skeleton: Optional[SkeletonResult],
    pitch: str,
    cfg: Settings,
) -> list[Facet]:
    """Cut a one-ridge rectangle along its ridge line into two facets."""
    if skeleton is None or len(ring) != 4 or len(skeleton.ridges) != 1:
        return []

    ridge = skeleton.ridges[0]
    length = ridge.length_ft
    if length == 0:
        return []

    footprint = Polygon([p.as_tuple() for p in ring])
    minx, miny, maxx, maxy = footprint.bounds
    reach = math.hypot(maxx - minx, maxy - miny) * 2
    ux = (ridge.end.x - ridge.start.x) / length
    uy = (ridge.end.y - ridge.start.y) / length
    cutter = LineString([
        (ridge.start.x - ux * reach, ridge.start.y - uy * reach),
        (ridge.end.x + ux * reach, ridge.end.y + uy * reach),
    ])

    pieces = list(split(footprint, cutter).geoms)
    if len(pieces) != 2:
        logger.debug(f"Skeleton split produced {len(pieces)} pieces; declining")
        return []

    ridge_mid = midpoint(ridge.start, ridge.end)
    facets = []
    for piece in pieces:
        piece = orient(piece, sign=1.0)
        polygon = [Point(x, y) for x, y in list(piece.exterior.coords)[:-1]]
        c = piece.centroid
        azimuth = bearing_deg(ridge_mid, Point(c.x, c.y))
        facets.append(_build_facet(
            len(facets), polygon, pitch, azimuth, FacetSource.SKELETON_SPLIT,
            True, None, cfg.min_facet_area_sqft,
        ))
    return facets


# =============================================================================
# ASSEMBLY
# =============================================================================


def _positioned_quality(facets: Sequence[Facet], hint_count: int) -> QualityTier:
    mean_confidence = sum(f.confidence for f in facets) / len(facets)
    if len(facets) >= EXCELLENT_COVERAGE * hint_count and mean_confidence >= EXCELLENT_CONFIDENCE:
        return QualityTier.EXCELLENT
    return QualityTier.GOOD


def assemble(
    ring: Sequence[Point],
    skeleton: Optional[SkeletonResult],
    solar_hints: Optional[Sequence[SolarSegmentHint]],
    predominant_pitch: str,
    frame: Optional[LocalFrame] = None,
    settings: Optional[Settings] = None,
) -> FacetAssembly:
    """
    Assemble facets for a CCW ring in local feet.

    Args:
        ring: Open CCW ring in local feet
        skeleton: Skeleton of the ring, if one was built
        solar_hints: Optional per-facet hints (geographic coordinates)
        predominant_pitch: Pitch applied where hints carry none
        frame: Frame converting hint coordinates to local feet; hint
            coordinates are taken as local when omitted
        settings: Optional settings override

    Returns:
        FacetAssembly from the first method that produced at least two
        facets, else the single perimeter facet
    """
    cfg = resolve_settings(settings)
    hints = list(solar_hints or [])
    warnings: list[str] = []

    for use_boxes, source in ((False, FacetSource.SOLAR_CENTERS), (True, FacetSource.SOLAR_BOXES)):
        placed = _place_hints(hints, frame, use_boxes)
        if len(placed) < cfg.min_facet_hints:
            logger.debug(f"{source.value}: {len(placed)} positioned hints, need {cfg.min_facet_hints}")
            continue
        facets = _positioned_facets(ring, placed, predominant_pitch, source, cfg)
        if len(facets) >= MIN_FACETS:
            return FacetAssembly(tuple(facets), source, _positioned_quality(facets, len(hints)), tuple(warnings))
        warnings.append(f"{source.value} hints produced {len(facets)} facet(s)")

    groups = DirectionGroups.from_hints(hints)
    if len(hints) >= cfg.min_facet_hints and groups.occupied:
        facets = _azimuth_facets(ring, groups, skeleton, predominant_pitch, cfg)
        if len(facets) >= MIN_FACETS:
            return FacetAssembly(tuple(facets), FacetSource.AZIMUTH_CLUSTERS, QualityTier.GOOD, tuple(warnings))
        logger.debug(f"Azimuth clustering produced {len(facets)} facet(s); declining")

    facets = _skeleton_split(ring, skeleton, predominant_pitch, cfg)
    if facets:
        return FacetAssembly(tuple(facets), FacetSource.SKELETON_SPLIT, QualityTier.FAIR, tuple(warnings))

    warnings.append("Facets simplified to the footprint perimeter")
    facet = _build_facet(
        0, list(ring), predominant_pitch, 0.0, FacetSource.PERIMETER, True, None, cfg.min_facet_area_sqft,
    )
    return FacetAssembly((facet,), FacetSource.PERIMETER, QualityTier.SIMPLIFIED, tuple(warnings))

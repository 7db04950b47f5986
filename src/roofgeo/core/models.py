"""
Data model for roof geometry reconstruction.

Internal geometry (points, wings, skeleton lines, facets, results) uses frozen
dataclasses; external per-facet hints are pydantic models validated at the
boundary. All lengths are feet, all areas square feet, unless a field name
says otherwise.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS
# =============================================================================


class ShapeKind(str, Enum):
    """Footprint shape classification."""
    RECTANGLE = "rectangle"
    L_SHAPE = "l_shape"
    T_SHAPE = "t_shape"
    U_SHAPE = "u_shape"
    COMPLEX = "complex"


class Axis(str, Enum):
    """Dominant axis of a wing; the ridge runs along it."""
    HORIZONTAL = "horizontal"  # east-west ridge
    VERTICAL = "vertical"      # north-south ridge


class LineType(str, Enum):
    RIDGE = "ridge"
    HIP = "hip"
    VALLEY = "valley"
    EAVE = "eave"
    RAKE = "rake"


class QualityTier(str, Enum):
    """Overall geometry quality, best first."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    SIMPLIFIED = "simplified"
    POOR = "poor"

    @property
    def rank(self) -> int:
        return list(QualityTier).index(self)

    def degrade(self, steps: int = 1) -> "QualityTier":
        tiers = list(QualityTier)
        return tiers[min(self.rank + steps, len(tiers) - 1)]

    @staticmethod
    def worst(*tiers: "QualityTier") -> "QualityTier":
        return max(tiers, key=lambda t: t.rank)


class FacetSource(str, Enum):
    """Which assembly method produced a facet."""
    SOLAR_CENTERS = "solar_centers"
    SOLAR_BOXES = "solar_boxes"
    AZIMUTH_CLUSTERS = "azimuth_clusters"
    SKELETON_SPLIT = "skeleton_split"
    PERIMETER = "perimeter"


# =============================================================================
# GEOMETRY PRIMITIVES
# =============================================================================


@dataclass(frozen=True)
class Point:
    """2D point: (lng, lat) degrees or local (x, y) feet."""
    x: float
    y: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box in any coordinate system."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def center(self) -> Point:
        return Point((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def to_tuple(self) -> tuple[float, float, float, float]:
        """Return as (min_x, min_y, max_x, max_y)."""
        return (self.min_x, self.min_y, self.max_x, self.max_y)


# 1 degree of latitude in feet; longitude scales by cos(latitude)
FEET_PER_DEGREE = 364_000.0


@dataclass(frozen=True)
class LocalFrame:
    """
    Locally linearized frame converting geographic degrees to feet.

    Accurate at building scale. The conversion is deterministic, so equal
    local coordinates always map back to equal geographic coordinates.
    """

    origin_lng: float
    origin_lat: float

    @property
    def feet_per_degree_lng(self) -> float:
        return FEET_PER_DEGREE * math.cos(math.radians(self.origin_lat))

    def to_local(self, p: Point) -> Point:
        return Point(
            (p.x - self.origin_lng) * self.feet_per_degree_lng,
            (p.y - self.origin_lat) * FEET_PER_DEGREE,
        )

    def to_geo(self, p: Point) -> Point:
        return Point(
            self.origin_lng + p.x / self.feet_per_degree_lng,
            self.origin_lat + p.y / FEET_PER_DEGREE,
        )

    @classmethod
    def for_ring(cls, ring: tuple[Point, ...] | list[Point]) -> "LocalFrame":
        """Frame centred on the ring's bounding box."""
        xs = [p.x for p in ring]
        ys = [p.y for p in ring]
        return cls((min(xs) + max(xs)) / 2, (min(ys) + max(ys)) / 2)


# =============================================================================
# SKELETON
# =============================================================================


@dataclass(frozen=True)
class Wing:
    """Rectangular-ish sub-section of a footprint with its own ridge."""
    index: int
    vertex_indices: tuple[int, ...]
    vertices: tuple[Point, ...]
    bbox: BoundingBox
    axis: Axis
    ridge_start: Point
    ridge_end: Point

    @property
    def ridge_length(self) -> float:
        return math.hypot(self.ridge_end.x - self.ridge_start.x, self.ridge_end.y - self.ridge_start.y)


@dataclass(frozen=True)
class ShapeClassification:
    """Result of shape classification and wing decomposition."""
    kind: ShapeKind
    reflex_indices: tuple[int, ...]
    wings: tuple[Wing, ...] = ()
    perimeter_only: bool = False  # too concave for wing heuristics

    @property
    def reflex_count(self) -> int:
        return len(self.reflex_indices)


@dataclass(frozen=True)
class SkeletonLine:
    """A ridge, hip, valley, eave or rake segment."""
    id: str
    line_type: LineType
    start: Point
    end: Point
    length_ft: float
    connected_to: frozenset[str] = frozenset()

    # Vertex registry ids the endpoints are bound to
    start_vertex_id: Optional[str] = None
    end_vertex_id: Optional[str] = None
    wing_index: Optional[int] = None

    @classmethod
    def create(cls, id: str, line_type: LineType, start: Point, end: Point, **kwargs) -> "SkeletonLine":
        """Build a line in local feet, deriving its length."""
        return cls(
            id=id,
            line_type=line_type,
            start=start,
            end=end,
            length_ft=math.hypot(end.x - start.x, end.y - start.y),
            **kwargs,
        )

    def with_endpoints(self, start: Optional[Point] = None, end: Optional[Point] = None) -> "SkeletonLine":
        """Copy with rewritten endpoints and recomputed (planar) length."""
        new_start = start if start is not None else self.start
        new_end = end if end is not None else self.end
        return replace(
            self,
            start=new_start,
            end=new_end,
            length_ft=math.hypot(new_end.x - new_start.x, new_end.y - new_start.y),
        )

    @property
    def endpoints(self) -> tuple[Point, Point]:
        return (self.start, self.end)


# =============================================================================
# FACETS
# =============================================================================


@dataclass(frozen=True)
class Facet:
    """A planar roof surface."""
    id: str
    index: int
    polygon: tuple[Point, ...]  # open ring
    plan_area_sqft: float
    true_area_sqft: float
    pitch: str
    azimuth_deg: float  # compass: 0=N, 90=E, 180=S, 270=W
    direction: str      # N, NE, E, ...
    confidence: float
    source: FacetSource
    color: str
    reported_area_sqft: Optional[float] = None  # from external hints


class SolarSegmentHint(BaseModel):
    """
    Optional per-facet metadata from aerial/solar analysis.

    Coordinates are (longitude, latitude) in degrees. Every field is
    optional; assembly falls back when data is missing.
    """

    model_config = ConfigDict(frozen=True)

    pitch_degrees: Optional[float] = Field(default=None, ge=0, lt=90, description="Slope angle")
    azimuth_degrees: Optional[float] = Field(default=None, description="Compass direction the facet faces")
    area_m2: Optional[float] = Field(default=None, ge=0, description="Facet area in square meters")
    center: Optional[tuple[float, float]] = Field(default=None, description="(lng, lat) of facet center")
    bounding_box: Optional[tuple[tuple[float, float], tuple[float, float]]] = Field(
        default=None, description="((sw_lng, sw_lat), (ne_lng, ne_lat))"
    )

    @field_validator("azimuth_degrees")
    @classmethod
    def _normalize_azimuth(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        return value % 360.0

    @property
    def box_center(self) -> Optional[Point]:
        if self.bounding_box is None:
            return None
        (sw_lng, sw_lat), (ne_lng, ne_lat) = self.bounding_box
        return Point((sw_lng + ne_lng) / 2, (sw_lat + ne_lat) / 2)


@dataclass(frozen=True)
class DirectionGroups:
    """Hints grouped into the four 90-degree cardinal buckets."""
    north: tuple[SolarSegmentHint, ...] = ()
    east: tuple[SolarSegmentHint, ...] = ()
    south: tuple[SolarSegmentHint, ...] = ()
    west: tuple[SolarSegmentHint, ...] = ()

    # (label, nominal azimuth) in fixed iteration order
    BUCKETS = (("N", 0.0), ("E", 90.0), ("S", 180.0), ("W", 270.0))

    @staticmethod
    def bucket_for(azimuth: float) -> str:
        """Cardinal bucket for a compass azimuth; each bucket is 90 deg wide."""
        a = azimuth % 360.0
        if a >= 315 or a < 45:
            return "N"
        if a < 135:
            return "E"
        if a < 225:
            return "S"
        return "W"

    @classmethod
    def from_hints(cls, hints) -> "DirectionGroups":
        groups: dict[str, list[SolarSegmentHint]] = {"N": [], "E": [], "S": [], "W": []}
        for hint in hints:
            if hint.azimuth_degrees is None:
                continue
            groups[cls.bucket_for(hint.azimuth_degrees)].append(hint)
        return cls(
            north=tuple(groups["N"]),
            east=tuple(groups["E"]),
            south=tuple(groups["S"]),
            west=tuple(groups["W"]),
        )

    def items(self) -> Iterator[tuple[str, float, tuple[SolarSegmentHint, ...]]]:
        members = {"N": self.north, "E": self.east, "S": self.south, "W": self.west}
        for label, azimuth in self.BUCKETS:
            yield label, azimuth, members[label]

    @property
    def occupied(self) -> int:
        return sum(1 for _, _, hints in self.items() if hints)


# =============================================================================
# RESULT
# =============================================================================


@dataclass(frozen=True)
class GeometryResult:
    """
    Complete roof geometry for one footprint.

    Coordinates are geographic (lng, lat); lengths and areas are feet and
    square feet measured in the local frame.
    """
    facets: tuple[Facet, ...]
    ridges: tuple[SkeletonLine, ...]
    hips: tuple[SkeletonLine, ...]
    valleys: tuple[SkeletonLine, ...]
    eaves: tuple[SkeletonLine, ...]
    rakes: tuple[SkeletonLine, ...]
    quality: QualityTier
    warnings: tuple[str, ...] = ()

    # Context
    shape: ShapeKind = ShapeKind.COMPLEX
    perimeter: tuple[Point, ...] = ()
    footprint_area_sqft: float = 0.0
    perimeter_ft: float = 0.0
    predominant_pitch: str = "flat"
    facet_method: Optional[FacetSource] = None
    topology_score: float = 0.0
    constraint_score: float = 0.0
    confidence: float = 0.0

    @property
    def interior_lines(self) -> tuple[SkeletonLine, ...]:
        return self.ridges + self.hips + self.valleys

    @property
    def all_lines(self) -> tuple[SkeletonLine, ...]:
        return self.ridges + self.hips + self.valleys + self.eaves + self.rakes

    def total_length(self, line_type: LineType) -> float:
        return sum(line.length_ft for line in self.all_lines if line.line_type == line_type)

    @property
    def linear_totals(self) -> dict[str, float]:
        """Total length in feet per line type."""
        return {lt.value: self.total_length(lt) for lt in LineType}

    @property
    def total_plan_area_sqft(self) -> float:
        return sum(f.plan_area_sqft for f in self.facets)

    @property
    def total_true_area_sqft(self) -> float:
        return sum(f.true_area_sqft for f in self.facets)

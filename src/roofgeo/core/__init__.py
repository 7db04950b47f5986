"""Core data model, configuration and pitch math."""

from .config import Settings, settings, resolve_settings
from .models import (
    Axis,
    BoundingBox,
    DirectionGroups,
    Facet,
    FacetSource,
    GeometryResult,
    LineType,
    LocalFrame,
    Point,
    QualityTier,
    ShapeClassification,
    ShapeKind,
    SkeletonLine,
    SolarSegmentHint,
    Wing,
)
from .pitch import (
    calculate_slope_factor,
    degrees_to_pitch,
    parse_pitch,
    pitch_rise,
    pitch_to_degrees,
)

__all__ = [
    "Settings",
    "settings",
    "resolve_settings",
    "Axis",
    "BoundingBox",
    "DirectionGroups",
    "Facet",
    "FacetSource",
    "GeometryResult",
    "LineType",
    "LocalFrame",
    "Point",
    "QualityTier",
    "ShapeClassification",
    "ShapeKind",
    "SkeletonLine",
    "SolarSegmentHint",
    "Wing",
    "calculate_slope_factor",
    "degrees_to_pitch",
    "parse_pitch",
    "pitch_rise",
    "pitch_to_degrees",
]

"""
roofgeo - Roof geometry reconstruction from building footprints.

Turns a footprint polygon (plus optional per-facet hints from aerial or
solar analysis) into a roof model: facets, ridges, hips, valleys, eaves
and rakes, with lengths, areas and quality diagnostics.

Example:
    from roofgeo import reconstruct_roof

    result = reconstruct_roof(footprint, predominant_pitch="6/12")
    print(result.quality, result.linear_totals)
"""

__version__ = "0.1.0"

from .core.config import Settings, settings
from .core.models import (
    Facet,
    FacetSource,
    GeometryResult,
    LineType,
    Point,
    QualityTier,
    ShapeKind,
    SkeletonLine,
    SolarSegmentHint,
)
from .analysis.roof_engine import RoofEngine, reconstruct_roof
from .analysis.deviation import analyze_deviations, measurement_from_result
from .export.geojson import result_to_dict, result_to_geojson
from .export.wkt import parse_wkt_linestring, result_to_wkt, to_wkt
from .utils.validation import ValidationError

__all__ = [
    "__version__",
    # Pipeline
    "RoofEngine",
    "reconstruct_roof",
    # Config
    "Settings",
    "settings",
    # Models
    "Facet",
    "FacetSource",
    "GeometryResult",
    "LineType",
    "Point",
    "QualityTier",
    "ShapeKind",
    "SkeletonLine",
    "SolarSegmentHint",
    # QA
    "analyze_deviations",
    "measurement_from_result",
    # Export
    "result_to_dict",
    "result_to_geojson",
    "parse_wkt_linestring",
    "result_to_wkt",
    "to_wkt",
    # Errors
    "ValidationError",
]

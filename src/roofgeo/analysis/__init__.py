"""Reconstruction pipeline and quality checks."""

from .roof_engine import RoofEngine, reconstruct_roof, parse_hints
from .footprint_check import FootprintCheck, check_footprint
from .deviation import (
    Benchmark,
    BuildingDimensions,
    DeviationAlert,
    DeviationRules,
    DeviationSummary,
    Measurement,
    analyze_deviations,
    dimensions_from_result,
    measurement_from_result,
    summarize_deviations,
)

__all__ = [
    "RoofEngine",
    "reconstruct_roof",
    "parse_hints",
    "FootprintCheck",
    "check_footprint",
    "Benchmark",
    "BuildingDimensions",
    "DeviationAlert",
    "DeviationRules",
    "DeviationSummary",
    "Measurement",
    "analyze_deviations",
    "dimensions_from_result",
    "measurement_from_result",
    "summarize_deviations",
]

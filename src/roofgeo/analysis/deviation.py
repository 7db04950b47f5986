"""
Deviation detection and alerting.

Post-hoc QC of a finished measurement: flags values outside expected
ranges (area vs benchmark, line lengths, feature counts by building shape,
perimeter classification, ratios, confidence). Read-only; geometry is never
modified here.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from ..core.models import GeometryResult, LineType, LocalFrame
from ..core.pitch import pitch_to_degrees
from ..geometry.primitives import bounds

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {"critical": 0, "error": 1, "warning": 2, "info": 3}


class DeviationRules(BaseModel):
    """Thresholds for deviation checks."""

    area_deviation_threshold_pct: float = Field(default=5.0, description="Area deviation before alerting")
    area_error_pct: float = Field(default=10.0)
    area_critical_pct: float = Field(default=15.0)
    ridge_length_min_ft: float = Field(default=10.0)
    ridge_length_max_ft: float = Field(default=100.0)
    hip_length_min_ft: float = Field(default=5.0)
    valley_length_min_ft: float = Field(default=5.0)
    perimeter_tolerance_pct: float = Field(default=5.0)
    ridge_ratio_min: float = Field(default=0.5)
    ridge_ratio_max: float = Field(default=1.3)
    hip_width_factor: float = Field(default=0.7, description="Expected hip length as fraction of width")
    hip_ratio_tolerance_pct: float = Field(default=30.0)
    min_confidence_score: float = Field(default=0.7)
    critical_confidence_score: float = Field(default=0.5)


@dataclass
class Measurement:
    """Measured roof totals."""

    total_area_sqft: float
    ridge_total_ft: float = 0.0
    hip_total_ft: float = 0.0
    valley_total_ft: float = 0.0
    eave_total_ft: float = 0.0
    rake_total_ft: float = 0.0
    perimeter_ft: float = 0.0
    ridge_count: int = 0
    hip_count: int = 0
    valley_count: int = 0
    pitch_degrees: float = 0.0
    building_shape: str = "complex"
    roof_style: str = "hip"  # gable, hip, combination
    confidence_score: float = 1.0


@dataclass
class Benchmark:
    """Expected values from an independent source."""

    expected_area_sqft: Optional[float] = None
    expected_ridge_ft: Optional[float] = None
    expected_hip_ft: Optional[float] = None
    expected_valley_ft: Optional[float] = None
    expected_pitch_degrees: Optional[float] = None


@dataclass
class BuildingDimensions:
    width_ft: float = 0.0
    length_ft: float = 0.0


@dataclass
class DeviationAlert:
    id: str
    alert_type: str  # area_mismatch, length_anomaly, count_mismatch, ...
    severity: str    # critical, error, warning, info
    description: str
    expected_value: float
    actual_value: float
    deviation_pct: float
    deviation_ft: float
    rule_name: str
    recommended_action: str


@dataclass
class DeviationSummary:
    total_alerts: int
    critical_count: int
    error_count: int
    warning_count: int
    info_count: int
    passes_quality_check: bool
    summary: str


def deviation_pct(expected: float, actual: float) -> float:
    if expected == 0:
        return 0.0 if actual == 0 else 100.0
    return abs((actual - expected) / expected) * 100


def expected_feature_counts(building_shape: str, roof_style: str) -> Dict[str, Tuple[int, int]]:
    """(min, max) ridge, hip and valley counts for a shape and roof style."""
    by_shape = {
        "rectangle": {"ridges": (1, 1), "valleys": (0, 0), "hips": (4, 4)},
        "l_shape": {"ridges": (2, 2), "valleys": (1, 2), "hips": (6, 8)},
        "t_shape": {"ridges": (2, 3), "valleys": (2, 3), "hips": (8, 12)},
        "u_shape": {"ridges": (2, 3), "valleys": (2, 3), "hips": (8, 12)},
        "complex": {"ridges": (2, 6), "valleys": (1, 6), "hips": (6, 16)},
    }
    counts = dict(by_shape.get(building_shape, {"ridges": (1, 1), "valleys": (0, 0), "hips": (0, 0)}))
    if roof_style not in ("hip", "combination"):
        counts["hips"] = (0, 0)
    return counts


# =============================================================================
# CHECKS
# =============================================================================


class _AlertIds:
    """Sequential alert ids, local to one analysis run."""

    def __init__(self):
        self._count = 0

    def next(self, rule_name: str) -> str:
        self._count += 1
        return f"alert_{self._count}_{rule_name}"


def check_area_deviation(
    measurement: Measurement, benchmark: Benchmark, rules: DeviationRules, ids: _AlertIds
) -> Optional[DeviationAlert]:
    if not benchmark.expected_area_sqft:
        return None

    pct = deviation_pct(benchmark.expected_area_sqft, measurement.total_area_sqft)
    if pct <= rules.area_deviation_threshold_pct:
        return None

    if pct > rules.area_critical_pct:
        severity = "critical"
    elif pct > rules.area_error_pct:
        severity = "error"
    else:
        severity = "warning"
    return DeviationAlert(
        id=ids.next("area_benchmark_comparison"),
        alert_type="area_mismatch",
        severity=severity,
        description=f"Roof area {measurement.total_area_sqft:.0f} sqft differs from benchmark by {pct:.1f}%",
        expected_value=benchmark.expected_area_sqft,
        actual_value=measurement.total_area_sqft,
        deviation_pct=pct,
        deviation_ft=abs(benchmark.expected_area_sqft - measurement.total_area_sqft),
        rule_name="area_benchmark_comparison",
        recommended_action="Verify footprint accuracy and recalculate area",
    )


def check_length_anomalies(measurement: Measurement, rules: DeviationRules, ids: _AlertIds) -> List[DeviationAlert]:
    alerts = []

    def below(label: str, average: float, minimum: float, rule: str, action: str) -> DeviationAlert:
        return DeviationAlert(
            id=ids.next(rule),
            alert_type="length_anomaly",
            severity="warning",
            description=f"Average {label} length {average:.1f}ft is below minimum {minimum:g}ft",
            expected_value=minimum,
            actual_value=average,
            deviation_pct=deviation_pct(minimum, average),
            deviation_ft=minimum - average,
            rule_name=rule,
            recommended_action=action,
        )

    if measurement.ridge_total_ft > 0:
        avg_ridge = measurement.ridge_total_ft / max(1, measurement.ridge_count)
        if avg_ridge < rules.ridge_length_min_ft:
            alerts.append(below(
                "ridge", avg_ridge, rules.ridge_length_min_ft, "ridge_min_length",
                "Check for incorrectly detected short ridges or split ridge segments",
            ))
        if avg_ridge > rules.ridge_length_max_ft:
            alerts.append(DeviationAlert(
                id=ids.next("ridge_max_length"),
                alert_type="length_anomaly",
                severity="warning",
                description=(
                    f"Average ridge length {avg_ridge:.1f}ft exceeds maximum {rules.ridge_length_max_ft:g}ft"
                ),
                expected_value=rules.ridge_length_max_ft,
                actual_value=avg_ridge,
                deviation_pct=deviation_pct(rules.ridge_length_max_ft, avg_ridge),
                deviation_ft=avg_ridge - rules.ridge_length_max_ft,
                rule_name="ridge_max_length",
                recommended_action="Verify building dimensions or check for merged ridge segments",
            ))

    if measurement.hip_total_ft > 0 and measurement.hip_count > 0:
        avg_hip = measurement.hip_total_ft / measurement.hip_count
        if avg_hip < rules.hip_length_min_ft:
            alerts.append(below(
                "hip", avg_hip, rules.hip_length_min_ft, "hip_min_length",
                "Review hip detection - may be incorrectly identified features",
            ))

    if measurement.valley_total_ft > 0 and measurement.valley_count > 0:
        avg_valley = measurement.valley_total_ft / measurement.valley_count
        if avg_valley < rules.valley_length_min_ft:
            alerts.append(below(
                "valley", avg_valley, rules.valley_length_min_ft, "valley_min_length",
                "Verify valley detection accuracy",
            ))

    return alerts


def check_count_mismatches(measurement: Measurement, ids: _AlertIds) -> List[DeviationAlert]:
    alerts = []
    expected = expected_feature_counts(measurement.building_shape, measurement.roof_style)

    def count_alert(label: str, actual: int, bounds_: Tuple[int, int], severity: str, rule: str, context: str,
                    action: str) -> DeviationAlert:
        return DeviationAlert(
            id=ids.next(rule),
            alert_type="count_mismatch",
            severity=severity,
            description=f"{actual} {label} detected for {context} (expected {bounds_[0]}-{bounds_[1]})",
            expected_value=bounds_[0],
            actual_value=actual,
            deviation_pct=0.0,
            deviation_ft=0.0,
            rule_name=rule,
            recommended_action=action,
        )

    lo, hi = expected["ridges"]
    if not lo <= measurement.ridge_count <= hi:
        alerts.append(count_alert(
            "ridges", measurement.ridge_count, expected["ridges"], "error", "ridge_count_validation",
            f"{measurement.building_shape} building",
            "Review ridge detection or verify building shape classification",
        ))

    if measurement.roof_style != "gable":
        lo, hi = expected["hips"]
        if not lo <= measurement.hip_count <= hi:
            alerts.append(count_alert(
                "hips", measurement.hip_count, expected["hips"], "error", "hip_count_validation",
                f"{measurement.building_shape} {measurement.roof_style} roof",
                "Check hip detection or verify roof style classification",
            ))

    lo, hi = expected["valleys"]
    if measurement.building_shape != "rectangle" and not lo <= measurement.valley_count <= hi:
        alerts.append(count_alert(
            "valleys", measurement.valley_count, expected["valleys"], "warning", "valley_count_validation",
            f"{measurement.building_shape} building",
            "Review valley detection or building shape",
        ))

    return alerts


def check_perimeter_consistency(
    measurement: Measurement, rules: DeviationRules, ids: _AlertIds
) -> Optional[DeviationAlert]:
    """Eaves plus rakes should account for the whole perimeter."""
    classified = measurement.eave_total_ft + measurement.rake_total_ft
    pct = deviation_pct(measurement.perimeter_ft, classified)
    if pct <= rules.perimeter_tolerance_pct:
        return None
    return DeviationAlert(
        id=ids.next("perimeter_consistency"),
        alert_type="shape_violation",
        severity="warning",
        description=(
            f"Classified perimeter ({classified:.1f}ft) differs from total perimeter "
            f"({measurement.perimeter_ft:.1f}ft) by {pct:.1f}%"
        ),
        expected_value=measurement.perimeter_ft,
        actual_value=classified,
        deviation_pct=pct,
        deviation_ft=abs(measurement.perimeter_ft - classified),
        rule_name="perimeter_consistency",
        recommended_action="Check for unclassified edges or measurement gaps",
    )


def check_ratio_anomalies(
    measurement: Measurement, dimensions: BuildingDimensions, rules: DeviationRules, ids: _AlertIds
) -> List[DeviationAlert]:
    alerts = []

    if measurement.ridge_total_ft > 0 and dimensions.length_ft > 0:
        ratio = measurement.ridge_total_ft / dimensions.length_ft
        if ratio < rules.ridge_ratio_min or ratio > rules.ridge_ratio_max:
            alerts.append(DeviationAlert(
                id=ids.next("ridge_to_length_ratio"),
                alert_type="ratio_anomaly",
                severity="warning",
                description=(
                    f"Ridge to building length ratio ({ratio:.2f}) is outside expected range "
                    f"({rules.ridge_ratio_min:g}-{rules.ridge_ratio_max:g})"
                ),
                expected_value=1.0,
                actual_value=ratio,
                deviation_pct=deviation_pct(1.0, ratio),
                deviation_ft=0.0,
                rule_name="ridge_to_length_ratio",
                recommended_action="Verify ridge length and building dimensions",
            ))

    if measurement.roof_style == "hip" and measurement.hip_total_ft > 0 and dimensions.width_ft > 0:
        avg_hip = measurement.hip_total_ft / max(1, measurement.hip_count)
        expected_hip = dimensions.width_ft * rules.hip_width_factor
        pct = deviation_pct(expected_hip, avg_hip)
        if pct > rules.hip_ratio_tolerance_pct:
            alerts.append(DeviationAlert(
                id=ids.next("hip_to_width_ratio"),
                alert_type="ratio_anomaly",
                severity="info",
                description=(
                    f"Average hip length ({avg_hip:.1f}ft) deviates {pct:.1f}% from expected "
                    "based on building width"
                ),
                expected_value=expected_hip,
                actual_value=avg_hip,
                deviation_pct=pct,
                deviation_ft=abs(expected_hip - avg_hip),
                rule_name="hip_to_width_ratio",
                recommended_action="Verify hip measurements and roof pitch",
            ))

    return alerts


def check_confidence_score(confidence: float, rules: DeviationRules, ids: _AlertIds) -> Optional[DeviationAlert]:
    if confidence >= rules.min_confidence_score:
        return None
    return DeviationAlert(
        id=ids.next("confidence_threshold"),
        alert_type="topology_error",
        severity="critical" if confidence < rules.critical_confidence_score else "warning",
        description=(
            f"Overall confidence score ({confidence * 100:.1f}%) is below threshold "
            f"({rules.min_confidence_score * 100:.1f}%)"
        ),
        expected_value=rules.min_confidence_score,
        actual_value=confidence,
        deviation_pct=deviation_pct(rules.min_confidence_score, confidence),
        deviation_ft=0.0,
        rule_name="confidence_threshold",
        recommended_action="Manual review recommended due to low confidence",
    )


# =============================================================================
# ENTRY POINTS
# =============================================================================


def analyze_deviations(
    measurement: Measurement,
    benchmark: Optional[Benchmark] = None,
    dimensions: Optional[BuildingDimensions] = None,
    rules: Optional[DeviationRules] = None,
) -> List[DeviationAlert]:
    """
    Run all deviation checks.

    Args:
        measurement: Measured totals (see ``measurement_from_result``)
        benchmark: Optional independent expectations
        dimensions: Optional building width/length for ratio checks
        rules: Threshold overrides

    Returns:
        Alerts sorted critical -> error -> warning -> info
    """
    benchmark = benchmark or Benchmark()
    dimensions = dimensions or BuildingDimensions()
    rules = rules or DeviationRules()
    ids = _AlertIds()
    alerts: List[DeviationAlert] = []

    area_alert = check_area_deviation(measurement, benchmark, rules, ids)
    if area_alert:
        alerts.append(area_alert)

    alerts.extend(check_length_anomalies(measurement, rules, ids))
    alerts.extend(check_count_mismatches(measurement, ids))

    perimeter_alert = check_perimeter_consistency(measurement, rules, ids)
    if perimeter_alert:
        alerts.append(perimeter_alert)

    if dimensions.width_ft > 0 or dimensions.length_ft > 0:
        alerts.extend(check_ratio_anomalies(measurement, dimensions, rules, ids))

    confidence_alert = check_confidence_score(measurement.confidence_score, rules, ids)
    if confidence_alert:
        alerts.append(confidence_alert)

    alerts.sort(key=lambda a: SEVERITY_ORDER[a.severity])
    logger.debug(f"Deviation analysis produced {len(alerts)} alerts")
    return alerts


def summarize_deviations(alerts: List[DeviationAlert]) -> DeviationSummary:
    counts = {severity: sum(1 for a in alerts if a.severity == severity) for severity in SEVERITY_ORDER}
    passes = counts["critical"] == 0 and counts["error"] <= 1

    if not alerts:
        summary = "All measurements within expected ranges. No deviations detected."
    elif passes:
        summary = (
            f"Minor deviations detected ({counts['warning']} warnings, {counts['info']} info). "
            "Measurements acceptable with review."
        )
    else:
        summary = (
            f"Significant deviations detected ({counts['critical']} critical, {counts['error']} errors). "
            "Manual review required."
        )

    return DeviationSummary(
        total_alerts=len(alerts),
        critical_count=counts["critical"],
        error_count=counts["error"],
        warning_count=counts["warning"],
        info_count=counts["info"],
        passes_quality_check=passes,
        summary=summary,
    )


def measurement_from_result(result: GeometryResult) -> Measurement:
    """Build a Measurement record from a reconstructed roof."""
    if result.hips and result.rakes:
        roof_style = "combination"
    elif result.hips:
        roof_style = "hip"
    else:
        roof_style = "gable"

    return Measurement(
        total_area_sqft=result.total_true_area_sqft,
        ridge_total_ft=result.total_length(LineType.RIDGE),
        hip_total_ft=result.total_length(LineType.HIP),
        valley_total_ft=result.total_length(LineType.VALLEY),
        eave_total_ft=result.total_length(LineType.EAVE),
        rake_total_ft=result.total_length(LineType.RAKE),
        perimeter_ft=result.perimeter_ft,
        ridge_count=len(result.ridges),
        hip_count=len(result.hips),
        valley_count=len(result.valleys),
        pitch_degrees=pitch_to_degrees(result.predominant_pitch),
        building_shape=result.shape.value,
        roof_style=roof_style,
        confidence_score=result.confidence,
    )


def dimensions_from_result(result: GeometryResult) -> BuildingDimensions:
    """Bounding-box width (short side) and length (long side) in feet."""
    if len(result.perimeter) < 3:
        return BuildingDimensions()
    frame = LocalFrame.for_ring(list(result.perimeter))
    box = bounds([frame.to_local(p) for p in result.perimeter])
    return BuildingDimensions(width_ft=min(box.width, box.height), length_ft=max(box.width, box.height))

"""
Tests for footprint checks and deviation alerting.

Run with: pytest tests/test_deviation.py -v
"""

import pytest

from roofgeo.analysis.deviation import (
    Benchmark,
    BuildingDimensions,
    DeviationRules,
    Measurement,
    analyze_deviations,
    deviation_pct,
    dimensions_from_result,
    expected_feature_counts,
    measurement_from_result,
    summarize_deviations,
)
from roofgeo.analysis.footprint_check import aspect_ratio, check_footprint, compactness
from roofgeo.core.models import Point

from conftest import ring, to_geo


def geo_points(points):
    return [Point(lng, lat) for lng, lat in to_geo(points)]


@pytest.fixture
def clean_measurement():
    """Totals of a 60 x 30 ft hip roof that trip no rule."""
    return Measurement(
        total_area_sqft=2000.0,
        ridge_total_ft=36.0,
        hip_total_ft=76.8,
        eave_total_ft=180.0,
        perimeter_ft=180.0,
        ridge_count=1,
        hip_count=4,
        building_shape="rectangle",
        roof_style="hip",
        confidence_score=0.9,
    )


def with_values(measurement, **changes):
    values = dict(measurement.__dict__)
    values.update(changes)
    return Measurement(**values)


# =============================================================================
# FOOTPRINT CHECK
# =============================================================================

class TestFootprintCheck:
    """Tests for footprint plausibility."""

    def test_typical_house(self, rectangle):
        check = check_footprint(geo_points(rectangle))
        assert check.valid
        assert check.confidence == pytest.approx(1.0)
        assert check.metrics.area_sqft == pytest.approx(1800.0, rel=0.01)
        assert check.metrics.aspect_ratio == pytest.approx(2.0, rel=0.01)
        assert check.errors == []
        assert check.warnings == []

    def test_closed_ring_counts_vertices_once(self, rectangle):
        points = geo_points(rectangle)
        check = check_footprint(points + [points[0]])
        assert check.metrics.vertex_count == 4

    def test_tiny_footprint_is_error(self):
        check = check_footprint(geo_points(ring((0, 0), (20, 0), (20, 20), (0, 20))))
        assert not check.valid
        assert any("Area too small" in e for e in check.errors)
        assert check.confidence == pytest.approx(0.3)

    def test_small_footprint_is_warning(self):
        check = check_footprint(geo_points(ring((0, 0), (25, 0), (25, 25), (0, 25))))
        assert check.valid
        assert any("Area is small" in w for w in check.warnings)
        assert check.confidence == pytest.approx(0.9)

    def test_sliver(self):
        check = check_footprint(geo_points(ring((0, 0), (150, 0), (150, 6), (0, 6))))
        assert any("aspect ratio" in w for w in check.warnings)
        assert any("compactness" in w for w in check.warnings)
        assert check.confidence < 0.8

    def test_self_intersection(self):
        bowtie = ring((0, 0), (60, 60), (60, 0), (0, 60))
        check = check_footprint(geo_points(bowtie))
        assert not check.valid
        assert any("self-intersect" in e for e in check.errors)

    def test_source_confidence(self, rectangle):
        points = geo_points(rectangle)
        assert check_footprint(points, source="manual").confidence == pytest.approx(0.95)
        assert check_footprint(points, source="unheard_of").confidence == pytest.approx(1.0)

    def test_bbox_fallback_warns(self, rectangle):
        check = check_footprint(geo_points(rectangle), source="solar_bbox_fallback")
        assert any("bounding box" in w for w in check.warnings)

    def test_shape_metrics(self):
        assert compactness(0.0, 0.0) == 0.0
        assert compactness(100.0, 40.0) == pytest.approx(0.785, abs=0.001)
        assert aspect_ratio([Point(0, 0), Point(1, 1)]) == 1.0


# =============================================================================
# DEVIATIONS
# =============================================================================

class TestAreaDeviation:
    """Tests for the benchmark area comparison."""

    @pytest.mark.parametrize("area,severity", [
        (1040.0, None),
        (1080.0, "warning"),
        (1120.0, "error"),
        (1200.0, "critical"),
        (800.0, "critical"),
    ])
    def test_severity_bands(self, clean_measurement, area, severity):
        measurement = with_values(clean_measurement, total_area_sqft=area)
        alerts = analyze_deviations(measurement, Benchmark(expected_area_sqft=1000.0))
        area_alerts = [a for a in alerts if a.alert_type == "area_mismatch"]
        if severity is None:
            assert area_alerts == []
        else:
            assert [a.severity for a in area_alerts] == [severity]

    def test_deviation_pct(self):
        assert deviation_pct(1000, 1200) == pytest.approx(20.0)
        assert deviation_pct(0, 0) == 0.0
        assert deviation_pct(0, 5) == 100.0


class TestRules:
    """Tests for the individual deviation rules."""

    def test_clean_measurement_passes(self, clean_measurement):
        assert analyze_deviations(clean_measurement) == []

    def test_short_ridge(self, clean_measurement):
        alerts = analyze_deviations(with_values(clean_measurement, ridge_total_ft=6.0))
        assert [a.rule_name for a in alerts] == ["ridge_min_length"]

    def test_long_ridge(self, clean_measurement):
        alerts = analyze_deviations(with_values(clean_measurement, ridge_total_ft=140.0))
        assert [a.rule_name for a in alerts] == ["ridge_max_length"]

    def test_short_hips(self, clean_measurement):
        alerts = analyze_deviations(with_values(clean_measurement, hip_total_ft=12.0))
        assert [a.rule_name for a in alerts] == ["hip_min_length"]

    def test_ridge_count_for_shape(self, clean_measurement):
        measurement = with_values(clean_measurement, building_shape="l_shape", ridge_count=1, hip_count=6)
        alerts = analyze_deviations(measurement)
        by_rule = {a.rule_name: a for a in alerts}
        assert by_rule["ridge_count_validation"].severity == "error"
        assert by_rule["valley_count_validation"].severity == "warning"

    def test_gable_roofs_skip_hip_count(self, clean_measurement):
        measurement = with_values(clean_measurement, roof_style="gable", hip_count=0, hip_total_ft=0.0)
        assert analyze_deviations(measurement) == []

    def test_perimeter_gap(self, clean_measurement):
        measurement = with_values(clean_measurement, perimeter_ft=100.0, eave_total_ft=50.0)
        (alert,) = analyze_deviations(measurement)
        assert alert.rule_name == "perimeter_consistency"
        assert alert.deviation_ft == pytest.approx(50.0)

    def test_ratio_checks_need_dimensions(self, clean_measurement):
        assert analyze_deviations(clean_measurement, dimensions=BuildingDimensions(30.0, 60.0)) == []
        alerts = analyze_deviations(clean_measurement, dimensions=BuildingDimensions(30.0, 20.0))
        assert [a.rule_name for a in alerts] == ["ridge_to_length_ratio"]

    def test_hip_width_ratio_is_info(self, clean_measurement):
        alerts = analyze_deviations(clean_measurement, dimensions=BuildingDimensions(60.0, 40.0))
        assert [(a.rule_name, a.severity) for a in alerts] == [("hip_to_width_ratio", "info")]

    @pytest.mark.parametrize("confidence,severity", [(0.6, "warning"), (0.4, "critical")])
    def test_low_confidence(self, clean_measurement, confidence, severity):
        (alert,) = analyze_deviations(with_values(clean_measurement, confidence_score=confidence))
        assert alert.rule_name == "confidence_threshold"
        assert alert.severity == severity

    def test_custom_rules(self, clean_measurement):
        rules = DeviationRules(min_confidence_score=0.95)
        (alert,) = analyze_deviations(clean_measurement, rules=rules)
        assert alert.rule_name == "confidence_threshold"

    def test_expected_counts(self):
        assert expected_feature_counts("rectangle", "hip")["hips"] == (4, 4)
        assert expected_feature_counts("rectangle", "gable")["hips"] == (0, 0)
        assert expected_feature_counts("unknown", "hip")["ridges"] == (1, 1)


class TestOrderingAndSummary:
    """Tests for alert order, ids and summaries."""

    def test_sorted_by_severity_with_sequential_ids(self, clean_measurement):
        measurement = with_values(clean_measurement, total_area_sqft=1080.0, confidence_score=0.4)
        alerts = analyze_deviations(measurement, Benchmark(expected_area_sqft=1000.0))
        assert [a.severity for a in alerts] == ["critical", "warning"]
        assert alerts[0].id == "alert_2_confidence_threshold"
        assert alerts[1].id == "alert_1_area_benchmark_comparison"

    def test_ids_restart_per_run(self, clean_measurement):
        measurement = with_values(clean_measurement, confidence_score=0.6)
        first = analyze_deviations(measurement)
        second = analyze_deviations(measurement)
        assert [a.id for a in first] == [a.id for a in second] == ["alert_1_confidence_threshold"]

    def test_empty_summary_passes(self):
        summary = summarize_deviations([])
        assert summary.passes_quality_check
        assert summary.total_alerts == 0
        assert "No deviations" in summary.summary

    def test_one_error_still_passes(self, clean_measurement):
        measurement = with_values(clean_measurement, hip_count=3)
        summary = summarize_deviations(analyze_deviations(measurement))
        assert summary.error_count == 1
        assert summary.passes_quality_check

    def test_critical_fails(self, clean_measurement):
        summary = summarize_deviations(analyze_deviations(with_values(clean_measurement, confidence_score=0.1)))
        assert summary.critical_count == 1
        assert not summary.passes_quality_check
        assert "Manual review required" in summary.summary


class TestFromResult:
    """Tests for building measurements from reconstructed roofs."""

    def test_rectangle_measurement(self, rectangle_result):
        measurement = measurement_from_result(rectangle_result)
        assert measurement.ridge_count == 1
        assert measurement.hip_count == 4
        assert measurement.valley_count == 0
        assert measurement.roof_style == "hip"
        assert measurement.building_shape == "rectangle"
        assert measurement.ridge_total_ft == pytest.approx(36.0, rel=0.01)
        assert measurement.pitch_degrees == pytest.approx(26.565, abs=0.01)
        assert measurement.total_area_sqft == pytest.approx(rectangle_result.total_true_area_sqft)

    def test_rectangle_has_no_critical_alerts(self, rectangle_result):
        alerts = analyze_deviations(measurement_from_result(rectangle_result))
        assert not [a for a in alerts if a.severity == "critical"]

    def test_dimensions(self, rectangle_result):
        dimensions = dimensions_from_result(rectangle_result)
        assert dimensions.width_ft == pytest.approx(30.0, rel=0.01)
        assert dimensions.length_ft == pytest.approx(60.0, rel=0.01)

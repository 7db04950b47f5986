"""
Tests for the geometric constraint solver.

Run with: pytest tests/test_constraints.py -v
"""

import math

import pytest

from roofgeo.core.config import Settings
from roofgeo.core.models import Facet, FacetSource, LineType, Point, SkeletonLine
from roofgeo.geometry.classifier import classify
from roofgeo.geometry.constraints import (
    ConstraintType,
    RoofGraph,
    constraint_score,
    default_constraints,
    find_violations,
    solve,
)
from roofgeo.geometry.primitives import edge_angle_deg
from roofgeo.geometry.skeleton import build_skeleton

from conftest import ring


PERIMETER = tuple(ring((0, 0), (40, 0), (40, 20), (0, 20)))


def line(line_id, line_type, start, end):
    return SkeletonLine.create(line_id, line_type, Point(*start), Point(*end))


def only(constraint_type):
    return [c for c in default_constraints() if c.constraint_type == constraint_type]


def make_facet(facet_id, pitch):
    return Facet(
        id=facet_id, index=0, polygon=PERIMETER, plan_area_sqft=800.0, true_area_sqft=800.0,
        pitch=pitch, azimuth_deg=180.0, direction="S", confidence=0.9,
        source=FacetSource.PERIMETER, color="#4CAF50",
    )


class TestDefaults:
    """Tests for the standard constraint set and scoring."""

    def test_five_constraints(self):
        constraints = default_constraints()
        assert {c.constraint_type for c in constraints} == set(ConstraintType)

    def test_tolerances_follow_settings(self):
        constraints = default_constraints(Settings(hip_angle_tolerance_deg=5.0))
        hip = next(c for c in constraints if c.constraint_type == ConstraintType.HIP_45)
        assert hip.tolerance == 5.0

    def test_score(self):
        assert constraint_score(0, 5, 5) == 100.0
        assert constraint_score(1, 2, 5) == pytest.approx(90.0)
        assert constraint_score(3, 0, 5) == 100.0
        assert constraint_score(50, 1, 1) == 0.0


class TestViolations:
    """Tests for violation detection."""

    def test_generated_rectangle_has_none(self, rectangle):
        classification = classify(rectangle)
        skeleton = build_skeleton(rectangle, classification.reflex_indices, classification.wings)
        graph = RoofGraph(skeleton.lines, tuple(rectangle))
        assert find_violations(graph, default_constraints()) == []

    def test_hip_far_from_45_is_error(self):
        graph = RoofGraph((
            line("ridge_0", LineType.RIDGE, (0, 0), (20, 0)),
            line("hip_0", LineType.HIP, (0, 0), (10, 2)),
        ), PERIMETER)
        (violation,) = find_violations(graph, only(ConstraintType.HIP_45))
        assert violation.feature_id == "hip_0"
        assert violation.severity == "error"
        assert violation.deviation == pytest.approx(45 - math.degrees(math.atan(0.2)))

    def test_small_hip_deviation_is_warning(self):
        graph = RoofGraph((
            line("ridge_0", LineType.RIDGE, (0, 0), (20, 0)),
            line("hip_0", LineType.HIP, (0, 0), (10, 6.5)),
        ), PERIMETER)
        (violation,) = find_violations(graph, only(ConstraintType.HIP_45))
        assert violation.severity == "warning"

    def test_hip_above_ridge(self):
        graph = RoofGraph((
            line("ridge_0", LineType.RIDGE, (2, 2), (38, 2)),
            line("hip_0", LineType.HIP, (0, 0), (20, 10)),
        ), PERIMETER, pitch="6/12")
        violations = find_violations(graph, only(ConstraintType.RIDGE_HIGHEST))
        assert [(v.feature_id, v.endpoint) for v in violations] == [("hip_0", "end")]

    def test_flat_roof_skips_height_check(self):
        graph = RoofGraph((
            line("ridge_0", LineType.RIDGE, (2, 2), (38, 2)),
            line("hip_0", LineType.HIP, (0, 0), (20, 10)),
        ), PERIMETER, pitch="flat")
        assert find_violations(graph, only(ConstraintType.RIDGE_HIGHEST)) == []

    def test_loose_endpoint(self):
        graph = RoofGraph((
            line("ridge_0", LineType.RIDGE, (8, 10), (32, 10)),
            line("hip_0", LineType.HIP, (0, 0), (8, 13)),
        ), PERIMETER)
        (violation,) = find_violations(graph, only(ConstraintType.ENDPOINT_CONNECTION))
        assert violation.endpoint == "end"

    def test_valley_may_end_on_ridge_interior(self):
        graph = RoofGraph((
            line("ridge_0", LineType.RIDGE, (8, 10), (32, 10)),
            line("valley_0", LineType.VALLEY, (20, 0), (20, 10)),
        ), PERIMETER + (Point(20, 0),))
        assert find_violations(graph, only(ConstraintType.ENDPOINT_CONNECTION)) == []

    def test_crossing(self):
        graph = RoofGraph((
            line("ridge_0", LineType.RIDGE, (0, 0), (10, 10)),
            line("ridge_1", LineType.RIDGE, (0, 10), (10, 0)),
        ), PERIMETER)
        (violation,) = find_violations(graph, only(ConstraintType.NO_CROSSING))
        assert violation.feature_id == "ridge_0_ridge_1"

    def test_pitch_consistency_is_informational(self):
        graph = RoofGraph((), PERIMETER, "6/12", (make_facet("F1", "6/12"), make_facet("F2", "10/12")))
        (violation,) = find_violations(graph, only(ConstraintType.PITCH_CONSISTENCY))
        assert violation.feature_id == "F2"
        assert violation.severity == "info"


class TestSolve:
    """Tests for the bounded correction loop."""

    def test_clean_geometry_is_untouched(self, rectangle):
        classification = classify(rectangle)
        skeleton = build_skeleton(rectangle, classification.reflex_indices, classification.wings)
        result = solve(RoofGraph(skeleton.lines, tuple(rectangle)))
        assert result.adjustments == []
        assert result.optimized == list(skeleton.lines)
        assert result.score == 100.0
        assert result.is_valid

    def test_hip_rotates_in_bounded_steps(self):
        hip = line("hip_0", LineType.HIP, (0, 0), (10, 2))
        graph = RoofGraph((line("ridge_0", LineType.RIDGE, (0, 0), (20, 0)), hip), PERIMETER)
        result = solve(graph, only(ConstraintType.HIP_45))

        assert result.violations_before
        assert result.violations_after == []
        assert len(result.adjustments) > 1
        # 2 deg at ~10.2 ft radius moves the end about 0.36 ft
        assert all(adj.delta_ft < 0.4 for adj in result.adjustments)

        rotated = result.optimized[1]
        assert rotated.start == hip.start
        assert rotated.length_ft == pytest.approx(hip.length_ft)
        assert abs(edge_angle_deg(rotated.start, rotated.end) - 45.0) <= 10.0

    def test_loose_endpoint_is_snapped(self):
        graph = RoofGraph((
            line("ridge_0", LineType.RIDGE, (8, 10), (32, 10)),
            line("hip_0", LineType.HIP, (0, 0), (8, 13)),
        ), PERIMETER)
        result = solve(graph, only(ConstraintType.ENDPOINT_CONNECTION))
        assert result.optimized[1].end == Point(8, 10)
        assert result.adjustments[0].delta_ft == pytest.approx(3.0)
        assert result.violations_after == []

    def test_unfixable_crossing_stops_early(self):
        graph = RoofGraph((
            line("ridge_0", LineType.RIDGE, (0, 0), (10, 10)),
            line("ridge_1", LineType.RIDGE, (0, 10), (10, 0)),
        ), PERIMETER)
        result = solve(graph, only(ConstraintType.NO_CROSSING))
        assert result.iterations == 1
        assert not result.is_valid
        assert result.optimized == result.original
        assert result.score == pytest.approx(50.0)

    def test_iteration_cap(self):
        graph = RoofGraph((
            line("ridge_0", LineType.RIDGE, (0, 0), (20, 0)),
            line("hip_0", LineType.HIP, (0, 0), (10, 0.5)),
        ), PERIMETER)
        result = solve(graph, only(ConstraintType.HIP_45), Settings(max_solver_iterations=3))
        assert result.iterations == 3
        assert len(result.adjustments) == 3
        assert result.violations_after

    def test_input_is_not_mutated(self):
        hip = line("hip_0", LineType.HIP, (0, 0), (10, 2))
        lines = (line("ridge_0", LineType.RIDGE, (0, 0), (20, 0)), hip)
        result = solve(RoofGraph(lines, PERIMETER), only(ConstraintType.HIP_45))
        assert result.original == list(lines)
        assert hip.end == Point(10, 2)

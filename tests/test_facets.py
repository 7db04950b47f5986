"""
Tests for facet assembly.

Run with: pytest tests/test_facets.py -v
"""

import math

import pytest
from shapely.geometry import Polygon

from roofgeo.core.config import Settings
from roofgeo.core.models import FacetSource, Point, QualityTier, SolarSegmentHint
from roofgeo.geometry.classifier import classify
from roofgeo.geometry.facets import (
    FACET_PALETTE,
    assemble,
    direction_label,
    facet_color,
    facet_confidence,
    predominant_pitch,
)
from roofgeo.geometry.primitives import polygon_area
from roofgeo.geometry.skeleton import build_skeleton

from conftest import ring

SIX_TWELVE_DEG = math.degrees(math.atan(0.5))


def skeleton_for(points):
    classification = classify(points)
    return build_skeleton(points, classification.reflex_indices, classification.wings)


@pytest.fixture
def centered_skeleton(centered_rectangle):
    return skeleton_for(centered_rectangle)


class TestHelpers:
    """Tests for palette, labels and confidence."""

    def test_palette_cycles(self):
        assert facet_color(0) == FACET_PALETTE[0]
        assert facet_color(len(FACET_PALETTE)) == facet_color(0)
        assert facet_color(11) == FACET_PALETTE[3]

    @pytest.mark.parametrize("azimuth,label", [
        (0, "N"), (22.4, "N"), (22.5, "NE"), (90, "E"), (135, "SE"),
        (180, "S"), (225, "SW"), (270, "W"), (315, "NW"), (359, "N"), (-45, "NW"),
    ])
    def test_direction_label(self, azimuth, label):
        assert direction_label(azimuth) == label

    def test_confidence_penalties(self):
        assert facet_confidence(True, True, 500) == pytest.approx(0.9)
        assert facet_confidence(False, True, 500) == pytest.approx(0.8)
        assert facet_confidence(True, False, 500) == pytest.approx(0.75)
        assert facet_confidence(False, False, 5) == pytest.approx(0.45)

    def test_predominant_pitch_is_area_weighted(self, centered_rectangle, centered_skeleton):
        facets = assemble(centered_rectangle, centered_skeleton, [], "6/12").facets
        assert predominant_pitch(facets) == "6/12"
        assert predominant_pitch(()) == "flat"


class TestPositionedHints:
    """Tests for center and bounding-box assembly."""

    def test_centers(self, centered_rectangle, centered_skeleton):
        hints = [
            SolarSegmentHint(pitch_degrees=SIX_TWELVE_DEG, azimuth_degrees=180, area_m2=80, center=(0.0, -7.5)),
            SolarSegmentHint(pitch_degrees=SIX_TWELVE_DEG, azimuth_degrees=0, area_m2=80, center=(0.0, 7.5)),
        ]
        assembly = assemble(centered_rectangle, centered_skeleton, hints, "6/12")
        assert assembly.method == FacetSource.SOLAR_CENTERS
        assert assembly.quality == QualityTier.EXCELLENT
        assert [f.id for f in assembly.facets] == ["F1", "F2"]
        assert [f.direction for f in assembly.facets] == ["S", "N"]
        for facet in assembly.facets:
            assert facet.pitch == "6/12"
            assert facet.plan_area_sqft > 0
            assert facet.reported_area_sqft == pytest.approx(80 * 10.7639)
            assert facet.confidence == pytest.approx(0.9)

    def test_centers_without_pitch_or_area_are_good(self, centered_rectangle, centered_skeleton):
        hints = [
            SolarSegmentHint(azimuth_degrees=180, center=(0.0, -7.5)),
            SolarSegmentHint(azimuth_degrees=0, center=(0.0, 7.5)),
        ]
        assembly = assemble(centered_rectangle, centered_skeleton, hints, "5/12")
        assert assembly.method == FacetSource.SOLAR_CENTERS
        assert assembly.quality == QualityTier.GOOD
        assert all(f.pitch == "5/12" for f in assembly.facets)

    def test_bounding_boxes(self, centered_rectangle, centered_skeleton):
        hints = [
            SolarSegmentHint(azimuth_degrees=180, bounding_box=((-20.0, -12.0), (20.0, -3.0))),
            SolarSegmentHint(azimuth_degrees=0, bounding_box=((-20.0, 3.0), (20.0, 12.0))),
        ]
        assembly = assemble(centered_rectangle, centered_skeleton, hints, "6/12")
        assert assembly.method == FacetSource.SOLAR_BOXES
        assert len(assembly.facets) == 2

    def test_single_center_falls_through(self, centered_rectangle, centered_skeleton):
        hints = [SolarSegmentHint(center=(0.0, -7.5))]
        assembly = assemble(centered_rectangle, centered_skeleton, hints, "6/12")
        assert assembly.method == FacetSource.SKELETON_SPLIT

    def test_one_usable_center_falls_back_to_azimuths(self, centered_rectangle, centered_skeleton):
        # The south ridge point lands on the south eave, leaving a zero-area facet
        hints = [
            SolarSegmentHint(azimuth_degrees=180, center=(0.0, -30.0)),
            SolarSegmentHint(azimuth_degrees=0, center=(0.0, 7.5)),
        ]
        assembly = assemble(
            centered_rectangle, centered_skeleton, hints, "6/12", settings=Settings(ridge_point_factor=0.5),
        )
        assert assembly.method == FacetSource.AZIMUTH_CLUSTERS
        assert {f.direction for f in assembly.facets} == {"N", "S"}
        assert any("solar_centers" in w for w in assembly.warnings)

    def test_west_facing_facet_is_simple(self):
        notched = ring((0, 0), (40, 0), (40, 30), (0, 30), (0, 20), (5, 20), (5, 10), (0, 10))
        hints = [
            SolarSegmentHint(azimuth_degrees=270, center=(5.0, 15.0)),
            SolarSegmentHint(azimuth_degrees=90, center=(30.0, 15.0)),
        ]
        assembly = assemble(notched, None, hints, "6/12")
        assert assembly.method == FacetSource.SOLAR_CENTERS
        west = next(f for f in assembly.facets if f.direction == "W")
        assert len(west.polygon) == 7
        shape = Polygon([p.as_tuple() for p in west.polygon])
        assert shape.is_valid
        assert west.plan_area_sqft == pytest.approx(shape.area)
        assert west.polygon[0] == Point(0.0, 30.0)
        assert west.polygon[-2] == Point(0.0, 0.0)


class TestAzimuthClusters:
    """Tests for azimuth-only hints."""

    def test_two_buckets(self, centered_rectangle, centered_skeleton):
        hints = [
            SolarSegmentHint(azimuth_degrees=180, pitch_degrees=SIX_TWELVE_DEG),
            SolarSegmentHint(azimuth_degrees=175, pitch_degrees=SIX_TWELVE_DEG),
            SolarSegmentHint(azimuth_degrees=0),
        ]
        assembly = assemble(centered_rectangle, centered_skeleton, hints, "6/12")
        assert assembly.method == FacetSource.AZIMUTH_CLUSTERS
        assert assembly.quality == QualityTier.GOOD
        assert {f.direction for f in assembly.facets} == {"N", "S"}
        for facet in assembly.facets:
            assert facet.plan_area_sqft == pytest.approx(450.0)

    def test_single_hint_falls_back_to_split(self, centered_rectangle, centered_skeleton):
        hints = [SolarSegmentHint(azimuth_degrees=90)]
        assembly = assemble(centered_rectangle, centered_skeleton, hints, "6/12")
        assert assembly.method == FacetSource.SKELETON_SPLIT
        assert assembly.quality == QualityTier.FAIR
        assert sum(f.plan_area_sqft for f in assembly.facets) == pytest.approx(polygon_area(centered_rectangle))

    def test_one_bucket_falls_back_to_split(self, centered_rectangle, centered_skeleton):
        hints = [SolarSegmentHint(azimuth_degrees=90), SolarSegmentHint(azimuth_degrees=95)]
        assembly = assemble(centered_rectangle, centered_skeleton, hints, "6/12")
        assert assembly.method == FacetSource.SKELETON_SPLIT
        assert len(assembly.facets) == 2

    def test_single_hint_on_l_shape_is_perimeter(self, l_shape):
        hints = [SolarSegmentHint(azimuth_degrees=180)]
        assembly = assemble(l_shape, skeleton_for(l_shape), hints, "6/12")
        assert assembly.method == FacetSource.PERIMETER
        assert assembly.quality == QualityTier.SIMPLIFIED
        assert assembly.facets[0].plan_area_sqft == pytest.approx(1200.0)

    def test_without_skeleton_apex_is_centroid(self, centered_rectangle):
        hints = [SolarSegmentHint(azimuth_degrees=180), SolarSegmentHint(azimuth_degrees=0)]
        assembly = assemble(centered_rectangle, None, hints, "6/12")
        assert assembly.method == FacetSource.AZIMUTH_CLUSTERS
        assert all(f.plan_area_sqft == pytest.approx(450.0) for f in assembly.facets)


class TestSkeletonSplit:
    """Tests for the ridge-line split of plain rectangles."""

    def test_two_facets_sum_to_footprint(self, centered_rectangle, centered_skeleton):
        assembly = assemble(centered_rectangle, centered_skeleton, [], "6/12")
        assert assembly.method == FacetSource.SKELETON_SPLIT
        assert assembly.quality == QualityTier.FAIR
        assert len(assembly.facets) == 2
        total = sum(f.plan_area_sqft for f in assembly.facets)
        assert total == pytest.approx(polygon_area(centered_rectangle))

    def test_facets_face_away_from_the_ridge(self, centered_rectangle, centered_skeleton):
        assembly = assemble(centered_rectangle, centered_skeleton, [], "6/12")
        assert {f.direction for f in assembly.facets} == {"N", "S"}
        south = next(f for f in assembly.facets if f.direction == "S")
        assert south.azimuth_deg == pytest.approx(180.0)

    def test_true_area_uses_slope_factor(self, centered_rectangle, centered_skeleton):
        assembly = assemble(centered_rectangle, centered_skeleton, [], "6/12")
        for facet in assembly.facets:
            assert facet.true_area_sqft == pytest.approx(facet.plan_area_sqft * math.sqrt(1.25))

    def test_pitch_only_hints_use_split(self, centered_rectangle, centered_skeleton):
        hints = [SolarSegmentHint(pitch_degrees=20), SolarSegmentHint(pitch_degrees=22)]
        assembly = assemble(centered_rectangle, centered_skeleton, hints, "6/12")
        assert assembly.method == FacetSource.SKELETON_SPLIT


class TestPerimeterFallback:
    """Tests for the last-resort single facet."""

    def test_l_shape_falls_back_to_perimeter(self, l_shape):
        assembly = assemble(l_shape, skeleton_for(l_shape), [], "6/12")
        assert assembly.method == FacetSource.PERIMETER
        assert assembly.quality == QualityTier.SIMPLIFIED
        assert len(assembly.facets) == 1
        assert assembly.facets[0].plan_area_sqft == pytest.approx(1200.0)
        assert assembly.warnings

    def test_no_skeleton(self, l_shape):
        assembly = assemble(l_shape, None, None, "flat")
        assert assembly.method == FacetSource.PERIMETER
        facet = assembly.facets[0]
        assert facet.true_area_sqft == facet.plan_area_sqft
        assert facet.color == FACET_PALETTE[0]

"""
Tests for utility modules: logging, validation, settings and core models.

Run with: pytest tests/test_utils.py -v
"""

import io
import logging
import math

import pytest
from pydantic import ValidationError as PydanticValidationError

from roofgeo.core.config import Settings, resolve_settings, settings
from roofgeo.core.models import DirectionGroups, QualityTier, SolarSegmentHint
from roofgeo.utils import (
    RoofgeoFormatter,
    ValidationError,
    setup_logging,
    validate_coordinates,
    validate_footprint,
)


class TestLogging:
    """Tests for logging configuration."""

    def test_setup_installs_one_handler(self):
        """Repeated setup replaces its own handler only."""
        root = logging.getLogger()
        others = [h for h in root.handlers if not getattr(h, "_roofgeo", False)]
        first = setup_logging("INFO")
        second = setup_logging("DEBUG")
        try:
            assert first not in root.handlers
            assert second in root.handlers
            assert root.handlers == others + [second]
            assert second.level == logging.DEBUG
        finally:
            root.removeHandler(second)

    def test_records_reach_the_stream_with_context(self):
        stream = io.StringIO()
        handler = setup_logging("DEBUG", stream=stream)
        try:
            logging.getLogger("roofgeo.test").info("Skeleton built", extra={"stage": "skeleton"})
            handler.flush()
        finally:
            logging.getLogger().removeHandler(handler)
        output = stream.getvalue()
        assert "Skeleton built" in output
        assert "stage=skeleton" in output
        # StringIO is not a TTY
        assert "\033[" not in output

    def test_formatter_appends_context(self):
        """Context extras appear in formatted console records."""
        record = logging.LogRecord("roofgeo.test", logging.INFO, __file__, 1, "Skeleton built", None, None)
        record.footprint_id = "lot-17"
        record.shape = "l_shape"
        formatted = RoofgeoFormatter(use_colors=False).format(record)
        assert "Skeleton built" in formatted
        assert "footprint_id=lot-17" in formatted
        assert "shape=l_shape" in formatted

    def test_formatter_colors(self):
        record = logging.LogRecord("roofgeo.test", logging.WARNING, __file__, 1, "Degenerate", None, None)
        formatted = RoofgeoFormatter(use_colors=True).format(record)
        assert formatted.startswith(RoofgeoFormatter.COLORS["WARNING"])
        assert formatted.endswith(RoofgeoFormatter.RESET)


class TestCoordinateValidation:
    """Tests for coordinate validation."""

    def test_valid_coordinates(self):
        assert validate_coordinates(-96.8, 32.78) == (-96.8, 32.78)

    def test_string_numbers_are_accepted(self):
        assert validate_coordinates("-96.8", "32.78") == (-96.8, 32.78)

    def test_invalid_latitude_range(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_coordinates(-96.8, 95.0)
        assert exc_info.value.field == "latitude"

    def test_invalid_longitude_range(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_coordinates(-200.0, 32.78)
        assert exc_info.value.field == "longitude"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "abc", None, True])
    def test_non_numeric_values(self, value):
        with pytest.raises(ValidationError):
            validate_coordinates(value, 32.78)

    def test_validation_error_is_value_error(self):
        assert issubclass(ValidationError, ValueError)


class TestFootprintValidation:
    """Tests for footprint ring validation."""

    def test_valid_footprint(self):
        ring = validate_footprint([(-96.8, 32.78), (-96.7999, 32.78), (-96.7999, 32.7801)])
        assert len(ring) == 3
        assert all(isinstance(v, float) for pair in ring for v in pair)

    def test_short_footprint_is_not_an_error(self):
        """Degenerate rings are reported by the engine, not rejected here."""
        assert validate_footprint([(-96.8, 32.78)]) == [(-96.8, 32.78)]

    def test_none_footprint(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_footprint(None)
        assert exc_info.value.suggestions

    def test_wrong_pair_length(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_footprint([(-96.8, 32.78, 10.0)])
        assert exc_info.value.field == "footprint[0]"

    def test_non_pair_vertex(self):
        with pytest.raises(ValidationError):
            validate_footprint([(-96.8, 32.78), 5])


class TestSettings:
    """Tests for engine settings."""

    def test_defaults(self):
        cfg = Settings()
        assert cfg.simplify_tolerance_ft == pytest.approx(0.984)
        assert cfg.angle_tolerance_deg == 12.0
        assert cfg.max_reflex_vertices == 4
        assert cfg.ridge_inset_fraction == 0.4
        assert cfg.connection_tolerance_ft == 2.0
        assert cfg.max_solver_iterations == 100

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("ROOFGEO_MAX_REFLEX_VERTICES", "6")
        assert Settings().max_reflex_vertices == 6

    def test_settings_are_frozen(self):
        cfg = Settings()
        with pytest.raises(PydanticValidationError):
            cfg.max_reflex_vertices = 10

    def test_model_copy_override(self):
        cfg = settings.model_copy(update={"soffit_offset_ft": 1.5})
        assert cfg.soffit_offset_ft == 1.5
        assert settings.soffit_offset_ft == 0.0

    def test_resolve_settings(self):
        cfg = Settings(max_hip_ridge_ratio=2.0)
        assert resolve_settings(cfg) is cfg
        assert resolve_settings(None) is settings

    def test_out_of_range_setting_rejected(self):
        with pytest.raises(PydanticValidationError):
            Settings(ridge_inset_fraction=0.7)


class TestModels:
    """Tests for core model helpers."""

    def test_quality_degrade(self):
        assert QualityTier.EXCELLENT.degrade() == QualityTier.GOOD
        assert QualityTier.FAIR.degrade(2) == QualityTier.POOR
        assert QualityTier.POOR.degrade() == QualityTier.POOR

    def test_quality_worst(self):
        assert QualityTier.worst(QualityTier.GOOD, QualityTier.SIMPLIFIED) == QualityTier.SIMPLIFIED
        assert QualityTier.worst(QualityTier.EXCELLENT) == QualityTier.EXCELLENT

    @pytest.mark.parametrize("azimuth,bucket", [
        (0, "N"), (350, "N"), (44.9, "N"), (45, "E"), (134.9, "E"),
        (135, "S"), (224.9, "S"), (225, "W"), (315, "N"), (-90, "W"),
    ])
    def test_direction_buckets(self, azimuth, bucket):
        assert DirectionGroups.bucket_for(azimuth) == bucket

    def test_direction_groups_from_hints(self):
        hints = [
            SolarSegmentHint(azimuth_degrees=180),
            SolarSegmentHint(azimuth_degrees=170),
            SolarSegmentHint(azimuth_degrees=5),
            SolarSegmentHint(pitch_degrees=20),
        ]
        groups = DirectionGroups.from_hints(hints)
        assert len(groups.south) == 2
        assert len(groups.north) == 1
        assert groups.east == () and groups.west == ()
        assert groups.occupied == 2
        assert [label for label, _, _ in groups.items()] == ["N", "E", "S", "W"]

    def test_hint_azimuth_normalized(self):
        assert SolarSegmentHint(azimuth_degrees=370).azimuth_degrees == pytest.approx(10.0)

    def test_hint_rejects_vertical_pitch(self):
        with pytest.raises(PydanticValidationError):
            SolarSegmentHint(pitch_degrees=95)

    def test_hint_box_center(self):
        hint = SolarSegmentHint(bounding_box=((-96.8, 32.78), (-96.7998, 32.7802)))
        center = hint.box_center
        assert math.isclose(center.x, -96.7999)
        assert math.isclose(center.y, 32.7801)

"""
Roof pitch helpers.

Pitch is expressed as rise over a 12-unit run ("6/12") or "flat".
"""

from __future__ import annotations

import math

from ..utils.validation import FLAT_PITCH, validate_pitch

# Pitch angles below this are reported as flat
FLAT_THRESHOLD_DEG = 2.0


def parse_pitch(pitch: str) -> tuple[float, float]:
    """Return (rise, run) for a pitch string. Raises ValidationError."""
    return validate_pitch(pitch)


def calculate_slope_factor(pitch: str) -> float:
    """
    Multiplier from plan area to true (sloped) surface area.

    Args:
        pitch: "rise/run" string or "flat"

    Returns:
        sqrt(1 + (rise/run)^2); exactly 1.0 for flat roofs
    """
    rise, run = parse_pitch(pitch)
    if rise == 0:
        return 1.0
    return math.sqrt(1 + (rise / run) ** 2)


def pitch_rise(pitch: str) -> float:
    """Rise per 12 units of run."""
    rise, run = parse_pitch(pitch)
    return rise * 12.0 / run


def degrees_to_pitch(degrees: float) -> str:
    """Convert a slope angle to the nearest whole rise/12 pitch string."""
    if degrees < FLAT_THRESHOLD_DEG:
        return FLAT_PITCH
    rise = round(math.tan(math.radians(degrees)) * 12)
    if rise <= 0:
        return FLAT_PITCH
    return f"{rise}/12"


def pitch_to_degrees(pitch: str) -> float:
    rise, run = parse_pitch(pitch)
    return math.degrees(math.atan2(rise, run))

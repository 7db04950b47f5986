"""
Input validation utilities for roofgeo.

Validates the structural shape of caller input (coordinate pairs, pitch
strings) before any geometry runs. Geometric degeneracy (too few vertices,
zero area, collinear rings) is NOT an input error: the engine degrades to a
low quality tier instead of raising.

Usage:
    from roofgeo.utils.validation import (
        validate_footprint,
        validate_pitch,
        ValidationError,
    )

    ring = validate_footprint([(-97.1, 32.7), (-97.0999, 32.7), (-97.0999, 32.7001)])
    rise, run = validate_pitch("6/12")
"""

import logging
import math
import re
from typing import Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str = "", suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field = field
        self.suggestions = suggestions or []


# "6/12", "6 / 12", "4.5/12"
PITCH_PATTERN = re.compile(r"^\s*(?P<rise>\d+(?:\.\d+)?)\s*/\s*(?P<run>\d+(?:\.\d+)?)\s*$")

FLAT_PITCH = "flat"

# Beyond this latitude the degrees-to-feet linearization is no longer
# accurate at building scale
LINEARIZATION_LAT_LIMIT = 80.0


def _as_float(value, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"Expected a number for {field}, got {value!r}", field=field)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Expected a number for {field}, got {value!r}",
            field=field,
        ) from None
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be finite, got {value!r}", field=field)
    return number


def validate_coordinates(longitude: float, latitude: float) -> Tuple[float, float]:
    """
    Validate a single geographic coordinate.

    Args:
        longitude: Longitude in decimal degrees
        latitude: Latitude in decimal degrees

    Returns:
        Tuple of (longitude, latitude) as floats

    Raises:
        ValidationError: If either value is non-numeric, non-finite or out of range
    """
    lng = _as_float(longitude, "longitude")
    lat = _as_float(latitude, "latitude")

    if not (-90 <= lat <= 90):
        raise ValidationError(
            f"Invalid latitude {lat}: must be between -90 and 90",
            field="latitude",
            suggestions=["Coordinates are (longitude, latitude); check the pair order"],
        )

    if not (-180 <= lng <= 180):
        raise ValidationError(
            f"Invalid longitude {lng}: must be between -180 and 180",
            field="longitude",
        )

    return lng, lat


def validate_footprint(coords: Iterable[Sequence[float]]) -> List[Tuple[float, float]]:
    """
    Validate a footprint ring of (longitude, latitude) pairs.

    The ring may be open or closed; no closing vertex is added or removed
    here. Short rings are returned as-is so the caller can report them as
    degenerate.

    Args:
        coords: Iterable of (lng, lat) pairs

    Returns:
        List of (lng, lat) float tuples

    Raises:
        ValidationError: If the input is not a sequence of numeric pairs
    """
    if coords is None:
        raise ValidationError(
            "Footprint cannot be None",
            field="footprint",
            suggestions=["Pass a list of (longitude, latitude) pairs"],
        )

    ring: List[Tuple[float, float]] = []
    for i, pair in enumerate(coords):
        try:
            size = len(pair)
        except TypeError:
            raise ValidationError(
                f"Footprint vertex {i} is not a coordinate pair: {pair!r}",
                field=f"footprint[{i}]",
            ) from None
        if size != 2:
            raise ValidationError(
                f"Footprint vertex {i} has {size} values, expected 2 (lng, lat)",
                field=f"footprint[{i}]",
            )
        ring.append(validate_coordinates(pair[0], pair[1]))

    if ring:
        max_lat = max(abs(lat) for _, lat in ring)
        if max_lat > LINEARIZATION_LAT_LIMIT:
            logger.warning(
                f"Footprint latitude {max_lat:.2f} is beyond {LINEARIZATION_LAT_LIMIT} - "
                "local feet conversion may be inaccurate"
            )

    return ring


def validate_pitch(pitch: str) -> Tuple[float, float]:
    """
    Parse a pitch string in "rise/run" or "flat" notation.

    Args:
        pitch: Pitch string such as "6/12" or "flat"

    Returns:
        (rise, run) tuple; "flat" gives (0.0, 12.0)

    Raises:
        ValidationError: If the string is not a recognised pitch
    """
    if not isinstance(pitch, str):
        raise ValidationError(f"Pitch must be a string, got {pitch!r}", field="pitch")

    if pitch.strip().lower() == FLAT_PITCH:
        return 0.0, 12.0

    match = PITCH_PATTERN.match(pitch)
    if not match:
        raise ValidationError(
            f"Unrecognised pitch {pitch!r}",
            field="pitch",
            suggestions=["Use rise/12 notation such as '6/12'", "Use 'flat' for flat roofs"],
        )

    rise = float(match.group("rise"))
    run = float(match.group("run"))
    if run == 0:
        raise ValidationError(f"Pitch run cannot be zero: {pitch!r}", field="pitch")

    return rise, run

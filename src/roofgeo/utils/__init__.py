"""Utility modules."""

from .logging_config import (
    setup_logging,
    RoofgeoFormatter,
)
from .validation import (
    validate_coordinates,
    validate_footprint,
    validate_pitch,
    ValidationError,
)

__all__ = [
    # Logging
    "setup_logging",
    "RoofgeoFormatter",
    # Validation
    "validate_coordinates",
    "validate_footprint",
    "validate_pitch",
    "ValidationError",
]

"""
Pytest configuration and fixtures for roofgeo tests.

Provides reusable test fixtures for:
- Footprint rings in local feet (rectangle, L, T, U, staircases)
- The same footprints as (lng, lat) pairs
- Reconstructed roof results
"""

import math
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from roofgeo.core.models import FEET_PER_DEGREE, Point


# Reference location for geographic fixtures (Dallas, TX)
ORIGIN_LNG = -96.8
ORIGIN_LAT = 32.78


def ring(*coords):
    """Ring of local Points from (x, y) pairs."""
    return [Point(float(x), float(y)) for x, y in coords]


def to_geo(points, origin_lng=ORIGIN_LNG, origin_lat=ORIGIN_LAT):
    """Local-feet points to (lng, lat) pairs around the reference origin."""
    feet_per_lng = FEET_PER_DEGREE * math.cos(math.radians(origin_lat))
    return [(origin_lng + p.x / feet_per_lng, origin_lat + p.y / FEET_PER_DEGREE) for p in points]


def staircase(steps, step=10.0):
    """Rectilinear staircase footprint with ``steps - 1`` reflex corners."""
    points = [Point(0.0, 0.0), Point(steps * step, 0.0)]
    for k in range(1, steps):
        points.append(Point((steps - k + 1) * step, k * step))
        points.append(Point((steps - k) * step, k * step))
    points.append(Point(step, steps * step))
    points.append(Point(0.0, steps * step))
    return points


# =============================================================================
# LOCAL FOOTPRINT FIXTURES
# =============================================================================

@pytest.fixture
def rectangle():
    """60 x 30 ft rectangle, counter-clockwise from the origin."""
    return ring((0, 0), (60, 0), (60, 30), (0, 30))


@pytest.fixture
def centered_rectangle():
    """60 x 30 ft rectangle centred on the origin."""
    return ring((-30, -15), (30, -15), (30, 15), (-30, 15))


@pytest.fixture
def l_shape():
    """40 x 40 ft L with a 20 x 20 notch; reflex corner at index 3."""
    return ring((0, 0), (40, 0), (40, 20), (20, 20), (20, 40), (0, 40))


@pytest.fixture
def u_shape():
    """60 x 40 ft U with the notch opening north."""
    return ring((0, 0), (60, 0), (60, 40), (40, 40), (40, 15), (20, 15), (20, 40), (0, 40))


@pytest.fixture
def t_shape():
    """T with a 20 ft wide, 60 ft long stem under a 60 x 20 ft bar."""
    return ring((20, 0), (40, 0), (40, 60), (60, 60), (60, 80), (0, 80), (0, 60), (20, 60))


@pytest.fixture
def complex_shape():
    """Four-step staircase: 10 vertices, 3 reflex corners."""
    return staircase(4)


@pytest.fixture
def very_concave_shape():
    """Six-step staircase: 5 reflex corners."""
    return staircase(6)


# =============================================================================
# GEOGRAPHIC FOOTPRINT FIXTURES
# =============================================================================

@pytest.fixture
def rectangle_geo(rectangle):
    """60 x 30 ft rectangle as (lng, lat) pairs."""
    return to_geo(rectangle)


@pytest.fixture
def l_shape_geo(l_shape):
    return to_geo(l_shape)


@pytest.fixture
def complex_geo(complex_shape):
    return to_geo(complex_shape)


@pytest.fixture
def very_concave_geo(very_concave_shape):
    return to_geo(very_concave_shape)


# =============================================================================
# RESULT FIXTURES
# =============================================================================

@pytest.fixture
def rectangle_result(rectangle_geo):
    """Reconstructed hip roof for the 60 x 30 ft rectangle."""
    from roofgeo.analysis.roof_engine import reconstruct_roof
    return reconstruct_roof(rectangle_geo, predominant_pitch="6/12", footprint_id="test-rect")


@pytest.fixture
def l_shape_result(l_shape_geo):
    from roofgeo.analysis.roof_engine import reconstruct_roof
    return reconstruct_roof(l_shape_geo, predominant_pitch="6/12", footprint_id="test-l")

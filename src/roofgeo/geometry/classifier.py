"""
Shape Classifier - reflex detection, footprint shape and wing decomposition.

Shapes are inferred from (vertex count, reflex count):

    4 / 0  -> rectangle
    6 / 1  -> L-shape
    8 / 2  -> T- or U-shape (reflex corners on the same half of the
              bounding box along its minor axis -> U, opposite halves -> T)
    other  -> complex

Wings are the rectangular-ish arcs of the ring between reflex corners; each
gets its own ridge. The heuristics are validated only up to moderate
concavity, so rings with more than ``max_reflex_vertices`` reflex corners
are flagged perimeter-only.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..core.config import Settings, resolve_settings
from ..core.models import Axis, Point, ShapeClassification, ShapeKind, Wing
from .primitives import bounds, ensure_ccw, turn_cross

logger = logging.getLogger(__name__)


def find_reflex_vertices(ring: Sequence[Point]) -> tuple[int, ...]:
    """
    Indices of concave vertices of a counter-clockwise ring.

    A vertex is reflex when (prev->curr) x (curr->next) is negative.
    """
    n = len(ring)
    if n < 4:
        return ()
    return tuple(
        i for i in range(n)
        if turn_cross(ring[i - 1], ring[i], ring[(i + 1) % n]) < 0
    )


def detect_shape(ring: Sequence[Point], reflex_indices: Sequence[int]) -> ShapeKind:
    """Classify a CCW ring from its vertex and reflex counts."""
    n = len(ring)
    r = len(reflex_indices)

    if n == 4 and r == 0:
        return ShapeKind.RECTANGLE
    if n == 6 and r == 1:
        return ShapeKind.L_SHAPE
    if n == 8 and r == 2:
        return _t_or_u(ring, reflex_indices)
    return ShapeKind.COMPLEX


def _t_or_u(ring: Sequence[Point], reflex_indices: Sequence[int]) -> ShapeKind:
    box = bounds(ring)
    center = box.center
    # Minor axis: the shorter bbox dimension
    if box.width >= box.height:
        offsets = [ring[i].y - center.y for i in reflex_indices]
    else:
        offsets = [ring[i].x - center.x for i in reflex_indices]

    # Limitation: a bar-and-stem T has both reflex corners where the stem
    # meets the bar, so they share a half and the T reads as U. The label is
    # descriptive only; wings come from the reflex indices.
    same_half = (offsets[0] > 0) == (offsets[1] > 0)
    return ShapeKind.U_SHAPE if same_half else ShapeKind.T_SHAPE


def build_wing(
    index: int,
    vertex_indices: Sequence[int],
    ring: Sequence[Point],
    inset_fraction: float = 0.4,
) -> Optional[Wing]:
    """
    Create a wing from ring vertex indices.

    The ridge runs along the bounding-box center line of the dominant axis,
    inset from each short side by ``inset_fraction`` of the short side.
    """
    if len(vertex_indices) < 3:
        return None

    vertices = tuple(ring[i] for i in vertex_indices)
    box = bounds(vertices)
    if box.width == 0 or box.height == 0:
        return None

    center = box.center
    if box.width >= box.height:
        axis = Axis.HORIZONTAL
        inset = min(box.height * inset_fraction, box.width / 2)
        ridge_start = Point(box.min_x + inset, center.y)
        ridge_end = Point(box.max_x - inset, center.y)
    else:
        axis = Axis.VERTICAL
        inset = min(box.width * inset_fraction, box.height / 2)
        ridge_start = Point(center.x, box.min_y + inset)
        ridge_end = Point(center.x, box.max_y - inset)

    return Wing(
        index=index,
        vertex_indices=tuple(vertex_indices),
        vertices=vertices,
        bbox=box,
        axis=axis,
        ridge_start=ridge_start,
        ridge_end=ridge_end,
    )


def _arc(start: int, end: int, n: int) -> list[int]:
    """Ring indices from start to end inclusive, walking forward."""
    indices = [start]
    i = start
    while i != end:
        i = (i + 1) % n
        indices.append(i)
    return indices


def decompose_wings(
    ring: Sequence[Point],
    reflex_indices: Sequence[int],
    inset_fraction: float = 0.4,
) -> tuple[Wing, ...]:
    """
    Split a ring into wings at its reflex vertices.

    0 reflex: one wing. 1 reflex: two arcs split at the reflex vertex and the
    vertex n//2 away. 2+ reflex: one arc per pair of cyclically adjacent
    reflex vertices. Arcs with fewer than 3 vertices are discarded.
    """
    n = len(ring)
    reflex = sorted(reflex_indices)
    arcs: list[list[int]] = []

    if not reflex:
        arcs.append(list(range(n)))
    elif len(reflex) == 1:
        r = reflex[0]
        opposite = (r + n // 2) % n
        arcs.append(_arc(r, opposite, n))
        arcs.append(_arc(opposite, r, n))
    else:
        for k, start in enumerate(reflex):
            arcs.append(_arc(start, reflex[(k + 1) % len(reflex)], n))

    wings: list[Wing] = []
    for arc in arcs:
        if len(arc) < 3:
            logger.debug(f"Discarding wing arc with {len(arc)} vertices")
            continue
        wing = build_wing(len(wings), arc, ring, inset_fraction)
        if wing is not None:
            wings.append(wing)
    return tuple(wings)


def classify(ring: Sequence[Point], settings: Optional[Settings] = None) -> ShapeClassification:
    """
    Classify a footprint and decompose it into wings.

    Args:
        ring: Open ring in local feet (re-oriented counter-clockwise here)
        settings: Optional settings override

    Returns:
        ShapeClassification; ``perimeter_only`` is set when the ring is too
        concave for the wing heuristics.
    """
    cfg = resolve_settings(settings)
    ccw = ensure_ccw(ring)
    reflex = find_reflex_vertices(ccw)
    kind = detect_shape(ccw, reflex)

    if len(reflex) > cfg.max_reflex_vertices:
        logger.info(
            f"{len(reflex)} reflex vertices exceed limit {cfg.max_reflex_vertices}; perimeter only",
            extra={"shape": kind.value},
        )
        return ShapeClassification(kind=kind, reflex_indices=reflex, wings=(), perimeter_only=True)

    wings = decompose_wings(ccw, reflex, cfg.ridge_inset_fraction)
    return ShapeClassification(kind=kind, reflex_indices=reflex, wings=wings)

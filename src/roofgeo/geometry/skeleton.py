"""
Skeleton Builder - ridges, hips and valleys for a classified footprint.

One ridge per wing, inset from the wing's short sides. Every convex corner
gets a hip to the nearer endpoint of its OWN wing's ridge (never another
wing's, which is what produces "starburst" diagrams on multi-wing
buildings). Every reflex corner gets a valley, found in priority order:

1. the interior bisector ray hits a ridge
2. the nearest ridge junction
3. the nearest ridge endpoint of any wing

Afterwards every hip/valley endpoint is re-pointed at the exact coordinate
held in a registry of named vertices (``ridge_{i}_start``, ``junction_{k}``,
``valley_ridge_{idx}_{wing}``...), so connected lines share bit-identical
coordinates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from ..core.config import Settings, resolve_settings
from ..core.models import LineType, Point, SkeletonLine, Wing
from .classifier import build_wing
from .primitives import distance, interior_bisector, midpoint, ray_segment_intersection

logger = logging.getLogger(__name__)

# Candidate lines shorter than this are degenerate
ZERO_LENGTH_FT = 1e-6


@dataclass(frozen=True)
class SkeletonResult:
    """Skeleton lines plus the vertex registry they were snapped to."""
    lines: tuple[SkeletonLine, ...]
    registry: dict[str, Point] = field(default_factory=dict)
    junctions: tuple[Point, ...] = ()
    wings: tuple[Wing, ...] = ()
    warnings: tuple[str, ...] = ()

    def of_type(self, line_type: LineType) -> tuple[SkeletonLine, ...]:
        return tuple(line for line in self.lines if line.line_type == line_type)

    @property
    def ridges(self) -> tuple[SkeletonLine, ...]:
        return self.of_type(LineType.RIDGE)

    @property
    def hips(self) -> tuple[SkeletonLine, ...]:
        return self.of_type(LineType.HIP)

    @property
    def valleys(self) -> tuple[SkeletonLine, ...]:
        return self.of_type(LineType.VALLEY)


def _ridge_vertex_ids(wing_index: int) -> tuple[str, str]:
    return f"ridge_{wing_index}_start", f"ridge_{wing_index}_end"


def find_ridge_junctions(
    wings: Sequence[Wing],
    epsilon: float,
) -> list[tuple[str, str, Point]]:
    """
    Junctions between cyclically adjacent wings.

    Returns (vertex_id_a, vertex_id_b, midpoint) for each adjacent pair
    whose nearest ridge endpoints are closer than ``epsilon``.
    """
    junctions: list[tuple[str, str, Point]] = []
    if len(wings) < 2:
        return junctions

    pairs = [(i, (i + 1) % len(wings)) for i in range(len(wings))]
    if len(wings) == 2:
        pairs = pairs[:1]

    for a, b in pairs:
        wa, wb = wings[a], wings[b]
        ids_a, ids_b = _ridge_vertex_ids(wa.index), _ridge_vertex_ids(wb.index)
        candidates = [
            (distance(pa, pb), ida, idb, pa, pb)
            for ida, pa in zip(ids_a, (wa.ridge_start, wa.ridge_end))
            for idb, pb in zip(ids_b, (wb.ridge_start, wb.ridge_end))
        ]
        d, ida, idb, pa, pb = min(candidates, key=lambda c: c[0])
        if d < epsilon:
            junctions.append((ida, idb, midpoint(pa, pb)))
    return junctions


def _assign_wing(vertex_index: int, vertex: Point, wings: Sequence[Wing]) -> Wing:
    for wing in wings:
        if vertex_index in wing.vertex_indices:
            return wing
    return min(wings, key=lambda w: distance(vertex, w.bbox.center))


def _nearest_registry_vertex(point: Point, registry: dict[str, Point]) -> Optional[tuple[str, Point]]:
    if not registry:
        return None
    vertex_id = min(registry, key=lambda k: distance(point, registry[k]))
    return vertex_id, registry[vertex_id]


def enforce_shared_vertices(
    lines: Sequence[SkeletonLine],
    registry: dict[str, Point],
) -> list[SkeletonLine]:
    """
    Re-point every hip/valley end at its registry vertex.

    Lines bound to an unknown vertex id are snapped to the nearest
    registered vertex and re-bound to it.
    """
    snapped: list[SkeletonLine] = []
    for line in lines:
        if line.line_type not in (LineType.HIP, LineType.VALLEY):
            snapped.append(line)
            continue

        if line.end_vertex_id in registry:
            target_id, target = line.end_vertex_id, registry[line.end_vertex_id]
        else:
            nearest = _nearest_registry_vertex(line.end, registry)
            if nearest is None:
                snapped.append(line)
                continue
            target_id, target = nearest

        if line.end is not target or line.end_vertex_id != target_id:
            line = replace(line.with_endpoints(end=target), end_vertex_id=target_id)
        snapped.append(line)
    return snapped


def _link_connections(lines: Sequence[SkeletonLine]) -> list[SkeletonLine]:
    """Fill ``connected_to`` from exactly shared endpoints."""
    by_point: dict[Point, set[str]] = {}
    for line in lines:
        for p in line.endpoints:
            by_point.setdefault(p, set()).add(line.id)

    ridge_ids = {line.wing_index: line.id for line in lines if line.line_type == LineType.RIDGE}
    extra: dict[str, set[str]] = {}
    for line in lines:
        # Valleys landing mid-ridge touch the ridge without sharing an endpoint
        if line.end_vertex_id and line.end_vertex_id.startswith("valley_ridge_"):
            wing_index = int(line.end_vertex_id.rsplit("_", 1)[1])
            ridge_id = ridge_ids.get(wing_index)
            if ridge_id:
                extra.setdefault(line.id, set()).add(ridge_id)
                extra.setdefault(ridge_id, set()).add(line.id)

    linked = []
    for line in lines:
        neighbours = set(extra.get(line.id, set()))
        for p in line.endpoints:
            neighbours |= by_point[p]
        neighbours.discard(line.id)
        linked.append(replace(line, connected_to=frozenset(neighbours)))
    return linked


def build_skeleton(
    ring: Sequence[Point],
    reflex_indices: Sequence[int],
    wings: Sequence[Wing],
    settings: Optional[Settings] = None,
) -> SkeletonResult:
    """
    Build ridge, hip and valley lines for a CCW ring in local feet.

    Args:
        ring: Open, counter-clockwise ring
        reflex_indices: Reflex vertex indices of ``ring``
        wings: Wings from the shape classifier
        settings: Optional settings override

    Returns:
        SkeletonResult with snapped, linked lines
    """
    cfg = resolve_settings(settings)
    n = len(ring)
    reflex = set(reflex_indices)
    warnings: list[str] = []

    # Plain rectangle: the whole ring is the only wing
    if n == 4 and not reflex:
        wing = build_wing(0, list(range(n)), ring, cfg.ridge_inset_fraction)
        wings = (wing,) if wing is not None else ()

    wings = tuple(wings)
    if not wings:
        return SkeletonResult(lines=(), warnings=("No wings available for skeleton",))

    registry: dict[str, Point] = {}
    for wing in wings:
        start_id, end_id = _ridge_vertex_ids(wing.index)
        registry[start_id] = wing.ridge_start
        registry[end_id] = wing.ridge_end

    # Ridge junctions: snap both ridge ends onto the shared midpoint
    junction_points: list[Point] = []
    for k, (ida, idb, point) in enumerate(find_ridge_junctions(wings, cfg.junction_epsilon_ft)):
        registry[f"junction_{k}"] = point
        registry[ida] = point
        registry[idb] = point
        junction_points.append(point)

    lines: list[SkeletonLine] = []
    usable_ridges: dict[int, float] = {}
    for wing in wings:
        start_id, end_id = _ridge_vertex_ids(wing.index)
        start, end = registry[start_id], registry[end_id]
        length = distance(start, end)
        if length <= ZERO_LENGTH_FT:
            warnings.append(f"Wing {wing.index} ridge is degenerate; wing left without ridge")
            continue
        usable_ridges[wing.index] = length
        lines.append(SkeletonLine.create(
            f"ridge_{wing.index}", LineType.RIDGE, start, end,
            start_vertex_id=start_id, end_vertex_id=end_id, wing_index=wing.index,
        ))

    # Hips: convex corners to their own wing's nearer ridge endpoint
    for i, vertex in enumerate(ring):
        if i in reflex:
            continue
        wing = _assign_wing(i, vertex, wings)
        if wing.index not in usable_ridges:
            continue
        start_id, end_id = _ridge_vertex_ids(wing.index)
        if distance(vertex, registry[start_id]) <= distance(vertex, registry[end_id]):
            target_id = start_id
        else:
            target_id = end_id
        target = registry[target_id]

        hip_length = distance(vertex, target)
        if hip_length <= ZERO_LENGTH_FT:
            continue
        if hip_length > cfg.max_hip_ridge_ratio * usable_ridges[wing.index]:
            warnings.append(
                f"Hip at corner {i} dropped: {hip_length:.1f}ft exceeds "
                f"{cfg.max_hip_ridge_ratio:g}x wing {wing.index} ridge"
            )
            continue
        lines.append(SkeletonLine.create(
            f"hip_{i}", LineType.HIP, vertex, target,
            end_vertex_id=target_id, wing_index=wing.index,
        ))

    # Valleys: reflex corners along the interior bisector
    ridge_lines = [line for line in lines if line.line_type == LineType.RIDGE]
    for idx in sorted(reflex):
        vertex = ring[idx]
        target = None
        target_id = ""

        direction = interior_bisector(ring[idx - 1], vertex, ring[(idx + 1) % n])
        if direction is not None:
            best = float("inf")
            for ridge in ridge_lines:
                hit = ray_segment_intersection(vertex, direction, ridge.start, ridge.end)
                if hit is not None and distance(vertex, hit) < best:
                    best = distance(vertex, hit)
                    target, target_id = hit, f"valley_ridge_{idx}_{ridge.wing_index}"

        if target is None and junction_points:
            k = min(range(len(junction_points)), key=lambda j: distance(vertex, junction_points[j]))
            target, target_id = junction_points[k], f"junction_{k}"

        if target is None and ridge_lines:
            candidates = [
                (vid, registry[vid])
                for ridge in ridge_lines
                for vid in (ridge.start_vertex_id, ridge.end_vertex_id)
            ]
            target_id, target = min(candidates, key=lambda c: distance(vertex, c[1]))

        if target is None or distance(vertex, target) <= ZERO_LENGTH_FT:
            warnings.append(f"No valley target for reflex corner {idx}")
            continue

        # Ray hits on a ridge become named vertices too
        if target_id.startswith("valley_ridge_"):
            registry[target_id] = target
        lines.append(SkeletonLine.create(
            f"valley_{idx}", LineType.VALLEY, vertex, target, end_vertex_id=target_id,
        ))

    lines = enforce_shared_vertices(lines, registry)
    lines = _link_connections(lines)

    for message in warnings:
        logger.debug(message)
    logger.info(
        f"Skeleton: {sum(1 for line in lines if line.line_type == LineType.RIDGE)} ridges, "
        f"{sum(1 for line in lines if line.line_type == LineType.HIP)} hips, "
        f"{sum(1 for line in lines if line.line_type == LineType.VALLEY)} valleys",
        extra={"stage": "skeleton"},
    )
    return SkeletonResult(
        lines=tuple(lines),
        registry=registry,
        junctions=tuple(junction_points),
        wings=wings,
        warnings=tuple(warnings),
    )

"""
Geometric Constraint Solver - nudge roof lines toward construction rules.

A bounded, greedy correction loop rather than a numerical optimizer: every
pass recomputes violations and applies small local fixes (rotating hips
toward 45 deg, snapping loose endpoints). It is not guaranteed to reach a
fixed point; callers decide whether to adopt the output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from ..core.config import Settings, resolve_settings
from ..core.models import Facet, LineType, Point, SkeletonLine
from ..core.pitch import pitch_rise
from .primitives import distance, edge_angle_deg, midpoint, point_segment_distance, rotate_about
from .topology import find_crossings

logger = logging.getLogger(__name__)

HIP_TARGET_DEG = 45.0
# Hip deviations beyond this are errors rather than warnings
HIP_ERROR_DEG = 20.0
ELEVATION_EPSILON = 1e-6


class ConstraintType(str, Enum):
    RIDGE_HIGHEST = "ridge_highest"
    HIP_45 = "hip_45_degree"
    ENDPOINT_CONNECTION = "endpoint_connection"
    NO_CROSSING = "no_crossing"
    PITCH_CONSISTENCY = "pitch_consistency"


@dataclass(frozen=True)
class Constraint:
    id: str
    constraint_type: ConstraintType
    description: str
    weight: float = 1.0
    tolerance: float = 0.0  # feet, degrees or rise units depending on type


@dataclass(frozen=True)
class Violation:
    constraint_id: str
    constraint_type: ConstraintType
    severity: str  # error / warning / info
    feature_id: str
    description: str
    current_value: float
    expected_value: float
    deviation: float
    endpoint: Optional[str] = None


@dataclass(frozen=True)
class Adjustment:
    feature_id: str
    description: str
    delta_ft: float


@dataclass(frozen=True)
class RoofGraph:
    """Solver input: lines and perimeter in local feet."""
    lines: tuple[SkeletonLine, ...]
    perimeter: tuple[Point, ...]
    pitch: str = "6/12"
    facets: tuple[Facet, ...] = ()


@dataclass
class SolverResult:
    original: list[SkeletonLine]
    optimized: list[SkeletonLine]
    violations_before: list[Violation]
    violations_after: list[Violation]
    adjustments: list[Adjustment] = field(default_factory=list)
    score: float = 100.0
    is_valid: bool = True
    iterations: int = 0


def default_constraints(settings: Optional[Settings] = None) -> list[Constraint]:
    """The standard construction constraints."""
    cfg = resolve_settings(settings)
    return [
        Constraint("ridge_highest", ConstraintType.RIDGE_HIGHEST,
                   "Ridge must be the highest point (above all hips/valleys)", 1.0),
        Constraint("hip_45", ConstraintType.HIP_45,
                   "Hip lines should be at approximately 45 deg from their ridge", 0.8,
                   cfg.hip_angle_tolerance_deg),
        Constraint("endpoint_connect", ConstraintType.ENDPOINT_CONNECTION,
                   "All interior lines must connect at both ends", 1.0,
                   cfg.connection_tolerance_ft),
        Constraint("no_cross", ConstraintType.NO_CROSSING,
                   "Lines should not cross except at junction points", 1.0,
                   cfg.crossing_tolerance_ft),
        Constraint("pitch_consistent", ConstraintType.PITCH_CONSISTENCY,
                   "Facets should share the predominant pitch", 0.7,
                   cfg.pitch_consistency_rise),
    ]


# =============================================================================
# VIOLATIONS
# =============================================================================


def _axial_angle(line: SkeletonLine, other: SkeletonLine) -> float:
    """Angle between two undirected lines, in [0, 90]."""
    d = abs(edge_angle_deg(line.start, line.end) - edge_angle_deg(other.start, other.end)) % 180.0
    return min(d, 180.0 - d)


def _adjacent_ridge(hip: SkeletonLine, ridges: Sequence[SkeletonLine]) -> Optional[SkeletonLine]:
    if not ridges:
        return None
    return min(ridges, key=lambda r: min(point_segment_distance(p, r.start, r.end) for p in hip.endpoints))


def _elevation(p: Point, perimeter: Sequence[Point], rise: float) -> float:
    n = len(perimeter)
    if n < 2:
        return 0.0
    to_eave = min(point_segment_distance(p, perimeter[i], perimeter[(i + 1) % n]) for i in range(n))
    return to_eave * rise / 12.0


def _is_connected(
    p: Point,
    line: SkeletonLine,
    lines: Sequence[SkeletonLine],
    perimeter: Sequence[Point],
    tolerance: float,
) -> bool:
    for other in lines:
        if other.id == line.id:
            continue
        if any(distance(p, q) <= tolerance for q in other.endpoints):
            return True
        if (line.line_type == LineType.VALLEY and other.line_type == LineType.RIDGE
                and point_segment_distance(p, other.start, other.end) <= tolerance):
            return True
    return any(distance(p, c) <= tolerance for c in perimeter)


def find_violations(graph: RoofGraph, constraints: Sequence[Constraint]) -> list[Violation]:
    """Evaluate every constraint against the graph."""
    lines = list(graph.lines)
    ridges = [line for line in lines if line.line_type == LineType.RIDGE]
    hips = [line for line in lines if line.line_type == LineType.HIP]
    valleys = [line for line in lines if line.line_type == LineType.VALLEY]
    violations: list[Violation] = []

    for constraint in constraints:
        ctype = constraint.constraint_type

        if ctype == ConstraintType.RIDGE_HIGHEST and ridges:
            rise = pitch_rise(graph.pitch)
            if rise <= 0:
                continue
            ridge_points = [p for r in ridges for p in (r.start, r.end, midpoint(r.start, r.end))]
            peak = max(_elevation(p, graph.perimeter, rise) for p in ridge_points)
            for line in hips + valleys:
                for name, p in (("start", line.start), ("end", line.end)):
                    height = _elevation(p, graph.perimeter, rise)
                    if height > peak + ELEVATION_EPSILON:
                        violations.append(Violation(
                            constraint.id, ctype, "error", line.id,
                            f"{line.line_type.value} {line.id} {name} rises above the ridge",
                            height, peak, height - peak, name,
                        ))

        elif ctype == ConstraintType.HIP_45:
            for hip in hips:
                ridge = _adjacent_ridge(hip, ridges)
                if ridge is None:
                    continue
                angle = _axial_angle(hip, ridge)
                deviation = abs(angle - HIP_TARGET_DEG)
                if deviation > constraint.tolerance:
                    violations.append(Violation(
                        constraint.id, ctype, "error" if deviation > HIP_ERROR_DEG else "warning", hip.id,
                        f"Hip {hip.id} angle deviates {deviation:.1f} deg from expected 45 deg",
                        angle, HIP_TARGET_DEG, deviation,
                    ))

        elif ctype == ConstraintType.ENDPOINT_CONNECTION:
            for line in hips + valleys:
                for name, p in (("start", line.start), ("end", line.end)):
                    if not _is_connected(p, line, lines, graph.perimeter, constraint.tolerance):
                        violations.append(Violation(
                            constraint.id, ctype, "error", line.id,
                            f"{line.line_type.value} {line.id} {name} endpoint not connected",
                            0, 1, 1, name,
                        ))

        elif ctype == ConstraintType.NO_CROSSING:
            for a, b, _ in find_crossings(lines, constraint.tolerance):
                violations.append(Violation(
                    constraint.id, ctype, "error", f"{a}_{b}",
                    f"Lines {a} and {b} cross unexpectedly", 1, 0, 1,
                ))

        elif ctype == ConstraintType.PITCH_CONSISTENCY and graph.facets:
            expected = pitch_rise(graph.pitch)
            for facet in graph.facets:
                rise = pitch_rise(facet.pitch)
                if abs(rise - expected) > constraint.tolerance:
                    violations.append(Violation(
                        constraint.id, ctype, "info", facet.id,
                        f"Facet {facet.id} pitch {facet.pitch} differs from predominant {graph.pitch}",
                        rise, expected, abs(rise - expected),
                    ))

    return violations


# =============================================================================
# CORRECTIONS
# =============================================================================


def _rotate_hip(hip: SkeletonLine, ridge: SkeletonLine, max_step: float) -> tuple[SkeletonLine, float]:
    """Rotate the hip's end around its start one bounded step toward 45 deg off the ridge."""
    hip_angle = edge_angle_deg(hip.start, hip.end)
    ridge_angle = edge_angle_deg(ridge.start, ridge.end)
    targets = [(ridge_angle + offset) % 360.0 for offset in (45.0, 135.0, 225.0, 315.0)]
    deltas = [((t - hip_angle + 180.0) % 360.0) - 180.0 for t in targets]
    delta = min(deltas, key=abs)
    step = max(-max_step, min(max_step, delta))
    new_end = rotate_about(hip.end, hip.start, step)
    return hip.with_endpoints(end=new_end), step


def _nearest_connection(
    p: Point,
    line: SkeletonLine,
    lines: Sequence[SkeletonLine],
    perimeter: Sequence[Point],
    radius: float,
) -> Optional[Point]:
    candidates = list(perimeter) + [q for other in lines if other.id != line.id for q in other.endpoints]
    best = None
    best_dist = radius
    for q in candidates:
        d = distance(p, q)
        if d < best_dist:
            best, best_dist = q, d
    return best


def constraint_score(remaining: int, features: int, constraints: int) -> float:
    """100 * (1 - remaining / (features x constraints)); 100 with no features."""
    if features == 0 or constraints == 0:
        return 100.0
    return max(0.0, 100.0 * (1 - remaining / (features * constraints)))


def solve(
    geometry: RoofGraph,
    constraints: Optional[Sequence[Constraint]] = None,
    settings: Optional[Settings] = None,
) -> SolverResult:
    """
    Run the bounded correction loop.

    Args:
        geometry: Lines, perimeter, predominant pitch and facets
        constraints: Constraint set (default: ``default_constraints()``)
        settings: Optional settings override

    Returns:
        SolverResult with before/after violations and every adjustment made
    """
    cfg = resolve_settings(settings)
    constraints = list(constraints) if constraints is not None else default_constraints(cfg)

    original = list(geometry.lines)
    current = {line.id: line for line in original}
    order = [line.id for line in original]
    adjustments: list[Adjustment] = []

    violations_before = find_violations(geometry, constraints)
    iterations = 0

    for iterations in range(1, cfg.max_solver_iterations + 1):
        graph = RoofGraph(tuple(current[i] for i in order), geometry.perimeter, geometry.pitch, geometry.facets)
        violations = find_violations(graph, constraints)
        if not violations:
            break

        changed = False
        ridges = [line for line in graph.lines if line.line_type == LineType.RIDGE]
        for violation in violations:
            line = current.get(violation.feature_id)
            if line is None:
                continue

            if violation.constraint_type == ConstraintType.HIP_45:
                ridge = _adjacent_ridge(line, ridges)
                if ridge is None:
                    continue
                rotated, step = _rotate_hip(line, ridge, cfg.max_rotation_step_deg)
                if step == 0:
                    continue
                current[line.id] = rotated
                adjustments.append(Adjustment(line.id, f"Rotated {step:.2f} deg", distance(line.end, rotated.end)))
                changed = True

            elif violation.constraint_type == ConstraintType.ENDPOINT_CONNECTION:
                p = line.start if violation.endpoint == "start" else line.end
                target = _nearest_connection(p, line, graph.lines, geometry.perimeter, cfg.snap_radius_ft)
                if target is None:
                    continue
                if violation.endpoint == "start":
                    current[line.id] = line.with_endpoints(start=target)
                else:
                    current[line.id] = line.with_endpoints(end=target)
                adjustments.append(Adjustment(line.id, "Snapped endpoint to connection", distance(p, target)))
                changed = True

        if not changed:
            break

    optimized = [current[i] for i in order]
    violations_after = find_violations(
        RoofGraph(tuple(optimized), geometry.perimeter, geometry.pitch, geometry.facets), constraints,
    )
    score = constraint_score(len(violations_after), len(original), len(constraints))
    logger.debug(
        f"Solver: {len(violations_before)} -> {len(violations_after)} violations in {iterations} passes",
        extra={"stage": "constraints"},
    )
    return SolverResult(
        original=original,
        optimized=optimized,
        violations_before=violations_before,
        violations_after=violations_after,
        adjustments=adjustments,
        score=score,
        is_valid=not any(v.severity == "error" for v in violations_after),
        iterations=iterations,
    )

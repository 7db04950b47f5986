"""
Topology Validator - physically valid connectivity of roof lines.

Checks (all distances in local feet):
- duplicate features (same endpoints, either orientation)
- interior crossings between lines
- orphan hips/valleys (connected at neither end)
- hip connectivity: perimeter corner <-> ridge endpoint
- valley connectivity: reflex corner <-> ridge endpoint, junction or ridge

Validation only reports. Repairs are suggested with each report and applied
in a separate, explicit ``apply_repairs`` step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from ..core.config import Settings, resolve_settings
from ..core.models import LineType, Point, SkeletonLine
from .primitives import distance, midpoint, point_segment_distance, segment_intersection

logger = logging.getLogger(__name__)

# Crossing parameters inside (EPS, 1 - EPS) count as interior
CROSSING_PARAM_EPSILON = 0.01

SEVERITY_PENALTY = {"critical": 20, "error": 10, "warning": 5}


class IssueType(str, Enum):
    ORPHAN_LINE = "orphan_line"
    CROSSING_LINES = "crossing_lines"
    DISCONNECTED_HIP = "disconnected_hip"
    DISCONNECTED_VALLEY = "disconnected_valley"
    DUPLICATE_FEATURE = "duplicate_feature"
    HIP_COUNT_MISMATCH = "hip_count_mismatch"


class Severity(str, Enum):
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"


class RepairAction(str, Enum):
    SNAP = "snap"
    EXTEND = "extend"
    REMOVE = "remove"
    SPLIT = "split"
    MERGE = "merge"


@dataclass(frozen=True)
class TopologyIssue:
    issue_type: IssueType
    severity: Severity
    description: str
    feature_ids: tuple[str, ...]
    location: Optional[Point] = None
    endpoint: Optional[str] = None  # "start" / "end" of feature_ids[0]


@dataclass(frozen=True)
class RepairSuggestion:
    """A proposed fix for one issue."""
    action: RepairAction
    feature_id: str
    description: str
    endpoint: Optional[str] = None
    target: Optional[Point] = None
    partner: Optional[tuple[str, str]] = None  # (line id, endpoint) moved by a merge
    gap_ft: float = 0.0


@dataclass(frozen=True)
class TopologyReport:
    """Validation outcome; ``errors`` holds critical and error issues."""
    errors: tuple[TopologyIssue, ...]
    warnings: tuple[TopologyIssue, ...]
    repair_suggestions: tuple[RepairSuggestion, ...]
    score: float
    valid: bool

    @property
    def critical_count(self) -> int:
        return sum(1 for issue in self.errors if issue.severity == Severity.CRITICAL)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.errors if issue.severity == Severity.ERROR)

    def issues_of(self, issue_type: IssueType) -> list[TopologyIssue]:
        return [i for i in self.errors + self.warnings if i.issue_type == issue_type]


@dataclass
class RepairOutcome:
    lines: list[SkeletonLine]
    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


# =============================================================================
# CHECKS
# =============================================================================


def _near_any(p: Point, points: Sequence[Point], tolerance: float) -> bool:
    return any(distance(p, q) <= tolerance for q in points)


def find_duplicates(lines: Sequence[SkeletonLine], tolerance: float) -> list[tuple[str, str]]:
    """Pairs of line ids whose endpoints match within tolerance, either orientation."""
    pairs = []
    for i, a in enumerate(lines):
        for b in lines[i + 1:]:
            same = distance(a.start, b.start) <= tolerance and distance(a.end, b.end) <= tolerance
            flipped = distance(a.start, b.end) <= tolerance and distance(a.end, b.start) <= tolerance
            if same or flipped:
                pairs.append((a.id, b.id))
    return pairs


def find_crossings(lines: Sequence[SkeletonLine], tolerance: float) -> list[tuple[str, str, Point]]:
    """Interior crossings not within ``tolerance`` of any line endpoint."""
    endpoints = [p for line in lines for p in line.endpoints]
    crossings = []
    for i, a in enumerate(lines):
        for b in lines[i + 1:]:
            hit = segment_intersection(a.start, a.end, b.start, b.end)
            if hit is None:
                continue
            point, t, u = hit
            lo, hi = CROSSING_PARAM_EPSILON, 1 - CROSSING_PARAM_EPSILON
            if not (lo < t < hi and lo < u < hi):
                continue
            if _near_any(point, endpoints, tolerance):
                continue
            crossings.append((a.id, b.id, point))
    return crossings


def _endpoint_connected(
    p: Point,
    line: SkeletonLine,
    lines: Sequence[SkeletonLine],
    corners: Sequence[Point],
    tolerance: float,
) -> bool:
    others = [q for other in lines if other.id != line.id for q in other.endpoints]
    return _near_any(p, others, tolerance) or _near_any(p, corners, tolerance)


def _corner_and_far_end(line: SkeletonLine, corners: Sequence[Point]) -> tuple[str, str]:
    """(corner endpoint name, far endpoint name) of a sloped line."""
    if not corners:
        return "start", "end"
    d_start = min(distance(line.start, c) for c in corners)
    d_end = min(distance(line.end, c) for c in corners)
    return ("start", "end") if d_start <= d_end else ("end", "start")


def _point(line: SkeletonLine, endpoint: str) -> Point:
    return line.start if endpoint == "start" else line.end


def _check_hips(
    hips: Sequence[SkeletonLine],
    ridge_ends: Sequence[Point],
    corners: Sequence[Point],
    tolerance: float,
) -> list[TopologyIssue]:
    issues = []
    for hip in hips:
        corner_end, far_end = _corner_and_far_end(hip, corners)
        if not _near_any(_point(hip, far_end), ridge_ends, tolerance):
            issues.append(TopologyIssue(
                IssueType.DISCONNECTED_HIP, Severity.ERROR,
                f"Hip {hip.id} is not connected to any ridge endpoint",
                (hip.id,), _point(hip, far_end), far_end,
            ))
        if not _near_any(_point(hip, corner_end), corners, tolerance):
            issues.append(TopologyIssue(
                IssueType.DISCONNECTED_HIP, Severity.ERROR,
                f"Hip {hip.id} is not connected to any perimeter corner",
                (hip.id,), _point(hip, corner_end), corner_end,
            ))
    return issues


def _check_valleys(
    valleys: Sequence[SkeletonLine],
    ridges: Sequence[SkeletonLine],
    corners: Sequence[Point],
    tolerance: float,
) -> list[TopologyIssue]:
    ridge_ends = [p for r in ridges for p in r.endpoints]
    issues = []
    for valley in valleys:
        corner_end, far_end = _corner_and_far_end(valley, corners)
        far = _point(valley, far_end)
        on_ridge = any(point_segment_distance(far, r.start, r.end) <= tolerance for r in ridges)
        if not (on_ridge or _near_any(far, ridge_ends, tolerance)):
            issues.append(TopologyIssue(
                IssueType.DISCONNECTED_VALLEY, Severity.ERROR,
                f"Valley {valley.id} is not connected to any ridge or junction",
                (valley.id,), far, far_end,
            ))
        if not _near_any(_point(valley, corner_end), corners, tolerance):
            issues.append(TopologyIssue(
                IssueType.DISCONNECTED_VALLEY, Severity.ERROR,
                f"Valley {valley.id} does not start at a reflex corner",
                (valley.id,), _point(valley, corner_end), corner_end,
            ))
    return issues


# =============================================================================
# REPAIR SUGGESTIONS
# =============================================================================


def _suggest_reconnect(
    issue: TopologyIssue,
    line: SkeletonLine,
    lines: Sequence[SkeletonLine],
    corners: Sequence[Point],
    cfg: Settings,
) -> RepairSuggestion:
    origin = issue.location
    endpoint = issue.endpoint or "end"

    # (distance, point, partner)
    candidates: list[tuple[float, Point, Optional[tuple[str, str]]]] = []
    for other in lines:
        if other.id == line.id:
            continue
        for name, p in (("start", other.start), ("end", other.end)):
            candidates.append((distance(origin, p), p, (other.id, name)))
    for c in corners:
        candidates.append((distance(origin, c), c, None))

    if not candidates:
        return RepairSuggestion(RepairAction.REMOVE, line.id, f"Remove orphan {line.line_type.value} {line.id}")

    gap, target, partner = min(candidates, key=lambda c: c[0])

    if gap > cfg.max_repair_distance_ft:
        return RepairSuggestion(
            RepairAction.REMOVE, line.id,
            f"Remove {line.line_type.value} {line.id}: no connection within {cfg.max_repair_distance_ft:g}ft",
            gap_ft=gap,
        )

    if gap < cfg.merge_gap_ft and partner is not None:
        return RepairSuggestion(
            RepairAction.MERGE, line.id,
            f"Merge {line.id} {endpoint} with {partner[0]} {partner[1]} ({gap:.2f}ft gap)",
            endpoint=endpoint, target=midpoint(origin, target), partner=partner, gap_ft=gap,
        )

    other_end = line.end if endpoint == "start" else line.start
    ahead = (origin.x - other_end.x) * (target.x - origin.x) + (origin.y - other_end.y) * (target.y - origin.y) > 0
    action = RepairAction.EXTEND if ahead else RepairAction.SNAP
    return RepairSuggestion(
        action, line.id,
        f"{action.value.capitalize()} {line.id} {endpoint} to nearby feature ({gap:.1f}ft away)",
        endpoint=endpoint, target=target, gap_ft=gap,
    )


def _suggest_repairs(
    issues: Sequence[TopologyIssue],
    lines: Sequence[SkeletonLine],
    corners: Sequence[Point],
    cfg: Settings,
) -> list[RepairSuggestion]:
    by_id = {line.id: line for line in lines}
    suggestions: list[RepairSuggestion] = []
    handled: set[tuple[str, Optional[str]]] = set()

    for issue in issues:
        line = by_id.get(issue.feature_ids[0]) if issue.feature_ids else None
        if line is None:
            continue

        if issue.issue_type == IssueType.DUPLICATE_FEATURE:
            suggestions.append(RepairSuggestion(
                RepairAction.REMOVE, issue.feature_ids[1], f"Remove duplicate {line.line_type.value} {issue.feature_ids[1]}",
            ))
        elif issue.issue_type == IssueType.CROSSING_LINES:
            suggestions.append(RepairSuggestion(
                RepairAction.SPLIT, line.id,
                f"Split {issue.feature_ids[0]} and {issue.feature_ids[1]} at their crossing or verify a junction",
                target=issue.location,
            ))
        elif issue.issue_type in (IssueType.ORPHAN_LINE, IssueType.DISCONNECTED_HIP, IssueType.DISCONNECTED_VALLEY):
            key = (line.id, issue.endpoint)
            if issue.location is None or key in handled:
                continue
            handled.add(key)
            suggestions.append(_suggest_reconnect(issue, line, lines, corners, cfg))

    return suggestions


# =============================================================================
# VALIDATE / REPAIR
# =============================================================================


def topology_score(issues: Sequence[TopologyIssue]) -> float:
    penalty = sum(SEVERITY_PENALTY[issue.severity.value] for issue in issues)
    return float(max(0, 100 - penalty))


def validate(
    lines: Sequence[SkeletonLine],
    perimeter_corners: Sequence[Point],
    reflex_corners: Optional[Sequence[Point]] = None,
    settings: Optional[Settings] = None,
) -> TopologyReport:
    """
    Validate roof line topology.

    Args:
        lines: Ridges, hips, valleys and optionally eaves/rakes (local feet)
        perimeter_corners: Footprint corners
        reflex_corners: Reflex corners valleys must start from (defaults to
            all perimeter corners)
        settings: Optional settings override

    Returns:
        TopologyReport with issues, repair suggestions and a 0-100 score
    """
    cfg = resolve_settings(settings)
    lines = list(lines)
    corners = list(perimeter_corners)
    valley_corners = list(reflex_corners) if reflex_corners is not None else corners
    tolerance = cfg.connection_tolerance_ft

    ridges = [line for line in lines if line.line_type == LineType.RIDGE]
    hips = [line for line in lines if line.line_type == LineType.HIP]
    valleys = [line for line in lines if line.line_type == LineType.VALLEY]
    ridge_ends = [p for r in ridges for p in r.endpoints]

    issues: list[TopologyIssue] = []
    warnings: list[TopologyIssue] = []

    for a, b in find_duplicates(lines, cfg.topology_duplicate_tolerance_ft):
        issues.append(TopologyIssue(
            IssueType.DUPLICATE_FEATURE, Severity.ERROR, f"Duplicate features {a} and {b}", (a, b),
        ))

    for a, b, point in find_crossings(lines, cfg.crossing_tolerance_ft):
        issues.append(TopologyIssue(
            IssueType.CROSSING_LINES, Severity.ERROR, f"{a} and {b} cross at an interior point", (a, b), point,
        ))

    for line in hips + valleys:
        if not (_endpoint_connected(line.start, line, lines, corners, tolerance)
                or _endpoint_connected(line.end, line, lines, corners, tolerance)):
            issues.append(TopologyIssue(
                IssueType.ORPHAN_LINE, Severity.CRITICAL,
                f"{line.line_type.value} {line.id} is not connected at either endpoint",
                (line.id,), line.end, "end",
            ))

    issues.extend(_check_hips(hips, ridge_ends, corners, tolerance))
    issues.extend(_check_valleys(valleys, ridges, valley_corners, tolerance))

    if len(corners) == 4 and len(ridges) == 1 and len(hips) != 4:
        warnings.append(TopologyIssue(
            IssueType.HIP_COUNT_MISMATCH, Severity.WARNING,
            f"Rectangular footprint with single ridge should have 4 hips, found {len(hips)}",
            tuple(h.id for h in hips),
        ))

    suggestions = _suggest_repairs(issues, lines, corners, cfg)
    score = topology_score(issues + warnings)
    report = TopologyReport(
        errors=tuple(issues),
        warnings=tuple(warnings),
        repair_suggestions=tuple(suggestions),
        score=score,
        valid=not issues,
    )
    logger.debug(
        f"Topology: {len(issues)} errors, {len(warnings)} warnings, score {score:.0f}",
        extra={"stage": "topology"},
    )
    return report


def apply_repairs(lines: Sequence[SkeletonLine], suggestions: Sequence[RepairSuggestion]) -> RepairOutcome:
    """
    Apply repair suggestions to a copy of ``lines``.

    Endpoint moves recompute lengths. SPLIT suggestions are advisory and are
    reported as skipped.
    """
    by_id = {line.id: line for line in lines}
    order = [line.id for line in lines]
    outcome = RepairOutcome(lines=[])

    def move(line_id: str, endpoint: str, target: Point) -> None:
        line = by_id[line_id]
        by_id[line_id] = line.with_endpoints(start=target) if endpoint == "start" else line.with_endpoints(end=target)

    for suggestion in suggestions:
        if suggestion.feature_id not in by_id:
            outcome.skipped.append(f"{suggestion.action.value} {suggestion.feature_id}: line no longer present")
            continue

        if suggestion.action == RepairAction.REMOVE:
            del by_id[suggestion.feature_id]
        elif suggestion.action in (RepairAction.SNAP, RepairAction.EXTEND) and suggestion.target is not None:
            move(suggestion.feature_id, suggestion.endpoint or "end", suggestion.target)
        elif suggestion.action == RepairAction.MERGE and suggestion.target is not None:
            move(suggestion.feature_id, suggestion.endpoint or "end", suggestion.target)
            if suggestion.partner and suggestion.partner[0] in by_id:
                move(suggestion.partner[0], suggestion.partner[1], suggestion.target)
        else:
            outcome.skipped.append(suggestion.description)
            continue
        outcome.applied.append(suggestion.description)

    outcome.lines = [by_id[line_id] for line_id in order if line_id in by_id]
    return outcome

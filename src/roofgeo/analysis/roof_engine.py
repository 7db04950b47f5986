"""
Roof Engine - footprint in, roof geometry out.

Pipeline:
1. Validate input (malformed input raises ValidationError)
2. Project to a local feet frame centred on the footprint
3. Simplify and regularize the ring (optional eave overhang)
4. Classify shape, decompose into wings
5. Build the ridge/hip/valley skeleton
6. Assemble facets from the best available source
7. Validate topology (optionally apply repairs)
8. Run the constraint solver, adopting its output only when it helps
9. Classify perimeter edges, convert back to geographic coordinates

Degenerate footprints (too few vertices, zero area) never raise: they
produce a POOR result whose warnings explain why.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from ..core.config import Settings, resolve_settings
from ..core.models import (
    GeometryResult,
    LineType,
    LocalFrame,
    Point,
    QualityTier,
    ShapeKind,
    SkeletonLine,
    SolarSegmentHint,
)
from ..geometry.classifier import classify
from ..geometry.constraints import RoofGraph, constraint_score, default_constraints, find_violations, solve
from ..geometry.facets import assemble, predominant_pitch as dominant_pitch
from ..geometry.perimeter import classify_perimeter
from ..geometry.preprocess import apply_eave_offset, simplify
from ..geometry.primitives import ensure_ccw, open_ring, perimeter_length, polygon_area
from ..geometry.skeleton import build_skeleton
from ..geometry.topology import apply_repairs, validate
from ..utils.validation import ValidationError, validate_footprint, validate_pitch
from .footprint_check import check_footprint

logger = logging.getLogger(__name__)

# Rings enclosing less than this (sqft) are degenerate
MIN_RING_AREA_SQFT = 1e-6


def parse_hints(hints: Optional[Iterable[Any]]) -> list[SolarSegmentHint]:
    """Validate hints given as SolarSegmentHint instances or plain dicts."""
    parsed = []
    for i, hint in enumerate(hints or []):
        if isinstance(hint, SolarSegmentHint):
            parsed.append(hint)
            continue
        try:
            parsed.append(SolarSegmentHint.model_validate(hint))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid facet hint {i}: {e.errors()[0]['msg']}",
                field=f"hints[{i}]",
                suggestions=["Azimuth/pitch in degrees, area in m2, coordinates as (lng, lat)"],
            ) from e
    return parsed


class RoofEngine:
    """
    Reconstructs roof geometry from building footprints.

    Holds only settings; every call builds its own local state.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = resolve_settings(settings)

    def reconstruct(
        self,
        footprint: Sequence[Sequence[float]],
        hints: Optional[Iterable[Any]] = None,
        predominant_pitch: str = "6/12",
        footprint_id: Optional[str] = None,
    ) -> GeometryResult:
        """
        Reconstruct roof geometry for one footprint.

        Args:
            footprint: (lng, lat) pairs, open or closed
            hints: Optional per-facet hints (SolarSegmentHint or dicts)
            predominant_pitch: Pitch used where hints carry none
            footprint_id: Optional id attached to log records

        Returns:
            GeometryResult in geographic coordinates

        Raises:
            ValidationError: For structurally malformed footprints or hints
        """
        cfg = self.settings
        log_extra = {"footprint_id": footprint_id or "-"}
        geo_ring = open_ring([Point(lng, lat) for lng, lat in validate_footprint(footprint)])
        solar_hints = parse_hints(hints)
        warnings: list[str] = []

        try:
            validate_pitch(predominant_pitch)
            pitch = predominant_pitch
        except ValidationError as e:
            warnings.append(f"{e}; using default pitch {cfg.default_pitch}")
            pitch = cfg.default_pitch

        if len(geo_ring) < 3:
            warnings.append(f"Footprint has {len(geo_ring)} vertices; at least 3 are required")
            return self._poor_result(geo_ring, warnings, pitch)

        frame = LocalFrame.for_ring(geo_ring)
        local = ensure_ccw([frame.to_local(p) for p in geo_ring])
        if polygon_area(local) < MIN_RING_AREA_SQFT:
            warnings.append("Footprint encloses no area (collinear or repeated vertices)")
            return self._poor_result(geo_ring, warnings, pitch)

        if cfg.soffit_offset_ft > 0:
            local = apply_eave_offset(local, cfg.soffit_offset_ft)

        ring, stats = simplify(local, settings=cfg)
        warnings.extend(stats.warnings)
        if len(ring) < 3 or polygon_area(ring) < MIN_RING_AREA_SQFT:
            warnings.append("Footprint collapsed during simplification")
            return self._poor_result(geo_ring, warnings, pitch)
        ring = ensure_ccw(ring)

        footprint_check = check_footprint(geo_ring)
        warnings.extend(footprint_check.errors)
        warnings.extend(footprint_check.warnings)

        classification = classify(ring, cfg)
        log_extra["shape"] = classification.kind.value
        logger.info(
            f"Classified footprint: {classification.reflex_count} reflex, {len(classification.wings)} wings",
            extra={**log_extra, "stage": "classify"},
        )

        skeleton = None
        lines: list[SkeletonLine] = []
        if classification.perimeter_only:
            warnings.append(
                f"{classification.reflex_count} reflex vertices exceed {cfg.max_reflex_vertices}; "
                "roof simplified to its perimeter"
            )
        else:
            skeleton = build_skeleton(ring, classification.reflex_indices, classification.wings, cfg)
            warnings.extend(skeleton.warnings)
            lines = list(skeleton.lines)

        assembly = assemble(ring, skeleton, solar_hints, pitch, frame=frame, settings=cfg)
        warnings.extend(assembly.warnings)
        log_extra["method"] = assembly.method.value

        reflex_corners = [ring[i] for i in classification.reflex_indices]
        report = validate(lines, ring, reflex_corners, cfg)
        if cfg.apply_topology_repairs and report.repair_suggestions:
            outcome = apply_repairs(lines, report.repair_suggestions)
            lines = outcome.lines
            warnings.extend(f"Topology repair: {desc}" for desc in outcome.applied)
            report = validate(lines, ring, reflex_corners, cfg)
        warnings.extend(issue.description for issue in report.errors + report.warnings)

        lines, constraint_result_score = self._run_solver(lines, ring, pitch, assembly.facets, report, reflex_corners)

        eaves, rakes = classify_perimeter(ring, lines)

        quality = assembly.quality
        if classification.perimeter_only:
            quality = QualityTier.worst(quality, QualityTier.SIMPLIFIED)
        if not report.valid:
            quality = quality.degrade()
        if not stats.is_valid:
            quality = quality.degrade()

        facets = tuple(replace(f, polygon=tuple(frame.to_geo(p) for p in f.polygon)) for f in assembly.facets)
        mean_facet_confidence = sum(f.confidence for f in facets) / len(facets) if facets else 0.0
        confidence = mean_facet_confidence * footprint_check.confidence * (0.5 + report.score / 200.0)

        def to_geo(group: Iterable[SkeletonLine]) -> tuple[SkeletonLine, ...]:
            return tuple(replace(line, start=frame.to_geo(line.start), end=frame.to_geo(line.end)) for line in group)

        result = GeometryResult(
            facets=facets,
            ridges=to_geo(line for line in lines if line.line_type == LineType.RIDGE),
            hips=to_geo(line for line in lines if line.line_type == LineType.HIP),
            valleys=to_geo(line for line in lines if line.line_type == LineType.VALLEY),
            eaves=to_geo(eaves),
            rakes=to_geo(rakes),
            quality=quality,
            warnings=tuple(warnings),
            shape=classification.kind,
            perimeter=tuple(frame.to_geo(p) for p in ring),
            footprint_area_sqft=polygon_area(ring),
            perimeter_ft=perimeter_length(ring),
            predominant_pitch=dominant_pitch(facets),
            facet_method=assembly.method,
            topology_score=report.score,
            constraint_score=constraint_result_score,
            confidence=max(0.0, min(1.0, confidence)),
        )
        logger.info(
            f"Reconstructed roof: {len(result.facets)} facets, {len(result.ridges)} ridges, "
            f"{len(result.hips)} hips, {len(result.valleys)} valleys, quality {quality.value}",
            extra={**log_extra, "stage": "result"},
        )
        return result

    def _run_solver(self, lines, ring, pitch, facets, report, reflex_corners) -> tuple[list[SkeletonLine], float]:
        """Solve constraints; keep the solver output only if it helps without breaking topology."""
        constraints = default_constraints(self.settings)
        graph = RoofGraph(tuple(lines), tuple(ring), pitch, tuple(facets))
        if not self.settings.run_constraint_solver or not lines:
            remaining = find_violations(graph, constraints) if lines else []
            return lines, constraint_score(len(remaining), len(lines), len(constraints))

        solved = solve(graph, constraints, self.settings)
        improved = len(solved.violations_after) < len(solved.violations_before)
        if improved:
            after = validate(solved.optimized, ring, reflex_corners, self.settings)
            if len(after.errors) <= len(report.errors):
                logger.debug(f"Adopted solver output ({len(solved.adjustments)} adjustments)")
                return solved.optimized, solved.score
            logger.debug("Solver output rejected: adds topology errors")
        return lines, constraint_score(len(solved.violations_before), len(lines), len(constraints))

    def _poor_result(self, geo_ring: Sequence[Point], warnings: list[str], pitch: str) -> GeometryResult:
        logger.warning(f"Degenerate footprint: {warnings[-1]}")
        return GeometryResult(
            facets=(),
            ridges=(),
            hips=(),
            valleys=(),
            eaves=(),
            rakes=(),
            quality=QualityTier.POOR,
            warnings=tuple(warnings),
            shape=ShapeKind.COMPLEX,
            perimeter=tuple(geo_ring),
            predominant_pitch=pitch,
        )


def reconstruct_roof(
    footprint: Sequence[Sequence[float]],
    hints: Optional[Iterable[Any]] = None,
    predominant_pitch: str = "6/12",
    settings: Optional[Settings] = None,
    footprint_id: Optional[str] = None,
) -> GeometryResult:
    """
    Convenience function to reconstruct a roof.

    Example:
        result = reconstruct_roof([(-97.1, 32.7), (-97.0998, 32.7), ...], predominant_pitch="6/12")
        print(result.quality, result.linear_totals)
    """
    engine = RoofEngine(settings)
    return engine.reconstruct(footprint, hints, predominant_pitch, footprint_id)

"""
Geometry stages: preprocessing, shape classification, skeleton, facets,
perimeter classification, topology validation and constraint solving.

All functions here work in local feet.
"""

from .preprocess import SimplifyStats, simplify, apply_eave_offset
from .classifier import classify, detect_shape, find_reflex_vertices, decompose_wings
from .skeleton import SkeletonResult, build_skeleton, find_ridge_junctions, enforce_shared_vertices
from .facets import FacetAssembly, assemble, direction_label, facet_color
from .perimeter import classify_perimeter, linear_totals
from .topology import (
    IssueType,
    RepairAction,
    Severity,
    TopologyIssue,
    TopologyReport,
    RepairSuggestion,
    validate,
    apply_repairs,
)
from .constraints import (
    Constraint,
    ConstraintType,
    RoofGraph,
    SolverResult,
    default_constraints,
    find_violations,
    solve,
)

__all__ = [
    # Preprocess
    "SimplifyStats",
    "simplify",
    "apply_eave_offset",
    # Classification
    "classify",
    "detect_shape",
    "find_reflex_vertices",
    "decompose_wings",
    # Skeleton
    "SkeletonResult",
    "build_skeleton",
    "find_ridge_junctions",
    "enforce_shared_vertices",
    # Facets
    "FacetAssembly",
    "assemble",
    "direction_label",
    "facet_color",
    # Perimeter
    "classify_perimeter",
    "linear_totals",
    # Topology
    "IssueType",
    "RepairAction",
    "Severity",
    "TopologyIssue",
    "TopologyReport",
    "RepairSuggestion",
    "validate",
    "apply_repairs",
    # Constraints
    "Constraint",
    "ConstraintType",
    "RoofGraph",
    "SolverResult",
    "default_constraints",
    "find_violations",
    "solve",
]

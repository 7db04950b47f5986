"""
Configuration management for roofgeo.

Every tolerance and empirical constant used by the engine lives here, so a
deployment can tune them through ``ROOFGEO_*`` environment variables or a
``.env`` file without touching code.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Engine settings.

    Can be configured via environment variables or .env file. Instances are
    frozen; build a new one with ``settings.model_copy(update={...})`` to
    override values for a single call.
    """

    model_config = SettingsConfigDict(
        env_prefix="ROOFGEO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Footprint preprocessing
    duplicate_tolerance_ft: float = Field(default=0.001, ge=0, description="Consecutive vertices closer than this are merged")
    simplify_tolerance_ft: float = Field(default=0.984, ge=0, description="Point-line reduction tolerance (0.3 m)")
    angle_tolerance_deg: float = Field(default=12.0, ge=0, le=45, description="Snap window for right angles and diagonals")
    straighten_bucket_deg: float = Field(default=5.0, gt=0, description="Bucket width for edge straightening")
    min_vertex_count: int = Field(default=4, ge=3, description="Minimum vertices after simplification")
    max_area_drift_pct: float = Field(default=5.0, ge=0, description="Correction passes drifting area beyond this are discarded")
    soffit_offset_ft: float = Field(default=0.0, ge=0, description="Eave overhang added around the footprint (0 = off)")

    # Shape classification / skeleton
    max_reflex_vertices: int = Field(default=4, ge=0, description="Above this, only the perimeter is produced")
    ridge_inset_fraction: float = Field(default=0.4, gt=0, lt=0.5, description="Ridge inset from short sides, fraction of short side")
    junction_epsilon_ft: float = Field(default=0.001, ge=0, description="Ridge endpoints closer than this form a junction")
    max_hip_ridge_ratio: float = Field(default=4.0, gt=0, description="Hips longer than ratio x ridge length are dropped")

    # Facet assembly
    default_pitch: str = Field(default="6/12", description="Pitch used when the requested pitch is unusable")
    min_facet_hints: int = Field(default=2, ge=1, description="Hints required before hint-driven assembly is tried")
    ridge_point_factor: float = Field(default=0.7, ge=0, le=1, description="Move from hint center toward centroid")
    min_facet_area_sqft: float = Field(default=10.0, ge=0, description="Facets smaller than this lose confidence")

    # Topology
    topology_duplicate_tolerance_ft: float = Field(default=1.0, ge=0, description="Endpoint tolerance for duplicate lines")
    connection_tolerance_ft: float = Field(default=2.0, ge=0, description="Endpoint connection tolerance")
    crossing_tolerance_ft: float = Field(default=0.5, ge=0, description="Crossings this close to an endpoint are junctions")
    merge_gap_ft: float = Field(default=1.5, ge=0, description="Gaps below this are merged at the midpoint")
    max_repair_distance_ft: float = Field(default=10.0, ge=0, description="Gaps beyond this are repaired by removal")
    apply_topology_repairs: bool = Field(default=False, description="Apply repair suggestions inside reconstruct_roof")

    # Constraint solver
    run_constraint_solver: bool = Field(default=True, description="Run the constraint solver inside reconstruct_roof")
    hip_angle_tolerance_deg: float = Field(default=10.0, ge=0, description="Allowed hip deviation from 45/135 deg")
    max_solver_iterations: int = Field(default=100, ge=1, description="Solver iteration cap")
    max_rotation_step_deg: float = Field(default=2.0, gt=0, description="Largest hip rotation per pass")
    snap_radius_ft: float = Field(default=10.0, ge=0, description="Search radius for connectivity snaps")
    pitch_consistency_rise: float = Field(default=2.0, ge=0, description="Allowed rise difference between facets")


# Global settings instance
settings = Settings()


def resolve_settings(override: "Settings | None" = None) -> Settings:
    """Return ``override`` when given, else the global settings."""
    return override if override is not None else settings

"""Console reporting."""

from .console_report import print_geometry_report

__all__ = ["print_geometry_report"]

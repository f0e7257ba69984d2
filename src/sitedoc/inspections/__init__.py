"""Inspection workflow hooks that feed the report catalog."""

from .service import InspectionService, overall_result

__all__ = ["InspectionService", "overall_result"]

"""Database models for Sitedoc."""

from .audit import AuditEvent, AuditEventType
from .base import Base, PortableJSON, PortableUUID, TimestampMixin, utcnow
from .report import ReportRequest
from .site import (
    DailyDiary,
    DiaryLabourEntry,
    DiaryMaterialEntry,
    DiaryPlantEntry,
    Inspection,
    Lot,
    NonConformance,
    Organization,
    OrganizationMember,
    Project,
)

__all__ = [
    "Base",
    "PortableJSON",
    "PortableUUID",
    "TimestampMixin",
    "utcnow",
    "AuditEvent",
    "AuditEventType",
    "ReportRequest",
    "Organization",
    "OrganizationMember",
    "Project",
    "Lot",
    "DailyDiary",
    "DiaryLabourEntry",
    "DiaryPlantEntry",
    "DiaryMaterialEntry",
    "Inspection",
    "NonConformance",
]

"""Site documentation records read by report aggregation.

These tables belong to the wider site-documentation platform. The reporting
subsystem only reads them, except for inspection finalization which is the
trigger for ITP catalog entries.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableJSON, PortableUUID, TimestampMixin

Money = Numeric(12, 2)
Rate = Numeric(10, 2)
Quantity = Numeric(12, 3)


# =============================================================================
# Organizations
# =============================================================================


class Organization(Base, TimestampMixin):
    """A builder or subcontractor organization; the tenant boundary."""

    __tablename__ = "organizations"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r})>"


class OrganizationMember(Base, TimestampMixin):
    """Membership of a user in an organization, with their role."""

    __tablename__ = "organization_members"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    organization_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="member")

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_member_org_user"),
        Index("idx_member_user", "user_id"),
    )


# =============================================================================
# Projects and Lots
# =============================================================================


class Project(Base, TimestampMixin):
    """A construction project owned by one organization."""

    __tablename__ = "projects"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    organization_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="active")

    __table_args__ = (Index("idx_project_org", "organization_id"),)


class Lot(Base, TimestampMixin):
    """A lot (work area) within a project."""

    __tablename__ = "lots"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    project_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    lot_number: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="open")

    __table_args__ = (Index("idx_lot_project", "project_id"),)


# =============================================================================
# Daily Diaries
# =============================================================================


class DailyDiary(Base, TimestampMixin):
    """One day's site diary.

    ``trades_on_site`` is a list of objects such as
    ``{"trade": "Concreter", "company": "...", "workers": 4,
    "hourly_rate": 85, "daily_rate": 680, "total_cost": 2720}``.
    """

    __tablename__ = "daily_diaries"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    project_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    diary_date: Mapped[date] = mapped_column(Date, nullable=False)
    weather: Mapped[str | None] = mapped_column(String(100), nullable=True)
    activities: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="draft")
    trades_on_site: Mapped[list] = mapped_column(PortableJSON(), nullable=False, default=list)
    created_by: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)

    __table_args__ = (Index("idx_diary_project_date", "project_id", "diary_date"),)


class DiaryLabourEntry(Base):
    """Labour hours booked against a diary."""

    __tablename__ = "diary_labour_entries"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    diary_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("daily_diaries.id", ondelete="CASCADE"), nullable=False
    )
    worker_name: Mapped[str] = mapped_column(String(255), nullable=False)
    trade: Mapped[str | None] = mapped_column(String(100), nullable=True)
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Rate, nullable=True)
    total_cost: Mapped[Decimal | None] = mapped_column(Money, nullable=True)

    __table_args__ = (Index("idx_labour_diary", "diary_id"),)


class DiaryPlantEntry(Base):
    """Plant and equipment usage booked against a diary."""

    __tablename__ = "diary_plant_entries"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    diary_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("daily_diaries.id", ondelete="CASCADE"), nullable=False
    )
    equipment: Mapped[str] = mapped_column(String(255), nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Rate, nullable=True)
    daily_rate: Mapped[Decimal | None] = mapped_column(Rate, nullable=True)
    fuel_cost: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    total_cost: Mapped[Decimal | None] = mapped_column(Money, nullable=True)

    __table_args__ = (Index("idx_plant_diary", "diary_id"),)


class DiaryMaterialEntry(Base):
    """Materials delivered or used, booked against a diary."""

    __tablename__ = "diary_material_entries"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    diary_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("daily_diaries.id", ondelete="CASCADE"), nullable=False
    )
    material: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Quantity, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    unit_cost: Mapped[Decimal | None] = mapped_column(Rate, nullable=True)
    total_cost: Mapped[Decimal | None] = mapped_column(Money, nullable=True)

    __table_args__ = (Index("idx_material_diary", "diary_id"),)


# =============================================================================
# Quality Records
# =============================================================================


class Inspection(Base, TimestampMixin):
    """An ITP (inspection and test plan) instance.

    ``checklist_items`` holds ``{"item": str, "result": "pass"|"fail"|"na"}``
    objects. ``result`` is the overall outcome once the inspection is done.
    """

    __tablename__ = "inspections"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    project_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    lot_id: Mapped[UUID | None] = mapped_column(
        PortableUUID(), ForeignKey("lots.id", ondelete="SET NULL"), nullable=True
    )
    template_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="draft")
    result: Mapped[str | None] = mapped_column(String(20), nullable=True)
    inspection_date: Mapped[date] = mapped_column(Date, nullable=False)
    inspector_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    checklist_items: Mapped[list] = mapped_column(PortableJSON(), nullable=False, default=list)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_inspection_project_date", "project_id", "inspection_date"),)


class NonConformance(Base, TimestampMixin):
    """A non-conformance report (NCR)."""

    __tablename__ = "ncrs"

    id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    project_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    lot_id: Mapped[UUID | None] = mapped_column(
        PortableUUID(), ForeignKey("lots.id", ondelete="SET NULL"), nullable=True
    )
    ncr_number: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="minor")
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="open")
    raised_on: Mapped[date] = mapped_column(Date, nullable=False)
    closed_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (Index("idx_ncr_project_raised", "project_id", "raised_on"),)

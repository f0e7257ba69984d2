"""Initial site documentation schema

Revision ID: 001
Revises: None
Create Date: 2026-03-02
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def _diary_fk() -> sa.Column:
    return sa.Column(
        "diary_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("daily_diaries.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    # Organizations and membership
    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "organization_members",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="member"),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "user_id", name="uq_member_org_user"),
    )
    op.create_index("idx_member_user", "organization_members", ["user_id"])

    # Projects and lots
    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("project_number", sa.String(50), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="active"),
        *_timestamps(),
    )
    op.create_index("idx_project_org", "projects", ["organization_id"])

    op.create_table(
        "lots",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("lot_number", sa.String(50), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="open"),
        *_timestamps(),
    )
    op.create_index("idx_lot_project", "lots", ["project_id"])

    # Daily diaries and their entries
    op.create_table(
        "daily_diaries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("diary_date", sa.Date, nullable=False),
        sa.Column("weather", sa.String(100), nullable=True),
        sa.Column("activities", sa.Text, nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="draft"),
        sa.Column("trades_on_site", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_diary_project_date", "daily_diaries", ["project_id", "diary_date"])

    op.create_table(
        "diary_labour_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _diary_fk(),
        sa.Column("worker_name", sa.String(255), nullable=False),
        sa.Column("trade", sa.String(100), nullable=True),
        sa.Column("hours", sa.Numeric(6, 2), nullable=False),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=True),
    )
    op.create_index("idx_labour_diary", "diary_labour_entries", ["diary_id"])

    op.create_table(
        "diary_plant_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _diary_fk(),
        sa.Column("equipment", sa.String(255), nullable=False),
        sa.Column("hours", sa.Numeric(6, 2), nullable=False),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("daily_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("fuel_cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=True),
    )
    op.create_index("idx_plant_diary", "diary_plant_entries", ["diary_id"])

    op.create_table(
        "diary_material_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _diary_fk(),
        sa.Column("material", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("unit_cost", sa.Numeric(10, 2), nullable=True),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=True),
    )
    op.create_index("idx_material_diary", "diary_material_entries", ["diary_id"])

    # Quality records
    op.create_table(
        "inspections",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "lot_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lots.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("template_name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="draft"),
        sa.Column("result", sa.String(20), nullable=True),
        sa.Column("inspection_date", sa.Date, nullable=False),
        sa.Column("inspector_name", sa.String(255), nullable=True),
        sa.Column("checklist_items", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_inspection_project_date", "inspections", ["project_id", "inspection_date"]
    )

    op.create_table(
        "ncrs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "lot_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lots.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("ncr_number", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("severity", sa.String(20), nullable=False, server_default="minor"),
        sa.Column("status", sa.String(30), nullable=False, server_default="open"),
        sa.Column("raised_on", sa.Date, nullable=False),
        sa.Column("closed_on", sa.Date, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_ncr_project_raised", "ncrs", ["project_id", "raised_on"])


def downgrade() -> None:
    op.drop_table("ncrs")
    op.drop_table("inspections")
    op.drop_table("diary_material_entries")
    op.drop_table("diary_plant_entries")
    op.drop_table("diary_labour_entries")
    op.drop_table("daily_diaries")
    op.drop_table("lots")
    op.drop_table("projects")
    op.drop_table("organization_members")
    op.drop_table("organizations")

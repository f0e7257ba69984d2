"""Add report_requests table

Revision ID: 003
Revises: 002
Create Date: 2026-03-09
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "report_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        # Classification
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column("format", sa.String(20), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("parameters", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("natural_key", sa.String(255), nullable=True),
        # Lifecycle
        sa.Column("status", sa.String(20), nullable=False, server_default="queued"),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("current_step", sa.String(255), nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        # Artifact
        sa.Column("file_location", sa.String(1024), nullable=True),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("file_size", sa.Integer, nullable=True),
        sa.Column("mime_type", sa.String(100), nullable=True),
        sa.Column(
            "includes_financials", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column("requested_by", postgresql.UUID(as_uuid=True), nullable=False),
        # Timestamps
        sa.Column(
            "requested_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "status IN ('queued', 'processing', 'completed', 'failed')",
            name="ck_report_status",
        ),
        sa.CheckConstraint("progress BETWEEN 0 AND 100", name="ck_report_progress"),
    )

    op.create_index(
        "idx_report_org_requested", "report_requests", ["organization_id", "requested_at"]
    )
    op.create_index("idx_report_org_kind", "report_requests", ["organization_id", "kind"])
    op.create_index("idx_report_status", "report_requests", ["status"])
    op.create_index("idx_report_requested_by", "report_requests", ["requested_by"])
    op.create_index("idx_report_natural_key", "report_requests", ["natural_key"])


def downgrade() -> None:
    op.drop_table("report_requests")

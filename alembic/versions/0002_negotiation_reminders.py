"""negotiation stall reminders

Revision ID: 0002_negotiation_reminders
Revises: 0001_rider_negotiation
Create Date: 2026-10-18
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0002_negotiation_reminders"
down_revision = "0001_rider_negotiation"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "negotiation_reminders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "acknowledgment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("rider_acknowledgments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("audience", sa.String(length=16), nullable=False),
        sa.Column("offset_days", sa.Integer(), nullable=False),
        sa.Column("entry_id", sa.Integer(), nullable=True),
        sa.Column("sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint(
            "acknowledgment_id", "audience", "offset_days", name="uq_negotiation_reminder_offset"
        ),
        sa.CheckConstraint("offset_days >= 0", name="ck_negotiation_reminder_offset_nonnegative"),
    )
    op.create_index("ix_negotiation_reminder_sent", "negotiation_reminders", ["sent"])


def downgrade():
    op.drop_index("ix_negotiation_reminder_sent", table_name="negotiation_reminders")
    op.drop_table("negotiation_reminders")

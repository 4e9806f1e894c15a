"""rider documents, acknowledgments, modification ledger, contracts, reminders

Revision ID: 0001_rider_negotiation
Revises:
Create Date: 2026-10-18
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_rider_negotiation"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ---------------------------------------------------------------------
    # rider_document_versions (immutable, one row per version)
    # ---------------------------------------------------------------------
    op.create_table(
        "rider_document_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("document_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("fields_json", postgresql.JSONB, nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("document_id", "version", name="uq_rider_document_version"),
        sa.CheckConstraint("version >= 1", name="ck_rider_document_version_positive"),
    )
    op.create_index("ix_rider_document_owner", "rider_document_versions", ["owner_id"])

    # ---------------------------------------------------------------------
    # rider_acknowledgments (revision = optimistic lock)
    # ---------------------------------------------------------------------
    op.create_table(
        "rider_acknowledgments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("booking_id", sa.String(length=128), nullable=False),
        sa.Column("rider_document_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("rider_version", sa.Integer(), nullable=False),
        sa.Column("artist_user_id", sa.String(length=128), nullable=False),
        sa.Column("venue_user_id", sa.String(length=128), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("checklist_json", postgresql.JSONB, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("booking_id", name="uq_rider_ack_booking"),
        sa.ForeignKeyConstraint(
            ["rider_document_id", "rider_version"],
            ["rider_document_versions.document_id", "rider_document_versions.version"],
            ondelete="RESTRICT",
            name="fk_rider_ack_document_version",
        ),
        sa.CheckConstraint("revision >= 1", name="ck_rider_ack_revision_positive"),
    )
    op.create_index("ix_rider_ack_status", "rider_acknowledgments", ["status"])
    op.create_index("ix_rider_ack_parties", "rider_acknowledgments", ["artist_user_id", "venue_user_id"])

    # ---------------------------------------------------------------------
    # rider_modification_entries (append-only ledger)
    # ---------------------------------------------------------------------
    op.create_table(
        "rider_modification_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "acknowledgment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("rider_acknowledgments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("entry_id", sa.Integer(), nullable=False),
        sa.Column("field_name", sa.String(length=64), nullable=False),
        sa.Column("original_value_json", postgresql.JSONB, nullable=True),
        sa.Column("proposed_value_json", postgresql.JSONB, nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("proposed_by", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_by", sa.String(length=16), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_reason", sa.Text(), nullable=True),
        sa.Column("resolved_in_revision", sa.Integer(), nullable=True),
        sa.Column("superseded_by", sa.Integer(), nullable=True),
        sa.UniqueConstraint("acknowledgment_id", "entry_id", name="uq_rider_modification_entry"),
        sa.CheckConstraint("entry_id >= 1", name="ck_rider_modification_entry_positive"),
    )
    op.create_index("ix_rider_modification_field", "rider_modification_entries", ["acknowledgment_id", "field_name"])

    # ---------------------------------------------------------------------
    # rider_contract_records (never UPDATE)
    # ---------------------------------------------------------------------
    op.create_table(
        "rider_contract_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "acknowledgment_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("rider_acknowledgments.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("booking_id", sa.String(length=128), nullable=False),
        sa.Column("terms_json", postgresql.JSONB, nullable=False),
        sa.Column("applied_entries_json", postgresql.JSONB, nullable=False),
        sa.Column("contract_hash", sa.String(length=128), nullable=False),
        sa.Column("contract_url", sa.String(length=512), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("acknowledgment_id", name="uq_rider_contract_ack"),
    )
    op.create_index("ix_rider_contract_booking", "rider_contract_records", ["booking_id"])

    # ---------------------------------------------------------------------
    # contract_reminders (sent flips false -> true once)
    # ---------------------------------------------------------------------
    op.create_table(
        "contract_reminders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("contract_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("booking_id", sa.String(length=128), nullable=False),
        sa.Column("contract_url", sa.String(length=512), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("offset_days", sa.Integer(), nullable=False),
        sa.Column("sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("contract_id", "offset_days", name="uq_contract_reminder_offset"),
        sa.CheckConstraint("offset_days >= 0", name="ck_contract_reminder_offset_nonnegative"),
    )
    op.create_index("ix_contract_reminder_due", "contract_reminders", ["sent", "event_date"])

    # ---------------------------------------------------------------------
    # audit_log_records (append-only)
    # ---------------------------------------------------------------------
    op.create_table(
        "audit_log_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("request_id", sa.String(length=128), nullable=False),
        sa.Column("actor_user_id", sa.String(length=128), nullable=False),
        sa.Column("actor_role", sa.String(length=16), nullable=False),
        sa.Column("acknowledgment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=96), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default=sa.text("'ok'")),
        sa.Column("payload_hash", sa.String(length=128), nullable=False),
        sa.Column("payload_summary_json", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
    )
    op.create_index("ix_audit_log_records_request_id", "audit_log_records", ["request_id"])
    op.create_index("ix_audit_ack", "audit_log_records", ["acknowledgment_id"])
    op.create_index("ix_audit_action", "audit_log_records", ["action"])
    op.create_index("ix_audit_created", "audit_log_records", ["created_at"])

    # ---------------------------------------------------------------------
    # idempotency_key_records
    # ---------------------------------------------------------------------
    op.create_table(
        "idempotency_key_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("scope_key", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("endpoint_key", sa.String(length=160), nullable=False),
        sa.Column("idem_key", sa.String(length=128), nullable=False),
        sa.Column("request_hash", sa.String(length=128), nullable=False),
        sa.Column("response_status", sa.String(length=16), nullable=False, server_default=sa.text("'200'")),
        sa.Column("response_json", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("scope_key", "user_id", "endpoint_key", "idem_key", name="uq_idem_scope"),
    )
    op.create_index("ix_idem_lookup", "idempotency_key_records", ["scope_key", "user_id", "endpoint_key"])


def downgrade():
    op.drop_index("ix_idem_lookup", table_name="idempotency_key_records")
    op.drop_table("idempotency_key_records")

    op.drop_index("ix_audit_created", table_name="audit_log_records")
    op.drop_index("ix_audit_action", table_name="audit_log_records")
    op.drop_index("ix_audit_ack", table_name="audit_log_records")
    op.drop_index("ix_audit_log_records_request_id", table_name="audit_log_records")
    op.drop_table("audit_log_records")

    op.drop_index("ix_contract_reminder_due", table_name="contract_reminders")
    op.drop_table("contract_reminders")

    op.drop_index("ix_rider_contract_booking", table_name="rider_contract_records")
    op.drop_table("rider_contract_records")

    op.drop_index("ix_rider_modification_field", table_name="rider_modification_entries")
    op.drop_table("rider_modification_entries")

    op.drop_index("ix_rider_ack_parties", table_name="rider_acknowledgments")
    op.drop_index("ix_rider_ack_status", table_name="rider_acknowledgments")
    op.drop_table("rider_acknowledgments")

    op.drop_index("ix_rider_document_owner", table_name="rider_document_versions")
    op.drop_table("rider_document_versions")

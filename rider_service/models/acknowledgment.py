#rider_service/models/acknowledgment.py
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, List, Optional

from sqlalchemy import (
    String,
    Text,
    Date,
    DateTime,
    Integer,
    ForeignKey,
    ForeignKeyConstraint,
    UniqueConstraint,
    CheckConstraint,
    Index,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rider_service.db.base import Base, JSONType
from rider_service.models.enums import AcknowledgmentStatus


class RiderAcknowledgment(Base):
    """
    One negotiation instance per booking.

    `revision` is the optimistic lock: every committed action runs
    UPDATE ... WHERE id = :id AND revision = :read_revision.
    """

    __tablename__ = "rider_acknowledgments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    booking_id: Mapped[str] = mapped_column(String(128), nullable=False)

    rider_document_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    rider_version: Mapped[int] = mapped_column(Integer, nullable=False)

    artist_user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    venue_user_id: Mapped[str] = mapped_column(String(128), nullable=False)

    event_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[str] = mapped_column(
        String(32), nullable=False, server_default=text(f"'{AcknowledgmentStatus.pending.value}'")
    )

    # snapshot rows, see policies.checklist_policy
    checklist_json: Mapped[List[dict]] = mapped_column(JSONType, nullable=False, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    revision: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    entries = relationship(
        "ModificationEntryRecord",
        back_populates="acknowledgment",
        order_by="ModificationEntryRecord.entry_id",
    )

    __table_args__ = (
        UniqueConstraint("booking_id", name="uq_rider_ack_booking"),
        ForeignKeyConstraint(
            ["rider_document_id", "rider_version"],
            ["rider_document_versions.document_id", "rider_document_versions.version"],
            ondelete="RESTRICT",
            name="fk_rider_ack_document_version",
        ),
        CheckConstraint("revision >= 1", name="ck_rider_ack_revision_positive"),
        Index("ix_rider_ack_status", "status"),
        Index("ix_rider_ack_parties", "artist_user_id", "venue_user_id"),
    )


class ModificationEntryRecord(Base):
    """
    Append-only ledger row. Only the status/resolution columns ever change,
    and only once (open -> approved | rejected).
    """

    __tablename__ = "rider_modification_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    acknowledgment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("rider_acknowledgments.id", ondelete="CASCADE"),
        nullable=False,
    )

    entry_id: Mapped[int] = mapped_column(Integer, nullable=False)  # 1..n per acknowledgment
    field_name: Mapped[str] = mapped_column(String(64), nullable=False)

    original_value_json: Mapped[Optional[Any]] = mapped_column(JSONType, nullable=True)
    proposed_value_json: Mapped[Any] = mapped_column(JSONType, nullable=False)

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    proposed_by: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    resolved_by: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_in_revision: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    superseded_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    acknowledgment = relationship("RiderAcknowledgment", back_populates="entries")

    __table_args__ = (
        UniqueConstraint("acknowledgment_id", "entry_id", name="uq_rider_modification_entry"),
        CheckConstraint("entry_id >= 1", name="ck_rider_modification_entry_positive"),
        Index("ix_rider_modification_field", "acknowledgment_id", "field_name"),
    )

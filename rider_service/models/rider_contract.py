#rider_service/models/rider_contract.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import (
    String,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Index,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from rider_service.db.base import Base, JSONType


class RiderContractRecord(Base):
    """
    Agreed rider terms captured at finalization.

    Immutability rule:
      - Never UPDATE a record.
      - contract_hash = SHA256(canonical(terms_json)) at creation time.
    """

    __tablename__ = "rider_contract_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    acknowledgment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("rider_acknowledgments.id", ondelete="RESTRICT"),
        nullable=False,
    )
    booking_id: Mapped[str] = mapped_column(String(128), nullable=False)

    # rider fields with approved modifications applied
    terms_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    # entry ids that changed the rider, for traceability
    applied_entries_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    contract_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    contract_url: Mapped[str] = mapped_column(String(512), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("acknowledgment_id", name="uq_rider_contract_ack"),
        Index("ix_rider_contract_booking", "booking_id"),
    )

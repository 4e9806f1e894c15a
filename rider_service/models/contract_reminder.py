#rider_service/models/contract_reminder.py
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    String,
    Date,
    DateTime,
    Integer,
    Boolean,
    UniqueConstraint,
    CheckConstraint,
    Index,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from rider_service.db.base import Base


class ContractReminder(Base):
    """
    One row per (contract_id, offset_days). `sent` is the only idempotence
    guard: it flips false -> true exactly once.
    """

    __tablename__ = "contract_reminders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    contract_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    booking_id: Mapped[str] = mapped_column(String(128), nullable=False)
    contract_url: Mapped[str] = mapped_column(String(512), nullable=False)

    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    offset_days: Mapped[int] = mapped_column(Integer, nullable=False)

    sent: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("contract_id", "offset_days", name="uq_contract_reminder_offset"),
        CheckConstraint("offset_days >= 0", name="ck_contract_reminder_offset_nonnegative"),
        Index("ix_contract_reminder_due", "sent", "event_date"),
    )

#rider_service/models/negotiation_reminder.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    Boolean,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from rider_service.db.base import Base


class NegotiationReminder(Base):
    """
    Stalled-negotiation reminder, one row per (acknowledgment_id, audience,
    offset_days). Registered the first time a poll finds it due; `sent`
    flips false -> true once, like ContractReminder.
    """

    __tablename__ = "negotiation_reminders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    acknowledgment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("rider_acknowledgments.id", ondelete="CASCADE"),
        nullable=False,
    )
    audience: Mapped[str] = mapped_column(String(16), nullable=False)  # artist | venue
    offset_days: Mapped[int] = mapped_column(Integer, nullable=False)

    # oldest waiting venue proposal, artist reminders only
    entry_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    sent: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "acknowledgment_id", "audience", "offset_days", name="uq_negotiation_reminder_offset"
        ),
        CheckConstraint("offset_days >= 0", name="ck_negotiation_reminder_offset_nonnegative"),
        Index("ix_negotiation_reminder_sent", "sent"),
    )

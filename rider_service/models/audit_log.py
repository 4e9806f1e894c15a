from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import String, DateTime, Integer, Index, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from rider_service.db.base import Base, JSONType


class AuditLogRecord(Base):
    """
    Audit trail record for negotiation actions.
    - Append-only (never UPDATE)
    - Written in the same transaction as the action it describes, so a
      conflicted/rolled-back attempt leaves no audit row.
    - Stores request-id, actor, acknowledgment, action, payload hash and a safe summary.
    """
    __tablename__ = "audit_log_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Correlation
    request_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # Actor (user id + party role)
    actor_user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(16), nullable=False)

    # Scope
    acknowledgment_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    revision: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # What happened
    action: Mapped[str] = mapped_column(String(96), nullable=False)  # e.g., MODIFICATIONS_APPROVED
    status: Mapped[str] = mapped_column(String(32), nullable=False, server_default=text("'ok'"))

    # Payload traceability (hash + safe summary)
    payload_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    payload_summary_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_audit_ack", "acknowledgment_id"),
        Index("ix_audit_action", "action"),
        Index("ix_audit_created", "created_at"),
    )

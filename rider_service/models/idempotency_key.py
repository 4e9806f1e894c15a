from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import String, DateTime, UniqueConstraint, Index, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from rider_service.db.base import Base, JSONType


class IdempotencyKeyRecord(Base):
    """
    Stores the response for a mutating request carrying an Idempotency-Key header.

    Scope is strict:
      (scope_key, user_id, endpoint_key, idem_key) must be unique.
    scope_key is the acknowledgment id for negotiation routes.
    """
    __tablename__ = "idempotency_key_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    scope_key: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)

    endpoint_key: Mapped[str] = mapped_column(String(160), nullable=False)  # e.g. "POST:/api/v1/acknowledgments/{id}/finalize"
    idem_key: Mapped[str] = mapped_column(String(128), nullable=False)

    request_hash: Mapped[str] = mapped_column(String(128), nullable=False)

    response_status: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'200'"))
    response_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("scope_key", "user_id", "endpoint_key", "idem_key", name="uq_idem_scope"),
        Index("ix_idem_lookup", "scope_key", "user_id", "endpoint_key"),
    )

#rider_service/models/rider_document.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    UniqueConstraint,
    CheckConstraint,
    Index,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from rider_service.db.base import Base, JSONType


class RiderDocumentVersion(Base):
    """
    One immutable rider version.

    Immutability rule:
      - Never UPDATE a row.
      - An edit inserts a new row for the same document_id with version+1.
    """

    __tablename__ = "rider_document_versions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    document_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)

    # field name -> JSON-encoded value (decimals as strings)
    fields_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    published_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("document_id", "version", name="uq_rider_document_version"),
        CheckConstraint("version >= 1", name="ck_rider_document_version_positive"),
        Index("ix_rider_document_owner", "owner_id"),
    )

# rider_service/services/rider_document_service.py
from __future__ import annotations

import logging
import uuid
from typing import Any, List, Mapping, Optional

from sqlalchemy import select, desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rider_service.core.clock import as_utc, utc_now
from rider_service.core.errors import NotFoundError, ValidationError
from rider_service.core.rider_fields import decode_fields, encode_fields, validate_fields
from rider_service.core.types import RiderDocument
from rider_service.models.rider_document import RiderDocumentVersion

logger = logging.getLogger(__name__)


def to_domain(row: RiderDocumentVersion) -> RiderDocument:
    return RiderDocument(
        document_id=row.document_id,
        owner_id=row.owner_id,
        version=row.version,
        fields=decode_fields(row.fields_json or {}),
        published_at=as_utc(row.published_at),
    )


class RiderDocumentService:
    """
    Versioned, immutable rider documents.

    Rules:
      - A version is never updated; an edit inserts version = max(version) + 1.
      - Only the owning artist may publish further versions of a document.
      - Acknowledgments pin (document_id, version), so later edits never
        change a negotiation that is already running.
    """

    # ---------------------------
    # READS
    # ---------------------------

    def _latest_row(self, db: Session, document_id: uuid.UUID) -> Optional[RiderDocumentVersion]:
        return (
            db.execute(
                select(RiderDocumentVersion)
                .where(RiderDocumentVersion.document_id == document_id)
                .order_by(desc(RiderDocumentVersion.version))
                .limit(1)
            )
            .scalars()
            .first()
        )

    def get_version(self, db: Session, document_id: uuid.UUID, version: int) -> RiderDocument:
        row = db.execute(
            select(RiderDocumentVersion).where(
                RiderDocumentVersion.document_id == document_id,
                RiderDocumentVersion.version == version,
            )
        ).scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Rider {document_id} version {version} not found.")
        return to_domain(row)

    def get_latest(self, db: Session, document_id: uuid.UUID) -> RiderDocument:
        row = self._latest_row(db, document_id)
        if row is None:
            raise NotFoundError(f"Rider {document_id} not found.")
        return to_domain(row)

    def list_versions(self, db: Session, document_id: uuid.UUID) -> List[RiderDocument]:
        rows = db.execute(
            select(RiderDocumentVersion)
            .where(RiderDocumentVersion.document_id == document_id)
            .order_by(RiderDocumentVersion.version)
        ).scalars().all()
        if not rows:
            raise NotFoundError(f"Rider {document_id} not found.")
        return [to_domain(r) for r in rows]

    # ---------------------------
    # WRITES
    # ---------------------------

    def create_version(
        self,
        db: Session,
        *,
        owner_id: str,
        fields: Mapping[str, Any],
        document_id: Optional[uuid.UUID] = None,
    ) -> RiderDocument:
        """
        Publish a rider version.

        document_id=None starts a new document at version 1. Two concurrent
        edits of the same document race on the (document_id, version) unique
        constraint; the loser gets a ValidationError and should re-read.
        """
        if not (owner_id or "").strip():
            raise ValidationError("owner_id is required.")

        clean = validate_fields(fields)

        if document_id is None:
            document_id = uuid.uuid4()
            version = 1
        else:
            latest = self._latest_row(db, document_id)
            if latest is None:
                raise NotFoundError(f"Rider {document_id} not found.")
            if latest.owner_id != owner_id:
                raise ValidationError("Only the rider owner may publish a new version.")
            version = int(
                db.execute(
                    select(func.max(RiderDocumentVersion.version)).where(
                        RiderDocumentVersion.document_id == document_id
                    )
                ).scalar_one()
            ) + 1

        row = RiderDocumentVersion(
            document_id=document_id,
            version=version,
            owner_id=owner_id,
            fields_json=encode_fields(clean),
            published_at=utc_now(),
        )
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValidationError(
                f"Rider {document_id} version {version} was published concurrently; reload and retry."
            )
        db.refresh(row)

        logger.info(
            "rider version published",
            extra={"document_id": str(document_id), "version": version, "owner_id": owner_id},
        )
        return to_domain(row)

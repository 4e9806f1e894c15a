from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from rider_service.core.hashing import payload_hash
from rider_service.models.audit_log import AuditLogRecord


class AuditAction:
    # Acknowledgment lifecycle
    ACKNOWLEDGMENT_OPENED = "ACKNOWLEDGMENT_OPENED"
    CHECKLIST_UPDATED = "CHECKLIST_UPDATED"
    RIDER_ACKNOWLEDGED = "RIDER_ACKNOWLEDGED"
    ACKNOWLEDGMENT_ARCHIVED = "ACKNOWLEDGMENT_ARCHIVED"

    # Modifications
    MODIFICATION_PROPOSED = "MODIFICATION_PROPOSED"
    MODIFICATIONS_APPROVED = "MODIFICATIONS_APPROVED"
    MODIFICATIONS_REJECTED = "MODIFICATIONS_REJECTED"

    # Contracts
    RIDER_FINALIZED = "RIDER_FINALIZED"


ACTION_TO_AUDIT = {
    "acknowledge": AuditAction.RIDER_ACKNOWLEDGED,
    "proposeModification": AuditAction.MODIFICATION_PROPOSED,
    "approveModifications": AuditAction.MODIFICATIONS_APPROVED,
    "rejectModifications": AuditAction.MODIFICATIONS_REJECTED,
    "finalize": AuditAction.RIDER_FINALIZED,
}


def audit_event(
    db: Session,
    *,
    request_id: Optional[str],
    actor_user_id: str,
    actor_role: str,
    acknowledgment_id: uuid.UUID,
    revision: Optional[int],
    action: str,
    payload_summary: Dict[str, Any],
    status: str = "ok",
) -> AuditLogRecord:
    """
    Append-only audit record insert.

    Joins the caller's transaction: the negotiation service commits it
    together with the revision bump, so only committed actions are audited.
    payload_summary MUST be safe to show to either party.
    """
    row = AuditLogRecord(
        request_id=request_id or "missing",
        actor_user_id=actor_user_id,
        actor_role=actor_role,
        acknowledgment_id=acknowledgment_id,
        revision=revision,
        action=action,
        status=status,
        payload_hash=payload_hash(payload_summary),
        payload_summary_json=payload_summary,
    )
    db.add(row)
    return row


def list_for_acknowledgment(db: Session, acknowledgment_id: uuid.UUID):
    return db.execute(
        select(AuditLogRecord)
        .where(AuditLogRecord.acknowledgment_id == acknowledgment_id)
        .order_by(AuditLogRecord.created_at, AuditLogRecord.revision)
    ).scalars().all()

# rider_service/api/v1/acknowledgments.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from rider_service.core.auth_deps import get_current_principal
from rider_service.core.deps import get_negotiation_service, to_http
from rider_service.core.deps_idempotency import idempotency_guard, remember_response, replay_response
from rider_service.core.errors import InvalidActorError, NegotiationError
from rider_service.core.rider_fields import encode_fields, encode_value
from rider_service.core.types import (
    Acknowledgment,
    ChecklistChange,
    ModificationEntry,
    RequirementChecklistEntry,
)
from rider_service.db.session import get_db
from rider_service.policies.rbac import (
    ACTION_ACKNOWLEDGE,
    ACTION_ARCHIVE,
    ACTION_FINALIZE,
    ACTION_OPEN_ACKNOWLEDGMENT,
    ACTION_PROPOSE,
    ACTION_RESPOND,
    ACTION_UPDATE_CHECKLIST,
    Principal,
    require_action,
)
from rider_service.schemas.acknowledgments import (
    AcknowledgePayload,
    AcknowledgmentResponse,
    ApprovePayload,
    ArchivePayload,
    ChecklistUpdatePayload,
    FinalizeResponse,
    OpenAcknowledgmentPayload,
    ProposeModificationPayload,
    RejectPayload,
    TermsResponse,
    TimelineResponse,
)
from rider_service.services.negotiation_service import NegotiationService

router = APIRouter(prefix="/acknowledgments")


# ---------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------


def _iso(dt):
    return dt.isoformat() if dt else None


def _parse_ack_id(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="acknowledgmentId must be UUID.")


def _entry_to_resp(e: ModificationEntry) -> dict:
    return {
        "entryId": e.entry_id,
        "fieldName": e.field_name,
        "originalValue": encode_value(e.field_name, e.original_value),
        "proposedValue": encode_value(e.field_name, e.proposed_value),
        "reason": e.reason,
        "notes": e.notes,
        "proposedBy": e.proposed_by.value,
        "status": e.status.value,
        "createdAtIso": _iso(e.created_at),
        "resolvedBy": e.resolved_by.value if e.resolved_by else None,
        "resolvedAtIso": _iso(e.resolved_at),
        "resolutionReason": e.resolution_reason,
        "resolvedInRevision": e.resolved_in_revision,
        "supersededBy": e.superseded_by,
    }


def _to_resp(ack: Acknowledgment) -> dict:
    return {
        "acknowledgmentId": str(ack.acknowledgment_id),
        "bookingId": ack.booking_id,
        "riderDocumentId": str(ack.rider_document_id),
        "riderVersion": ack.rider_version,
        "artistUserId": ack.artist_user_id,
        "venueUserId": ack.venue_user_id,
        "eventDate": ack.event_date.isoformat(),
        "status": ack.status.value,
        "checklist": [
            {
                "fieldName": c.field_name,
                "category": c.category,
                "requirementText": c.requirement_text,
                "canMeet": c.can_meet,
                "acknowledgedByUser": c.acknowledged_by_user,
            }
            for c in ack.checklist
        ],
        "modifications": [_entry_to_resp(e) for e in ack.ledger],
        "notes": ack.notes,
        "acknowledgedAtIso": _iso(ack.acknowledged_at),
        "finalizedAtIso": _iso(ack.finalized_at),
        "archivedAtIso": _iso(ack.archived_at),
        "revision": ack.revision,
    }


def _require(principal: Principal, action: str) -> None:
    try:
        require_action(principal, action)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))


def _read_as_party(svc: NegotiationService, ack_id: uuid.UUID, principal: Principal) -> Acknowledgment:
    """Reads are limited to the two parties on the booking."""
    try:
        ack = svc.get_acknowledgment(ack_id)
    except NegotiationError as e:
        raise to_http(e)
    if ack.user_for(principal.role) != principal.user_id:
        raise to_http(InvalidActorError("read", ack.status.value, "Not a party to this booking."))
    return ack


def _rid(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


# ---------------------------------------------------------------------
# POST /acknowledgments  (open negotiation for a booking)
# ---------------------------------------------------------------------


@router.post("", response_model=AcknowledgmentResponse, status_code=201)
async def open_acknowledgment(
    request: Request,
    payload: OpenAcknowledgmentPayload,
    idem_key: Optional[str] = Depends(idempotency_guard),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NegotiationService = Depends(get_negotiation_service),
):
    replay = replay_response(request)
    if replay is not None:
        return replay

    _require(principal, ACTION_OPEN_ACKNOWLEDGMENT)
    try:
        doc_id = uuid.UUID(payload.riderDocumentId)
    except ValueError:
        raise HTTPException(status_code=400, detail="riderDocumentId must be UUID.")

    try:
        ack = svc.open_acknowledgment(
            booking_id=payload.bookingId,
            rider_document_id=doc_id,
            rider_version=payload.riderVersion,
            artist_user_id=payload.artistUserId,
            venue_user_id=payload.venueUserId,
            event_date=payload.eventDate,
            actor=principal.role,
            actor_user_id=principal.user_id,
            request_id=_rid(request),
        )
    except NegotiationError as e:
        raise to_http(e)

    return remember_response(request, db, principal, _to_resp(ack), status_code=201)


# ---------------------------------------------------------------------
# GET /acknowledgments/{acknowledgmentId}
# ---------------------------------------------------------------------


@router.get("/{acknowledgmentId}", response_model=AcknowledgmentResponse)
async def get_acknowledgment(
    acknowledgmentId: str,
    principal: Principal = Depends(get_current_principal),
    svc: NegotiationService = Depends(get_negotiation_service),
):
    ack = _read_as_party(svc, _parse_ack_id(acknowledgmentId), principal)
    return _to_resp(ack)


# ---------------------------------------------------------------------
# PATCH /acknowledgments/{acknowledgmentId}/checklist  (venue, pending)
# ---------------------------------------------------------------------


@router.patch("/{acknowledgmentId}/checklist", response_model=AcknowledgmentResponse)
async def update_checklist(
    request: Request,
    acknowledgmentId: str,
    payload: ChecklistUpdatePayload,
    idem_key: Optional[str] = Depends(idempotency_guard),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NegotiationService = Depends(get_negotiation_service),
):
    replay = replay_response(request)
    if replay is not None:
        return replay

    ack_id = _parse_ack_id(acknowledgmentId)
    _require(principal, ACTION_UPDATE_CHECKLIST)

    changes = [
        ChecklistChange(field_name=c.fieldName, can_meet=c.canMeet, acknowledged=c.acknowledged)
        for c in payload.changes
    ]
    try:
        ack = svc.update_checklist(
            ack_id,
            actor=principal.role,
            actor_user_id=principal.user_id,
            changes=changes,
            request_id=_rid(request),
        )
    except NegotiationError as e:
        raise to_http(e)

    return remember_response(request, db, principal, _to_resp(ack))


# ---------------------------------------------------------------------
# POST /acknowledgments/{acknowledgmentId}/acknowledge  (venue accepts as-is)
# ---------------------------------------------------------------------


@router.post("/{acknowledgmentId}/acknowledge", response_model=AcknowledgmentResponse)
async def acknowledge(
    request: Request,
    acknowledgmentId: str,
    payload: AcknowledgePayload,
    idem_key: Optional[str] = Depends(idempotency_guard),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NegotiationService = Depends(get_negotiation_service),
):
    replay = replay_response(request)
    if replay is not None:
        return replay

    ack_id = _parse_ack_id(acknowledgmentId)
    _require(principal, ACTION_ACKNOWLEDGE)

    checklist = [
        RequirementChecklistEntry(
            field_name=c.fieldName,
            category=c.category,
            requirement_text=c.requirementText,
            can_meet=c.canMeet,
            acknowledged_by_user=c.acknowledgedByUser,
        )
        for c in payload.checklist
    ]
    try:
        ack = svc.acknowledge(
            ack_id,
            actor=principal.role,
            actor_user_id=principal.user_id,
            checklist=checklist,
            notes=payload.notes,
            request_id=_rid(request),
        )
    except NegotiationError as e:
        raise to_http(e)

    return remember_response(request, db, principal, _to_resp(ack))


# ---------------------------------------------------------------------
# POST /acknowledgments/{acknowledgmentId}/modifications  (propose / counter)
# ---------------------------------------------------------------------


@router.post("/{acknowledgmentId}/modifications", response_model=AcknowledgmentResponse)
async def propose_modification(
    request: Request,
    acknowledgmentId: str,
    payload: ProposeModificationPayload,
    idem_key: Optional[str] = Depends(idempotency_guard),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NegotiationService = Depends(get_negotiation_service),
):
    replay = replay_response(request)
    if replay is not None:
        return replay

    ack_id = _parse_ack_id(acknowledgmentId)
    _require(principal, ACTION_PROPOSE)

    try:
        ack = svc.propose_modification(
            ack_id,
            actor=principal.role,
            actor_user_id=principal.user_id,
            field_name=payload.fieldName,
            proposed_value=payload.proposedValue,
            reason=payload.reason,
            notes=payload.notes,
            request_id=_rid(request),
        )
    except NegotiationError as e:
        raise to_http(e)

    return remember_response(request, db, principal, _to_resp(ack))


# ---------------------------------------------------------------------
# POST /acknowledgments/{acknowledgmentId}/modifications/approve
# ---------------------------------------------------------------------


@router.post("/{acknowledgmentId}/modifications/approve", response_model=AcknowledgmentResponse)
async def approve_modifications(
    request: Request,
    acknowledgmentId: str,
    payload: ApprovePayload,
    idem_key: Optional[str] = Depends(idempotency_guard),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NegotiationService = Depends(get_negotiation_service),
):
    replay = replay_response(request)
    if replay is not None:
        return replay

    ack_id = _parse_ack_id(acknowledgmentId)
    _require(principal, ACTION_RESPOND)

    try:
        ack = svc.approve_modifications(
            ack_id,
            actor=principal.role,
            actor_user_id=principal.user_id,
            entry_ids=payload.entryIds,
            request_id=_rid(request),
        )
    except NegotiationError as e:
        raise to_http(e)

    return remember_response(request, db, principal, _to_resp(ack))


# ---------------------------------------------------------------------
# POST /acknowledgments/{acknowledgmentId}/modifications/reject
# ---------------------------------------------------------------------


@router.post("/{acknowledgmentId}/modifications/reject", response_model=AcknowledgmentResponse)
async def reject_modifications(
    request: Request,
    acknowledgmentId: str,
    payload: RejectPayload,
    idem_key: Optional[str] = Depends(idempotency_guard),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NegotiationService = Depends(get_negotiation_service),
):
    replay = replay_response(request)
    if replay is not None:
        return replay

    ack_id = _parse_ack_id(acknowledgmentId)
    _require(principal, ACTION_RESPOND)

    try:
        ack = svc.reject_modifications(
            ack_id,
            actor=principal.role,
            actor_user_id=principal.user_id,
            entry_ids=payload.entryIds,
            reason=payload.reason,
            request_id=_rid(request),
        )
    except NegotiationError as e:
        raise to_http(e)

    return remember_response(request, db, principal, _to_resp(ack))


# ---------------------------------------------------------------------
# POST /acknowledgments/{acknowledgmentId}/finalize
# ---------------------------------------------------------------------


@router.post("/{acknowledgmentId}/finalize", response_model=FinalizeResponse)
async def finalize(
    request: Request,
    acknowledgmentId: str,
    idem_key: Optional[str] = Depends(idempotency_guard),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NegotiationService = Depends(get_negotiation_service),
):
    replay = replay_response(request)
    if replay is not None:
        return replay

    ack_id = _parse_ack_id(acknowledgmentId)
    _require(principal, ACTION_FINALIZE)

    try:
        result = svc.finalize(
            ack_id,
            actor=principal.role,
            actor_user_id=principal.user_id,
            request_id=_rid(request),
        )
    except NegotiationError as e:
        raise to_http(e)

    response = {
        "acknowledgment": _to_resp(result.acknowledgment),
        "contractId": str(result.contract_id),
        "contractUrl": result.contract_url,
    }
    return remember_response(request, db, principal, response)


# ---------------------------------------------------------------------
# POST /acknowledgments/{acknowledgmentId}/archive  (booking cancelled)
# ---------------------------------------------------------------------


@router.post("/{acknowledgmentId}/archive", response_model=AcknowledgmentResponse)
async def archive(
    request: Request,
    acknowledgmentId: str,
    payload: ArchivePayload,
    idem_key: Optional[str] = Depends(idempotency_guard),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NegotiationService = Depends(get_negotiation_service),
):
    replay = replay_response(request)
    if replay is not None:
        return replay

    ack_id = _parse_ack_id(acknowledgmentId)
    _require(principal, ACTION_ARCHIVE)

    try:
        ack = svc.archive(
            ack_id,
            actor=principal.role,
            actor_user_id=principal.user_id,
            reason=payload.reason,
            request_id=_rid(request),
        )
    except NegotiationError as e:
        raise to_http(e)

    return remember_response(request, db, principal, _to_resp(ack))


# ---------------------------------------------------------------------
# GET /acknowledgments/{acknowledgmentId}/timeline
# ---------------------------------------------------------------------


@router.get("/{acknowledgmentId}/timeline", response_model=TimelineResponse)
async def get_timeline(
    acknowledgmentId: str,
    principal: Principal = Depends(get_current_principal),
    svc: NegotiationService = Depends(get_negotiation_service),
):
    ack_id = _parse_ack_id(acknowledgmentId)
    _read_as_party(svc, ack_id, principal)
    try:
        entries = svc.get_timeline(ack_id)
    except NegotiationError as e:
        raise to_http(e)
    return {"acknowledgmentId": acknowledgmentId, "entries": [_entry_to_resp(e) for e in entries]}


# ---------------------------------------------------------------------
# GET /acknowledgments/{acknowledgmentId}/terms  (rider + approved changes)
# ---------------------------------------------------------------------


@router.get("/{acknowledgmentId}/terms", response_model=TermsResponse)
async def get_terms(
    acknowledgmentId: str,
    principal: Principal = Depends(get_current_principal),
    svc: NegotiationService = Depends(get_negotiation_service),
):
    ack_id = _parse_ack_id(acknowledgmentId)
    ack = _read_as_party(svc, ack_id, principal)
    try:
        terms = svc.effective_terms(ack_id)
    except NegotiationError as e:
        raise to_http(e)
    return {
        "acknowledgmentId": acknowledgmentId,
        "riderDocumentId": str(ack.rider_document_id),
        "riderVersion": ack.rider_version,
        "terms": encode_fields(terms),
    }

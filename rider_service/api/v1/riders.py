# rider_service/api/v1/riders.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from rider_service.core.auth_deps import get_current_principal
from rider_service.core.deps import get_rider_document_service, to_http
from rider_service.core.errors import NegotiationError
from rider_service.core.rider_fields import encode_fields
from rider_service.core.types import RiderDocument
from rider_service.db.session import get_db
from rider_service.policies.rbac import ACTION_PUBLISH_RIDER, Principal, require_action
from rider_service.schemas.riders import RiderHistoryResponse, RiderPublishPayload, RiderVersionResponse
from rider_service.services.rider_document_service import RiderDocumentService

router = APIRouter(prefix="/riders")


def _parse_uuid(raw: str, name: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{name} must be UUID.")


def _to_resp(doc: RiderDocument) -> dict:
    return {
        "documentId": str(doc.document_id),
        "ownerId": doc.owner_id,
        "version": doc.version,
        "publishedAtIso": doc.published_at.isoformat(),
        "fields": encode_fields(doc.fields),
    }


# ---------------------------------------------------------------------
# POST /riders  (artist publishes version 1)
# ---------------------------------------------------------------------


@router.post("", response_model=RiderVersionResponse, status_code=201)
async def publish_rider(
    payload: RiderPublishPayload,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: RiderDocumentService = Depends(get_rider_document_service),
):
    try:
        require_action(principal, ACTION_PUBLISH_RIDER)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))

    try:
        doc = svc.create_version(db, owner_id=principal.user_id, fields=payload.fields)
    except NegotiationError as e:
        raise to_http(e)
    return _to_resp(doc)


# ---------------------------------------------------------------------
# POST /riders/{documentId}/versions  (edit = new version)
# ---------------------------------------------------------------------


@router.post("/{documentId}/versions", response_model=RiderVersionResponse, status_code=201)
async def publish_rider_version(
    documentId: str,
    payload: RiderPublishPayload,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: RiderDocumentService = Depends(get_rider_document_service),
):
    doc_id = _parse_uuid(documentId, "documentId")
    try:
        require_action(principal, ACTION_PUBLISH_RIDER)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))

    try:
        doc = svc.create_version(db, owner_id=principal.user_id, fields=payload.fields, document_id=doc_id)
    except NegotiationError as e:
        raise to_http(e)
    return _to_resp(doc)


# ---------------------------------------------------------------------
# GET /riders/{documentId}/versions/{version}
# ---------------------------------------------------------------------


@router.get("/{documentId}/versions/{version}", response_model=RiderVersionResponse)
async def get_rider_version(
    documentId: str,
    version: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: RiderDocumentService = Depends(get_rider_document_service),
):
    doc_id = _parse_uuid(documentId, "documentId")
    try:
        doc = svc.get_version(db, doc_id, version)
    except NegotiationError as e:
        raise to_http(e)
    return _to_resp(doc)


# ---------------------------------------------------------------------
# GET /riders/{documentId}  (all versions, oldest first)
# ---------------------------------------------------------------------


@router.get("/{documentId}", response_model=RiderHistoryResponse)
async def get_rider_history(
    documentId: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: RiderDocumentService = Depends(get_rider_document_service),
):
    doc_id = _parse_uuid(documentId, "documentId")
    try:
        versions = svc.list_versions(db, doc_id)
    except NegotiationError as e:
        raise to_http(e)
    return {
        "documentId": documentId,
        "latestVersion": versions[-1].version,
        "versions": [_to_resp(v) for v in versions],
    }

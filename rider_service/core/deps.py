# rider_service/core/deps.py
from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException

from rider_service.core.errors import NegotiationError
from rider_service.db.session import SessionLocal
from rider_service.services.negotiation_service import NegotiationService, build_default_service
from rider_service.services.rider_document_service import RiderDocumentService


@lru_cache(maxsize=1)
def get_negotiation_service() -> NegotiationService:
    """
    The negotiation service opens its own sessions (one per attempt), so it is
    wired to the session factory rather than to the request's get_db session.
    """
    return build_default_service(SessionLocal)


def get_rider_document_service() -> RiderDocumentService:
    return RiderDocumentService()


def to_http(exc: NegotiationError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)

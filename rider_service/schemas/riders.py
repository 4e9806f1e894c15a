from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class RiderPublishPayload(BaseModel):
    """
    Rider fields keyed by catalog name. Values are checked against the field
    catalog by the service (decimals may be sent as numbers or strings).
    """

    fields: Dict[str, Any] = Field(..., description="fieldName -> value")


class RiderVersionResponse(BaseModel):
    documentId: str
    ownerId: str
    version: int
    publishedAtIso: str
    fields: Dict[str, Any]


class RiderHistoryResponse(BaseModel):
    documentId: str
    latestVersion: int
    versions: List[RiderVersionResponse]

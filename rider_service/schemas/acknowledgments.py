from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------
# requests
# ---------------------------------------------------------------------


class OpenAcknowledgmentPayload(BaseModel):
    bookingId: str = Field(..., min_length=1, max_length=128)
    riderDocumentId: str
    riderVersion: int = Field(..., ge=1)
    artistUserId: str = Field(..., min_length=1, max_length=128)
    venueUserId: str = Field(..., min_length=1, max_length=128)
    eventDate: date


class ChecklistItem(BaseModel):
    fieldName: str
    category: str
    requirementText: str
    canMeet: bool = True
    acknowledgedByUser: bool = False


class ChecklistChangeItem(BaseModel):
    fieldName: str
    canMeet: Optional[bool] = None
    acknowledged: Optional[bool] = None


class ChecklistUpdatePayload(BaseModel):
    changes: List[ChecklistChangeItem] = Field(..., min_length=1)


class AcknowledgePayload(BaseModel):
    checklist: List[ChecklistItem]
    notes: Optional[str] = Field(default=None, max_length=2000)


class ProposeModificationPayload(BaseModel):
    fieldName: str
    proposedValue: Any
    reason: str = Field(..., max_length=2000)
    notes: Optional[str] = Field(default=None, max_length=2000)


class ApprovePayload(BaseModel):
    entryIds: List[int]


class RejectPayload(BaseModel):
    entryIds: List[int]
    reason: str = Field(..., max_length=2000)


class ArchivePayload(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------
# responses
# ---------------------------------------------------------------------


class ModificationEntryResponse(BaseModel):
    entryId: int
    fieldName: str
    originalValue: Optional[Any] = None
    proposedValue: Any
    reason: str
    notes: Optional[str] = None
    proposedBy: str
    status: str
    createdAtIso: str
    resolvedBy: Optional[str] = None
    resolvedAtIso: Optional[str] = None
    resolutionReason: Optional[str] = None
    resolvedInRevision: Optional[int] = None
    supersededBy: Optional[int] = None


class AcknowledgmentResponse(BaseModel):
    acknowledgmentId: str
    bookingId: str
    riderDocumentId: str
    riderVersion: int
    artistUserId: str
    venueUserId: str
    eventDate: str
    status: str
    checklist: List[ChecklistItem]
    modifications: List[ModificationEntryResponse]
    notes: Optional[str] = None
    acknowledgedAtIso: Optional[str] = None
    finalizedAtIso: Optional[str] = None
    archivedAtIso: Optional[str] = None
    revision: int


class FinalizeResponse(BaseModel):
    acknowledgment: AcknowledgmentResponse
    contractId: str
    contractUrl: str


class TimelineResponse(BaseModel):
    acknowledgmentId: str
    entries: List[ModificationEntryResponse]


class TermsResponse(BaseModel):
    acknowledgmentId: str
    riderDocumentId: str
    riderVersion: int
    terms: Dict[str, Any]

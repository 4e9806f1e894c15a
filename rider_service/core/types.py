# rider_service/core/types.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

from rider_service.models.enums import AcknowledgmentStatus, ModificationStatus, PartyRole


@dataclass(frozen=True)
class RiderDocument:
    """
    One immutable version of an artist's rider.
    Edits produce a new RiderDocument with version + 1.
    """

    document_id: uuid.UUID
    owner_id: str
    version: int
    fields: Dict[str, Any]
    published_at: datetime


@dataclass(frozen=True)
class RequirementChecklistEntry:
    field_name: str
    category: str
    requirement_text: str
    can_meet: bool = True
    acknowledged_by_user: bool = False


@dataclass(frozen=True)
class ModificationEntry:
    entry_id: int
    field_name: str
    original_value: Optional[Any]
    proposed_value: Any
    reason: str
    proposed_by: PartyRole
    status: ModificationStatus
    created_at: datetime
    notes: Optional[str] = None

    # resolution bookkeeping (set once, when the entry leaves the open set)
    resolved_by: Optional[PartyRole] = None
    resolved_at: Optional[datetime] = None
    resolution_reason: Optional[str] = None
    resolved_in_revision: Optional[int] = None
    superseded_by: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.status.is_open


@dataclass(frozen=True)
class Acknowledgment:
    """
    The negotiation aggregate. Passed by value into apply(); the storage layer
    owns `revision` (optimistic lock counter).
    """

    acknowledgment_id: uuid.UUID
    booking_id: str
    rider_document_id: uuid.UUID
    rider_version: int
    artist_user_id: str
    venue_user_id: str
    event_date: date
    status: AcknowledgmentStatus
    checklist: Tuple[RequirementChecklistEntry, ...] = ()
    ledger: Tuple[ModificationEntry, ...] = ()
    notes: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    revision: int = 1

    def user_for(self, role: PartyRole) -> str:
        return self.artist_user_id if role == PartyRole.ARTIST else self.venue_user_id


@dataclass(frozen=True)
class StatusNotification:
    acknowledgment_id: uuid.UUID
    new_status: AcknowledgmentStatus
    actor_role: PartyRole
    action: str


@dataclass(frozen=True)
class RiderFinalized:
    booking_id: str
    event_date: date
    contract_id: uuid.UUID
    contract_url: str
    acknowledgment_id: Optional[uuid.UUID] = None
    parties: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ReminderNotice:
    contract_id: uuid.UUID
    booking_id: str
    contract_url: str
    event_date: date
    offset_days: int


@dataclass(frozen=True)
class ChecklistChange:
    field_name: str
    can_meet: Optional[bool] = None
    acknowledged: Optional[bool] = None


@dataclass(frozen=True)
class FinalizeResult:
    acknowledgment: Acknowledgment
    contract_id: uuid.UUID
    contract_url: str


@dataclass(frozen=True)
class StallNotice:
    """A negotiation waiting on `audience` for `offset_days` days."""

    acknowledgment_id: uuid.UUID
    booking_id: str
    audience: PartyRole
    user_id: str
    offset_days: int
    entry_ids: Tuple[int, ...] = ()

# rider_service/services/negotiation_state_machine.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Optional, Sequence, Tuple, Union

from rider_service.core.errors import (
    IllegalTransitionError,
    InvalidActorError,
    NegotiationInvariantError,
    ValidationError,
)
from rider_service.core.rider_fields import coerce_value
from rider_service.core.types import (
    Acknowledgment,
    RequirementChecklistEntry,
    RiderDocument,
)
from rider_service.models.enums import (
    AcknowledgmentStatus,
    ModificationStatus,
    PartyRole,
)
from rider_service.policies.checklist_policy import (
    ensure_matches_snapshot,
    validate_for_acknowledge,
)
from rider_service.services import modification_ledger as ledger_ops
from rider_service.services.modification_ledger import Ledger


# ─────────────────────────────────────────────
# ACTIONS
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class Acknowledge:
    actor: PartyRole
    checklist: Tuple[RequirementChecklistEntry, ...]
    notes: Optional[str] = None
    name = "acknowledge"


@dataclass(frozen=True)
class ProposeModification:
    actor: PartyRole
    field_name: str
    proposed_value: Any
    reason: str
    notes: Optional[str] = None
    name = "proposeModification"


@dataclass(frozen=True)
class ApproveModifications:
    actor: PartyRole
    entry_ids: Tuple[int, ...]
    name = "approveModifications"


@dataclass(frozen=True)
class RejectModifications:
    actor: PartyRole
    entry_ids: Tuple[int, ...]
    reason: str
    name = "rejectModifications"


@dataclass(frozen=True)
class Finalize:
    actor: PartyRole
    name = "finalize"


Action = Union[Acknowledge, ProposeModification, ApproveModifications, RejectModifications, Finalize]


# ─────────────────────────────────────────────
# STATUS DERIVATION
# ─────────────────────────────────────────────

def derive_status(ledger: Ledger, acknowledged: bool) -> AcknowledgmentStatus:
    """
    Status is a pure function of the ledger plus the checklist flag.

    - empty ledger: pending, or acknowledged once the as-is path was taken
    - any open entry: modifications_proposed
    - otherwise the outcome of the action that drained the open set: approve
      means accepted, reject means rejected
    """
    if not ledger:
        return AcknowledgmentStatus.acknowledged if acknowledged else AcknowledgmentStatus.pending

    if ledger_ops.open_entries(ledger):
        return AcknowledgmentStatus.modifications_proposed

    decisive = [e for e in ledger if e.superseded_by is None]
    if not decisive:
        raise NegotiationInvariantError("Closed ledger with only superseded entries.")

    last = max(decisive, key=lambda e: (e.resolved_in_revision, e.entry_id))
    if last.status == ModificationStatus.approved:
        return AcknowledgmentStatus.accepted
    if last.status == ModificationStatus.rejected:
        return AcknowledgmentStatus.rejected

    raise NegotiationInvariantError(f"Unexpected terminal entry status {last.status}.")


def check_consistency(ack: Acknowledgment) -> None:
    """
    Fail loudly on any status/ledger combination outside the transition table.
    """
    ledger_ops.check_invariants(ack.ledger)

    expected = derive_status(ack.ledger, ack.acknowledged_at is not None)
    if ack.status != expected:
        raise NegotiationInvariantError(
            f"Acknowledgment {ack.acknowledgment_id} has status {ack.status.value}, "
            f"ledger implies {expected.value}."
        )
    if ack.finalized_at is not None and ack.status != AcknowledgmentStatus.accepted:
        raise NegotiationInvariantError("Finalized acknowledgment is not accepted.")


# ─────────────────────────────────────────────
# TRANSITIONS
# ─────────────────────────────────────────────

def _require_text(value: Optional[str], what: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{what} is required.")
    return text


def _validated_ids(action_name: str, ack: Acknowledgment, actor: PartyRole, entry_ids: Sequence[int]):
    if not entry_ids:
        raise ValidationError("At least one modification id is required.")
    if len(set(entry_ids)) != len(entry_ids):
        raise ValidationError("Modification ids must not repeat.")

    entries = [ledger_ops.get_entry(ack.ledger, i) for i in entry_ids]
    for e in entries:
        if not e.is_open:
            raise IllegalTransitionError(
                action_name,
                ack.status.value,
                f"Modification {e.entry_id} is already {e.status.value}.",
            )
        if e.proposed_by == actor:
            raise InvalidActorError(
                action_name,
                ack.status.value,
                f"The {actor.value} cannot respond to its own proposal (entry {e.entry_id}).",
            )
    return entries


def _acknowledge(ack: Acknowledgment, action: Acknowledge, document: RiderDocument, now: datetime) -> Acknowledgment:
    if ack.status != AcknowledgmentStatus.pending:
        raise IllegalTransitionError(action.name, ack.status.value)
    if action.actor != PartyRole.VENUE:
        raise InvalidActorError(action.name, ack.status.value, "Only the venue may acknowledge the rider.")

    checklist = ensure_matches_snapshot(action.checklist, ack.checklist)
    validate_for_acknowledge(checklist, action.notes)

    notes = (action.notes or "").strip() or None
    return replace(ack, checklist=checklist, notes=notes, acknowledged_at=now)


def _propose(ack: Acknowledgment, action: ProposeModification, document: RiderDocument, now: datetime) -> Acknowledgment:
    status = ack.status

    if status in (AcknowledgmentStatus.pending, AcknowledgmentStatus.acknowledged):
        if action.actor != PartyRole.VENUE:
            raise InvalidActorError(
                action.name, status.value, "Only the venue may open a modification proposal."
            )
    elif status != AcknowledgmentStatus.modifications_proposed:
        raise IllegalTransitionError(action.name, status.value)

    proposed_value = coerce_value(action.field_name, action.proposed_value)
    reason = _require_text(action.reason, "A reason")
    notes = (action.notes or "").strip() or None
    original_value = document.fields.get(action.field_name)
    revision = ack.revision + 1

    prior = ledger_ops.open_entry_for_field(ack.ledger, action.field_name)
    if prior is None:
        ledger = ledger_ops.append(
            ack.ledger,
            field_name=action.field_name,
            original_value=original_value,
            proposed_value=proposed_value,
            reason=reason,
            notes=notes,
            proposed_by=action.actor,
            status=ModificationStatus.proposed,
            created_at=now,
        )
    elif prior.proposed_by == action.actor:
        raise IllegalTransitionError(
            action.name,
            status.value,
            f"Field {action.field_name} already has an open proposal (entry {prior.entry_id}) "
            f"from the {action.actor.value}; wait for a response.",
        )
    else:
        ledger = ledger_ops.supersede(
            ack.ledger,
            field_name=action.field_name,
            original_value=original_value,
            proposed_value=proposed_value,
            reason=reason,
            notes=notes,
            proposed_by=action.actor,
            created_at=now,
            revision=revision,
        )

    return replace(ack, ledger=ledger)


def _approve(ack: Acknowledgment, action: ApproveModifications, document: RiderDocument, now: datetime) -> Acknowledgment:
    if ack.status != AcknowledgmentStatus.modifications_proposed:
        raise IllegalTransitionError(action.name, ack.status.value)

    _validated_ids(action.name, ack, action.actor, action.entry_ids)
    ledger = ledger_ops.resolve(
        ack.ledger,
        action.entry_ids,
        status=ModificationStatus.approved,
        resolved_by=action.actor,
        resolved_at=now,
        revision=ack.revision + 1,
    )
    return replace(ack, ledger=ledger)


def _reject(ack: Acknowledgment, action: RejectModifications, document: RiderDocument, now: datetime) -> Acknowledgment:
    if ack.status != AcknowledgmentStatus.modifications_proposed:
        raise IllegalTransitionError(action.name, ack.status.value)

    reason = _require_text(action.reason, "A rejection reason")
    _validated_ids(action.name, ack, action.actor, action.entry_ids)
    ledger = ledger_ops.resolve(
        ack.ledger,
        action.entry_ids,
        status=ModificationStatus.rejected,
        resolved_by=action.actor,
        resolved_at=now,
        revision=ack.revision + 1,
        reason=reason,
    )
    return replace(ack, ledger=ledger)


def _finalize(ack: Acknowledgment, action: Finalize, document: RiderDocument, now: datetime) -> Acknowledgment:
    if ack.status != AcknowledgmentStatus.accepted:
        raise IllegalTransitionError(action.name, ack.status.value)
    if ack.finalized_at is not None:
        raise IllegalTransitionError(action.name, ack.status.value, "Rider is already finalized.")
    if ledger_ops.open_entries(ack.ledger):
        raise NegotiationInvariantError("Accepted acknowledgment still has open entries.")

    return replace(ack, finalized_at=now)


_HANDLERS = {
    Acknowledge: _acknowledge,
    ProposeModification: _propose,
    ApproveModifications: _approve,
    RejectModifications: _reject,
    Finalize: _finalize,
}


def apply(
    ack: Acknowledgment,
    action: Action,
    *,
    document: RiderDocument,
    now: datetime,
) -> Acknowledgment:
    """
    The only way an Acknowledgment changes.

    Returns a new Acknowledgment (revision + 1, status re-derived from the
    ledger) or raises a NegotiationError. The input is never mutated.
    `document` must be the rider version the acknowledgment references.
    """
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise NegotiationInvariantError(f"Unknown action {action!r}.")

    if ack.archived_at is not None:
        raise IllegalTransitionError(action.name, ack.status.value, "Acknowledgment is archived.")

    if (document.document_id, document.version) != (ack.rider_document_id, ack.rider_version):
        raise NegotiationInvariantError("apply() called with a different rider version.")

    check_consistency(ack)

    updated = handler(ack, action, document, now)
    updated = replace(
        updated,
        revision=ack.revision + 1,
        status=derive_status(updated.ledger, updated.acknowledged_at is not None),
    )

    ledger_ops.check_forward_only(ack.ledger, updated.ledger)
    check_consistency(updated)
    return updated

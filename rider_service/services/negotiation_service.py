# rider_service/services/negotiation_service.py
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rider_service.core.clock import as_utc, utc_now
from rider_service.core.config import get_settings
from rider_service.core.errors import (
    ConcurrentModificationError,
    IllegalTransitionError,
    InvalidActorError,
    NotFoundError,
    ValidationError,
)
from rider_service.core.rider_fields import decode_value, encode_value
from rider_service.core.types import (
    Acknowledgment,
    ChecklistChange,
    FinalizeResult,
    ModificationEntry,
    RequirementChecklistEntry,
    RiderDocument,
    RiderFinalized,
    StatusNotification,
)
from rider_service.models.acknowledgment import ModificationEntryRecord, RiderAcknowledgment
from rider_service.models.enums import AcknowledgmentStatus, ModificationStatus, PartyRole
from rider_service.policies.checklist_policy import (
    derive_from_document,
    mark_acknowledged,
    toggle_can_meet,
)
from rider_service.services import negotiation_state_machine as sm
from rider_service.services.audit_service import ACTION_TO_AUDIT, AuditAction, audit_event
from rider_service.services.contract_service import ContractService
from rider_service.services.modification_ledger import apply_approved
from rider_service.services.notification_service import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from rider_service.services.reminder_scheduler import ReminderScheduler
from rider_service.services.rider_document_service import RiderDocumentService

logger = logging.getLogger(__name__)


class _StaleRevision(Exception):
    """The acknowledgment row moved on between our read and our write."""


# ─────────────────────────────────────────────
# ROW <-> DOMAIN
# ─────────────────────────────────────────────

def _checklist_to_json(checklist: Sequence[RequirementChecklistEntry]) -> List[dict]:
    return [
        {
            "field_name": e.field_name,
            "category": e.category,
            "requirement_text": e.requirement_text,
            "can_meet": e.can_meet,
            "acknowledged_by_user": e.acknowledged_by_user,
        }
        for e in checklist
    ]


def _checklist_from_json(raw: Optional[List[dict]]) -> Tuple[RequirementChecklistEntry, ...]:
    return tuple(RequirementChecklistEntry(**item) for item in (raw or []))


def _entry_to_domain(row: ModificationEntryRecord) -> ModificationEntry:
    return ModificationEntry(
        entry_id=row.entry_id,
        field_name=row.field_name,
        original_value=decode_value(row.field_name, row.original_value_json),
        proposed_value=decode_value(row.field_name, row.proposed_value_json),
        reason=row.reason,
        notes=row.notes,
        proposed_by=PartyRole(row.proposed_by),
        status=ModificationStatus(row.status),
        created_at=as_utc(row.created_at),
        resolved_by=PartyRole(row.resolved_by) if row.resolved_by else None,
        resolved_at=as_utc(row.resolved_at),
        resolution_reason=row.resolution_reason,
        resolved_in_revision=row.resolved_in_revision,
        superseded_by=row.superseded_by,
    )


def _entry_to_row(acknowledgment_id: uuid.UUID, e: ModificationEntry) -> ModificationEntryRecord:
    return ModificationEntryRecord(
        acknowledgment_id=acknowledgment_id,
        entry_id=e.entry_id,
        field_name=e.field_name,
        original_value_json=encode_value(e.field_name, e.original_value),
        proposed_value_json=encode_value(e.field_name, e.proposed_value),
        reason=e.reason,
        notes=e.notes,
        proposed_by=e.proposed_by.value,
        status=e.status.value,
        created_at=e.created_at,
        resolved_by=e.resolved_by.value if e.resolved_by else None,
        resolved_at=e.resolved_at,
        resolution_reason=e.resolution_reason,
        resolved_in_revision=e.resolved_in_revision,
        superseded_by=e.superseded_by,
    )


def _to_domain(row: RiderAcknowledgment, entries: Sequence[ModificationEntryRecord]) -> Acknowledgment:
    return Acknowledgment(
        acknowledgment_id=row.id,
        booking_id=row.booking_id,
        rider_document_id=row.rider_document_id,
        rider_version=row.rider_version,
        artist_user_id=row.artist_user_id,
        venue_user_id=row.venue_user_id,
        event_date=row.event_date,
        status=AcknowledgmentStatus(row.status),
        checklist=_checklist_from_json(row.checklist_json),
        ledger=tuple(_entry_to_domain(e) for e in entries),
        notes=row.notes,
        acknowledged_at=as_utc(row.acknowledged_at),
        finalized_at=as_utc(row.finalized_at),
        archived_at=as_utc(row.archived_at),
        revision=row.revision,
    )


def _summary(ack: Acknowledgment, updated: Acknowledgment, **extra: Any) -> Dict[str, Any]:
    out = {
        "from_status": ack.status.value,
        "to_status": updated.status.value,
        "revision": updated.revision,
    }
    out.update(extra)
    return out


# Change callback: (session, current, document) -> updated acknowledgment
Change = Callable[[Session, Acknowledgment, RiderDocument], Acknowledgment]


class NegotiationService:
    """
    Persistence and collaborators around the pure negotiation state machine.

    Rules:
      - Every mutation is read -> apply -> conditional write, where the write is
        UPDATE ... WHERE id = :id AND revision = :read_revision.
      - Zero rows updated (or a duplicate ledger entry id) means another writer
        committed first: roll back, re-read, re-apply. After max_attempts the
        caller gets ConcurrentModificationError.
      - Ledger rows are only inserted, or moved open -> terminal once.
      - Notifications go out after commit and never fail the action.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        documents: Optional[RiderDocumentService] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        contracts: Optional[ContractService] = None,
        reminders: Optional[ReminderScheduler] = None,
        max_attempts: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.documents = documents or RiderDocumentService()
        self.dispatcher = dispatcher or LoggingNotificationDispatcher()
        self.contracts = contracts or ContractService()
        self.reminders = reminders
        self.max_attempts = max_attempts or get_settings().negotiation_max_attempts

    # ---------------------------
    # LOADING
    # ---------------------------

    def _load(self, db: Session, acknowledgment_id: uuid.UUID) -> Tuple[RiderAcknowledgment, List[ModificationEntryRecord]]:
        row = db.execute(
            select(RiderAcknowledgment).where(RiderAcknowledgment.id == acknowledgment_id)
        ).scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Acknowledgment {acknowledgment_id} not found.")

        entries = db.execute(
            select(ModificationEntryRecord)
            .where(ModificationEntryRecord.acknowledgment_id == acknowledgment_id)
            .order_by(ModificationEntryRecord.entry_id)
        ).scalars().all()
        return row, list(entries)

    def _read(self, acknowledgment_id: uuid.UUID) -> Acknowledgment:
        db = self.session_factory()
        try:
            row, entries = self._load(db, acknowledgment_id)
            return _to_domain(row, entries)
        finally:
            db.close()

    # ---------------------------
    # WRITING
    # ---------------------------

    def _write(
        self,
        db: Session,
        current: Acknowledgment,
        updated: Acknowledgment,
        entry_rows: Sequence[ModificationEntryRecord],
    ) -> None:
        result = db.execute(
            update(RiderAcknowledgment)
            .where(
                RiderAcknowledgment.id == current.acknowledgment_id,
                RiderAcknowledgment.revision == current.revision,
            )
            .values(
                status=updated.status.value,
                checklist_json=_checklist_to_json(updated.checklist),
                notes=updated.notes,
                acknowledged_at=updated.acknowledged_at,
                finalized_at=updated.finalized_at,
                archived_at=updated.archived_at,
                revision=updated.revision,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise _StaleRevision()

        by_id = {r.entry_id: r for r in entry_rows}
        for old, new in zip(current.ledger, updated.ledger):
            if old == new:
                continue
            r = by_id[new.entry_id]
            r.status = new.status.value
            r.resolved_by = new.resolved_by.value if new.resolved_by else None
            r.resolved_at = new.resolved_at
            r.resolution_reason = new.resolution_reason
            r.resolved_in_revision = new.resolved_in_revision
            r.superseded_by = new.superseded_by

        for e in updated.ledger[len(current.ledger):]:
            db.add(_entry_to_row(current.acknowledgment_id, e))

    def _check_party(
        self,
        ack: Acknowledgment,
        actor: PartyRole,
        actor_user_id: Optional[str],
        action_name: str,
    ) -> None:
        if actor_user_id is not None and ack.user_for(actor) != actor_user_id:
            raise InvalidActorError(
                action_name,
                ack.status.value,
                f"User {actor_user_id} is not the {actor.value} on this booking.",
            )

    def _notify(self, ack: Acknowledgment, actor: PartyRole, action_name: str) -> None:
        try:
            self.dispatcher.dispatch(
                StatusNotification(
                    acknowledgment_id=ack.acknowledgment_id,
                    new_status=ack.status,
                    actor_role=actor,
                    action=action_name,
                )
            )
        except Exception:
            logger.exception(
                "status notification failed",
                extra={"acknowledgment_id": str(ack.acknowledgment_id), "action": action_name},
            )

    def _mutate(
        self,
        acknowledgment_id: uuid.UUID,
        *,
        actor: PartyRole,
        actor_user_id: Optional[str],
        action_name: str,
        audit_action: str,
        change: Change,
        summarize: Callable[[Acknowledgment, Acknowledgment], Dict[str, Any]],
        request_id: Optional[str] = None,
        after_write: Optional[Callable[[Session, Acknowledgment, RiderDocument], Any]] = None,
        notify: bool = True,
    ) -> Tuple[Acknowledgment, Any]:
        for attempt in range(1, self.max_attempts + 1):
            db = self.session_factory()
            try:
                row, entry_rows = self._load(db, acknowledgment_id)
                current = _to_domain(row, entry_rows)
                self._check_party(current, actor, actor_user_id, action_name)

                document = self.documents.get_version(db, current.rider_document_id, current.rider_version)
                updated = change(db, current, document)

                self._write(db, current, updated, entry_rows)
                extra = after_write(db, updated, document) if after_write else None

                audit_event(
                    db,
                    request_id=request_id,
                    actor_user_id=actor_user_id or current.user_for(actor),
                    actor_role=actor.value,
                    acknowledgment_id=current.acknowledgment_id,
                    revision=updated.revision,
                    action=audit_action,
                    payload_summary=summarize(current, updated),
                )
                db.commit()
            except (_StaleRevision, IntegrityError):
                db.rollback()
                logger.warning(
                    "revision conflict",
                    extra={
                        "acknowledgment_id": str(acknowledgment_id),
                        "action": action_name,
                        "attempt": attempt,
                    },
                )
                continue
            finally:
                db.close()

            logger.info(
                "negotiation transition",
                extra={
                    "acknowledgment_id": str(acknowledgment_id),
                    "action": action_name,
                    "actor_role": actor.value,
                    "from_status": current.status.value,
                    "to_status": updated.status.value,
                    "revision": updated.revision,
                    "attempt": attempt,
                },
            )
            if notify:
                self._notify(updated, actor, action_name)
            return updated, extra

        raise ConcurrentModificationError(str(acknowledgment_id), self.max_attempts)

    def _apply(self, action: sm.Action) -> Change:
        def change(db: Session, current: Acknowledgment, document: RiderDocument) -> Acknowledgment:
            return sm.apply(current, action, document=document, now=utc_now())
        return change

    # ---------------------------
    # OPEN / READ
    # ---------------------------

    def open_acknowledgment(
        self,
        *,
        booking_id: str,
        rider_document_id: uuid.UUID,
        rider_version: int,
        artist_user_id: str,
        venue_user_id: str,
        event_date: date,
        actor: Optional[PartyRole] = None,
        actor_user_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Acknowledgment:
        """
        Start a negotiation for a booking against a pinned rider version.
        The checklist is snapshotted from that version here and never re-derived.
        """
        if not (booking_id or "").strip():
            raise ValidationError("booking_id is required.")
        if not (artist_user_id or "").strip() or not (venue_user_id or "").strip():
            raise ValidationError("Both artist and venue user ids are required.")
        if artist_user_id == venue_user_id:
            raise ValidationError("Artist and venue must be different users.")

        db = self.session_factory()
        try:
            document = self.documents.get_version(db, rider_document_id, rider_version)
            if document.owner_id != artist_user_id:
                raise ValidationError("The rider does not belong to the booked artist.")

            ack = Acknowledgment(
                acknowledgment_id=uuid.uuid4(),
                booking_id=booking_id,
                rider_document_id=rider_document_id,
                rider_version=rider_version,
                artist_user_id=artist_user_id,
                venue_user_id=venue_user_id,
                event_date=event_date,
                status=AcknowledgmentStatus.pending,
                checklist=derive_from_document(document),
            )
            if actor is not None:
                self._check_party(ack, actor, actor_user_id, "open")

            db.add(
                RiderAcknowledgment(
                    id=ack.acknowledgment_id,
                    booking_id=ack.booking_id,
                    rider_document_id=ack.rider_document_id,
                    rider_version=ack.rider_version,
                    artist_user_id=ack.artist_user_id,
                    venue_user_id=ack.venue_user_id,
                    event_date=ack.event_date,
                    status=ack.status.value,
                    checklist_json=_checklist_to_json(ack.checklist),
                    revision=ack.revision,
                )
            )
            audit_event(
                db,
                request_id=request_id,
                actor_user_id=actor_user_id or "system",
                actor_role=actor.value if actor else "system",
                acknowledgment_id=ack.acknowledgment_id,
                revision=ack.revision,
                action=AuditAction.ACKNOWLEDGMENT_OPENED,
                payload_summary={
                    "booking_id": booking_id,
                    "rider_document_id": str(rider_document_id),
                    "rider_version": rider_version,
                    "checklist_size": len(ack.checklist),
                },
            )
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ValidationError(f"Booking {booking_id} already has a rider acknowledgment.")
        finally:
            db.close()

        logger.info(
            "acknowledgment opened",
            extra={"acknowledgment_id": str(ack.acknowledgment_id), "booking_id": booking_id},
        )
        return ack

    def get_acknowledgment(self, acknowledgment_id: uuid.UUID) -> Acknowledgment:
        return self._read(acknowledgment_id)

    def get_by_booking(self, booking_id: str) -> Acknowledgment:
        db = self.session_factory()
        try:
            ack_id = db.execute(
                select(RiderAcknowledgment.id).where(RiderAcknowledgment.booking_id == booking_id)
            ).scalar_one_or_none()
        finally:
            db.close()
        if ack_id is None:
            raise NotFoundError(f"No rider acknowledgment for booking {booking_id}.")
        return self._read(ack_id)

    def get_timeline(self, acknowledgment_id: uuid.UUID) -> Tuple[ModificationEntry, ...]:
        """Ledger entries in insertion order, superseded ones included."""
        return self._read(acknowledgment_id).ledger

    def effective_terms(self, acknowledgment_id: uuid.UUID) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            row, entries = self._load(db, acknowledgment_id)
            ack = _to_domain(row, entries)
            document = self.documents.get_version(db, ack.rider_document_id, ack.rider_version)
        finally:
            db.close()
        terms, _ = apply_approved(document.fields, ack.ledger)
        return terms

    # ---------------------------
    # CHECKLIST (pending only)
    # ---------------------------

    def update_checklist(
        self,
        acknowledgment_id: uuid.UUID,
        *,
        actor: PartyRole,
        changes: Sequence[ChecklistChange],
        actor_user_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Acknowledgment:
        action_name = "updateChecklist"
        if not changes:
            raise ValidationError("At least one checklist change is required.")

        def change(db: Session, current: Acknowledgment, document: RiderDocument) -> Acknowledgment:
            if current.archived_at is not None:
                raise IllegalTransitionError(action_name, current.status.value, "Acknowledgment is archived.")
            if current.status != AcknowledgmentStatus.pending:
                raise IllegalTransitionError(action_name, current.status.value)
            if actor != PartyRole.VENUE:
                raise InvalidActorError(action_name, current.status.value, "Only the venue works the checklist.")

            checklist = current.checklist
            for c in changes:
                if c.can_meet is not None:
                    checklist = toggle_can_meet(checklist, c.field_name, c.can_meet)
                if c.acknowledged is not None:
                    checklist = mark_acknowledged(checklist, c.field_name, c.acknowledged)
            return replace(current, checklist=checklist, revision=current.revision + 1)

        updated, _ = self._mutate(
            acknowledgment_id,
            actor=actor,
            actor_user_id=actor_user_id,
            action_name=action_name,
            audit_action=AuditAction.CHECKLIST_UPDATED,
            change=change,
            summarize=lambda cur, new: _summary(cur, new, fields=[c.field_name for c in changes]),
            request_id=request_id,
            notify=False,
        )
        return updated

    # ---------------------------
    # TRANSITIONS
    # ---------------------------

    def acknowledge(
        self,
        acknowledgment_id: uuid.UUID,
        *,
        actor: PartyRole,
        checklist: Sequence[RequirementChecklistEntry],
        notes: Optional[str] = None,
        actor_user_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Acknowledgment:
        action = sm.Acknowledge(actor=actor, checklist=tuple(checklist), notes=notes)
        updated, _ = self._mutate(
            acknowledgment_id,
            actor=actor,
            actor_user_id=actor_user_id,
            action_name=action.name,
            audit_action=ACTION_TO_AUDIT[action.name],
            change=self._apply(action),
            summarize=lambda cur, new: _summary(
                cur, new, cannot_meet=[e.field_name for e in new.checklist if not e.can_meet]
            ),
            request_id=request_id,
        )
        return updated

    def propose_modification(
        self,
        acknowledgment_id: uuid.UUID,
        *,
        actor: PartyRole,
        field_name: str,
        proposed_value: Any,
        reason: str,
        notes: Optional[str] = None,
        actor_user_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Acknowledgment:
        action = sm.ProposeModification(
            actor=actor,
            field_name=field_name,
            proposed_value=proposed_value,
            reason=reason,
            notes=notes,
        )
        updated, _ = self._mutate(
            acknowledgment_id,
            actor=actor,
            actor_user_id=actor_user_id,
            action_name=action.name,
            audit_action=ACTION_TO_AUDIT[action.name],
            change=self._apply(action),
            summarize=lambda cur, new: _summary(
                cur, new, field_name=field_name, entry_id=new.ledger[-1].entry_id
            ),
            request_id=request_id,
        )
        return updated

    def approve_modifications(
        self,
        acknowledgment_id: uuid.UUID,
        *,
        actor: PartyRole,
        entry_ids: Sequence[int],
        actor_user_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Acknowledgment:
        action = sm.ApproveModifications(actor=actor, entry_ids=tuple(entry_ids))
        updated, _ = self._mutate(
            acknowledgment_id,
            actor=actor,
            actor_user_id=actor_user_id,
            action_name=action.name,
            audit_action=ACTION_TO_AUDIT[action.name],
            change=self._apply(action),
            summarize=lambda cur, new: _summary(cur, new, entry_ids=list(action.entry_ids)),
            request_id=request_id,
        )
        return updated

    def reject_modifications(
        self,
        acknowledgment_id: uuid.UUID,
        *,
        actor: PartyRole,
        entry_ids: Sequence[int],
        reason: str,
        actor_user_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Acknowledgment:
        action = sm.RejectModifications(actor=actor, entry_ids=tuple(entry_ids), reason=reason)
        updated, _ = self._mutate(
            acknowledgment_id,
            actor=actor,
            actor_user_id=actor_user_id,
            action_name=action.name,
            audit_action=ACTION_TO_AUDIT[action.name],
            change=self._apply(action),
            summarize=lambda cur, new: _summary(cur, new, entry_ids=list(action.entry_ids)),
            request_id=request_id,
        )
        return updated

    def finalize(
        self,
        acknowledgment_id: uuid.UUID,
        *,
        actor: PartyRole,
        actor_user_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> FinalizeResult:
        """
        Close an accepted negotiation.

        The contract record, the reminder rows and the revision bump commit
        together; a conflicted attempt leaves none of them behind.
        """
        action = sm.Finalize(actor=actor)

        def after_write(db: Session, updated: Acknowledgment, document: RiderDocument):
            contract = self.contracts.create_for_acknowledgment(db, ack=updated, document=document)
            event = RiderFinalized(
                booking_id=updated.booking_id,
                event_date=updated.event_date,
                contract_id=contract.id,
                contract_url=contract.contract_url,
                acknowledgment_id=updated.acknowledgment_id,
                parties={"artist": updated.artist_user_id, "venue": updated.venue_user_id},
            )
            if self.reminders is not None:
                self.reminders.handle_rider_finalized(event, db=db)
            return event

        updated, event = self._mutate(
            acknowledgment_id,
            actor=actor,
            actor_user_id=actor_user_id,
            action_name=action.name,
            audit_action=ACTION_TO_AUDIT[action.name],
            change=self._apply(action),
            summarize=lambda cur, new: _summary(cur, new),
            request_id=request_id,
            after_write=after_write,
        )
        logger.info(
            "rider finalized",
            extra={
                "acknowledgment_id": str(acknowledgment_id),
                "booking_id": event.booking_id,
                "contract_id": str(event.contract_id),
            },
        )
        return FinalizeResult(acknowledgment=updated, contract_id=event.contract_id, contract_url=event.contract_url)

    def archive(
        self,
        acknowledgment_id: uuid.UUID,
        *,
        actor: PartyRole,
        reason: Optional[str] = None,
        actor_user_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Acknowledgment:
        """
        Booking cancelled before finalization. Either party may archive; after
        that every action on the acknowledgment is refused.
        """
        action_name = "archive"

        def change(db: Session, current: Acknowledgment, document: RiderDocument) -> Acknowledgment:
            if current.archived_at is not None:
                raise IllegalTransitionError(action_name, current.status.value, "Acknowledgment is already archived.")
            if current.finalized_at is not None:
                raise IllegalTransitionError(action_name, current.status.value, "Finalized riders cannot be archived.")
            return replace(current, archived_at=utc_now(), revision=current.revision + 1)

        updated, _ = self._mutate(
            acknowledgment_id,
            actor=actor,
            actor_user_id=actor_user_id,
            action_name=action_name,
            audit_action=AuditAction.ACKNOWLEDGMENT_ARCHIVED,
            change=change,
            summarize=lambda cur, new: _summary(cur, new, reason=(reason or "").strip() or None),
            request_id=request_id,
            notify=False,
        )
        return updated


def build_default_service(session_factory: Callable[[], Session]) -> NegotiationService:
    return NegotiationService(
        session_factory,
        reminders=ReminderScheduler(session_factory),
    )

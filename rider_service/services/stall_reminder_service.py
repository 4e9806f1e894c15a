# rider_service/services/stall_reminder_service.py
"""
Reminders for negotiations that stall.

The venue is reminded about a rider it has not acknowledged, counted from the
day the acknowledgment was opened, for as long as it stays `pending`. The
artist is reminded about venue proposals still waiting for an answer, counted
from the oldest open one. Both fire on the days in
stall_reminder_offsets_days (1, 3 and 7 by default); a missed day is skipped.

Rows are registered the first time a poll finds them due, keyed by
(acknowledgment_id, audience, offset_days), and delivered through the same
claim / send / release cycle as contract reminders.
"""
from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rider_service.core.clock import as_utc, utc_now
from rider_service.core.config import get_settings
from rider_service.core.types import StallNotice
from rider_service.models.acknowledgment import ModificationEntryRecord, RiderAcknowledgment
from rider_service.models.enums import AcknowledgmentStatus, ModificationStatus, PartyRole
from rider_service.models.negotiation_reminder import NegotiationReminder
from rider_service.services.reminder_scheduler import deliver_once

logger = logging.getLogger(__name__)

_OPEN_ENTRY_STATUSES = [s.value for s in ModificationStatus if s.is_open]
_WAITING_ACK_STATUSES = [
    AcknowledgmentStatus.pending.value,
    AcknowledgmentStatus.modifications_proposed.value,
]


class StallReminderSender(ABC):
    @abstractmethod
    def send(self, notice: StallNotice) -> None:
        ...


class LoggingStallReminderSender(StallReminderSender):
    def send(self, notice: StallNotice) -> None:
        logger.info(
            "negotiation reminder",
            extra={
                "acknowledgment_id": str(notice.acknowledgment_id),
                "booking_id": notice.booking_id,
                "audience": notice.audience.value,
                "user_id": notice.user_id,
                "offset_days": notice.offset_days,
                "entry_ids": list(notice.entry_ids),
            },
        )


class StallReminderScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        sender: Optional[StallReminderSender] = None,
        offsets_days: Optional[Sequence[int]] = None,
    ):
        self.session_factory = session_factory
        self.sender = sender or LoggingStallReminderSender()
        offsets = get_settings().stall_reminder_offsets_days if offsets_days is None else offsets_days
        self.offsets_days = sorted({int(o) for o in offsets})

    # ---------------------------
    # DUE RULE
    # ---------------------------

    def due_notices(self, db: Session, today: date) -> List[StallNotice]:
        acks = db.execute(
            select(RiderAcknowledgment)
            .where(
                RiderAcknowledgment.archived_at.is_(None),
                RiderAcknowledgment.finalized_at.is_(None),
                RiderAcknowledgment.status.in_(_WAITING_ACK_STATUSES),
            )
            .order_by(RiderAcknowledgment.created_at)
        ).scalars().all()
        if not acks:
            return []

        waiting: Dict[uuid.UUID, List[ModificationEntryRecord]] = {}
        entries = db.execute(
            select(ModificationEntryRecord)
            .where(
                ModificationEntryRecord.acknowledgment_id.in_([a.id for a in acks]),
                ModificationEntryRecord.proposed_by == PartyRole.VENUE.value,
                ModificationEntryRecord.status.in_(_OPEN_ENTRY_STATUSES),
            )
            .order_by(ModificationEntryRecord.entry_id)
        ).scalars()
        for entry in entries:
            waiting.setdefault(entry.acknowledgment_id, []).append(entry)

        notices = []
        for ack in acks:
            if ack.status == AcknowledgmentStatus.pending.value:
                days = (today - as_utc(ack.created_at).date()).days
                if days in self.offsets_days:
                    notices.append(
                        StallNotice(
                            acknowledgment_id=ack.id,
                            booking_id=ack.booking_id,
                            audience=PartyRole.VENUE,
                            user_id=ack.venue_user_id,
                            offset_days=days,
                        )
                    )

            open_entries = waiting.get(ack.id)
            if open_entries:
                oldest = min(as_utc(e.created_at) for e in open_entries)
                days = (today - oldest.date()).days
                if days in self.offsets_days:
                    notices.append(
                        StallNotice(
                            acknowledgment_id=ack.id,
                            booking_id=ack.booking_id,
                            audience=PartyRole.ARTIST,
                            user_id=ack.artist_user_id,
                            offset_days=days,
                            entry_ids=tuple(e.entry_id for e in open_entries),
                        )
                    )
        return notices

    # ---------------------------
    # REGISTRATION
    # ---------------------------

    @staticmethod
    def _find(db: Session, notice: StallNotice) -> Optional[NegotiationReminder]:
        return db.execute(
            select(NegotiationReminder).where(
                NegotiationReminder.acknowledgment_id == notice.acknowledgment_id,
                NegotiationReminder.audience == notice.audience.value,
                NegotiationReminder.offset_days == notice.offset_days,
            )
        ).scalar_one_or_none()

    def _register(self, notice: StallNotice) -> Optional[uuid.UUID]:
        """
        Row id to claim for the notice, or None once it has gone out.
        """
        session = self.session_factory()
        try:
            row = self._find(session, notice)
            if row is not None:
                return None if row.sent else row.id

            row = NegotiationReminder(
                acknowledgment_id=notice.acknowledgment_id,
                audience=notice.audience.value,
                offset_days=notice.offset_days,
                entry_id=notice.entry_ids[0] if notice.entry_ids else None,
                sent=False,
            )
            session.add(row)
            session.flush()
            reminder_id = row.id
            session.commit()
            return reminder_id
        except IntegrityError:
            # registered by an overlapping poll; the claim decides who sends
            session.rollback()
            row = self._find(session, notice)
            return None if row is None or row.sent else row.id
        finally:
            session.close()

    # ---------------------------
    # POLLING
    # ---------------------------

    def run_due(self, today: Optional[date] = None) -> int:
        """
        Send every stall reminder due today. Returns how many were delivered by this call.
        """
        today = today or utc_now().date()

        session = self.session_factory()
        try:
            notices = self.due_notices(session, today)
        finally:
            session.close()

        sent = 0
        for notice in notices:
            reminder_id = self._register(notice)
            if reminder_id is None:
                continue
            if deliver_once(
                self.session_factory,
                NegotiationReminder,
                reminder_id,
                lambda n=notice: self.sender.send(n),
            ):
                sent += 1

        if notices:
            logger.info(
                "stall reminder poll",
                extra={"today": today.isoformat(), "due": len(notices), "sent": sent},
            )
        return sent

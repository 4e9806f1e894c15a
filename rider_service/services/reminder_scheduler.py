# rider_service/services/reminder_scheduler.py
"""
Contract reminders ahead of the event date.

On finalization one row per configured offset (7, 3 and 1 days by default)
is registered for the contract. A polling job calls run_due(); a reminder is
due on the day where whole days until the event equal its offset.

Delivery goes through deliver_once(): the row is claimed with a conditional
UPDATE (sent = false -> true) and the claim is committed before the sender
runs, so overlapping polls or process restarts never deliver twice. A failed
send releases the claim in its own transaction and the next poll retries it.
A process that dies between claim and send loses that one reminder.
"""
from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, List, Optional, Sequence, Tuple, Type

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rider_service.core.clock import utc_now
from rider_service.core.config import get_settings
from rider_service.core.types import ReminderNotice, RiderFinalized
from rider_service.db.base import Base
from rider_service.models.contract_reminder import ContractReminder

logger = logging.getLogger(__name__)


class ReminderSender(ABC):
    @abstractmethod
    def send(self, notice: ReminderNotice) -> None:
        ...


class LoggingReminderSender(ReminderSender):
    def send(self, notice: ReminderNotice) -> None:
        logger.info(
            "contract reminder",
            extra={
                "contract_id": str(notice.contract_id),
                "booking_id": notice.booking_id,
                "event_date": notice.event_date.isoformat(),
                "offset_days": notice.offset_days,
                "contract_url": notice.contract_url,
            },
        )


# ---------------------------
# CLAIM / RELEASE
# ---------------------------

def _claim(session_factory: Callable[[], Session], model: Type[Base], reminder_id: uuid.UUID) -> bool:
    session = session_factory()
    try:
        claimed = session.execute(
            update(model)
            .where(model.id == reminder_id, model.sent.is_(False))
            .values(sent=True, sent_at=utc_now())
            .execution_options(synchronize_session=False)
        ).rowcount
        session.commit()
        return claimed == 1
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _release(session_factory: Callable[[], Session], model: Type[Base], reminder_id: uuid.UUID) -> None:
    session = session_factory()
    try:
        session.execute(
            update(model)
            .where(model.id == reminder_id, model.sent.is_(True))
            .values(sent=False, sent_at=None)
            .execution_options(synchronize_session=False)
        )
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def deliver_once(
    session_factory: Callable[[], Session],
    model: Type[Base],
    reminder_id: uuid.UUID,
    deliver: Callable[[], None],
) -> bool:
    """
    Claim the row, commit the claim, then deliver. Returns False when another
    poll already holds the row or the delivery failed (claim released).
    """
    if not _claim(session_factory, model, reminder_id):
        return False

    try:
        deliver()
    except Exception:
        logger.exception(
            "reminder send failed",
            extra={"reminder_id": str(reminder_id), "table": model.__tablename__},
        )
        _release(session_factory, model, reminder_id)
        return False
    return True


def _notice(row: ContractReminder) -> ReminderNotice:
    return ReminderNotice(
        contract_id=row.contract_id,
        booking_id=row.booking_id,
        contract_url=row.contract_url,
        event_date=row.event_date,
        offset_days=row.offset_days,
    )


class ReminderScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        sender: Optional[ReminderSender] = None,
        offsets_days: Optional[Sequence[int]] = None,
    ):
        self.session_factory = session_factory
        self.sender = sender or LoggingReminderSender()
        offsets = get_settings().reminder_offsets_days if offsets_days is None else offsets_days
        self.offsets_days = sorted({int(o) for o in offsets}, reverse=True)

    # ---------------------------
    # REGISTRATION
    # ---------------------------

    def _register(self, db: Session, event: RiderFinalized) -> List[ContractReminder]:
        existing = {
            r.offset_days: r
            for r in db.execute(
                select(ContractReminder).where(ContractReminder.contract_id == event.contract_id)
            ).scalars()
        }

        rows = []
        for offset in self.offsets_days:
            row = existing.get(offset)
            if row is None:
                row = ContractReminder(
                    contract_id=event.contract_id,
                    booking_id=event.booking_id,
                    contract_url=event.contract_url,
                    event_date=event.event_date,
                    offset_days=offset,
                    sent=False,
                )
                db.add(row)
            rows.append(row)
        db.flush()
        return rows

    def handle_rider_finalized(self, event: RiderFinalized, *, db: Optional[Session] = None) -> List[ReminderNotice]:
        """
        Register one reminder per offset for the contract. Safe to call twice
        for the same contract.

        With db given, rows join the caller's transaction; otherwise a session
        is opened and committed here.
        """
        if db is not None:
            return [_notice(r) for r in self._register(db, event)]

        session = self.session_factory()
        try:
            notices = [_notice(r) for r in self._register(session, event)]
            session.commit()
            return notices
        except IntegrityError:
            # a concurrent registration for the same contract won
            session.rollback()
            rows = session.execute(
                select(ContractReminder)
                .where(ContractReminder.contract_id == event.contract_id)
                .order_by(ContractReminder.offset_days.desc())
            ).scalars()
            return [_notice(r) for r in rows]
        finally:
            session.close()

    # ---------------------------
    # POLLING
    # ---------------------------

    def due_reminders(self, db: Session, today: date) -> List[ContractReminder]:
        rows = db.execute(
            select(ContractReminder)
            .where(ContractReminder.sent.is_(False), ContractReminder.event_date >= today)
            .order_by(ContractReminder.event_date, ContractReminder.offset_days.desc())
        ).scalars().all()
        return [r for r in rows if (r.event_date - today).days == r.offset_days]

    def _send_one(self, reminder_id: uuid.UUID, notice: ReminderNotice) -> bool:
        return deliver_once(
            self.session_factory,
            ContractReminder,
            reminder_id,
            lambda: self.sender.send(notice),
        )

    def run_due(self, today: Optional[date] = None) -> int:
        """
        Send every reminder due today. Returns how many were delivered by this call.
        """
        today = today or utc_now().date()

        session = self.session_factory()
        try:
            due: List[Tuple[uuid.UUID, ReminderNotice]] = [
                (r.id, _notice(r)) for r in self.due_reminders(session, today)
            ]
        finally:
            session.close()

        sent = 0
        for reminder_id, notice in due:
            if self._send_one(reminder_id, notice):
                sent += 1

        if due:
            logger.info("reminder poll", extra={"today": today.isoformat(), "due": len(due), "sent": sent})
        return sent

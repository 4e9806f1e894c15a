import os

# Settings are read at import time by rider_service.db.session
os.environ.setdefault("DATABASE_URL", "sqlite:///./rider-service-test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# FORCE model registration
import rider_service.models  # noqa

from rider_service.db.base import Base
from rider_service.services.negotiation_service import NegotiationService
from rider_service.services.reminder_scheduler import ReminderScheduler
from rider_service.services.rider_document_service import RiderDocumentService
from rider_service.services.contract_service import ContractService
from rider_service.services.notification_service import NotificationDispatcher


BASE_RIDER = {
    "performanceDuration": 90,
    "performanceFee": "2500.00",
    "paSystemRequired": True,
    "microphoneType": "wireless",
    "dressingRoomRequired": True,
    "parkingRequired": True,
    "cateringProvided": False,
    "specialRequests": "Green room with mirror",
}


class RecordingDispatcher(NotificationDispatcher):
    def __init__(self):
        self.sent = []

    def dispatch(self, notification):
        self.sent.append(notification)


@pytest.fixture(scope="function")
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'rider.db'}",
        future=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def reminders(session_factory):
    return ReminderScheduler(session_factory, offsets_days=[7, 3, 1])


@pytest.fixture
def service(session_factory, dispatcher, reminders):
    return NegotiationService(
        session_factory,
        dispatcher=dispatcher,
        contracts=ContractService(base_url="https://bookings.test/contracts"),
        reminders=reminders,
        max_attempts=3,
    )


@pytest.fixture
def base_rider():
    return dict(BASE_RIDER)


@pytest.fixture
def rider(db):
    return RiderDocumentService().create_version(db, owner_id="artist-1", fields=BASE_RIDER)

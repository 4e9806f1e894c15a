from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rider_service.core.config import get_settings

settings = get_settings()

DATABASE_URL = settings.database_url  # fail fast if missing


def _engine_kwargs(url: str) -> dict:
    kwargs = {"pool_pre_ping": True, "future": True}
    if url.startswith("sqlite"):
        # request handlers and the reminder job run on other threads
        kwargs["connect_args"] = {"check_same_thread": False}
    return kwargs


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

# The negotiation service and the reminder job open their own sessions
# from this factory; request handlers get one through get_db().
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

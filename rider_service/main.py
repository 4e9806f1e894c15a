from contextlib import asynccontextmanager

from fastapi import FastAPI

from rider_service.core.config import get_settings
from rider_service.core.logging import configure_logging
from rider_service.core.middleware import RequestIdMiddleware
from rider_service.api.v1.router import v1_router
from rider_service.db.session import SessionLocal
from rider_service.scheduler import init_scheduler, shutdown_scheduler
from rider_service.services.reminder_scheduler import ReminderScheduler
from rider_service.services.stall_reminder_service import StallReminderScheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.enable_reminder_scheduler:
        init_scheduler(
            settings,
            ReminderScheduler(SessionLocal),
            StallReminderScheduler(SessionLocal),
        )
    try:
        yield
    finally:
        shutdown_scheduler()


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )
    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()

import logging
import sys
from pythonjsonlogger import jsonlogger
from rider_service.core.config import Settings


def configure_logging(settings: Settings) -> None:
    """
    Structured logging (JSON) for the service.

    Every record carries the service name and environment; negotiation
    transitions add acknowledgment_id, action and status through `extra`.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # clear handlers if reloaded
    root.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    fmt = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"levelname": "level", "name": "logger"},
        static_fields={"service": settings.app_name, "environment": settings.environment},
    )
    handler.setFormatter(fmt)
    root.addHandler(handler)

    for name in ("uvicorn.access", "uvicorn.error", "apscheduler"):
        logging.getLogger(name).setLevel(level)

    # SQL echo stays off unless explicitly debugging
    logging.getLogger("sqlalchemy.engine").setLevel(max(level, logging.WARNING))

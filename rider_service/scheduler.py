# rider_service/scheduler.py
"""
Background scheduler for reminders.

Uses APScheduler to run one polling pass on a fixed interval: contract
reminders ahead of the event, then stalled-negotiation reminders. Started
from the application lifespan when enable_reminder_scheduler is set.
"""

import logging
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from rider_service.core.config import Settings
from rider_service.services.reminder_scheduler import ReminderScheduler
from rider_service.services.stall_reminder_service import StallReminderScheduler

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[BackgroundScheduler] = None


def _on_job_error(event):
    exc = event.exception
    logger.error(
        "Scheduled job FAILED: job_id=%s error=%s",
        event.job_id,
        exc,
        exc_info=(type(exc), exc, None) if exc else None,
    )


def _on_job_missed(event):
    logger.warning(
        "Scheduled job MISSED: job_id=%s scheduled_run_time=%s",
        event.job_id,
        event.scheduled_run_time,
    )


def poll_reminders(*pollers) -> int:
    """
    One pass over every reminder source. A source that fails is logged and
    the others still run.
    """
    sent = 0
    for poller in pollers:
        try:
            sent += poller.run_due()
        except Exception:
            logger.exception("reminder poll failed", extra={"poller": type(poller).__name__})
    return sent


def init_scheduler(
    settings: Settings,
    reminders: ReminderScheduler,
    stall_reminders: Optional[StallReminderScheduler] = None,
) -> BackgroundScheduler:
    """
    Start the background scheduler with the reminder polling job.
    Called once when the application starts up.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already initialized")
        return scheduler

    scheduler = BackgroundScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
    )

    pollers = [reminders] if stall_reminders is None else [reminders, stall_reminders]
    scheduler.add_job(
        func=poll_reminders,
        args=pollers,
        trigger=IntervalTrigger(minutes=settings.reminder_check_interval_minutes),
        id="send_due_reminders",
        name="Send Due Reminders",
        replace_existing=True,
    )
    logger.info(
        "Scheduled job: send_due_reminders (every %s minutes)",
        settings.reminder_check_interval_minutes,
    )

    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_listener(_on_job_missed, EVENT_JOB_MISSED)

    scheduler.start()
    logger.info("Background scheduler started successfully")
    return scheduler


def shutdown_scheduler() -> None:
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=True)
        logger.info("Background scheduler shutdown complete")
        scheduler = None


def get_scheduler() -> Optional[BackgroundScheduler]:
    return scheduler

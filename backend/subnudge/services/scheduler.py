"""Daily reminder job: advance renewals, then send due reminders.

The job assumes a single scheduler instance. Within one process APScheduler
never starts a run while the previous one is still going (max_instances=1),
but nothing prevents two separate processes from running it concurrently;
deploy the scheduler in one place only.
"""
import asyncio
import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session, sessionmaker

from subnudge.config import get_settings
from subnudge.services.notifications import SendMessage, send_subscription_reminders
from subnudge.services.renewals import advance_renewal_dates

logger = logging.getLogger(__name__)

REMINDER_JOB_ID = "subscription_reminders"


async def run_reminder_job(
    session_factory: sessionmaker | None = None,
    send_message: SendMessage | None = None,
    now: datetime | None = None,
    delay_seconds: float | None = None,
) -> dict | None:
    """Run one reminder pass. Never raises; failures are logged.

    Returns a summary dict, or None if the run was aborted.
    """
    try:
        settings = get_settings()
        if session_factory is None:
            from subnudge.database import SessionLocal
            session_factory = SessionLocal
        if now is None:
            now = datetime.now(ZoneInfo(settings.timezone))
        today = now.date()

        logger.info("Running subscription reminder check for %s", today.isoformat())

        db: Session = session_factory()
        try:
            advanced = advance_renewal_dates(db, today=today)
            logger.info("Advanced %d overdue renewal dates", advanced)

            summary = await send_subscription_reminders(
                db,
                send_message=send_message,
                now=now,
                delay_seconds=delay_seconds,
            )
        finally:
            db.close()

        summary["advanced"] = advanced
        return summary
    except Exception:
        logger.exception("Subscription reminder run failed")
        return None


def _run_reminder_job_sync() -> None:
    asyncio.run(run_reminder_job())


def create_scheduler() -> BackgroundScheduler:
    """Build the background scheduler with the daily reminder job."""
    settings = get_settings()
    timezone = ZoneInfo(settings.timezone)

    scheduler = BackgroundScheduler(timezone=timezone)
    scheduler.add_job(
        _run_reminder_job_sync,
        CronTrigger(hour=settings.reminder_hour, minute=settings.reminder_minute, timezone=timezone),
        id=REMINDER_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler

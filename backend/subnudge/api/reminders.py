"""Reminder job API endpoints."""
import secrets

from fastapi import APIRouter, Header, HTTPException, status
from pydantic import BaseModel

from subnudge.config import get_settings
from subnudge.services.scheduler import run_reminder_job

router = APIRouter(prefix="/reminders", tags=["reminders"])


class TriggerResponse(BaseModel):
    completed: bool
    advanced: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: int = 0


def verify_cron_secret(x_cron_secret: str | None) -> None:
    """Only an external scheduler holding CRON_SECRET may trigger runs."""
    expected = get_settings().cron_secret
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron trigger is not configured",
        )
    if not x_cron_secret or not secrets.compare_digest(x_cron_secret, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid cron secret")


@router.post("/trigger", response_model=TriggerResponse)
async def trigger_reminders(x_cron_secret: str | None = Header(default=None)):
    """Run the reminder job now (for an external cron)."""
    verify_cron_secret(x_cron_secret)

    summary = await run_reminder_job()
    if summary is None:
        return TriggerResponse(completed=False)
    return TriggerResponse(completed=True, **summary)

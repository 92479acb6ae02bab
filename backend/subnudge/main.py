"""Subnudge - Subscription Renewal Reminder API."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from subnudge.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup: Create tables, check the encryption secret, start the scheduler
    from subnudge.database import Base, engine
    from subnudge.services.crypto import get_field_cipher
    from subnudge.services.scheduler import create_scheduler
    
    # Import all models so they're registered with Base
    from subnudge import models  # noqa: F401
    
    Base.metadata.create_all(bind=engine)
    
    # Fail fast on a bad ENCRYPTION_SECRET rather than on the first reminder
    get_field_cipher()
    
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = create_scheduler()
        scheduler.start()
        logger.info(
            "Reminder scheduler started (daily at %02d:%02d %s)",
            settings.reminder_hour,
            settings.reminder_minute,
            settings.timezone,
        )
    
    yield
    
    if scheduler is not None:
        scheduler.shutdown(wait=False)


app = FastAPI(
    title=settings.app_name,
    description="Track your subscriptions and get reminded before they renew",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}


# Import and include routers
from subnudge.api import reminders  # noqa: E402

app.include_router(reminders.router, prefix="/api")

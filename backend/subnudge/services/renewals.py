"""Renewal date calculation and advancement."""
import logging
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from subnudge.models.subscription import Subscription

logger = logging.getLogger(__name__)

BILLING_CYCLES = ("monthly", "quarterly", "yearly", "custom")

CYCLE_TO_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "yearly": 12,
}


class UnknownBillingCycle(ValueError):
    """Billing cycle value outside the supported set."""


def next_renewal_date(
    current: date,
    cycle: str,
    custom_interval_days: int | None = None,
) -> date:
    """Calculate the renewal date one billing cycle after ``current``.

    Month-based cycles clamp to the last day of shorter months, so
    Jan 31 + 1 month is Feb 28 (or 29).

    A custom cycle without an interval has no schedule and returns
    ``current`` unchanged.
    """
    if cycle in CYCLE_TO_MONTHS:
        return current + relativedelta(months=CYCLE_TO_MONTHS[cycle])

    if cycle == "custom":
        if custom_interval_days is None:
            return current
        if custom_interval_days <= 0:
            raise ValueError(f"custom_interval_days must be positive, got {custom_interval_days}")
        return current + timedelta(days=custom_interval_days)

    raise UnknownBillingCycle(f"Unknown billing cycle: {cycle}")


def is_static_schedule(subscription: Subscription) -> bool:
    """Custom subscriptions without an interval are never auto-advanced."""
    return subscription.billing_cycle == "custom" and subscription.custom_interval_days is None


def advance_renewal_date(subscription: Subscription, today: date) -> date:
    """Roll a renewal date forward until it is strictly after ``today``."""
    renewal = subscription.renewal_on
    while renewal <= today:
        renewal = next_renewal_date(
            renewal,
            subscription.billing_cycle,
            subscription.custom_interval_days,
        )
    return renewal


def advance_renewal_dates(db: Session, today: date | None = None) -> int:
    """Advance every active subscription whose renewal date has passed.

    Each subscription is committed on its own; a failure on one is logged,
    rolled back and does not stop the others.

    Returns:
        Number of subscriptions advanced.
    """
    if today is None:
        today = date.today()

    due = db.query(Subscription).filter(
        Subscription.is_active == 1,
        Subscription.renewal_date <= today.isoformat(),
    ).all()

    advanced = 0
    failed = 0

    for subscription in due:
        if is_static_schedule(subscription):
            continue

        subscription_id = subscription.id
        try:
            previous = subscription.renewal_date
            subscription.renewal_date = advance_renewal_date(subscription, today).isoformat()
            db.commit()
            advanced += 1
            logger.info(
                "Advanced subscription %s renewal %s -> %s",
                subscription_id,
                previous,
                subscription.renewal_date,
            )
        except Exception:
            db.rollback()
            failed += 1
            logger.exception("Failed to advance renewal for subscription %s", subscription_id)

    if failed:
        logger.warning("Renewal advancement finished with %d failures", failed)

    return advanced

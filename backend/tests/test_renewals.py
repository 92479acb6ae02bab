from datetime import date

import pytest

from subnudge.models.subscription import Subscription
from subnudge.models.user import User
from subnudge.services.renewals import (
    UnknownBillingCycle,
    advance_renewal_dates,
    next_renewal_date,
)

TODAY = date(2026, 10, 19)


@pytest.mark.parametrize(
    ("cycle", "interval", "expected"),
    [
        ("monthly", None, date(2026, 2, 15)),
        ("quarterly", None, date(2026, 4, 15)),
        ("yearly", None, date(2027, 1, 15)),
        ("custom", 45, date(2026, 3, 1)),
        ("custom", None, date(2026, 1, 15)),
    ],
)
def test_next_renewal_date(cycle, interval, expected):
    assert next_renewal_date(date(2026, 1, 15), cycle, interval) == expected


def test_month_end_is_clamped():
    assert next_renewal_date(date(2026, 1, 31), "monthly") == date(2026, 2, 28)
    assert next_renewal_date(date(2028, 1, 31), "monthly") == date(2028, 2, 29)
    assert next_renewal_date(date(2028, 2, 29), "yearly") == date(2029, 2, 28)


def test_unknown_billing_cycle():
    with pytest.raises(UnknownBillingCycle):
        next_renewal_date(date(2026, 1, 15), "weekly")


def test_non_positive_custom_interval_is_rejected():
    with pytest.raises(ValueError):
        next_renewal_date(date(2026, 1, 15), "custom", 0)


def _add_subscription(session, user, **overrides):
    values = {
        "user_id": user.id,
        "service_name": "Netflix",
        "renewal_date": "2026-10-01",
        "cost": 15.49,
        "payment_method": "Visa",
        "account_name": "legacy@email.com",
        "billing_cycle": "monthly",
    }
    values.update(overrides)
    subscription = Subscription(**values)
    session.add(subscription)
    return subscription


@pytest.fixture
def user(session):
    user = User(email="owner@example.com", telegram_chat_id="1001")
    session.add(user)
    session.flush()
    return user


def test_overdue_monthly_advances_past_today_in_one_pass(session, user):
    subscription = _add_subscription(session, user, renewal_date="2026-06-10")
    session.commit()

    assert advance_renewal_dates(session, today=TODAY) == 1

    session.refresh(subscription)
    assert subscription.renewal_date == "2026-11-10"


def test_renewal_due_today_moves_to_next_cycle(session, user):
    subscription = _add_subscription(session, user, renewal_date=TODAY.isoformat(), billing_cycle="yearly")
    session.commit()

    advance_renewal_dates(session, today=TODAY)

    session.refresh(subscription)
    assert subscription.renewal_date == "2027-10-19"


def test_future_inactive_and_static_subscriptions_are_untouched(session, user):
    future = _add_subscription(session, user, renewal_date="2026-12-01")
    inactive = _add_subscription(session, user, renewal_date="2026-01-01", is_active=0)
    static = _add_subscription(session, user, renewal_date="2026-01-01", billing_cycle="custom")
    custom = _add_subscription(
        session, user, renewal_date="2026-10-10", billing_cycle="custom", custom_interval_days=30
    )
    session.commit()

    assert advance_renewal_dates(session, today=TODAY) == 1

    for subscription in (future, inactive, static, custom):
        session.refresh(subscription)
    assert future.renewal_date == "2026-12-01"
    assert inactive.renewal_date == "2026-01-01"
    assert static.renewal_date == "2026-01-01"
    assert custom.renewal_date == "2026-11-09"


def test_bad_subscription_does_not_block_others(session, user):
    broken = _add_subscription(session, user, renewal_date="2026-09-01", billing_cycle="weekly")
    healthy = _add_subscription(session, user, renewal_date="2026-09-01")
    session.commit()

    assert advance_renewal_dates(session, today=TODAY) == 1

    session.refresh(broken)
    session.refresh(healthy)
    assert broken.renewal_date == "2026-09-01"
    assert healthy.renewal_date == "2026-11-01"

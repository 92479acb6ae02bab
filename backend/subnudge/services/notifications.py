"""Notification service for subscription renewal reminders."""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from subnudge.config import get_settings
from subnudge.models.notification import NotificationLog
from subnudge.models.subscription import Subscription
from subnudge.models.user import User
from subnudge.services.crypto import CipherError, ConfigurationError, FieldCipher, get_field_cipher
from subnudge.services.telegram import send_telegram_message

logger = logging.getLogger(__name__)

SendMessage = Callable[[str, str], Awaitable[bool]]

ACCOUNT_PLACEHOLDER = "[unavailable]"
NOTIFICATION_TYPE = "telegram"


def get_reminder_candidates(db: Session) -> list[tuple[Subscription, User]]:
    """Active subscriptions of active users who linked a Telegram chat."""
    return (
        db.query(Subscription, User)
        .join(User, Subscription.user_id == User.id)
        .filter(
            Subscription.is_active == 1,
            User.is_active == 1,
            User.telegram_chat_id.isnot(None),
        )
        .all()
    )


def days_until_renewal(subscription: Subscription, today: date) -> int:
    return (subscription.renewal_on - today).days


def is_reminder_due(subscription: Subscription, days_until: int) -> bool:
    return days_until in subscription.reminder_offsets


def reminder_already_handled(
    db: Session,
    subscription_id: str,
    days_before: int,
    today: date,
) -> bool:
    """Check the log for an attempt (sent or failed) for this offset today."""
    existing = db.query(NotificationLog.id).filter(
        NotificationLog.subscription_id == subscription_id,
        NotificationLog.days_before == days_before,
        NotificationLog.sent_at.startswith(today.isoformat()),
    ).first()
    return existing is not None


def mask_email(email: str) -> str:
    """Show the first character and the domain: john@example.com -> j***@example.com."""
    local_part, _, domain = email.partition("@")
    if not local_part or not domain:
        return email
    return f"{local_part[0]}***@{domain}"


def resolve_account_display(
    subscription: Subscription,
    cipher: FieldCipher,
) -> str:
    """Decrypt the account name for display, falling back to a placeholder."""
    try:
        account_name = cipher.reveal(subscription.account, subscription.user_id)
    except CipherError:
        logger.warning("Could not decrypt account name for subscription %s", subscription.id)
        return ACCOUNT_PLACEHOLDER

    if "@" in account_name:
        # Escape the mask so Telegram Markdown doesn't read it as bold
        return mask_email(account_name).replace("*", "\\*")
    return account_name


def format_reminder_message(
    subscription: Subscription,
    days_until: int,
    account_display: str,
) -> str:
    """Build the Telegram Markdown reminder text."""
    if days_until <= 1:
        emoji = "🚨"
    elif days_until <= 3:
        emoji = "⚠️"
    else:
        emoji = "🔔"

    message = (
        f"{emoji} *Subscription Reminder*\n\n"
        f"📌 *Service:* {subscription.service_name}\n"
        f"⏰ *Renews in:* {days_until} day{'' if days_until == 1 else 's'}\n"
        f"💵 *Cost:* {subscription.currency} {subscription.cost:.2f}\n"
        f"💳 *Payment:* {subscription.payment_method}\n"
        f"👤 *Account:* {account_display}\n"
    )
    if subscription.notes:
        message += f"\n📝 *Notes:* {subscription.notes}"

    return message


def create_notification_log(
    db: Session,
    subscription_id: str,
    days_before: int,
    status: str,
    sent_at: datetime,
) -> NotificationLog:
    """Record a delivery attempt."""
    log = NotificationLog(
        subscription_id=subscription_id,
        sent_at=sent_at.replace(tzinfo=None).isoformat(),
        notification_type=NOTIFICATION_TYPE,
        status=status,
        days_before=days_before,
    )
    db.add(log)
    db.commit()
    return log


async def dispatch_reminder(
    db: Session,
    subscription: Subscription,
    user: User,
    days_until: int,
    send_message: SendMessage,
    cipher: FieldCipher,
    now: datetime,
) -> bool:
    """Send one reminder and log the outcome. Returns True if delivered."""
    account_display = resolve_account_display(subscription, cipher)
    message = format_reminder_message(subscription, days_until, account_display)

    # A raising send counts as a failed delivery so it is still logged
    # and not retried the same day
    try:
        success = await send_message(user.telegram_chat_id, message)
    except ConfigurationError:
        raise
    except Exception:
        logger.exception("Send failed for subscription %s", subscription.id)
        success = False

    create_notification_log(
        db,
        subscription.id,
        days_until,
        "sent" if success else "failed",
        now,
    )
    return success


async def send_subscription_reminders(
    db: Session,
    send_message: SendMessage | None = None,
    now: datetime | None = None,
    delay_seconds: float | None = None,
    cipher: FieldCipher | None = None,
) -> dict:
    """Send every reminder that is due today.

    Safe to run more than once a day: an offset already attempted today is
    skipped whether the earlier attempt succeeded or not.
    """
    settings = get_settings()
    if send_message is None:
        send_message = send_telegram_message
    if now is None:
        now = datetime.now(ZoneInfo(settings.timezone))
    if delay_seconds is None:
        delay_seconds = settings.dispatch_delay_seconds
    if cipher is None:
        cipher = get_field_cipher()

    today = now.date()

    sent = 0
    failed = 0
    skipped = 0
    errors = 0
    dispatched_any = False

    for subscription, user in get_reminder_candidates(db):
        subscription_id = subscription.id
        try:
            days_until = days_until_renewal(subscription, today)
            if not is_reminder_due(subscription, days_until):
                continue

            if reminder_already_handled(db, subscription_id, days_until, today):
                skipped += 1
                continue

            if dispatched_any and delay_seconds:
                await asyncio.sleep(delay_seconds)
            dispatched_any = True

            if await dispatch_reminder(db, subscription, user, days_until, send_message, cipher, now):
                sent += 1
            else:
                failed += 1
        except ConfigurationError:
            raise
        except Exception:
            db.rollback()
            errors += 1
            logger.exception("Failed to process reminder for subscription %s", subscription_id)

    logger.info(
        "Reminders sent: %d, failed: %d, already handled: %d, errors: %d",
        sent,
        failed,
        skipped,
        errors,
    )
    return {"sent": sent, "failed": failed, "skipped": skipped, "errors": errors}

"""Account name storage helpers and the legacy plaintext migration."""
import logging

from sqlalchemy.orm import Session

from subnudge.models.subscription import Subscription
from subnudge.services.crypto import FieldCipher, is_encrypted

logger = logging.getLogger(__name__)


def set_account_name(subscription: Subscription, plaintext: str, cipher: FieldCipher) -> None:
    """Store an account name encrypted with the owner's key."""
    subscription.account_name = cipher.encrypt(plaintext, subscription.user_id)


def encrypt_legacy_account_names(db: Session, cipher: FieldCipher) -> dict:
    """Encrypt every account name still stored as plaintext.

    Safe to run while the app is serving traffic: reads pass plaintext
    through, and rows are committed one at a time. Already encrypted rows
    are left untouched, so the migration can be re-run.
    """
    subscriptions = db.query(Subscription).all()

    migrated = 0
    skipped = 0
    failed = 0

    for subscription in subscriptions:
        if is_encrypted(subscription.account_name):
            skipped += 1
            continue

        subscription_id = subscription.id
        try:
            set_account_name(subscription, subscription.account_name, cipher)
            db.commit()
            migrated += 1
        except Exception:
            db.rollback()
            failed += 1
            logger.exception("Failed to encrypt account name for subscription %s", subscription_id)

    logger.info(
        "Account name migration: %d encrypted, %d already encrypted, %d failed",
        migrated,
        skipped,
        failed,
    )
    return {"migrated": migrated, "skipped": skipped, "failed": failed}

"""SQLAlchemy models package."""
from subnudge.models.user import User
from subnudge.models.subscription import Subscription
from subnudge.models.notification import NotificationLog

__all__ = [
    "User",
    "Subscription",
    "NotificationLog",
]

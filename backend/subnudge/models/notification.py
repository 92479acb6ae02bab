"""Notification log model."""
import uuid
from datetime import datetime

from sqlalchemy import Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from subnudge.database import Base


class NotificationLog(Base):
    """Append-only record of reminder delivery attempts.

    Also serves as the dedupe ledger: one row per subscription, offset and day.
    """
    
    __tablename__ = "notification_logs"
    __table_args__ = (
        Index("ix_notification_logs_dedupe", "subscription_id", "days_before", "sent_at"),
    )
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    subscription_id = Column(String(36), ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False)
    sent_at = Column(String(26), nullable=False, default=lambda: datetime.utcnow().isoformat())
    notification_type = Column(String(20), nullable=False, default="telegram")
    status = Column(String(10), nullable=False)  # sent, failed
    days_before = Column(Integer, nullable=False)
    
    # Relationships
    subscription = relationship("Subscription", back_populates="notification_logs")

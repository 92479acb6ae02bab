"""Subscription model."""
import json
import uuid
from datetime import date, datetime

from sqlalchemy import Column, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from subnudge.database import Base
from subnudge.services.crypto import AccountField, parse_account_field

DEFAULT_REMINDER_DAYS = [7, 3, 1]


class Subscription(Base):
    """A recurring subscription tracked for a user."""
    
    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("ix_subscriptions_active_renewal", "is_active", "renewal_date"),
    )
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    service_name = Column(String(255), nullable=False)
    
    # Billing
    renewal_date = Column(String(10), nullable=False)  # YYYY-MM-DD
    cost = Column(Float, nullable=False)
    currency = Column(String(10), nullable=False, default="USD")
    billing_cycle = Column(String(20), nullable=False, default="monthly")  # monthly, quarterly, yearly, custom
    custom_interval_days = Column(Integer)  # Only used when billing_cycle = "custom"
    payment_method = Column(Text, nullable=False)
    
    # enc:<iv>:<ciphertext>:<tag>, or legacy plaintext
    account_name = Column(String(255), nullable=False)
    
    reminder_days = Column(Text, nullable=False, default=lambda: json.dumps(DEFAULT_REMINDER_DAYS))  # JSON array
    notes = Column(Text)
    is_active = Column(Integer, default=1)  # SQLite boolean
    
    # Timestamps
    created_at = Column(String(26), default=lambda: datetime.utcnow().isoformat())
    updated_at = Column(String(26), default=lambda: datetime.utcnow().isoformat(), onupdate=lambda: datetime.utcnow().isoformat())
    
    # Relationships
    user = relationship("User", back_populates="subscriptions")
    notification_logs = relationship("NotificationLog", back_populates="subscription", cascade="all, delete-orphan")

    @property
    def renewal_on(self) -> date:
        return date.fromisoformat(self.renewal_date)

    @property
    def reminder_offsets(self) -> set[int]:
        return {int(days) for days in json.loads(self.reminder_days or "[]")}

    @property
    def account(self) -> AccountField:
        """The stored account name as a tagged plaintext/encrypted value."""
        return parse_account_field(self.account_name)

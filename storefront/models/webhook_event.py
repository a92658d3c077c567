"""
SQLAlchemy model for processed Stripe webhook events
"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from storefront.database import Base


class ProcessedWebhookEvent(Base):
    """Table to track delivered Stripe events for idempotency"""

    __tablename__ = "processed_webhook_events"

    event_id = Column(String(255), primary_key=True, nullable=False)
    event_type = Column(String(100), nullable=False)
    processed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<ProcessedWebhookEvent(event_id='{self.event_id}', event_type='{self.event_type}')>"

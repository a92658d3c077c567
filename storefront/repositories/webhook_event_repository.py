"""
ProcessedWebhookEvent Repository - Data Access Layer
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.models.webhook_event import ProcessedWebhookEvent


class WebhookEventRepository:
    """Repository for tracking delivered webhook events (idempotency)"""

    def __init__(self, db: Session):
        self.db = db

    def is_processed(self, event_id: str) -> bool:
        """Check if event was already processed"""
        return self.db.query(ProcessedWebhookEvent).filter(
            ProcessedWebhookEvent.event_id == event_id
        ).first() is not None

    def mark_processed(self, event_id: str, event_type: str) -> bool:
        """
        Mark event as processed

        Returns:
            False if a concurrent delivery already recorded it
        """
        self.db.add(ProcessedWebhookEvent(event_id=event_id, event_type=event_type))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        return True

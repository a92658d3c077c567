"""
Webhook Service - Stripe event processing
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.webhook_event_repository import WebhookEventRepository
from storefront.schemas.payment import WebhookAck
from storefront.services.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)

# Payment intent event type -> order status
EVENT_STATUS_MAP = {
    "payment_intent.succeeded": "paid",
    "payment_intent.payment_failed": "payment_failed",
    "payment_intent.canceled": "cancelled",
}


class WebhookService:
    """Apply verified Stripe events to orders"""

    def __init__(self, db: Session, gateway: PaymentGateway):
        self.db = db
        self.gateway = gateway
        self.orders = OrderRepository(db)
        self.events = WebhookEventRepository(db)

    def handle(self, payload: bytes, signature: Optional[str]) -> WebhookAck:
        """
        Verify and process one webhook delivery

        Status update failures are logged and still acknowledged, so Stripe does
        not redeliver. Event IDs already processed are acknowledged without
        touching the order again.

        Raises:
            ConfigurationError: Webhook secret not configured
            WebhookSignatureError: Signature missing or invalid
        """
        event = self.gateway.construct_event(payload, signature)
        event_id = event.get("id")
        event_type = event.get("type")

        if event_id and self._already_processed(event_id):
            logger.info("Webhook event %s (%s) already processed", event_id, event_type)
            return WebhookAck(duplicate=True)

        new_status = EVENT_STATUS_MAP.get(event_type)
        if new_status is None:
            logger.info("Unhandled webhook event type: %s", event_type)
        else:
            intent = (event.get("data") or {}).get("object") or {}
            self.apply_payment_status(intent, new_status)

        if event_id:
            self._mark_processed(event_id, event_type)
        return WebhookAck()

    def apply_payment_status(self, intent: dict, new_status: str) -> None:
        """Set the status of the order the intent belongs to"""
        intent_id = intent.get("id")
        order_id = (intent.get("metadata") or {}).get("orderId")

        if not order_id:
            logger.error("Payment intent %s has no orderId in metadata", intent_id)
            return

        try:
            order = self.orders.get_by_id(order_id)
            if order is None and intent_id:
                # Orders written by save/confirm carry their own id; match on the intent
                order = self.orders.get_by_payment_intent(intent_id)

            if order is None:
                logger.warning(
                    "No order found for payment intent %s (orderId %s)", intent_id, order_id
                )
                return

            self.orders.update_status(order.id, new_status, intent_id)
            logger.info("Order %s marked %s from payment intent %s", order.id, new_status, intent_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to update order status for payment intent %s: %s", intent_id, e)

    def _already_processed(self, event_id: str) -> bool:
        try:
            return self.events.is_processed(event_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to check webhook event %s: %s", event_id, e)
            return False

    def _mark_processed(self, event_id: str, event_type: str) -> None:
        try:
            self.events.mark_processed(event_id, event_type)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to record webhook event %s: %s", event_id, e)

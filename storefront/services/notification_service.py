"""
Notification Service - order confirmation emails with duplicate-send guard
"""
import html
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.errors import PersistenceError
from storefront.repositories.email_log_repository import EmailLogRepository
from storefront.services.mail_transport import MailTransport, sender_address

logger = logging.getLogger(__name__)

ORDER_CONFIRMATION = "order_confirmation"
DEFAULT_PRODUCT_NAME = "DVIT Golf Modular Putter"


@dataclass
class OrderEmailData:
    """Everything the order confirmation email needs"""
    order_id: str
    customer_name: str
    customer_email: str
    total_price: float
    order_items: List[dict] = field(default_factory=list)
    order_date: Optional[str] = None
    face_deck: Optional[str] = None
    weight_system: Optional[str] = None


def default_order_items(total_price: float, face_deck=None, weight_system=None) -> List[dict]:
    """Single putter line item used when the caller sends no items"""
    return [{
        "name": DEFAULT_PRODUCT_NAME,
        "quantity": 1,
        "price": total_price,
        "customization": {
            "faceDeck": face_deck,
            "weightSystem": weight_system,
        },
    }]


def order_confirmation_subject(order_id: str) -> str:
    return f"Order Confirmation - {order_id} - DVIT GOLF"


def _customization_text(item: dict) -> str:
    customization = item.get("customization") or {}
    parts = [str(value) for value in (customization.get("faceDeck"), customization.get("weightSystem")) if value]
    return " / ".join(parts)


def render_order_confirmation(data: OrderEmailData) -> tuple:
    """Build the (text, html) bodies of the confirmation email"""
    order_date = data.order_date or datetime.now(timezone.utc).isoformat()
    orders_url = f"{settings.BASE_URL.rstrip('/')}/orders"

    if data.order_items:
        item_lines = []
        for index, item in enumerate(data.order_items, start=1):
            line = f"Item {index}: {item.get('name', DEFAULT_PRODUCT_NAME)} x {item.get('quantity', 1)}\n"
            line += f"Unit price: ${float(item.get('price') or 0):,.2f}"
            customization = _customization_text(item)
            if customization:
                line += f"\nCustomization: {customization}"
            item_lines.append(line)
        items_text = "\n\n".join(item_lines)
    else:
        items_text = (
            f"Face deck: {data.face_deck or 'Standard'}\n"
            f"Weight system: {data.weight_system or 'Standard'}"
        )

    text = f"""
Hi {data.customer_name},

Thank you for your order! We have received your payment.

Order ID: {data.order_id}
Order date: {order_date}

{items_text}

Total paid: ${data.total_price:,.2f}

Next steps:
- Order confirmation email sent (this message)
- Custom build starts within 1-2 business days
- Quality inspection and packaging
- Shipping (estimated 7-10 business days)
- Tracking details will follow by email

View your orders: {orders_url}

DVIT GOLF Team
support@dvitgolf.com
"""

    escaped_items = html.escape(items_text).replace("\n", "<br>")
    html_body = f"""
<html>
  <body style="font-family: Arial, sans-serif; color: #1f2937;">
    <h2>Thank you for your order, {html.escape(data.customer_name)}!</h2>
    <p><strong>Order ID:</strong> {html.escape(str(data.order_id))}<br>
       <strong>Order date:</strong> {html.escape(order_date)}</p>
    <p>{escaped_items}</p>
    <p><strong>Total paid:</strong> ${data.total_price:,.2f}</p>
    <p><a href="{html.escape(orders_url)}">View your orders</a></p>
    <p>DVIT GOLF Team</p>
  </body>
</html>
"""
    return text, html_body


class NotificationService:
    """Service for sending transactional emails"""

    def __init__(self, db: Session, transport: MailTransport):
        self.email_logs = EmailLogRepository(db)
        self.transport = transport

    def already_sent(self, order_id: str, recipient: str) -> bool:
        """
        Check whether an order confirmation was already delivered

        First by exact order ID, then (when fuzzy dedup is enabled) by recipient
        within the trailing window, which covers provisional order IDs.
        """
        try:
            previous = self.email_logs.find_sent_for_order(order_id, ORDER_CONFIRMATION)
            if previous:
                logger.info("Confirmation for order %s already sent at %s", order_id, previous.sent_at)
                return True

            if settings.FUZZY_DEDUP_ENABLED:
                previous = self.email_logs.find_recent_sent_to(
                    recipient, ORDER_CONFIRMATION, settings.DEDUP_WINDOW_MINUTES
                )
                if previous:
                    logger.info(
                        "Confirmation to %s already sent at %s (%s)",
                        recipient, previous.sent_at, previous.subject
                    )
                    return True
        except SQLAlchemyError as e:
            logger.error("Failed to check email send status: %s", e)
            self.email_logs.db.rollback()

        return False

    def send_order_confirmation(self, data: OrderEmailData) -> bool:
        """
        Send the order confirmation email at most once per order

        Returns:
            True if sent or intentionally skipped, False if delivery failed
        """
        if not self.transport.configured:
            logger.info("Email service not configured, skipping confirmation for order %s", data.order_id)
            return True

        if self.already_sent(data.order_id, data.customer_email):
            logger.info("Skipping duplicate confirmation email for order %s", data.order_id)
            return True

        subject = order_confirmation_subject(data.order_id)
        text, html_body = render_order_confirmation(data)

        message = EmailMessage()
        message["From"] = sender_address(settings)
        message["To"] = data.customer_email
        message["Subject"] = subject
        message.set_content(text)
        message.add_alternative(html_body, subtype="html")

        try:
            message_id = self.transport.send(message)
        except Exception as e:
            logger.error("Failed to send confirmation email for order %s: %s", data.order_id, e)
            self._log_attempt(data, subject, "failed", error=str(e))
            return False

        logger.info("Confirmation email sent for order %s (%s)", data.order_id, message_id)
        self._log_attempt(data, subject, "sent", message_id=message_id)
        return True

    def check_email_sent(self, order_id: str, recipient: str) -> Optional[dict]:
        """Look up a delivered confirmation whose subject mentions the order ID"""
        try:
            log = self.email_logs.find_sent_matching_order(order_id, recipient, ORDER_CONFIRMATION)
        except SQLAlchemyError as e:
            logger.error("Failed to check email status for order %s: %s", order_id, e)
            raise PersistenceError("Failed to check email status", details=str(e)) from e
        if not log:
            return None
        return {"sentAt": log.sent_at or log.created_at, "subject": log.subject}

    def _log_attempt(self, data: OrderEmailData, subject: str, status: str, message_id=None, error=None) -> None:
        try:
            self.email_logs.upsert(
                order_id=str(data.order_id),
                email_type=ORDER_CONFIRMATION,
                recipient=data.customer_email,
                subject=subject,
                status=status,
                template_id=ORDER_CONFIRMATION,
                message_id=message_id,
                error=error
            )
        except SQLAlchemyError as e:
            logger.error("Failed to record email status for order %s: %s", data.order_id, e)
            self.email_logs.db.rollback()

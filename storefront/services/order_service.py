"""
Order Service - Business Logic Layer

Orders are created from two independent entry points: save-order right after
the client confirms payment and confirm-order from the success page. Both go
through OrderRepository.upsert_by_payment_intent, so a payment intent maps to
at most one order row. The Stripe webhook only changes status.
"""
import logging
import random
import string
import time
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.errors import OrderNotFoundError, PersistenceError, ValidationFailedError
from storefront.models.order import Order
from storefront.repositories.order_repository import OrderRepository
from storefront.schemas.order import (
    ConfirmOrderRequest,
    ConfirmOrderResponse,
    OrderCheckResponse,
    OrderCreate,
    OrderResponse,
    SaveOrderRequest,
    SaveOrderResponse,
)
from storefront.services.notification_service import (
    DEFAULT_PRODUCT_NAME,
    NotificationService,
    OrderEmailData,
    default_order_items,
)
from storefront.services.payment_validation import (
    is_valid_email,
    selection_name,
    validate_currency,
    validate_payment_amount,
    validate_order_data,
)
from storefront.services.security import log_security_event

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _line_items_from_payload(items: List[dict]) -> List[dict]:
    """Map checkout line items onto order_items rows"""
    rows = []
    for item in items:
        quantity = int(item.get("quantity") or 1)
        unit_price = float(item.get("price") or 0)
        rows.append({
            "product_name": item.get("name") or DEFAULT_PRODUCT_NAME,
            "quantity": quantity,
            "unit_price": unit_price,
            "total_price": round(unit_price * quantity, 2),
            "product_snapshot": item.get("customization") or {},
        })
    return rows


class OrderService:
    """Service layer for order reconciliation"""

    def __init__(self, db: Session, notifications: NotificationService):
        self.repository = OrderRepository(db)
        self.notifications = notifications

    def save_order(self, payload: SaveOrderRequest, client_id: str) -> SaveOrderResponse:
        """
        Persist a completed order right after client-side payment confirmation

        Idempotent on payment_intent_id: a second call returns the existing order
        with duplicate=True.

        Raises:
            ValidationFailedError: Missing payment intent, order data or invalid values
            PersistenceError: Database lookup or write failed
        """
        start = time.monotonic()

        if not payload.payment_intent_id:
            log_security_event("order_save_validation_failed", {
                "clientId": client_id,
                "error": "Missing payment intent ID",
            })
            raise ValidationFailedError("Payment intent ID is required")

        if not payload.order_data:
            log_security_event("order_save_validation_failed", {
                "clientId": client_id,
                "error": "Missing order data",
            })
            raise ValidationFailedError("Order data is required")

        validation = validate_payment_amount(payload.total_amount).merge(
            validate_order_data(payload.order_data)
        ).merge(validate_currency(payload.currency))
        if not validation.is_valid:
            log_security_event("order_save_validation_failed", {
                "clientId": client_id,
                "error": "Order validation failed",
                "validationErrors": validation.errors,
            })
            raise ValidationFailedError(validation.first_error)

        try:
            existing = self.repository.get_by_payment_intent(payload.payment_intent_id)
        except SQLAlchemyError as e:
            self.repository.db.rollback()
            log_security_event("order_save_database_error", {
                "clientId": client_id,
                "error": "Failed to check existing order",
                "details": str(e),
            })
            raise PersistenceError("Database query failed", details=str(e)) from e

        if existing:
            log_security_event("order_save_duplicate_attempt", {
                "clientId": client_id,
                "paymentIntentId": payload.payment_intent_id,
                "existingOrderId": existing.id,
            })
            return SaveOrderResponse(
                order_id=existing.id,
                message="Order already exists",
                duplicate=True,
                processing_time=_elapsed_ms(start)
            )

        order_data = payload.order_data
        total_amount = payload.total_amount
        order_values = {
            "stripe_payment_intent_id": payload.payment_intent_id,
            "total_amount": total_amount,
            "currency": payload.currency.upper(),
            "status": "completed",
            "customer_email": order_data.get("customerEmail"),
            "customer_name": order_data.get("customerName"),
            "shipping_address": payload.shipping_address,
            "billing_address": payload.billing_address,
            "order_items": {
                "faceDeck": order_data.get("faceDeck"),
                "weightSystem": order_data.get("weightSystem"),
                "totalPrice": total_amount,
            },
            "metadata": {
                "customerPhone": order_data.get("customerPhone"),
                "paymentMethod": "stripe",
                "processedAt": datetime.now(timezone.utc).isoformat(),
                "clientId": client_id,
            },
        }
        line_items = _line_items_from_payload(default_order_items(
            total_amount,
            selection_name(order_data.get("faceDeck")),
            selection_name(order_data.get("weightSystem"))
        ))
        line_items[0]["product_snapshot"] = {
            "faceDeck": order_data.get("faceDeck"),
            "weightSystem": order_data.get("weightSystem"),
        }

        try:
            order, created = self.repository.upsert_by_payment_intent(order_values, line_items)
        except SQLAlchemyError as e:
            self.repository.db.rollback()
            log_security_event("order_save_failed", {
                "clientId": client_id,
                "paymentIntentId": payload.payment_intent_id,
                "error": str(e),
            })
            raise PersistenceError("Failed to save order", details=str(e)) from e

        processing_time = _elapsed_ms(start)

        if not created:
            # Lost the race against a concurrent save/confirm for the same intent
            log_security_event("order_save_duplicate_attempt", {
                "clientId": client_id,
                "paymentIntentId": payload.payment_intent_id,
                "existingOrderId": order.id,
            })
            return SaveOrderResponse(
                order_id=order.id,
                message="Order already exists",
                duplicate=True,
                processing_time=processing_time
            )

        log_security_event("order_save_success", {
            "clientId": client_id,
            "orderId": order.id,
            "paymentIntentId": payload.payment_intent_id,
            "processingTime": processing_time,
        })
        logger.info(
            "Order saved: %s (payment intent %s, total %.2f, %d ms)",
            order.id, payload.payment_intent_id, total_amount, processing_time
        )

        return SaveOrderResponse(
            order_id=order.id,
            message="Order saved successfully",
            processing_time=processing_time
        )

    def confirm_order(self, payload: ConfirmOrderRequest) -> ConfirmOrderResponse:
        """
        Reconcile the order from the payment success page and send the confirmation

        Flow:
        1. Validate customer, order ID and total
        2. skip_order_creation: only (re)send the email for the supplied order ID
        3. Existing order (by payment intent, then email + amount in window):
           resend the email for it and report duplicate
        4. Otherwise upsert the order (keyed on payment intent) and send the email

        Raises:
            ValidationFailedError: Missing or invalid fields
            PersistenceError: Database lookup or write failed
        """
        if not (payload.customer_name and payload.customer_email and payload.order_id and payload.total_price):
            raise ValidationFailedError("Missing required order information")

        if not is_valid_email(payload.customer_email):
            raise ValidationFailedError("Invalid email format")

        if payload.total_price <= 0:
            raise ValidationFailedError("Order total must be greater than 0")

        order_items = (
            [item.model_dump() for item in payload.order_items]
            if payload.order_items
            else default_order_items(payload.total_price, payload.face_deck, payload.weight_system)
        )
        logger.info(
            "Confirming order %s for %s (%d item(s), total %.2f)",
            payload.order_id, payload.customer_email, len(order_items), payload.total_price
        )

        if payload.skip_order_creation:
            logger.info("Skipping order creation, sending confirmation email only")
            email_sent = self._send_confirmation(payload, payload.order_id, order_items)
            return ConfirmOrderResponse(
                order_id=payload.order_id,
                message="Confirmation email sent" if email_sent else "Confirmation email could not be sent",
                email_only=True,
                email_sent=email_sent
            )

        try:
            existing = self.find_existing_order(
                payload.payment_intent_id, payload.customer_email, payload.total_price
            )
        except SQLAlchemyError as e:
            self.repository.db.rollback()
            logger.error("Failed to check for existing order: %s", e)
            raise PersistenceError("Database query failed", details=str(e)) from e

        if existing:
            logger.info("Order already exists (%s), checking confirmation email", existing.id)
            email_sent = self._send_confirmation(payload, existing.id, order_items)
            return ConfirmOrderResponse(
                db_order_id=existing.id,
                original_order_id=payload.order_id,
                message="Order already exists, confirmation email checked",
                duplicate=True,
                email_sent=email_sent
            )

        order_values = {
            "stripe_payment_intent_id": payload.payment_intent_id,
            "customer_email": payload.customer_email,
            "customer_name": payload.customer_name,
            "total_amount": payload.total_price,
            "currency": "USD",
            "status": "processing",
            "order_items": order_items,
            "metadata": {
                "faceDeck": payload.face_deck,
                "weightSystem": payload.weight_system,
                "orderDate": payload.order_date or datetime.now(timezone.utc).isoformat(),
                "clientOrderId": payload.order_id,
            },
        }
        if not payload.payment_intent_id:
            order_values["id"] = str(uuid.uuid4())

        try:
            order, _ = self.repository.upsert_by_payment_intent(
                order_values, _line_items_from_payload(order_items), overwrite=True
            )
        except SQLAlchemyError as e:
            self.repository.db.rollback()
            logger.error("Failed to save order: %s", e)
            raise PersistenceError("Failed to save order", details=str(e)) from e

        logger.info("Order saved to database: %s", order.id)
        email_sent = self._send_confirmation(payload, order.id, order_items)

        return ConfirmOrderResponse(
            order_id=order.id,
            original_order_id=payload.order_id,
            message="Order confirmed",
            email_sent=email_sent
        )

    def find_existing_order(
        self,
        payment_intent_id: Optional[str],
        customer_email: str,
        total_amount: float
    ) -> Optional[Order]:
        """Lookup by payment intent first, then the email + amount heuristic"""
        if payment_intent_id:
            order = self.repository.get_by_payment_intent(payment_intent_id)
            if order:
                return order
        return self.find_recent_duplicate(customer_email, total_amount)

    def find_recent_duplicate(self, customer_email: str, total_amount: float) -> Optional[Order]:
        """
        Fuzzy duplicate guard for submissions lacking a payment intent

        Can reject a legitimate second order of the same amount inside the window
        and can miss duplicates outside it. Disabled with FUZZY_DEDUP_ENABLED=false.
        """
        if not settings.FUZZY_DEDUP_ENABLED:
            return None
        return self.repository.find_recent_by_email_and_amount(
            customer_email, total_amount, settings.DEDUP_WINDOW_MINUTES
        )

    def _send_confirmation(self, payload: ConfirmOrderRequest, order_id: str, order_items: List[dict]) -> bool:
        """Email failures never fail the request"""
        data = OrderEmailData(
            order_id=str(order_id),
            customer_name=payload.customer_name,
            customer_email=payload.customer_email,
            total_price=payload.total_price,
            order_items=order_items,
            order_date=payload.order_date,
            face_deck=payload.face_deck,
            weight_system=payload.weight_system
        )
        try:
            return self.notifications.send_order_confirmation(data)
        except Exception as e:
            logger.error("Confirmation email for order %s failed: %s", order_id, e)
            return False

    def check_order(self, payment_intent_id: str) -> OrderCheckResponse:
        """Tell the success page whether an order exists for the payment intent"""
        try:
            order = self.repository.get_by_payment_intent(payment_intent_id)
        except SQLAlchemyError as e:
            logger.error("Failed to check order: %s", e)
            raise PersistenceError("Database query failed", details=str(e)) from e

        if not order:
            return OrderCheckResponse(exists=False)
        return OrderCheckResponse(
            exists=True,
            order_id=order.id,
            status=order.status,
            created_at=order.created_at
        )

    def get_by_payment_intent(self, payment_intent_id: str) -> OrderResponse:
        try:
            order = self.repository.get_by_payment_intent(payment_intent_id)
        except SQLAlchemyError as e:
            logger.error("Database query error: %s", e)
            raise PersistenceError("Failed to fetch order", details=str(e)) from e

        if not order:
            raise OrderNotFoundError("Order not found")
        return OrderResponse.model_validate(order)

    def list_orders(self, email: Optional[str] = None, order_id: Optional[str] = None) -> List[OrderResponse]:
        try:
            orders = self.repository.list_orders(email=email, order_id=order_id)
        except SQLAlchemyError as e:
            logger.error("Failed to query orders: %s", e)
            raise PersistenceError("Failed to query orders", details=str(e)) from e
        return [OrderResponse.model_validate(o) for o in orders]

    def create_pending_order(self, order_data: OrderCreate) -> OrderResponse:
        """Create a pending order that has no payment intent yet"""
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
        order_values = {
            "id": f"order_{int(time.time() * 1000)}_{suffix}",
            "customer_name": order_data.customer_name,
            "customer_email": order_data.customer_email,
            "total_amount": order_data.total_amount,
            "currency": "USD",
            "status": "pending",
            "order_items": order_data.order_items,
            "metadata": order_data.metadata,
        }
        try:
            order = self.repository.create(order_values, _line_items_from_payload(order_data.order_items))
        except SQLAlchemyError as e:
            self.repository.db.rollback()
            logger.error("Failed to create order: %s", e)
            raise PersistenceError("Failed to create order", details=str(e)) from e
        return OrderResponse.model_validate(order)

"""
Payment Service - PaymentIntent creation
"""
import json
import logging
import time
import uuid
from typing import Union

from storefront.errors import PaymentProviderError, ValidationFailedError
from storefront.schemas.payment import (
    CreatePaymentIntentRequest,
    DemoPaymentIntentResponse,
    PaymentIntentResponse,
)
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.payment_validation import (
    format_amount_for_stripe,
    format_amount_from_stripe,
    generate_order_id,
    selection_name,
    validate_currency,
    validate_order_data,
    validate_payment_amount,
    validate_payment_environment,
)
from storefront.services.security import log_security_event, sanitize_for_logging

logger = logging.getLogger(__name__)

# Stripe caps metadata values at 500 characters
METADATA_VALUE_LIMIT = 500


def _metadata_value(value) -> str:
    if isinstance(value, (dict, list)):
        value = json.dumps(value, separators=(",", ":"))
    return str(value if value is not None else "")[:METADATA_VALUE_LIMIT]


def build_payment_metadata(order_id: str, amount: float, order_data: dict, client_id: str) -> dict:
    """Flat string metadata carried on the intent and echoed back in webhooks"""
    return {
        "orderId": order_id,
        "customerName": _metadata_value(order_data.get("customerName")),
        "customerEmail": _metadata_value(order_data.get("customerEmail")),
        "customerPhone": _metadata_value(order_data.get("customerPhone")),
        "faceDeck": _metadata_value(order_data.get("faceDeck")),
        "weightSystem": _metadata_value(order_data.get("weightSystem")),
        "totalAmount": f"{float(amount):.2f}",
        "clientId": client_id,
        "createdAt": str(int(time.time() * 1000)),
    }


class PaymentService:
    """Service layer for the checkout payment flow"""

    def __init__(self, gateway: PaymentGateway):
        self.gateway = gateway

    def create_payment_intent(
        self,
        payload: CreatePaymentIntentRequest,
        request_id: str,
        client_id: str
    ) -> Union[PaymentIntentResponse, DemoPaymentIntentResponse]:
        """
        Validate the checkout payload and create a PaymentIntent for it

        Returns a synthetic demo response (no client secret) when no real Stripe
        key is configured.

        Raises:
            ValidationFailedError: Payload or environment failed validation
            PaymentProviderError: Stripe rejected or failed the request
        """
        logger.info(
            "[%s] Payment intent request: %s",
            request_id,
            sanitize_for_logging({
                "amount": payload.amount,
                "currency": payload.currency,
                "hasOrderData": bool(payload.order_data),
                "clientId": client_id,
            })
        )

        validation = validate_payment_amount(payload.amount).merge(
            validate_order_data(payload.order_data)
        ).merge(validate_currency(payload.currency))
        if not self.gateway.demo_mode:
            validation = validation.merge(validate_payment_environment())

        if not validation.is_valid:
            log_security_event("payment_validation_failed", {
                "requestId": request_id,
                "clientId": client_id,
                "errors": validation.errors,
            })
            raise ValidationFailedError(validation.first_error)

        for warning in validation.warnings:
            logger.warning("[%s] %s", request_id, warning)

        order_id = generate_order_id()
        order_data = payload.order_data

        if self.gateway.demo_mode:
            logger.warning("[%s] Stripe not configured, returning demo payment intent", request_id)
            return DemoPaymentIntentResponse(
                payment_intent_id=f"pi_demo_{uuid.uuid4().hex[:24]}",
                order_id=order_id,
                message="Demo mode: configure Stripe keys to accept real payments"
            )

        description = "DVIT Golf Custom Putter - {} - {}".format(
            selection_name(order_data.get("faceDeck")),
            selection_name(order_data.get("weightSystem"))
        )

        try:
            intent = self.gateway.create_payment_intent(
                amount=format_amount_for_stripe(payload.amount),
                currency=payload.currency.lower(),
                metadata=build_payment_metadata(order_id, payload.amount, order_data, client_id),
                receipt_email=order_data.get("customerEmail"),
                description=description,
                idempotency_key=order_id
            )
        except PaymentProviderError as e:
            log_security_event("payment_intent_failed", {
                "requestId": request_id,
                "clientId": client_id,
                "orderId": order_id,
                "statusCode": e.status_code,
            })
            raise

        log_security_event("payment_intent_created", {
            "requestId": request_id,
            "clientId": client_id,
            "orderId": order_id,
            "paymentIntentId": intent.id,
            "amount": intent.amount,
        })
        logger.info("[%s] Payment intent %s created for order %s", request_id, intent.id, order_id)

        return PaymentIntentResponse(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            order_id=order_id,
            amount=format_amount_from_stripe(intent.amount),
            currency=intent.currency
        )

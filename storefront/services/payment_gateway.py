"""
Stripe client wrapper with error classification and retry logic
"""
import json
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import stripe
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from storefront.config import Settings, PLACEHOLDER_STRIPE_SECRET_KEY
from storefront.errors import (
    ConfigurationError,
    PaymentProviderError,
    WebhookSignatureError,
)

logger = logging.getLogger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300


@dataclass
class PaymentIntentResult:
    id: str
    client_secret: Optional[str]
    amount: int
    currency: str
    status: str


def classify_stripe_error(error: stripe.StripeError) -> PaymentProviderError:
    """Map the provider's error taxonomy onto HTTP status codes"""
    if isinstance(error, stripe.CardError):
        return PaymentProviderError(
            "There is an issue with the payment card, please check it and retry", 400
        )
    if isinstance(error, stripe.RateLimitError):
        return PaymentProviderError("Too many requests, please retry later", 429)
    if isinstance(error, stripe.InvalidRequestError):
        return PaymentProviderError(
            "Invalid payment request, please check the order details", 400
        )
    if isinstance(error, (stripe.APIError, stripe.APIConnectionError)):
        return PaymentProviderError(
            "Payment service is temporarily unavailable, please retry later", 503
        )
    return PaymentProviderError("Failed to create payment intent, please retry", 500)


class PaymentGateway:
    """Client for the Stripe payment API"""

    def __init__(self, settings: Settings):
        self.secret_key = settings.STRIPE_SECRET_KEY
        self.webhook_secret = settings.STRIPE_WEBHOOK_SECRET
        self.max_retries = settings.MAX_RETRIES
        self.retry_delay = settings.RETRY_DELAY

    @property
    def demo_mode(self) -> bool:
        """No usable secret key: skip Stripe and let the UI run without payments"""
        return not self.secret_key or self.secret_key == PLACEHOLDER_STRIPE_SECRET_KEY

    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        receipt_email: Optional[str] = None,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None
    ) -> PaymentIntentResult:
        """
        Create a PaymentIntent

        Args:
            amount: Amount in minor units (cents)
            currency: ISO currency code
            metadata: Flat string metadata stored on the intent
            receipt_email: Customer receipt address
            description: Statement description
            idempotency_key: Makes retries of the same request safe

        Returns:
            The created intent

        Raises:
            PaymentProviderError: Classified Stripe failure
        """
        params = {
            "amount": amount,
            "currency": currency,
            "automatic_payment_methods": {"enabled": True},
            "metadata": metadata,
            "receipt_email": receipt_email,
            "description": description,
            "idempotency_key": idempotency_key,
        }
        try:
            intent = self._create_with_retry(
                **{key: value for key, value in params.items() if value is not None}
            )
        except stripe.StripeError as e:
            logger.error("Stripe API error (%s): %s", type(e).__name__, e)
            raise classify_stripe_error(e) from e

        return PaymentIntentResult(
            id=intent["id"],
            client_secret=intent["client_secret"],
            amount=intent["amount"],
            currency=intent["currency"],
            status=intent["status"],
        )

    def _create_with_retry(self, **params):
        retrying = retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_delay, min=1, max=10),
            retry=retry_if_exception_type(stripe.APIConnectionError),
            reraise=True
        )
        return retrying(stripe.PaymentIntent.create)(api_key=self.secret_key, **params)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> dict:
        """
        Verify a webhook delivery and return the event as a plain dict

        Raises:
            ConfigurationError: No webhook signing secret configured
            WebhookSignatureError: Missing or invalid signature, or a payload that is not UTF-8 JSON
        """
        if not self.webhook_secret:
            raise ConfigurationError("Webhook signing secret is not configured")
        if not signature:
            raise WebhookSignatureError("Missing signature")

        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as e:
            logger.warning("Webhook payload is not valid UTF-8: %s", e)
            raise WebhookSignatureError("Invalid payload") from e

        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self.webhook_secret, WEBHOOK_TOLERANCE_SECONDS
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Webhook signature verification failed: %s", e)
            raise WebhookSignatureError("Invalid signature") from e

        try:
            return json.loads(body)
        except ValueError as e:
            raise WebhookSignatureError("Invalid payload") from e

"""
FastAPI dependency providers

Process-wide clients live on app.state (set up at startup); tests override
these providers through app.dependency_overrides.
"""
import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from storefront.database import get_db
from storefront.errors import RateLimitExceededError, StorefrontError, ValidationFailedError
from storefront.services.mail_transport import MailTransport
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.payment_service import PaymentService
from storefront.services.payment_validation import generate_request_id
from storefront.services.rate_limiter import RateLimiter
from storefront.services.security import (
    generate_client_identifier,
    is_connection_secure,
    log_security_event,
    validate_request_headers,
)
from storefront.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_mail_transport(request: Request) -> MailTransport:
    return request.app.state.mail_transport


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_notification_service(
    db: Session = Depends(get_db),
    transport: MailTransport = Depends(get_mail_transport)
) -> NotificationService:
    return NotificationService(db, transport)


def get_order_service(
    db: Session = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service)
) -> OrderService:
    """Dependency to get OrderService instance"""
    return OrderService(db, notifications)


def get_payment_service(gateway: PaymentGateway = Depends(get_payment_gateway)) -> PaymentService:
    return PaymentService(gateway)


def get_webhook_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway)
) -> WebhookService:
    return WebhookService(db, gateway)


def get_request_id() -> str:
    """Correlation id for one request; FastAPI caches it, so every dependent shares it"""
    return generate_request_id()


def _rejected(error: StorefrontError, request_id: str) -> StorefrontError:
    error.request_id = request_id
    logger.warning("[%s] Payment request rejected (%s): %s", request_id, error.status_code, error.message)
    return error


def enforce_payment_security(
    request: Request,
    request_id: str = Depends(get_request_id),
    limiter: RateLimiter = Depends(get_rate_limiter)
) -> str:
    """
    Transport, header and rate-limit checks for payment creation

    Returns:
        The client identifier the request was rate limited under
    """
    client_id = generate_client_identifier(request)

    if not is_connection_secure(request):
        log_security_event("insecure_connection_attempt", {
            "requestId": request_id,
            "clientId": client_id,
            "scheme": request.url.scheme,
        })
        raise _rejected(ValidationFailedError("Secure connection required"), request_id)

    headers = validate_request_headers(request)
    if not headers.valid:
        log_security_event("invalid_request_headers", {
            "requestId": request_id,
            "clientId": client_id,
            "errors": headers.errors,
        })
        raise _rejected(ValidationFailedError("Invalid request headers"), request_id)

    result = limiter.check(client_id)
    if not result.allowed:
        log_security_event("rate_limit_exceeded", {
            "requestId": request_id,
            "clientId": client_id,
            "resetTime": result.reset_time,
        })
        raise _rejected(
            RateLimitExceededError("Too many requests, please try again later", result.reset_time),
            request_id
        )

    return client_id

"""
Error taxonomy and the JSON error responses rendered from it
"""
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.config import settings

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


class StorefrontError(Exception):
    """Base exception for errors surfaced to API callers"""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        self.request_id: Optional[str] = None


class ValidationFailedError(StorefrontError):
    """Malformed, missing or out-of-range input"""
    status_code = 400


class RateLimitExceededError(StorefrontError):
    """Client exceeded its request quota"""
    status_code = 429

    def __init__(self, message: str, reset_time: float):
        super().__init__(message)
        self.reset_time = reset_time


class PaymentProviderError(StorefrontError):
    """Stripe rejected or failed a request"""
    pass


class PersistenceError(StorefrontError):
    """Database read or write failed"""
    status_code = 500


class OrderNotFoundError(StorefrontError):
    """Order does not exist"""
    status_code = 404


class WebhookSignatureError(StorefrontError):
    """Webhook payload could not be verified"""
    status_code = 400


class ConfigurationError(StorefrontError):
    """Required configuration is missing"""
    status_code = 503


def secure_error_response(
    message: str,
    status_code: int = 400,
    details: Optional[str] = None,
    extra: Optional[dict] = None,
    headers: Optional[dict] = None
) -> JSONResponse:
    """Build an error response; details are only exposed in development"""
    content = {
        "success": False,
        "error": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details and settings.is_development:
        content["details"] = details
    if extra:
        content.update(extra)

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers={**SECURITY_HEADERS, **(headers or {})}
    )


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if isinstance(exc, RateLimitExceededError):
        retry_after = max(0, int(exc.reset_time - time.time()))
        return secure_error_response(
            exc.message,
            exc.status_code,
            extra={
                "allowed": False,
                "resetTime": datetime.fromtimestamp(exc.reset_time, timezone.utc).isoformat(),
            },
            headers={"Retry-After": str(retry_after)}
        )
    extra = {"requestId": exc.request_id} if exc.request_id and exc.status_code >= 500 else None
    return secure_error_response(exc.message, exc.status_code, details=exc.details, extra=extra)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"
    return secure_error_response(message, 400)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

"""
Request security checks and audit logging for payment endpoints
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List
from urllib.parse import urlparse

from fastapi import Request

from storefront.config import settings, PLACEHOLDER_STRIPE_SECRET_KEY

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("storefront.security")

LOCAL_HOSTNAMES = ("localhost", "127.0.0.1")

SENSITIVE_FIELDS = (
    "password",
    "token",
    "secret",
    "key",
    "authorization",
    "cookie",
    "session",
)


@dataclass
class HeaderValidation:
    errors: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def is_connection_secure(request: Request) -> bool:
    """Payment requests must arrive over TLS unless served from localhost"""
    if not settings.REQUIRE_SECURE_CONNECTION:
        return True

    if request.url.scheme == "https":
        return True
    if request.headers.get("x-forwarded-proto", "").split(",")[0].strip() == "https":
        return True
    return request.url.hostname in LOCAL_HOSTNAMES


def is_allowed_origin(hostname: str) -> bool:
    allowed = set(LOCAL_HOSTNAMES)
    for origin in settings.ALLOWED_ORIGINS:
        parsed = urlparse(origin)
        if parsed.hostname:
            allowed.add(parsed.hostname)
    return hostname in allowed


def validate_request_headers(request: Request) -> HeaderValidation:
    result = HeaderValidation()

    content_type = request.headers.get("content-type")
    if not content_type or "application/json" not in content_type:
        result.errors.append("Invalid Content-Type")

    if not request.headers.get("user-agent"):
        result.errors.append("Missing User-Agent")

    origin = request.headers.get("origin")
    if origin:
        hostname = urlparse(origin).hostname
        if not hostname:
            result.errors.append("Invalid Origin format")
        elif settings.is_production and not is_allowed_origin(hostname):
            result.errors.append("Origin not allowed")

    return result


def generate_client_identifier(request: Request) -> str:
    """Derive the rate-limit key from the forwarded client address"""
    forwarded = request.headers.get("x-forwarded-for")
    real_ip = request.headers.get("x-real-ip")
    peer = request.client.host if request.client else None

    ip = None
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    ip = ip or real_ip or peer or "unknown"
    return f"client:{ip}"


def sanitize_for_logging(data: Any) -> Any:
    """Redact credential-like keys, recursively"""
    if isinstance(data, list):
        return [sanitize_for_logging(item) for item in data]
    if not isinstance(data, dict):
        return data

    sanitized = {}
    for key, value in data.items():
        if any(marker in str(key).lower() for marker in SENSITIVE_FIELDS):
            sanitized[key] = "[REDACTED]"
        else:
            sanitized[key] = sanitize_for_logging(value)
    return sanitized


def log_security_event(event_type: str, data: dict) -> None:
    """Emit a structured audit event on the security logger"""
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "eventType": event_type,
        **sanitize_for_logging(data),
    }
    security_logger.info("[SECURITY] %s", event_type, extra={"security_event": entry})


def validate_environment_security() -> List[str]:
    """Warnings about risky or missing secrets; surfaced by the health check"""
    warnings = []

    secret = settings.STRIPE_SECRET_KEY
    if not secret or secret == PLACEHOLDER_STRIPE_SECRET_KEY:
        warnings.append("Stripe secret key is not configured")
    elif not secret.startswith("sk_"):
        warnings.append("Stripe secret key has an unexpected format")
    elif secret.startswith("sk_test_") and settings.is_production:
        warnings.append("Test Stripe key used in production")

    if not settings.STRIPE_WEBHOOK_SECRET:
        warnings.append("Stripe webhook secret is not configured")

    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        warnings.append("Supabase service role key is not configured")

    if settings.EMAIL_SERVICE == "smtp" and not settings.smtp_configured:
        warnings.append("SMTP credentials are not configured")

    return warnings

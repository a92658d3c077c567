"""Shared fixtures: in-memory database, fake Stripe gateway, recording mail transport."""

import hashlib
import hmac
import json
import os
import time

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["EMAIL_SERVICE"] = "console"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_storefront"
os.environ["STRIPE_PUBLISHABLE_KEY"] = "pk_test_storefront"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_storefront"
os.environ["REDIS_URL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.api.dependencies import get_mail_transport, get_payment_gateway, get_rate_limiter
from storefront.config import Settings
from storefront.database import Base, get_db, init_db
from storefront.main import app
from storefront.services.payment_gateway import PaymentGateway, PaymentIntentResult
from storefront.services.rate_limiter import InMemoryRateLimiter

WEBHOOK_SECRET = "whsec_test_storefront"


class FakePaymentGateway(PaymentGateway):
    """Records intent creation instead of calling Stripe; webhook verification is real."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.calls = []
        self.error = None

    def create_payment_intent(self, amount, currency, metadata, receipt_email=None,
                              description=None, idempotency_key=None):
        self.calls.append({
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
            "receipt_email": receipt_email,
            "description": description,
            "idempotency_key": idempotency_key,
        })
        if self.error is not None:
            raise self.error
        intent_id = f"pi_test_{len(self.calls)}"
        return PaymentIntentResult(
            id=intent_id,
            client_secret=f"{intent_id}_secret_abc",
            amount=amount,
            currency=currency,
            status="requires_payment_method",
        )


class RecordingTransport:
    """Mail transport that keeps delivered messages in memory."""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.sent = []
        self.fail = False

    def send(self, message):
        if self.fail:
            raise ConnectionError("SMTP relay unreachable")
        self.sent.append(message)
        return f"<message-{len(self.sent)}@test>"


def sign_webhook(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header for the payload."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def payment_intent_event(event_type: str, intent_id: str, metadata: dict, event_id: str = None) -> str:
    return json.dumps({
        "id": event_id or f"evt_{intent_id}_{event_type}",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": intent_id,
                "object": "payment_intent",
                "metadata": metadata,
            }
        },
    })


def valid_order_data(**overrides) -> dict:
    data = {
        "customerName": "Jordan Spieth",
        "customerEmail": "jordan@example.com",
        "customerPhone": "555-0100",
        "faceDeck": "Carbon Fiber",
        "weightSystem": "Tungsten 20g",
    }
    data.update(overrides)
    return data


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return FakePaymentGateway(Settings(
        STRIPE_SECRET_KEY="sk_test_storefront",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
    ))


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def rate_limiter():
    return InMemoryRateLimiter(max_requests=5, window_seconds=60)


@pytest.fixture
def client(db_session, gateway, transport, rate_limiter):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_mail_transport] = lambda: transport
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter

    yield TestClient(app, base_url="http://localhost")

    app.dependency_overrides.clear()

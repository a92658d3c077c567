"""Tests for POST /create-payment-intent."""

import logging
import re

import stripe

from storefront.config import PLACEHOLDER_STRIPE_SECRET_KEY
from storefront.services.payment_gateway import classify_stripe_error
from tests.conftest import valid_order_data


def intent_body(**overrides) -> dict:
    body = {"amount": 299.99, "currency": "usd", "orderData": valid_order_data()}
    body.update(overrides)
    return body


class TestCreatePaymentIntent:
    """Successful intent creation."""

    def test_returns_client_secret(self, client, gateway) -> None:
        response = client.post("/create-payment-intent", json=intent_body())

        assert response.status_code == 200
        data = response.json()
        assert data["clientSecret"] == "pi_test_1_secret_abc"
        assert data["paymentIntentId"] == "pi_test_1"
        assert data["amount"] == 299.99
        assert data["currency"] == "usd"
        assert re.match(r"^DVIT-\d+-[a-z0-9]{9}$", data["orderId"])

    def test_sends_minor_units_and_metadata(self, client, gateway) -> None:
        response = client.post("/create-payment-intent", json=intent_body())
        call = gateway.calls[0]

        assert call["amount"] == 29999
        assert call["currency"] == "usd"
        assert call["receipt_email"] == "jordan@example.com"
        assert call["idempotency_key"] == response.json()["orderId"]
        assert call["metadata"]["orderId"] == response.json()["orderId"]
        assert call["metadata"]["faceDeck"] == "Carbon Fiber"
        assert call["metadata"]["totalAmount"] == "299.99"
        assert call["description"] == "DVIT Golf Custom Putter - Carbon Fiber - Tungsten 20g"
        assert all(isinstance(value, str) for value in call["metadata"].values())

    def test_object_selections_are_serialized(self, client, gateway) -> None:
        order_data = valid_order_data(faceDeck={"name": "Copper", "price": 0})
        client.post("/create-payment-intent", json=intent_body(orderData=order_data))

        call = gateway.calls[0]
        assert call["metadata"]["faceDeck"] == '{"name":"Copper","price":0}'
        assert call["description"].startswith("DVIT Golf Custom Putter - Copper")


class TestDemoMode:
    """No usable Stripe key."""

    def test_placeholder_key_returns_demo_response(self, client, gateway) -> None:
        gateway.secret_key = PLACEHOLDER_STRIPE_SECRET_KEY

        response = client.post("/create-payment-intent", json=intent_body())

        assert response.status_code == 200
        data = response.json()
        assert data["demoMode"] is True
        assert data["paymentIntentId"].startswith("pi_demo_")
        assert "clientSecret" not in data
        assert gateway.calls == []

    def test_demo_mode_still_validates_payload(self, client, gateway) -> None:
        gateway.secret_key = ""

        response = client.post("/create-payment-intent", json=intent_body(amount=0))

        assert response.status_code == 400
        assert response.json()["error"] == "Payment amount must be greater than 0"


class TestValidationErrors:
    """400 responses carry the first validation error."""

    def test_precision_error(self, client, gateway) -> None:
        response = client.post("/create-payment-intent", json=intent_body(amount=19.999))

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Payment amount cannot have more than 2 decimal places"
        assert body["timestamp"].endswith("+00:00")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert gateway.calls == []

    def test_missing_order_data(self, client) -> None:
        response = client.post("/create-payment-intent", json={"amount": 50})
        assert response.status_code == 400
        assert response.json()["error"] == "Order data is required"

    def test_unsupported_currency(self, client) -> None:
        response = client.post("/create-payment-intent", json=intent_body(currency="eur"))
        assert response.status_code == 400
        assert response.json()["error"] == "Currency 'eur' is not supported"

    def test_insecure_connection_rejected(self, client) -> None:
        response = client.post(
            "http://shop.dvitgolf.com/create-payment-intent",
            json=intent_body()
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Secure connection required"

    def test_forwarded_https_accepted(self, client) -> None:
        response = client.post(
            "http://shop.dvitgolf.com/create-payment-intent",
            json=intent_body(),
            headers={"X-Forwarded-Proto": "https"}
        )
        assert response.status_code == 200

    def test_non_json_content_type_rejected(self, client) -> None:
        response = client.post(
            "/create-payment-intent",
            content=b"amount=10",
            headers={"Content-Type": "text/plain"}
        )
        assert response.status_code == 400

    def test_get_not_allowed(self, client) -> None:
        assert client.get("/create-payment-intent").status_code == 405


def security_events(caplog, event_type: str) -> list:
    return [
        r.security_event for r in caplog.records
        if getattr(r, "security_event", {}).get("eventType") == event_type
    ]


class TestRequestCorrelation:
    """Every rejection is logged under the request's correlation id."""

    def test_insecure_connection_event_has_request_id(self, client, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="storefront.security"):
            client.post("http://shop.dvitgolf.com/create-payment-intent", json=intent_body())

        [event] = security_events(caplog, "insecure_connection_attempt")
        assert event["requestId"].startswith("req_")

    def test_rate_limit_event_has_request_id(self, client, caplog) -> None:
        for _ in range(5):
            client.post("/create-payment-intent", json=intent_body())

        with caplog.at_level(logging.INFO, logger="storefront.security"):
            response = client.post("/create-payment-intent", json=intent_body())

        assert response.status_code == 429
        [event] = security_events(caplog, "rate_limit_exceeded")
        assert event["requestId"].startswith("req_")

    def test_one_id_per_request(self, client, gateway, caplog) -> None:
        gateway.error = classify_stripe_error(stripe.StripeError("boom"))

        with caplog.at_level(logging.INFO, logger="storefront.security"):
            response = client.post("/create-payment-intent", json=intent_body())

        [event] = security_events(caplog, "payment_intent_failed")
        assert event["requestId"] == response.json()["requestId"]


class TestRateLimiting:
    """Per-client quota."""

    def test_sixth_request_is_rejected(self, client) -> None:
        for _ in range(5):
            assert client.post("/create-payment-intent", json=intent_body()).status_code == 200

        response = client.post("/create-payment-intent", json=intent_body())

        assert response.status_code == 429
        body = response.json()
        assert body["allowed"] is False
        assert body["resetTime"].endswith("+00:00")
        assert int(response.headers["Retry-After"]) <= 60

    def test_invalid_requests_count_towards_quota(self, client) -> None:
        for _ in range(5):
            client.post("/create-payment-intent", json=intent_body(amount=0))
        assert client.post("/create-payment-intent", json=intent_body()).status_code == 429

    def test_clients_limited_separately(self, client) -> None:
        for _ in range(5):
            client.post("/create-payment-intent", json=intent_body(), headers={"X-Forwarded-For": "203.0.113.1"})

        response = client.post(
            "/create-payment-intent", json=intent_body(), headers={"X-Forwarded-For": "203.0.113.2"}
        )
        assert response.status_code == 200


class TestProviderErrors:
    """Stripe failures are classified."""

    def test_card_error_maps_to_400(self, client, gateway) -> None:
        gateway.error = classify_stripe_error(stripe.CardError("declined", None, "card_declined"))

        response = client.post("/create-payment-intent", json=intent_body())

        assert response.status_code == 400
        assert "payment card" in response.json()["error"]

    def test_unavailable_maps_to_503(self, client, gateway) -> None:
        gateway.error = classify_stripe_error(stripe.APIConnectionError("network down"))
        assert client.post("/create-payment-intent", json=intent_body()).status_code == 503

    def test_unknown_error_includes_request_id(self, client, gateway) -> None:
        gateway.error = classify_stripe_error(stripe.StripeError("boom"))

        response = client.post("/create-payment-intent", json=intent_body())

        assert response.status_code == 500
        assert response.json()["requestId"].startswith("req_")

    def test_classification_table(self) -> None:
        assert classify_stripe_error(stripe.RateLimitError("slow down")).status_code == 429
        assert classify_stripe_error(stripe.InvalidRequestError("bad", "amount")).status_code == 400
        assert classify_stripe_error(stripe.APIError("oops")).status_code == 503

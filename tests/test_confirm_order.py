"""Tests for POST /confirm-order and its health probe."""

from datetime import datetime, timedelta, timezone

from storefront.config import settings
from storefront.models.email_log import EmailLog
from storefront.models.order import Order, OrderItem


def confirm_body(**overrides) -> dict:
    body = {
        "customerName": "Jordan Spieth",
        "customerEmail": "jordan@example.com",
        "orderId": "DVIT-1700000000000-abc123xyz",
        "totalPrice": 299.99,
        "orderDate": "2026-10-19T10:00:00",
        "faceDeck": "Carbon Fiber",
        "weightSystem": "Tungsten 20g",
        "paymentIntentId": "pi_confirm_1",
    }
    body.update(overrides)
    return {key: value for key, value in body.items() if value is not None}


class TestConfirmOrderCreation:
    """New orders from the success page."""

    def test_creates_processing_order_and_sends_email(self, client, db_session, transport) -> None:
        response = client.post("/confirm-order", json=confirm_body())

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["emailSent"] is True
        assert data["originalOrderId"] == "DVIT-1700000000000-abc123xyz"
        assert "duplicate" not in data

        order = db_session.query(Order).filter(Order.id == data["orderId"]).one()
        assert order.status == "processing"
        assert order.stripe_payment_intent_id == "pi_confirm_1"
        assert order.metadata_["clientOrderId"] == "DVIT-1700000000000-abc123xyz"
        assert order.order_items[0]["name"] == "DVIT Golf Modular Putter"

        assert len(transport.sent) == 1
        assert transport.sent[0]["Subject"] == f"Order Confirmation - {order.id} - DVIT GOLF"
        assert transport.sent[0]["To"] == "jordan@example.com"

    def test_without_payment_intent_uses_uuid(self, client, db_session) -> None:
        data = client.post("/confirm-order", json=confirm_body(paymentIntentId=None)).json()

        order = db_session.query(Order).filter(Order.id == data["orderId"]).one()
        assert len(order.id) == 36
        assert order.stripe_payment_intent_id is None

    def test_explicit_order_items(self, client, db_session) -> None:
        body = confirm_body(orderItems=[
            {"name": "Custom Putter", "quantity": 2, "price": 149.99, "customization": {"faceDeck": "Copper"}},
        ])

        data = client.post("/confirm-order", json=body).json()

        items = db_session.query(OrderItem).filter(OrderItem.order_id == data["orderId"]).all()
        assert len(items) == 1
        assert items[0].product_name == "Custom Putter"
        assert items[0].quantity == 2
        assert items[0].total_price == 299.98
        assert items[0].product_snapshot == {"faceDeck": "Copper"}


class TestConfirmOrderDuplicates:
    """Existing orders are reused and emailed at most once."""

    def test_repeat_confirm_is_duplicate(self, client, db_session, transport) -> None:
        first = client.post("/confirm-order", json=confirm_body()).json()
        second = client.post("/confirm-order", json=confirm_body()).json()

        assert second["duplicate"] is True
        assert second["dbOrderId"] == first["orderId"]
        assert second["emailSent"] is True
        assert db_session.query(Order).count() == 1
        assert len(transport.sent) == 1
        sent_rows = db_session.query(EmailLog).filter(
            EmailLog.order_id == first["orderId"], EmailLog.status == "sent"
        ).count()
        assert sent_rows == 1

    def test_confirm_after_save_finds_order(self, client, db_session, transport) -> None:
        saved = client.post("/save-order", json={
            "paymentIntentId": "pi_confirm_1",
            "orderData": {
                "customerName": "Jordan Spieth",
                "customerEmail": "jordan@example.com",
                "faceDeck": "Carbon Fiber",
                "weightSystem": "Tungsten 20g",
            },
            "totalAmount": 299.99,
        }).json()

        data = client.post("/confirm-order", json=confirm_body()).json()

        assert data["duplicate"] is True
        assert data["dbOrderId"] == saved["orderId"]
        assert len(transport.sent) == 1
        assert saved["orderId"] in transport.sent[0]["Subject"]

    def test_fuzzy_match_on_email_and_amount(self, client, db_session) -> None:
        first = client.post("/confirm-order", json=confirm_body(paymentIntentId=None)).json()
        second = client.post("/confirm-order", json=confirm_body(paymentIntentId=None)).json()

        assert second["duplicate"] is True
        assert second["dbOrderId"] == first["orderId"]
        assert db_session.query(Order).count() == 1

    def test_fuzzy_match_ignores_old_orders(self, client, db_session) -> None:
        first = client.post("/confirm-order", json=confirm_body(paymentIntentId=None)).json()
        order = db_session.query(Order).filter(Order.id == first["orderId"]).one()
        order.created_at = datetime.now(timezone.utc) - timedelta(minutes=settings.DEDUP_WINDOW_MINUTES + 5)
        db_session.commit()

        second = client.post("/confirm-order", json=confirm_body(paymentIntentId=None)).json()

        assert "duplicate" not in second
        assert db_session.query(Order).count() == 2

    def test_fuzzy_match_can_be_disabled(self, client, db_session, monkeypatch) -> None:
        monkeypatch.setattr(settings, "FUZZY_DEDUP_ENABLED", False)

        client.post("/confirm-order", json=confirm_body(paymentIntentId=None))
        second = client.post("/confirm-order", json=confirm_body(paymentIntentId=None)).json()

        assert "duplicate" not in second
        assert db_session.query(Order).count() == 2


class TestEmailOnly:
    """skipOrderCreation sends the email without touching orders."""

    def test_sends_email_without_order(self, client, db_session, transport) -> None:
        data = client.post("/confirm-order", json=confirm_body(skipOrderCreation=True)).json()

        assert data["emailOnly"] is True
        assert data["emailSent"] is True
        assert data["orderId"] == "DVIT-1700000000000-abc123xyz"
        assert db_session.query(Order).count() == 0
        assert len(transport.sent) == 1

    def test_email_only_is_at_most_once(self, client, transport) -> None:
        client.post("/confirm-order", json=confirm_body(skipOrderCreation=True))
        client.post("/confirm-order", json=confirm_body(skipOrderCreation=True))
        assert len(transport.sent) == 1

    def test_email_failure_does_not_fail_request(self, client, transport) -> None:
        transport.fail = True

        response = client.post("/confirm-order", json=confirm_body(skipOrderCreation=True))

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["emailSent"] is False


class TestConfirmOrderValidation:
    """Required fields, email format and total."""

    def test_missing_fields(self, client) -> None:
        response = client.post("/confirm-order", json=confirm_body(customerName=None))
        assert response.status_code == 400
        assert response.json()["error"] == "Missing required order information"

    def test_invalid_email(self, client) -> None:
        response = client.post("/confirm-order", json=confirm_body(customerEmail="jordan.example.com"))
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email format"

    def test_negative_total(self, client) -> None:
        response = client.post("/confirm-order", json=confirm_body(totalPrice=-10))
        assert response.status_code == 400
        assert response.json()["error"] == "Order total must be greater than 0"

    def test_probe(self, client) -> None:
        data = client.get("/confirm-order").json()
        assert data["success"] is True
        assert "timestamp" in data

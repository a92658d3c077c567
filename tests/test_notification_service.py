"""Tests for the order confirmation email guard and rendering."""

from datetime import datetime, timedelta, timezone

from storefront.config import settings
from storefront.models.email_log import EmailLog
from storefront.services.mail_transport import ConsoleTransport, SmtpTransport, build_mail_transport
from storefront.services.notification_service import (
    ORDER_CONFIRMATION,
    NotificationService,
    OrderEmailData,
    default_order_items,
    order_confirmation_subject,
    render_order_confirmation,
)
from tests.conftest import RecordingTransport


def email_data(order_id="order-1", **overrides) -> OrderEmailData:
    values = {
        "order_id": order_id,
        "customer_name": "Jordan Spieth",
        "customer_email": "jordan@example.com",
        "total_price": 299.99,
        "order_items": default_order_items(299.99, "Carbon Fiber", "Tungsten 20g"),
        "order_date": "2026-10-19T10:00:00",
    }
    values.update(overrides)
    return OrderEmailData(**values)


class TestSendOrderConfirmation:
    """At-most-once delivery per order."""

    def test_sends_and_logs(self, db_session, transport) -> None:
        service = NotificationService(db_session, transport)

        assert service.send_order_confirmation(email_data()) is True

        assert len(transport.sent) == 1
        log = db_session.query(EmailLog).one()
        assert log.status == "sent"
        assert log.order_id == "order-1"
        assert log.message_id == "<message-1@test>"
        assert log.sent_at is not None

    def test_second_send_for_order_is_skipped(self, db_session, transport) -> None:
        service = NotificationService(db_session, transport)

        service.send_order_confirmation(email_data())
        assert service.send_order_confirmation(email_data()) is True

        assert len(transport.sent) == 1
        assert db_session.query(EmailLog).filter(
            EmailLog.order_id == "order-1",
            EmailLog.email_type == ORDER_CONFIRMATION,
            EmailLog.status == "sent",
        ).count() == 1

    def test_recent_send_to_recipient_is_skipped(self, db_session, transport) -> None:
        service = NotificationService(db_session, transport)

        service.send_order_confirmation(email_data("DVIT-provisional"))
        service.send_order_confirmation(email_data("4f7d-final-uuid"))

        assert len(transport.sent) == 1

    def test_recipient_window_expires(self, db_session, transport) -> None:
        service = NotificationService(db_session, transport)
        service.send_order_confirmation(email_data("order-1"))
        log = db_session.query(EmailLog).one()
        log.sent_at = datetime.now(timezone.utc) - timedelta(minutes=settings.DEDUP_WINDOW_MINUTES + 1)
        db_session.commit()

        service.send_order_confirmation(email_data("order-2"))

        assert len(transport.sent) == 2

    def test_recipient_check_disabled(self, db_session, transport, monkeypatch) -> None:
        monkeypatch.setattr(settings, "FUZZY_DEDUP_ENABLED", False)
        service = NotificationService(db_session, transport)

        service.send_order_confirmation(email_data("order-1"))
        service.send_order_confirmation(email_data("order-2"))

        assert len(transport.sent) == 2

    def test_failure_is_logged_and_retryable(self, db_session, transport) -> None:
        service = NotificationService(db_session, transport)
        transport.fail = True

        assert service.send_order_confirmation(email_data()) is False
        log = db_session.query(EmailLog).one()
        assert log.status == "failed"
        assert "unreachable" in log.error

        transport.fail = False
        assert service.send_order_confirmation(email_data()) is True
        db_session.expire_all()
        log = db_session.query(EmailLog).one()
        assert log.status == "sent"
        assert log.error is None

    def test_unconfigured_transport_skips(self, db_session) -> None:
        transport = RecordingTransport(configured=False)
        service = NotificationService(db_session, transport)

        assert service.send_order_confirmation(email_data()) is True
        assert transport.sent == []
        assert db_session.query(EmailLog).count() == 0


class TestCheckEmailSent:
    """Lookup used by the success page."""

    def test_found_by_subject(self, db_session, transport) -> None:
        service = NotificationService(db_session, transport)
        service.send_order_confirmation(email_data("DVIT-123"))

        info = service.check_email_sent("DVIT-123", "jordan@example.com")

        assert info["subject"] == "Order Confirmation - DVIT-123 - DVIT GOLF"
        assert info["sentAt"] is not None

    def test_other_recipient_not_found(self, db_session, transport) -> None:
        service = NotificationService(db_session, transport)
        service.send_order_confirmation(email_data("DVIT-123"))

        assert service.check_email_sent("DVIT-123", "someone@example.com") is None


class TestRendering:
    """Message content."""

    def test_subject(self) -> None:
        assert order_confirmation_subject("DVIT-9") == "Order Confirmation - DVIT-9 - DVIT GOLF"

    def test_text_lists_items_and_total(self) -> None:
        text, html_body = render_order_confirmation(email_data())

        assert "Hi Jordan Spieth" in text
        assert "Item 1: DVIT Golf Modular Putter x 1" in text
        assert "Customization: Carbon Fiber / Tungsten 20g" in text
        assert "Total paid: $299.99" in text
        assert "http://localhost:3000/orders" in text
        assert "Total paid:</strong> $299.99" in html_body

    def test_configuration_without_items(self) -> None:
        text, _ = render_order_confirmation(email_data(order_items=[], face_deck="Copper"))
        assert "Face deck: Copper" in text
        assert "Weight system: Standard" in text

    def test_html_escapes_customer_input(self) -> None:
        _, html_body = render_order_confirmation(email_data(customer_name="<script>x</script>"))
        assert "<script>" not in html_body
        assert "&lt;script&gt;" in html_body


class TestTransports:
    """Transport selection."""

    def test_console_by_default(self) -> None:
        assert isinstance(build_mail_transport(settings), ConsoleTransport)

    def test_smtp_transport(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "EMAIL_SERVICE", "smtp")
        transport = build_mail_transport(settings)
        assert isinstance(transport, SmtpTransport)
        assert transport.configured is False

    def test_console_transport_returns_message_id(self, db_session) -> None:
        service = NotificationService(db_session, ConsoleTransport())
        assert service.send_order_confirmation(email_data()) is True
        assert db_session.query(EmailLog).one().message_id.startswith("<console-")

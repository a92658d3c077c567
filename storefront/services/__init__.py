"""
Services package
"""
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.payment_service import PaymentService
from storefront.services.webhook_service import WebhookService

__all__ = [
    "NotificationService",
    "OrderService",
    "PaymentGateway",
    "PaymentService",
    "WebhookService"
]

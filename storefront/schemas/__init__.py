"""
Schemas package
"""
from storefront.schemas.order import (
    CamelModel,
    OrderItemIn,
    SaveOrderRequest,
    SaveOrderResponse,
    ConfirmOrderRequest,
    ConfirmOrderResponse,
    OrderCreate,
    OrderItemResponse,
    OrderResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderCreateResponse,
    OrderCheckResponse,
    EmailSentInfo,
    EmailSentResponse
)
from storefront.schemas.payment import (
    CreatePaymentIntentRequest,
    PaymentIntentResponse,
    DemoPaymentIntentResponse,
    WebhookAck
)

__all__ = [
    "CamelModel",
    "OrderItemIn",
    "SaveOrderRequest",
    "SaveOrderResponse",
    "ConfirmOrderRequest",
    "ConfirmOrderResponse",
    "OrderCreate",
    "OrderItemResponse",
    "OrderResponse",
    "OrderDetailResponse",
    "OrderListResponse",
    "OrderCreateResponse",
    "OrderCheckResponse",
    "EmailSentInfo",
    "EmailSentResponse",
    "CreatePaymentIntentRequest",
    "PaymentIntentResponse",
    "DemoPaymentIntentResponse",
    "WebhookAck"
]

"""
Pydantic schemas for payment intent creation and webhooks
"""
from typing import Any, Dict, Optional

from pydantic import Field

from storefront.schemas.order import CamelModel


class CreatePaymentIntentRequest(CamelModel):
    """Body of POST /create-payment-intent"""
    amount: Optional[float] = None
    currency: str = "usd"
    order_data: Optional[Dict[str, Any]] = None


class PaymentIntentResponse(CamelModel):
    client_secret: str
    payment_intent_id: str
    order_id: str
    amount: float
    currency: str


class DemoPaymentIntentResponse(CamelModel):
    demo_mode: bool = True
    payment_intent_id: str
    order_id: str
    message: str


class WebhookAck(CamelModel):
    received: bool = True
    duplicate: Optional[bool] = Field(None, description="Event id was already processed")

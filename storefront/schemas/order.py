"""
Pydantic schemas for order request/response validation
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Fields are snake_case in Python and camelCase on the wire"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderItemIn(CamelModel):
    """Line item as captured by the checkout page"""
    name: str = "DVIT Golf Modular Putter"
    quantity: int = Field(1, gt=0)
    price: float = Field(..., gt=0)
    customization: Optional[Dict[str, Any]] = None


class SaveOrderRequest(CamelModel):
    """Body of POST /save-order, sent right after client-side payment confirmation"""
    payment_intent_id: Optional[str] = None
    order_data: Optional[Dict[str, Any]] = None
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    total_amount: Optional[float] = None
    currency: str = "USD"


class SaveOrderResponse(CamelModel):
    success: bool = True
    order_id: str
    message: str
    duplicate: Optional[bool] = None
    processing_time: int = Field(..., description="Milliseconds spent handling the request")


class ConfirmOrderRequest(CamelModel):
    """Body of POST /confirm-order, sent from the payment success page"""
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    order_id: Optional[str] = None
    total_price: Optional[float] = None
    order_date: Optional[str] = None
    order_items: Optional[List[OrderItemIn]] = None
    face_deck: Optional[str] = None
    weight_system: Optional[str] = None
    skip_order_creation: bool = False
    payment_intent_id: Optional[str] = None


class ConfirmOrderResponse(CamelModel):
    success: bool = True
    message: str
    order_id: Optional[str] = None
    db_order_id: Optional[str] = None
    original_order_id: Optional[str] = None
    duplicate: Optional[bool] = None
    email_only: Optional[bool] = None
    email_sent: bool


class OrderCreate(CamelModel):
    """Body of POST /orders"""
    customer_name: str = Field(..., min_length=1)
    customer_email: EmailStr
    total_amount: float = Field(..., gt=0)
    order_items: List[Dict[str, Any]] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class OrderItemResponse(CamelModel):
    id: int
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    product_snapshot: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class OrderResponse(CamelModel):
    """Full order projection"""
    id: str
    customer_name: str
    customer_email: str
    total_amount: float
    currency: str
    status: str
    order_items: Optional[Any] = None
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("metadata_", "metadata"))
    payment_intent_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("stripe_payment_intent_id", "paymentIntentId")
    )
    items: List[OrderItemResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class OrderDetailResponse(CamelModel):
    success: bool = True
    order: OrderResponse


class OrderListResponse(CamelModel):
    success: bool = True
    orders: List[OrderResponse]
    count: int


class OrderCreateResponse(CamelModel):
    success: bool = True
    order: OrderResponse
    order_id: str


class OrderCheckResponse(CamelModel):
    """Existence probe by payment intent"""
    exists: bool
    order_id: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None


class EmailSentInfo(CamelModel):
    sent_at: datetime
    subject: str


class EmailSentResponse(CamelModel):
    success: bool = True
    email_sent: bool
    email_info: Optional[EmailSentInfo] = None

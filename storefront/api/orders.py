"""
Order API endpoints
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status

from storefront.api.dependencies import get_order_service
from storefront.schemas.order import (
    ConfirmOrderRequest,
    ConfirmOrderResponse,
    OrderCheckResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderDetailResponse,
    OrderListResponse,
    SaveOrderRequest,
    SaveOrderResponse,
)
from storefront.services.order_service import OrderService
from storefront.services.security import generate_client_identifier

router = APIRouter(tags=["orders"])


@router.post(
    "/save-order",
    response_model=SaveOrderResponse,
    response_model_exclude_none=True,
    summary="Save order after payment"
)
def save_order(
    payload: SaveOrderRequest,
    request: Request,
    x_client_id: Optional[str] = Header(None),
    service: OrderService = Depends(get_order_service)
):
    """
    Persist the order right after client-side payment confirmation

    Idempotent on paymentIntentId: repeating the call returns the same orderId
    with duplicate=true.
    """
    client_id = x_client_id or generate_client_identifier(request)
    return service.save_order(payload, client_id)


@router.post(
    "/confirm-order",
    response_model=ConfirmOrderResponse,
    response_model_exclude_none=True,
    summary="Confirm order and send confirmation email"
)
def confirm_order(
    payload: ConfirmOrderRequest,
    service: OrderService = Depends(get_order_service)
):
    """
    Reconcile the order from the payment success page

    - **skipOrderCreation**: only (re)send the confirmation email for orderId
    - **paymentIntentId**: upsert key; without it the email + amount window applies
    """
    return service.confirm_order(payload)


@router.get("/confirm-order", summary="Confirm order endpoint probe")
def confirm_order_probe():
    return {
        "success": True,
        "message": "Order confirmation endpoint is running",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get(
    "/orders/check",
    response_model=OrderCheckResponse,
    response_model_exclude_none=True,
    summary="Check order by payment intent"
)
def check_order(
    payment_intent_id: str = Query(..., alias="paymentIntentId", min_length=1),
    service: OrderService = Depends(get_order_service)
):
    return service.check_order(payment_intent_id)


@router.get(
    "/orders/by-payment-intent",
    response_model=OrderDetailResponse,
    summary="Get order by payment intent"
)
def get_order_by_payment_intent(
    payment_intent_id: str = Query(..., alias="paymentIntentId", min_length=1),
    service: OrderService = Depends(get_order_service)
):
    """Full order projection, including line items"""
    return OrderDetailResponse(order=service.get_by_payment_intent(payment_intent_id))


@router.get("/orders", response_model=OrderListResponse, summary="Get orders")
def get_orders(
    email: Optional[str] = Query(None, description="Customer email address"),
    order_id: Optional[str] = Query(None, alias="orderId", description="Order ID"),
    service: OrderService = Depends(get_order_service)
):
    """
    Retrieve orders newest first

    - **email**: Only orders of this customer
    - **orderId**: Only this order
    """
    orders = service.list_orders(email=email, order_id=order_id)
    return OrderListResponse(orders=orders, count=len(orders))


@router.post(
    "/orders",
    response_model=OrderCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create pending order"
)
def create_order(
    order_data: OrderCreate,
    service: OrderService = Depends(get_order_service)
):
    """
    Create an order that has no payment yet

    - **customerName**: Customer name (required)
    - **customerEmail**: Customer email (required)
    - **totalAmount**: Order total, must be positive
    """
    order = service.create_pending_order(order_data)
    return OrderCreateResponse(order=order, order_id=order.id)

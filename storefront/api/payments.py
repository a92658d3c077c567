"""
Payment API endpoints
"""
import logging
from typing import Union

from fastapi import APIRouter, Depends

from storefront.api.dependencies import enforce_payment_security, get_payment_service, get_request_id
from storefront.errors import StorefrontError
from storefront.schemas.payment import (
    CreatePaymentIntentRequest,
    DemoPaymentIntentResponse,
    PaymentIntentResponse,
)
from storefront.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


@router.post(
    "/create-payment-intent",
    response_model=Union[PaymentIntentResponse, DemoPaymentIntentResponse],
    response_model_by_alias=True,
    summary="Create payment intent"
)
def create_payment_intent(
    payload: CreatePaymentIntentRequest,
    request_id: str = Depends(get_request_id),
    client_id: str = Depends(enforce_payment_security),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Create a Stripe PaymentIntent for the checkout

    Process:
    1. Connection, header and rate-limit checks
    2. Validate amount, currency and order data
    3. Create the intent (or a demo response when Stripe is not configured)

    - **amount**: Total in dollars, at most two decimals
    - **currency**: ISO currency code (default: usd)
    - **orderData**: Customer details and putter configuration
    """
    try:
        return service.create_payment_intent(payload, request_id, client_id)
    except StorefrontError as e:
        e.request_id = request_id
        logger.error("[%s] Payment intent creation failed (%s): %s", request_id, e.status_code, e.message)
        raise

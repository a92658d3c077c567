"""
Stripe webhook endpoint
"""
from fastapi import APIRouter, Depends, Header, Request

from storefront.api.dependencies import get_webhook_service
from storefront.schemas.payment import WebhookAck
from storefront.services.webhook_service import WebhookService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/stripe",
    response_model=WebhookAck,
    response_model_exclude_none=True,
    summary="Receive Stripe events"
)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="stripe-signature"),
    service: WebhookService = Depends(get_webhook_service)
):
    """
    Verify the signature and apply payment intent events to orders

    - **payment_intent.succeeded**: order becomes paid
    - **payment_intent.payment_failed**: order becomes payment_failed
    - **payment_intent.canceled**: order becomes cancelled
    """
    payload = await request.body()
    return service.handle(payload, stripe_signature)

"""
Email status endpoints
"""
from fastapi import APIRouter, Depends, Query

from storefront.api.dependencies import get_notification_service
from storefront.schemas.order import EmailSentInfo, EmailSentResponse
from storefront.services.notification_service import NotificationService

router = APIRouter(tags=["emails"])


@router.get("/check-email-sent", response_model=EmailSentResponse, summary="Check confirmation email")
def check_email_sent(
    order_id: str = Query(..., alias="orderId", description="Order ID"),
    email: str = Query(..., description="Recipient email address"),
    service: NotificationService = Depends(get_notification_service)
):
    """Whether an order confirmation mentioning this order was delivered to the address"""
    info = service.check_email_sent(order_id, email)
    if info is None:
        return EmailSentResponse(email_sent=False)
    return EmailSentResponse(email_sent=True, email_info=EmailSentInfo(**info))

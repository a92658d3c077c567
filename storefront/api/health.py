"""
Health check endpoint
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.api.dependencies import get_payment_gateway
from storefront.config import settings
from storefront.database import get_db
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.security import validate_environment_security

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway)
):
    """
    Health check endpoint

    Checks:
    - Service status
    - Database connectivity
    - Payment configuration
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {str(e)}"

    if gateway.demo_mode:
        payment_status = "demo"
    elif not gateway.webhook_secret:
        payment_status = "webhooks disabled"
    else:
        payment_status = "configured"

    return {
        "service": settings.SERVICE_NAME,
        "status": "healthy" if db_status == "healthy" else "unhealthy",
        "database": db_status,
        "payments": payment_status,
        "publishableKeyConfigured": bool(settings.STRIPE_PUBLISHABLE_KEY),
        "environment": settings.ENVIRONMENT,
        "warnings": validate_environment_security(),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/")
def root():
    """Root endpoint"""
    return {
        "service": settings.SERVICE_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }

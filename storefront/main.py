"""
FastAPI Application Entry Point - DVIT Golf Storefront
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from storefront.api import emails, health, orders, payments, webhooks
from storefront.config import settings
from storefront.database import init_db
from storefront.errors import register_error_handlers
from storefront.services.mail_transport import build_mail_transport
from storefront.services.payment_gateway import PaymentGateway
from storefront.services.rate_limiter import build_rate_limiter
from storefront.services.security import validate_environment_security

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="DVIT Golf Storefront",
    description="Checkout backend: payment intents, order reconciliation and confirmation emails",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include routers
app.include_router(health.router)
app.include_router(payments.router)
app.include_router(orders.router)
app.include_router(emails.router)
app.include_router(webhooks.router)

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


@app.on_event("startup")
def startup_event():
    """Initialize database and process-wide clients on startup"""
    logger.info("Starting %s (%s)...", settings.SERVICE_NAME, settings.ENVIRONMENT)
    init_db()
    logger.info("Database initialized")

    app.state.payment_gateway = PaymentGateway(settings)
    app.state.mail_transport = build_mail_transport(settings)
    app.state.rate_limiter = build_rate_limiter(settings)

    if app.state.payment_gateway.demo_mode:
        logger.warning("Stripe secret key not configured, payments run in demo mode")
    logger.info("Email service: %s", settings.EMAIL_SERVICE)

    for warning in validate_environment_security():
        logger.warning("Environment: %s", warning)

    logger.info("%s is running on port %s", settings.SERVICE_NAME, settings.SERVICE_PORT)


@app.on_event("shutdown")
def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down %s...", settings.SERVICE_NAME)

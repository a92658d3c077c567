"""
Payment and order payload validation
"""
import random
import re
import string
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, List, Optional

from storefront.config import settings, PLACEHOLDER_STRIPE_SECRET_KEY

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PAYMENT_INTENT_STATUSES = (
    'requires_payment_method',
    'requires_confirmation',
    'requires_action',
    'processing',
    'requires_capture',
    'canceled',
    'succeeded',
)


@dataclass
class ValidationResult:
    """Outcome of a validation pass; errors block, warnings are only logged"""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def first_error(self) -> Optional[str]:
        return self.errors[0] if self.errors else None

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings
        )


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and EMAIL_PATTERN.match(email) is not None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def validate_payment_amount(amount: Any) -> ValidationResult:
    """
    Validate a payment amount in major currency units

    Rules:
    - must be a number greater than zero
    - must lie within [MIN_PAYMENT_AMOUNT, MAX_PAYMENT_AMOUNT]
    - at most two decimal places
    """
    result = ValidationResult()

    if amount is None or not _is_number(amount):
        result.errors.append("Payment amount must be a valid number")
        return result

    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        result.errors.append("Payment amount must be a valid number")
        return result

    if not value.is_finite():
        result.errors.append("Payment amount must be a valid number")
        return result

    if value <= 0:
        result.errors.append("Payment amount must be greater than 0")
    elif value < Decimal(str(settings.MIN_PAYMENT_AMOUNT)):
        result.errors.append(
            f"Payment amount must be at least ${settings.MIN_PAYMENT_AMOUNT:.2f}"
        )
    elif value > Decimal(str(settings.MAX_PAYMENT_AMOUNT)):
        result.errors.append(
            f"Payment amount cannot exceed ${settings.MAX_PAYMENT_AMOUNT:.2f}"
        )

    if value.as_tuple().exponent < -2 and value != value.quantize(Decimal("0.01")):
        result.errors.append("Payment amount cannot have more than 2 decimal places")

    return result


def validate_order_data(order_data: Any) -> ValidationResult:
    """Validate customer details and the putter configuration of an order"""
    result = ValidationResult()

    if not order_data or not isinstance(order_data, dict):
        result.errors.append("Order data is required")
        return result

    customer_name = order_data.get("customerName")
    if not customer_name or not isinstance(customer_name, str):
        result.errors.append("Customer name is required")
    elif len(customer_name.strip()) < 2:
        result.errors.append("Customer name must be at least 2 characters")

    customer_email = order_data.get("customerEmail")
    if not customer_email or not isinstance(customer_email, str):
        result.errors.append("Customer email is required")
    elif not is_valid_email(customer_email):
        result.errors.append("Customer email format is invalid")

    if not order_data.get("faceDeck"):
        result.errors.append("Face deck selection is required")

    if not order_data.get("weightSystem"):
        result.errors.append("Weight system selection is required")

    address = order_data.get("shippingAddress")
    if address:
        if not isinstance(address, dict) or not all(
            address.get(key) for key in ("address", "city", "state", "zipCode")
        ):
            result.errors.append("Shipping address is incomplete")

    return result


def validate_currency(currency: Any) -> ValidationResult:
    result = ValidationResult()
    if not isinstance(currency, str) or currency.lower() not in settings.ALLOWED_CURRENCIES:
        result.errors.append(f"Currency '{currency}' is not supported")
    return result


def validate_payment_environment() -> ValidationResult:
    """Check that the Stripe keys the server needs are configured"""
    result = ValidationResult()

    publishable_key = settings.STRIPE_PUBLISHABLE_KEY
    secret_key = settings.STRIPE_SECRET_KEY

    if not publishable_key:
        result.errors.append("Stripe publishable key is not configured")
    elif publishable_key.startswith("pk_test_"):
        result.warnings.append("Stripe is running in test mode")

    if not secret_key or secret_key == PLACEHOLDER_STRIPE_SECRET_KEY:
        result.errors.append("Stripe secret key is not configured")
    elif secret_key.startswith("sk_test_"):
        result.warnings.append("Stripe test secret key in use")

    return result


def validate_payment_request(amount: Any, order_data: Any, check_environment: bool = True) -> ValidationResult:
    """Combined server-side validation of a payment request"""
    result = validate_payment_amount(amount).merge(validate_order_data(order_data))
    if check_environment:
        result = result.merge(validate_payment_environment())
    return result


def validate_payment_intent_status(status: str) -> bool:
    return status in PAYMENT_INTENT_STATUSES


def _random_suffix(length: int = 9) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(random.choices(alphabet, k=length))


def generate_order_id() -> str:
    """Human-facing order reference, e.g. DVIT-1700000000000-k3j9x0a1b"""
    return f"DVIT-{int(time.time() * 1000)}-{_random_suffix()}"


def generate_request_id() -> str:
    """Correlation id attached to every log line of one request"""
    return f"req_{int(time.time() * 1000)}_{_random_suffix()}"


def format_amount_for_stripe(amount: Any) -> int:
    """Convert major units (dollars) to Stripe minor units (cents)"""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_amount_from_stripe(amount: int) -> float:
    return amount / 100


def selection_name(selection: Any) -> str:
    """Face deck / weight system selections arrive as names or {name, ...} objects"""
    if isinstance(selection, dict):
        return str(selection.get("name") or "")
    return str(selection or "")

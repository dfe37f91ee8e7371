"""Paid plan: access check and Stripe payments."""

from financepro.payments.access import PlanAccess, check_access
from financepro.payments.stripe_service import (
    PaymentError,
    PaymentService,
    WebhookVerificationError,
)

__all__ = [
    "PlanAccess",
    "check_access",
    "PaymentError",
    "PaymentService",
    "WebhookVerificationError",
]

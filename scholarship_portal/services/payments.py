"""Application-fee payments through Stripe."""

import logging
from decimal import ROUND_HALF_UP, Decimal

import stripe

from scholarship_portal.core import config

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """Raised when the payment processor rejects or fails a request."""


def to_minor_units(amount: float) -> int:
    """Convert a fee such as 12.345 to cents (1235), rounding half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def create_payment_intent(amount_minor: int, metadata: dict | None = None) -> str:
    """Create a card PaymentIntent and return its client secret."""
    try:
        intent = stripe.PaymentIntent.create(
            amount=amount_minor,
            currency=config.PAYMENT_CURRENCY,
            payment_method_types=['card'],
            metadata=metadata or {},
            api_key=config.STRIPE_SECRET_KEY,
        )
    except stripe.StripeError as exc:
        logger.exception('Stripe rejected payment intent for %s minor units', amount_minor)
        raise PaymentError(str(exc.user_message or exc)) from exc

    return intent.client_secret

"""Payment processing.

Integrates with Stripe for card payments. The client_secret of the created
PaymentIntent is handed to the frontend for Stripe Elements.
"""
import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException

from config import STRIPE_SECRET_KEY, STRIPE_CURRENCY
from schemas import PaymentIntentRequest, UserOut
from security import buyer_only

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


class PaymentError(Exception):
    """Raised when the payment gateway rejects or fails a request."""
    pass


def create_payment_intent(amount: float, currency: Optional[str] = None, metadata: Optional[dict] = None) -> dict:
    """Create a card PaymentIntent; `amount` is in currency units, Stripe wants cents."""
    if not STRIPE_SECRET_KEY:
        raise PaymentError("Payment gateway is not configured")
    stripe.api_key = STRIPE_SECRET_KEY
    amount_cents = int(round(amount * 100))
    try:
        intent = stripe.PaymentIntent.create(
            amount=amount_cents,
            currency=currency or STRIPE_CURRENCY,
            payment_method_types=["card"],
            metadata=metadata or {},
        )
    except stripe.StripeError as e:
        raise PaymentError(getattr(e, "user_message", None) or str(e)) from e
    return {"id": intent["id"], "client_secret": intent["client_secret"], "amount": amount_cents}


@router.post("/create-payment-intent")
def payment_intent(payload: PaymentIntentRequest, current: UserOut = Depends(buyer_only)):
    try:
        intent = create_payment_intent(payload.amount, payload.currency, {"user_id": current.id})
    except PaymentError as e:
        logger.error("Payment intent for %s failed: %s", current.email, e)
        raise HTTPException(500, f"Payment failed: {e}")
    return {"message": "Payment intent created successfully", "client_secret": intent["client_secret"]}

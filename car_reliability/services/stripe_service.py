"""
Stripe service for checkout, subscription management, and webhook verification.
"""
import json
import logging
from typing import Optional, Dict, Tuple

import stripe

from car_reliability.core.config import (
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    STRIPE_WEBHOOK_TOLERANCE,
    STRIPE_PRICE_ID_PREMIUM,
    STRIPE_PRICE_ID_PROFESSIONAL,
    FRONTEND_URL,
)
from car_reliability.core.exceptions import ExternalServiceError, SignatureVerificationError, ValidationError
from car_reliability.core.plans import PLAN_PREMIUM, PLAN_PROFESSIONAL, normalize_plan

logger = logging.getLogger(__name__)

# Initialize Stripe client
if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY
else:
    logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")


# Price ID to plan type mapping (built dynamically to handle None values)
def _build_price_mappings() -> Tuple[Dict[str, str], Dict[str, str]]:
    """Build price ID mappings from environment variables."""
    price_to_plan: Dict[str, str] = {}
    plan_to_price: Dict[str, str] = {}

    if STRIPE_PRICE_ID_PREMIUM:
        price_to_plan[STRIPE_PRICE_ID_PREMIUM] = PLAN_PREMIUM
        plan_to_price[PLAN_PREMIUM] = STRIPE_PRICE_ID_PREMIUM

    if STRIPE_PRICE_ID_PROFESSIONAL:
        price_to_plan[STRIPE_PRICE_ID_PROFESSIONAL] = PLAN_PROFESSIONAL
        plan_to_price[PLAN_PROFESSIONAL] = STRIPE_PRICE_ID_PROFESSIONAL

    return price_to_plan, plan_to_price

PRICE_ID_TO_PLAN, PLAN_TO_PRICE_ID = _build_price_mappings()


def get_plan_from_price_id(price_id: Optional[str]) -> Optional[str]:
    """Get plan type from Stripe price ID."""
    if not price_id:
        return None
    return PRICE_ID_TO_PLAN.get(price_id)


def get_price_id_from_plan(plan: str) -> Optional[str]:
    """Get Stripe price ID from plan type."""
    price_id = PLAN_TO_PRICE_ID.get(normalize_plan(plan))
    if not price_id or price_id.startswith("price_your_"):
        # Handle placeholder values from .env.example
        return None
    return price_id


def verify_webhook(
    request_body: bytes,
    signature: Optional[str],
    secret: Optional[str] = None,
    tolerance: Optional[int] = None,
) -> dict:
    """
    Verify and parse a Stripe webhook event.

    The ``Stripe-Signature`` header carries ``t=<timestamp>`` and one or more
    ``v1=<hex>`` HMAC-SHA256 digests of ``"{timestamp}.{body}"``. Any matching
    digest within the timestamp tolerance accepts the payload. The body is
    only parsed after it verified.

    Args:
        request_body: Raw request body bytes
        signature: Stripe-Signature header value
        secret: Webhook signing secret (defaults to STRIPE_WEBHOOK_SECRET)
        tolerance: Maximum signature age in seconds

    Returns:
        Parsed event dictionary

    Raises:
        SignatureVerificationError: missing secret/header, bad signature or stale timestamp
    """
    secret = secret or STRIPE_WEBHOOK_SECRET
    tolerance = STRIPE_WEBHOOK_TOLERANCE if tolerance is None else tolerance

    if not secret:
        logger.error("STRIPE_WEBHOOK_SECRET not configured, rejecting webhook")
        raise SignatureVerificationError("Webhook secret not configured")
    if not signature:
        raise SignatureVerificationError("Missing Stripe-Signature header")

    try:
        payload = request_body.decode("utf-8")
    except UnicodeDecodeError:
        raise SignatureVerificationError("Webhook payload is not valid UTF-8")

    try:
        stripe.WebhookSignature.verify_header(payload, signature, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise SignatureVerificationError("Invalid signature")

    try:
        event = json.loads(payload)
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise ValidationError("Invalid webhook payload")

    if not isinstance(event, dict) or not event.get("type"):
        raise ValidationError("Invalid webhook payload")

    logger.info(f"Verified webhook event: {event.get('type')}, id={event.get('id')}")
    return event


def create_checkout_session(
    user_id: int,
    user_email: str,
    plan: str,
    price_id: Optional[str] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> dict:
    """
    Create a Stripe Checkout session in subscription mode.

    Args:
        user_id: User ID from database
        user_email: User email address
        plan: Requested plan name (e.g. ``premium-monthly``)
        price_id: Explicit Stripe price; defaults to the configured price for the plan
        success_url: Redirect URL after successful payment
        cancel_url: Redirect URL if user cancels

    Returns:
        Dictionary with ``url`` and ``sessionId``
    """
    price_id = price_id or get_price_id_from_plan(plan)
    if not STRIPE_SECRET_KEY or not price_id:
        raise ExternalServiceError(f"Stripe not configured for plan '{plan}'", code="stripe_not_configured")

    if not success_url:
        success_url = f"{FRONTEND_URL}/success?session_id={{CHECKOUT_SESSION_ID}}"
    if not cancel_url:
        cancel_url = f"{FRONTEND_URL}/pricing?cancelled=1"

    params = dict(
        payment_method_types=["card"],
        mode="subscription",
        line_items=[{
            "price": price_id,
            "quantity": 1,
        }],
        success_url=success_url,
        cancel_url=cancel_url,
        client_reference_id=str(user_id),
        metadata={
            "user_id": str(user_id),
            "plan": plan,
        },
        subscription_data={
            "metadata": {
                "user_id": str(user_id),
                "plan": plan,
            }
        },
        allow_promotion_codes=True,
    )
    if customer_id:
        params["customer"] = customer_id
    else:
        params["customer_email"] = user_email

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating checkout session: {e}")
        raise ExternalServiceError("Failed to create checkout session")

    logger.info(f"Created checkout session for user_id={user_id}, session_id={session.id}, plan={plan}")
    return {"url": session.url, "sessionId": session.id}


def retrieve_checkout_session(session_id: str) -> dict:
    """Fetch a Checkout session as a plain dict."""
    if not STRIPE_SECRET_KEY:
        raise ExternalServiceError("Stripe not configured", code="stripe_not_configured")
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.InvalidRequestError as e:
        logger.warning(f"Checkout session not found: session_id={session_id}: {e}")
        raise ValidationError("Invalid checkout session")
    except stripe.StripeError as e:
        logger.error(f"Stripe error retrieving checkout session: {e}")
        raise ExternalServiceError("Failed to verify checkout session")
    return session.to_dict() if hasattr(session, "to_dict") else dict(session)


def cancel_subscription(subscription_id: str) -> None:
    """Cancel a Stripe subscription immediately."""
    if not STRIPE_SECRET_KEY:
        raise ExternalServiceError("Stripe not configured", code="stripe_not_configured")
    try:
        stripe.Subscription.cancel(subscription_id)
    except stripe.StripeError as e:
        logger.error(f"Stripe error canceling subscription {subscription_id}: {e}")
        raise ExternalServiceError("Failed to cancel subscription")
    logger.info(f"Canceled Stripe subscription: subscription_id={subscription_id}")

"""
Payment endpoints: checkout creation and post-checkout verification.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from car_reliability.core.auth_dependency import get_db, get_current_user
from car_reliability.core.exceptions import AuthorizationError, ValidationError
from car_reliability.db.models.user import User
from car_reliability.schemas.billing import CreateCheckoutRequest, CreateCheckoutResponse, VerifyPaymentRequest
from car_reliability.services import stripe_service
from car_reliability.services.billing_service import apply_checkout, checkout_has_ended

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payment", tags=["Billing"])


@router.post("/create-checkout", response_model=CreateCheckoutResponse)
def create_checkout(
    request: CreateCheckoutRequest,
    user: User = Depends(get_current_user),
):
    """Start a Stripe Checkout subscription for the current user."""
    return stripe_service.create_checkout_session(
        user_id=user.id,
        user_email=user.email,
        plan=request.plan,
        price_id=request.price_id,
        success_url=request.success_url,
        cancel_url=request.cancel_url,
        customer_id=user.stripe_customer_id,
    )


def _session_owner_id(session_data: dict):
    metadata = session_data.get("metadata") or {}
    for candidate in (session_data.get("client_reference_id"), metadata.get("user_id"), metadata.get("userId")):
        if candidate not in (None, ""):
            return str(candidate)
    return None


@router.post("/verify")
def verify_payment(
    request: VerifyPaymentRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Confirm a completed checkout from the success page.

    Applies the same ledger transition as ``checkout.session.completed``, so
    whichever arrives second is a no-op.
    """
    session_data = stripe_service.retrieve_checkout_session(request.session_id)

    if session_data.get("payment_status") != "paid":
        raise ValidationError("Payment not completed", code="payment_incomplete")

    owner_id = _session_owner_id(session_data)
    if owner_id is None:
        email = (session_data.get("customer_email") or (session_data.get("customer_details") or {}).get("email") or "").lower()
        if email != user.email:
            raise AuthorizationError("Checkout session belongs to another user")
    elif owner_id != str(user.id):
        raise AuthorizationError("Checkout session belongs to another user")

    if checkout_has_ended(session_data, db):
        raise ValidationError("Subscription for this checkout has been canceled", code="checkout_ended")

    plan_name = (session_data.get("metadata") or {}).get("plan") or request.plan
    record = apply_checkout(user, session_data, db, plan_name=plan_name)
    db.commit()
    db.refresh(record)

    logger.info(f"Payment verified: user_id={user.id}, session_id={request.session_id}, plan={record.plan}")
    return {
        "message": "Payment verified",
        "accessToken": record.access_token,
        "plan": record.plan,
    }

"""
Account endpoints: profile, password change and account deletion.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from car_reliability.core.auth_dependency import get_db, get_current_user
from car_reliability.core.exceptions import AuthenticationError, ExternalServiceError
from car_reliability.core.security import hash_password, verify_password
from car_reliability.db.models.payment import Payment
from car_reliability.db.models.user import User
from car_reliability.schemas.auth import ChangePasswordRequest
from car_reliability.services import ledger_service, stripe_service
from car_reliability.services.entitlement_service import decision_for_record, serialize_record

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Account"])


@router.get("/profile")
def get_profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Current user, entitlement flags, current subscription and the last 5 payments."""
    record = ledger_service.get_current_record(db, user.id)
    decision = decision_for_record(record, user.id)

    payments = db.query(Payment).filter(
        Payment.user_id == user.id
    ).order_by(Payment.created_at.desc(), Payment.id.desc()).limit(5).all()

    return {
        "user": {
            "id": user.id,
            "email": user.email,
            "createdAt": user.created_at.isoformat() if user.created_at else None,
        },
        "isPremium": decision.is_entitled,
        "isBasic": decision.is_basic,
        "subscription": serialize_record(record, include_token=True),
        "payments": [
            {
                "id": payment.id,
                "amount": float(payment.amount),
                "currency": payment.currency,
                "invoiceId": payment.stripe_invoice_id,
                "createdAt": payment.created_at.isoformat() if payment.created_at else None,
            }
            for payment in payments
        ],
    }


@router.post("/user/change-password")
def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(request.current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect", code="invalid_credentials")

    user.password_hash = hash_password(request.new_password)
    db.commit()
    logger.info(f"Password changed: user_id={user.id}")
    return {"message": "Password updated successfully"}


@router.delete("/user/delete-account")
def delete_account(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Delete the current user and everything they own.

    An active Stripe subscription is canceled first; a Stripe failure is
    logged and does not block deletion.
    """
    record = ledger_service.get_current_record(db, user.id)
    if record is not None and record.stripe_subscription_id:
        try:
            stripe_service.cancel_subscription(record.stripe_subscription_id)
        except ExternalServiceError as e:
            logger.warning(f"Could not cancel Stripe subscription for user_id={user.id}: {e.message}")

    user_id = user.id
    db.delete(user)
    db.commit()
    logger.info(f"Account deleted: user_id={user_id}")
    return {"message": "Account deleted successfully"}

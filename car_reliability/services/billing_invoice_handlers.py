"""
Invoice and customer event handlers for Stripe webhooks.

Handles invoice.payment_succeeded, invoice.payment_failed and customer.created.
Unknown subscriptions and customers are logged and skipped.
"""
import logging
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from car_reliability.core.plans import (
    MAX_PAYMENT_ATTEMPTS_BEFORE_UNPAID,
    STATUS_ACTIVE,
    STATUS_PAST_DUE,
    STATUS_UNPAID,
)
from car_reliability.core.timeutils import from_timestamp
from car_reliability.db.models.payment import Payment
from car_reliability.db.models.user import User
from car_reliability.services import ledger_service

logger = logging.getLogger(__name__)


def invoice_subscription_id(invoice_data: Dict) -> Optional[str]:
    """Subscription id from an invoice (legacy top-level field or parent details)."""
    subscription_id = invoice_data.get("subscription")
    if subscription_id:
        return subscription_id
    parent = invoice_data.get("parent") or {}
    return (parent.get("subscription_details") or {}).get("subscription")


def _is_paid(invoice_data: Dict) -> bool:
    if "paid" in invoice_data:
        return bool(invoice_data.get("paid"))
    return invoice_data.get("status") == "paid"


def handle_invoice_payment_succeeded(invoice_data: Dict, db: Session) -> None:
    """
    Handle invoice.payment_succeeded webhook event.
    
    Records the payment once per invoice, refreshes the billing period and
    reactivates past_due / unpaid records.
    """
    invoice_id = invoice_data.get("id")
    amount_paid = invoice_data.get("amount_paid") or 0

    if not _is_paid(invoice_data) or amount_paid <= 0:
        logger.info(f"invoice.payment_succeeded: ignoring unpaid or zero invoice {invoice_id}")
        return

    subscription_id = invoice_subscription_id(invoice_data)
    record = ledger_service.find_current_by_subscription(db, subscription_id)
    if not record:
        logger.warning(f"invoice.payment_succeeded: Subscription not found for subscription_id={subscription_id}")
        return

    existing = db.query(Payment).filter(Payment.stripe_invoice_id == invoice_id).first()
    if existing is None:
        db.add(Payment(
            user_id=record.user_id,
            entitlement_id=record.id,
            amount=Decimal(amount_paid) / 100,
            currency=(invoice_data.get("currency") or "usd").lower(),
            stripe_invoice_id=invoice_id,
        ))

    lines = (invoice_data.get("lines") or {}).get("data") or []
    period = (lines[0].get("period") or {}) if lines else {}
    period_start = from_timestamp(period.get("start"))
    period_end = from_timestamp(period.get("end"))
    if period_start:
        record.period_start = period_start
    if period_end:
        record.period_end = period_end

    if record.status in (STATUS_PAST_DUE, STATUS_UNPAID):
        logger.info(f"Reactivating entitlement after payment: user_id={record.user_id}, previous_status={record.status}")
        record.status = STATUS_ACTIVE

    db.flush()
    logger.info(f"Invoice payment succeeded: user_id={record.user_id}, subscription_id={subscription_id}, invoice_id={invoice_id}")


def handle_invoice_payment_failed(invoice_data: Dict, db: Session) -> None:
    """
    Handle invoice.payment_failed webhook event.
    
    More than three attempts marks the record unpaid, otherwise past_due.
    """
    subscription_id = invoice_subscription_id(invoice_data)
    record = ledger_service.find_current_by_subscription(db, subscription_id)
    if not record:
        logger.warning(f"invoice.payment_failed: Subscription not found for subscription_id={subscription_id}")
        return

    attempt_count = invoice_data.get("attempt_count") or 0
    record.status = STATUS_UNPAID if attempt_count > MAX_PAYMENT_ATTEMPTS_BEFORE_UNPAID else STATUS_PAST_DUE
    db.flush()

    logger.warning(
        f"Invoice payment failed: user_id={record.user_id}, subscription_id={subscription_id}, "
        f"attempt_count={attempt_count}, status={record.status}"
    )


def handle_customer_created(customer_data: Dict, db: Session) -> None:
    """Link a new Stripe customer to the user with the same email."""
    customer_id = customer_data.get("id")
    email = customer_data.get("email")
    if not email:
        logger.info(f"customer.created: no email on customer {customer_id}")
        return

    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user:
        logger.info(f"customer.created: no user for customer {customer_id}")
        return

    user.stripe_customer_id = customer_id
    record = ledger_service.get_current_record(db, user.id)
    if record is not None and not record.stripe_customer_id:
        record.stripe_customer_id = customer_id
    db.flush()
    logger.info(f"Linked Stripe customer: user_id={user.id}, customer_id={customer_id}")

"""
Billing service for Stripe webhook reconciliation.

Verifies deliveries, de-duplicates them by event id, and applies each event
to the entitlement ledger inside a single transaction.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from car_reliability.core.exceptions import AppError, SignatureVerificationError, UnresolvableEventError, ValidationError
from car_reliability.core.logging_config import sanitize_log_data
from car_reliability.core.plans import (
    PLAN_BASIC,
    PLAN_PREMIUM,
    STATUS_ACTIVE,
    STATUS_CANCELED,
    compute_interval_expiry,
    compute_plan_expiry,
    map_stripe_status,
    normalize_plan,
)
from car_reliability.core.security import generate_opaque_token
from car_reliability.core.timeutils import from_timestamp, utcnow
from car_reliability.db.models.entitlement import EntitlementRecord
from car_reliability.db.models.user import User
from car_reliability.db.models.webhook_log import (
    WEBHOOK_COMPLETED,
    WEBHOOK_DUPLICATE,
    WEBHOOK_FAILED,
    WEBHOOK_PROCESSING,
    WEBHOOK_VERIFICATION_FAILED,
    WEBHOOK_VERIFIED,
)
from car_reliability.services import ledger_service, webhook_log_service
from car_reliability.services.billing_invoice_handlers import (
    handle_customer_created,
    handle_invoice_payment_failed,
    handle_invoice_payment_succeeded,
)
from car_reliability.services.stripe_service import get_plan_from_price_id, verify_webhook

logger = logging.getLogger(__name__)


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _first_item(subscription_data: Dict) -> Dict:
    items = (subscription_data.get("items") or {}).get("data") or []
    return items[0] if items else {}


def link_customer(user: User, customer_id: Optional[str]) -> None:
    if customer_id and user.stripe_customer_id != customer_id:
        user.stripe_customer_id = customer_id
        logger.info(f"Linked Stripe customer: user_id={user.id}, customer_id={customer_id}")


# ============================================
# checkout.session.completed
# ============================================

def resolve_checkout_user(session_data: Dict, db: Session) -> Optional[User]:
    """User from the reference id, metadata user id, then customer email."""
    metadata = session_data.get("metadata") or {}
    for candidate in (
        session_data.get("client_reference_id"),
        metadata.get("user_id"),
        metadata.get("userId"),
    ):
        user_id = _to_int(candidate)
        if user_id is not None:
            user = db.query(User).filter(User.id == user_id).first()
            if user:
                return user

    email = session_data.get("customer_email") or (session_data.get("customer_details") or {}).get("email")
    if email:
        return db.query(User).filter(User.email == email.strip().lower()).first()
    return None


def checkout_has_ended(session_data: Dict, db: Session) -> bool:
    """True when the session or its subscription belongs to a canceled record."""
    return ledger_service.find_canceled_for_checkout(
        db, session_data.get("id"), session_data.get("subscription"),
    ) is not None


def apply_checkout(user: User, session_data: Dict, db: Session, plan_name: Optional[str] = None) -> EntitlementRecord:
    """
    Apply a completed checkout to the user's ledger.

    A replay of the session already reflected in the current record is a no-op.
    A session whose subscription was already canceled leaves the user on
    their current (default) record.
    """
    metadata = session_data.get("metadata") or {}
    plan_name = plan_name or metadata.get("plan") or PLAN_PREMIUM
    plan = normalize_plan(plan_name)
    session_id = session_data.get("id")
    customer_id = session_data.get("customer")
    subscription_id = session_data.get("subscription")

    if checkout_has_ended(session_data, db):
        logger.warning(f"Checkout session already ended, not reapplying: user_id={user.id}, session_id={session_id}")
        return ledger_service.ensure_default_record(db, user.id)

    current = ledger_service.get_current_record(db, user.id)
    if (
        current is not None
        and session_id
        and current.stripe_session_id == session_id
        and current.status == STATUS_ACTIVE
        and current.plan == plan
    ):
        logger.info(f"Checkout already applied: user_id={user.id}, session_id={session_id}")
        return current

    record = ledger_service.activate_plan(
        db,
        user.id,
        plan,
        compute_plan_expiry(plan_name),
        session_id=session_id,
        customer_id=customer_id,
        subscription_id=subscription_id,
    )
    link_customer(user, customer_id)

    logger.info(f"Checkout completed: user_id={user.id}, plan={plan}, subscription_id={subscription_id}")
    return record


def handle_checkout_session_completed(session_data: Dict, db: Session) -> EntitlementRecord:
    user = resolve_checkout_user(session_data, db)
    if not user:
        raise UnresolvableEventError(f"User not found for checkout session {session_data.get('id')}")
    return apply_checkout(user, session_data, db)


# ============================================
# customer.subscription.*
# ============================================

def resolve_subscription_user(subscription_data: Dict, db: Session) -> Optional[User]:
    """User via customer id, then a record's subscription id, then metadata."""
    customer_id = subscription_data.get("customer")
    if customer_id:
        user = db.query(User).filter(User.stripe_customer_id == customer_id).first()
        if user:
            return user
        record = ledger_service.find_any_by_customer(db, customer_id)
        if record:
            return record.user

    record = ledger_service.find_any_by_subscription(db, subscription_data.get("id"))
    if record:
        return record.user

    metadata = subscription_data.get("metadata") or {}
    user_id = _to_int(metadata.get("user_id") or metadata.get("userId"))
    if user_id is not None:
        return db.query(User).filter(User.id == user_id).first()
    return None


def subscription_period_end(subscription_data: Dict) -> datetime:
    """
    Period end for a subscription object.

    ``current_period_end`` (top level, then first item), then ``cancel_at``,
    then the price's recurring interval, then one year.
    """
    item = _first_item(subscription_data)
    for value in (
        subscription_data.get("current_period_end"),
        item.get("current_period_end"),
        subscription_data.get("cancel_at"),
    ):
        period_end = from_timestamp(value)
        if period_end is not None:
            return period_end

    recurring = (item.get("price") or {}).get("recurring") or {}
    period_end = compute_interval_expiry(recurring.get("interval"), recurring.get("interval_count") or 1)
    if period_end is not None:
        return period_end
    return utcnow() + timedelta(days=365)


def subscription_plan(subscription_data: Dict) -> Optional[str]:
    """Plan from the price nickname / lookup key, configured price ids or metadata."""
    price = _first_item(subscription_data).get("price") or {}
    for name in (price.get("nickname"), price.get("lookup_key")):
        plan = normalize_plan(name, default="")
        if plan:
            return plan

    plan = get_plan_from_price_id(price.get("id"))
    if plan:
        return plan

    metadata_plan = (subscription_data.get("metadata") or {}).get("plan")
    if metadata_plan:
        return normalize_plan(metadata_plan)
    return None


def handle_subscription_upsert(subscription_data: Dict, db: Session) -> Optional[EntitlementRecord]:
    """
    Handle customer.subscription.created and customer.subscription.updated.

    Events only touch the record of their own subscription. A subscription
    whose records are all canceled stays ended, and a current record bound
    to a different subscription is left alone.
    """
    subscription_id = subscription_data.get("id")
    if ledger_service.find_current_by_subscription(db, subscription_id) is None:
        ended = ledger_service.find_any_by_subscription(db, subscription_id)
        if ended is not None:
            logger.warning(f"Ignoring update for ended subscription: user_id={ended.user_id}, subscription_id={subscription_id}")
            return None

    user = resolve_subscription_user(subscription_data, db)
    if not user:
        raise UnresolvableEventError(f"User not found for subscription {subscription_id}")

    status = map_stripe_status(subscription_data.get("status"), bool(subscription_data.get("cancel_at_period_end")))
    current = ledger_service.get_current_record(db, user.id)

    if current is not None and current.stripe_subscription_id and current.stripe_subscription_id != subscription_id:
        logger.warning(
            f"Ignoring update for subscription {subscription_id}: "
            f"user_id={user.id} is bound to {current.stripe_subscription_id}"
        )
        return current

    if status == STATUS_CANCELED:
        if current is None or current.stripe_subscription_id != subscription_id:
            return ledger_service.ensure_default_record(db, user.id)
        return ledger_service.cancel_and_reset(db, current)

    plan = subscription_plan(subscription_data)
    if plan is None:
        # Keep the recorded paid plan; a basic record upgraded by a subscription is premium
        plan = current.plan if current is not None and current.plan != PLAN_BASIC else PLAN_PREMIUM

    period_end = subscription_period_end(subscription_data)
    customer_id = subscription_data.get("customer")

    def _apply(record: EntitlementRecord) -> None:
        if record.plan != plan or record.status != status:
            record.access_token = generate_opaque_token()
            record.period_start = from_timestamp(subscription_data.get("current_period_start")) or utcnow()
        record.plan = plan
        record.status = status
        record.period_end = period_end
        record.stripe_subscription_id = subscription_id
        if customer_id:
            record.stripe_customer_id = customer_id

    record = ledger_service.upsert_current_record(db, user.id, _apply)
    link_customer(user, customer_id)

    logger.info(f"Subscription synced: user_id={user.id}, plan={plan}, status={status}, subscription_id={subscription_id}")
    return record


def handle_subscription_deleted(subscription_data: Dict, db: Session) -> Optional[EntitlementRecord]:
    """
    Handle customer.subscription.deleted.

    Cancels the current record and leaves the user on a default basic record.
    """
    subscription_id = subscription_data.get("id")
    record = ledger_service.find_current_by_subscription(db, subscription_id)

    if record is None:
        previous = ledger_service.find_any_by_subscription(db, subscription_id)
        if previous is None:
            logger.warning(f"customer.subscription.deleted: Subscription not found for subscription_id={subscription_id}")
            return None
        # Replay: already canceled
        return ledger_service.ensure_default_record(db, previous.user_id)

    default_record = ledger_service.cancel_and_reset(db, record)
    logger.info(f"Subscription deleted: user_id={record.user_id}, downgraded to basic, subscription_id={subscription_id}")
    return default_record


# ============================================
# Dispatcher
# ============================================

EVENT_HANDLERS: Dict[str, Callable[[Dict, Session], Any]] = {
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.created": handle_subscription_upsert,
    "customer.subscription.updated": handle_subscription_upsert,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_succeeded": handle_invoice_payment_succeeded,
    "invoice.payment_failed": handle_invoice_payment_failed,
    "customer.created": handle_customer_created,
}


def dispatch_event(event: Dict, db: Session) -> bool:
    """
    Run the handler for ``event``. Does not commit.

    Returns:
        False when the event type has no handler
    """
    event_type = event.get("type")
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled webhook event type: {event_type}")
        return False
    data_object = (event.get("data") or {}).get("object") or {}
    logger.debug(f"Dispatching {event_type}: {sanitize_log_data(data_object)}")
    handler(data_object, db)
    return True


def process_webhook(payload: bytes, signature: Optional[str], db: Session) -> Dict[str, Any]:
    """
    Verify, de-duplicate and apply one webhook delivery.

    Every delivery leaves an audit row. Ledger changes and the ``completed``
    audit status commit together; any handler error rolls the ledger back,
    marks the audit row ``failed`` and re-raises as a 5xx error.
    """
    log_entry = webhook_log_service.record_delivery(db)

    try:
        event = verify_webhook(payload, signature)
    except (SignatureVerificationError, ValidationError) as e:
        webhook_log_service.mark(db, log_entry, WEBHOOK_VERIFICATION_FAILED, error_message=e.message)
        raise

    event_id = event.get("id")
    event_type = event.get("type")
    webhook_log_service.mark(db, log_entry, WEBHOOK_VERIFIED, event_id=event_id, event_type=event_type)

    if webhook_log_service.is_completed(db, event_id, exclude_id=log_entry.id):
        webhook_log_service.mark(db, log_entry, WEBHOOK_DUPLICATE)
        logger.info(f"Duplicate webhook event acknowledged: {event_type}, id={event_id}")
        return {"received": True, "status": WEBHOOK_DUPLICATE}

    webhook_log_service.mark(db, log_entry, WEBHOOK_PROCESSING)

    try:
        handled = dispatch_event(event, db)
        log_entry.processing_status = WEBHOOK_COMPLETED
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Webhook processing failed: {event_type}, id={event_id}: {e}", exc_info=True)
        webhook_log_service.mark(db, log_entry, WEBHOOK_FAILED, error_message=str(e))
        if isinstance(e, AppError) and e.status_code >= 500:
            raise
        raise AppError("Webhook processing failed", code="webhook_processing_failed") from e

    logger.info(f"Webhook processed: {event_type}, id={event_id}, handled={handled}")
    return {"received": True, "status": WEBHOOK_COMPLETED if handled else "ignored"}

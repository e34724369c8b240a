"""
Entitlement ledger operations.

The ledger keeps at most one non-canceled EntitlementRecord per user (the
current record). Functions here flush but never commit; the caller owns the
transaction.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from car_reliability.core.plans import PLAN_BASIC, STATUS_ACTIVE, STATUS_CANCELED
from car_reliability.core.security import generate_opaque_token
from car_reliability.core.timeutils import utcnow
from car_reliability.db.models.entitlement import EntitlementRecord

logger = logging.getLogger(__name__)


def get_current_record(db: Session, user_id: int) -> Optional[EntitlementRecord]:
    """The user's single non-canceled record, if any."""
    return db.query(EntitlementRecord).filter(
        EntitlementRecord.user_id == user_id,
        EntitlementRecord.status != STATUS_CANCELED,
    ).first()


def get_record_by_access_token(db: Session, access_token: str) -> Optional[EntitlementRecord]:
    if not access_token:
        return None
    return db.query(EntitlementRecord).filter(EntitlementRecord.access_token == access_token).first()


def find_current_by_subscription(db: Session, subscription_id: Optional[str]) -> Optional[EntitlementRecord]:
    """Current record carrying a Stripe subscription id."""
    if not subscription_id:
        return None
    return db.query(EntitlementRecord).filter(
        EntitlementRecord.stripe_subscription_id == subscription_id,
        EntitlementRecord.status != STATUS_CANCELED,
    ).first()


def find_any_by_subscription(db: Session, subscription_id: Optional[str]) -> Optional[EntitlementRecord]:
    """Most recent record (canceled included) carrying a Stripe subscription id."""
    if not subscription_id:
        return None
    return db.query(EntitlementRecord).filter(
        EntitlementRecord.stripe_subscription_id == subscription_id,
    ).order_by(EntitlementRecord.id.desc()).first()


def find_canceled_for_checkout(
    db: Session,
    session_id: Optional[str],
    subscription_id: Optional[str],
) -> Optional[EntitlementRecord]:
    """Canceled record created by this checkout session or its subscription."""
    conditions = []
    if session_id:
        conditions.append(EntitlementRecord.stripe_session_id == session_id)
    if subscription_id:
        conditions.append(EntitlementRecord.stripe_subscription_id == subscription_id)
    if not conditions:
        return None
    return db.query(EntitlementRecord).filter(
        or_(*conditions),
        EntitlementRecord.status == STATUS_CANCELED,
    ).order_by(EntitlementRecord.id.desc()).first()


def find_any_by_customer(db: Session, customer_id: Optional[str]) -> Optional[EntitlementRecord]:
    if not customer_id:
        return None
    return db.query(EntitlementRecord).filter(
        EntitlementRecord.stripe_customer_id == customer_id,
    ).order_by(EntitlementRecord.id.desc()).first()


def upsert_current_record(
    db: Session,
    user_id: int,
    mutate: Callable[[EntitlementRecord], None],
) -> EntitlementRecord:
    """
    Apply ``mutate`` to the user's current record, creating it if missing.

    A concurrent insert that wins the partial unique index is retried once
    as an update of the row it created.
    """
    record = get_current_record(db, user_id)
    if record is None:
        record = EntitlementRecord(user_id=user_id, plan=PLAN_BASIC, status=STATUS_ACTIVE)
        mutate(record)
        try:
            with db.begin_nested():
                db.add(record)
            return record
        except IntegrityError:
            logger.warning(f"Concurrent entitlement insert for user_id={user_id}, retrying as update")
            record = get_current_record(db, user_id)
            if record is None:
                raise

    mutate(record)
    db.flush()
    return record


def create_default_record(db: Session, user_id: int) -> EntitlementRecord:
    """Basic, active, non-expiring record for a new or downgraded user."""
    def _default(record: EntitlementRecord) -> None:
        record.plan = PLAN_BASIC
        record.status = STATUS_ACTIVE
        record.period_start = utcnow()
        record.period_end = None
        record.access_token = None

    return upsert_current_record(db, user_id, _default)


def ensure_default_record(db: Session, user_id: int) -> EntitlementRecord:
    """Current record, or a fresh default one when the user has none."""
    record = get_current_record(db, user_id)
    if record is not None:
        return record
    return create_default_record(db, user_id)


def activate_plan(
    db: Session,
    user_id: int,
    plan: str,
    period_end: Optional[datetime],
    *,
    status: str = STATUS_ACTIVE,
    session_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    subscription_id: Optional[str] = None,
) -> EntitlementRecord:
    """
    Move the user's current record to a paid plan.

    Every call issues a new access token.
    """
    now = utcnow()

    def _activate(record: EntitlementRecord) -> None:
        record.plan = plan
        record.status = status
        record.period_start = now
        record.period_end = period_end
        record.access_token = generate_opaque_token()
        if session_id:
            record.stripe_session_id = session_id
        if customer_id:
            record.stripe_customer_id = customer_id
        if subscription_id:
            record.stripe_subscription_id = subscription_id

    record = upsert_current_record(db, user_id, _activate)
    logger.info(f"Entitlement activated: user_id={user_id}, plan={plan}, status={status}, period_end={period_end}")
    return record


def cancel_and_reset(db: Session, record: EntitlementRecord) -> EntitlementRecord:
    """
    Cancel ``record`` (period ends now) and give the user a default record.

    Replaying against an already canceled record only ensures the default.
    """
    if record.status != STATUS_CANCELED:
        record.status = STATUS_CANCELED
        record.period_end = utcnow()
        db.flush()
        logger.info(f"Entitlement canceled: user_id={record.user_id}, record_id={record.id}")
    return ensure_default_record(db, record.user_id)

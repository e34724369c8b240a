"""
Entitlement query service.

Read-only resolution of a request's principal to a premium decision.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from car_reliability.core.exceptions import AuthenticationError
from car_reliability.core.plans import PLAN_BASIC
from car_reliability.core.security import decode_access_token
from car_reliability.db.models.entitlement import EntitlementRecord
from car_reliability.services import ledger_service

logger = logging.getLogger(__name__)


@dataclass
class EntitlementDecision:
    """Outcome of an entitlement lookup."""
    is_entitled: bool
    plan: Optional[str] = None
    record: Optional[EntitlementRecord] = None
    user_id: Optional[int] = None

    @property
    def is_basic(self) -> bool:
        return self.record is not None and self.record.plan == PLAN_BASIC

    @property
    def status(self) -> Optional[str]:
        return self.record.status if self.record is not None else None


def decision_for_record(record: Optional[EntitlementRecord], user_id: Optional[int] = None) -> EntitlementDecision:
    if record is None:
        return EntitlementDecision(is_entitled=False, user_id=user_id)
    return EntitlementDecision(
        is_entitled=record.is_entitled(),
        plan=record.plan,
        record=record,
        user_id=record.user_id,
    )


def resolve_entitlement(
    db: Session,
    access_token: Optional[str] = None,
    session_token: Optional[str] = None,
    user_id: Optional[int] = None,
) -> EntitlementDecision:
    """
    Resolve a premium decision.

    Order: opaque access token, then session token (subject is the user id),
    then an explicit user id. Invalid or expired session tokens resolve to an
    anonymous, non-entitled decision.
    """
    if access_token:
        record = ledger_service.get_record_by_access_token(db, access_token)
        if record is not None:
            return decision_for_record(record)
        logger.debug("Access token did not match any entitlement record")

    if session_token:
        try:
            claims = decode_access_token(session_token)
        except AuthenticationError as e:
            logger.debug(f"Session token rejected for entitlement lookup: {e.code}")
        else:
            return decision_for_record(ledger_service.get_current_record(db, claims["user_id"]), claims["user_id"])

    if user_id is not None:
        return decision_for_record(ledger_service.get_current_record(db, user_id), user_id)

    return EntitlementDecision(is_entitled=False)


def serialize_record(record: Optional[EntitlementRecord], include_token: bool = False) -> Optional[dict]:
    """Client view of a ledger record. The access token is only shown to its owner."""
    if record is None:
        return None
    data = {
        "plan": record.plan,
        "status": record.status,
        "periodStart": record.period_start.isoformat() if record.period_start else None,
        "periodEnd": record.period_end.isoformat() if record.period_end else None,
    }
    if include_token:
        data["accessToken"] = record.access_token
    return data

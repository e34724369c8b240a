"""
Entitlement ledger invariants and principal resolution.
"""
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from car_reliability.core.security import create_access_token
from car_reliability.core.timeutils import utcnow
from car_reliability.db.models.entitlement import EntitlementRecord
from car_reliability.services import ledger_service
from car_reliability.services.entitlement_service import resolve_entitlement, serialize_record


@pytest.mark.parametrize("plan, status, days, expected", [
    ("premium", "active", 10, True),
    ("professional", "active", 10, True),
    ("premium", "active", None, True),
    ("basic", "active", None, False),
    ("premium", "past_due", 10, False),
    ("premium", "unpaid", 10, False),
    ("premium", "canceling", 10, False),
    ("premium", "pending", 10, False),
    ("premium", "active", -1, False),
])
def test_is_entitled_rule(plan, status, days, expected):
    period_end = None if days is None else utcnow() + timedelta(days=days)
    record = EntitlementRecord(plan=plan, status=status, period_end=period_end)
    assert record.is_entitled() is expected


def test_partial_unique_index_allows_one_current_record(make_user, db_session):
    user = make_user()
    db_session.add(EntitlementRecord(user_id=user.id, plan="premium", status="active"))
    with pytest.raises(IntegrityError):
        db_session.flush()
    db_session.rollback()

    current = ledger_service.get_current_record(db_session, user.id)
    current.status = "canceled"
    db_session.add(EntitlementRecord(user_id=user.id, plan="premium", status="active"))
    db_session.commit()

    assert db_session.query(EntitlementRecord).filter(EntitlementRecord.user_id == user.id).count() == 2


def test_activate_plan_rotates_token(make_user, db_session):
    user = make_user()
    first = ledger_service.activate_plan(db_session, user.id, "premium", utcnow() + timedelta(days=30))
    token = first.access_token
    second = ledger_service.activate_plan(db_session, user.id, "premium", utcnow() + timedelta(days=30))
    db_session.commit()

    assert first.id == second.id
    assert second.access_token != token
    assert len(second.access_token) >= 32


def test_ensure_default_record_is_idempotent(make_user, db_session):
    user = make_user(with_default=False)
    assert ledger_service.get_current_record(db_session, user.id) is None

    record = ledger_service.ensure_default_record(db_session, user.id)
    again = ledger_service.ensure_default_record(db_session, user.id)
    db_session.commit()

    assert record.id == again.id
    assert (record.plan, record.status, record.period_end, record.access_token) == ("basic", "active", None, None)


def test_basic_user_is_not_entitled(make_user, db_session):
    user = make_user()
    decision = resolve_entitlement(db_session, user_id=user.id)

    assert decision.is_entitled is False
    assert decision.is_basic is True
    assert decision.record is not None
    assert decision.status == "active"


def test_resolve_by_access_token(make_user, db_session):
    user = make_user()
    record = ledger_service.activate_plan(db_session, user.id, "premium", utcnow() + timedelta(days=30))
    db_session.commit()

    decision = resolve_entitlement(db_session, access_token=record.access_token)

    assert decision.is_entitled is True
    assert decision.user_id == user.id
    assert decision.plan == "premium"


def test_access_token_takes_precedence_over_session(make_user, db_session):
    buyer = make_user(email="buyer@x.com")
    other = make_user(email="other@x.com")
    record = ledger_service.activate_plan(db_session, buyer.id, "premium", utcnow() + timedelta(days=30))
    db_session.commit()

    decision = resolve_entitlement(
        db_session,
        access_token=record.access_token,
        session_token=create_access_token(other.id, other.email),
    )

    assert decision.user_id == buyer.id
    assert decision.is_entitled is True


def test_unknown_access_token_falls_back_to_session(make_user, db_session):
    user = make_user()

    decision = resolve_entitlement(db_session, access_token="nope", session_token=create_access_token(user.id, user.email))

    assert decision.user_id == user.id
    assert decision.is_basic is True


def test_invalid_session_token_is_anonymous(db_session):
    decision = resolve_entitlement(db_session, session_token="not-a-jwt")

    assert decision.is_entitled is False
    assert decision.record is None
    assert decision.user_id is None


def test_expired_period_is_not_entitled(make_user, db_session):
    user = make_user()
    record = ledger_service.activate_plan(db_session, user.id, "premium", utcnow() - timedelta(minutes=1))
    db_session.commit()

    assert resolve_entitlement(db_session, access_token=record.access_token).is_entitled is False


def test_serialize_record_hides_token_by_default(make_user, db_session):
    user = make_user()
    record = ledger_service.activate_plan(db_session, user.id, "premium", utcnow() + timedelta(days=30))

    public = serialize_record(record)
    private = serialize_record(record, include_token=True)

    assert "accessToken" not in public
    assert private["accessToken"] == record.access_token
    assert public["plan"] == "premium"
    assert public["periodEnd"]
    assert serialize_record(None) is None

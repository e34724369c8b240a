"""
Registration, login, session verification and account endpoints.
"""
from datetime import timedelta

from car_reliability.core.security import create_access_token, verify_password
from car_reliability.db.models.entitlement import EntitlementRecord
from car_reliability.db.models.saved_vehicle import SavedVehicle
from car_reliability.db.models.user import User
from car_reliability.services import ledger_service, stripe_service
from car_reliability.core.exceptions import ExternalServiceError
from car_reliability.core.timeutils import utcnow


def test_register_creates_user_with_default_entitlement(client, session_factory):
    response = client.post("/api/register", json={"email": "A@X.com", "password": "pw123456"})

    assert response.status_code == 201
    data = response.json()
    assert data["user"]["email"] == "a@x.com"
    assert data["subscription"] == {"plan": "basic", "status": "active"}
    assert data["token"]

    with session_factory() as s:
        user = s.query(User).filter(User.email == "a@x.com").one()
        assert user.password_hash != "pw123456"
        record = s.query(EntitlementRecord).filter(EntitlementRecord.user_id == user.id).one()
        assert (record.plan, record.status, record.period_end) == ("basic", "active", None)
        assert record.is_entitled() is False


def test_register_duplicate_email_conflicts(client):
    client.post("/api/register", json={"email": "a@x.com", "password": "pw123456"})
    response = client.post("/api/register", json={"email": "a@x.com", "password": "other-pass"})

    assert response.status_code == 409
    assert response.json()["error"] == "email_exists"


def test_register_validates_input(client):
    response = client.post("/api/register", json={"email": "not-an-email", "password": "short"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_error"
    assert {d["field"] for d in body["details"]} == {"email", "password"}


def test_register_rejects_password_over_72_bytes(client):
    response = client.post("/api/register", json={"email": "a@x.com", "password": "x" * 73})
    assert response.status_code == 400


def test_login_returns_token_and_entitlement(client, make_user):
    make_user()

    response = client.post("/api/login", json={"email": "a@x.com", "password": "pw123456"})

    assert response.status_code == 200
    data = response.json()
    assert data["token"]
    assert data["isPremium"] is False
    assert data["isBasic"] is True
    assert data["subscription"]["plan"] == "basic"


def test_login_wrong_password(client, make_user):
    make_user()

    response = client.post("/api/login", json={"email": "a@x.com", "password": "wrong-password"})

    assert response.status_code == 401
    assert response.json()["error"] == "invalid_credentials"


def test_login_unknown_email_looks_like_wrong_password(client):
    response = client.post("/api/login", json={"email": "ghost@x.com", "password": "pw123456"})

    assert response.status_code == 401
    assert response.json()["error"] == "invalid_credentials"


def test_verify_session(client, make_user, auth_headers):
    user = make_user()

    response = client.get("/api/verify-session", headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json() == {"valid": True, "userId": user.id}


def test_verify_session_rejects_missing_and_expired_tokens(client, make_user):
    user = make_user()
    expired = create_access_token(user.id, user.email, expires_delta=timedelta(seconds=-1))

    assert client.get("/api/verify-session").status_code == 401
    response = client.get("/api/verify-session", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["error"] == "token_expired"


def test_profile_includes_entitlement(client, make_user, auth_headers, db_session):
    user = make_user()
    ledger_service.activate_plan(db_session, user.id, "premium", utcnow() + timedelta(days=30))
    db_session.commit()

    response = client.get("/api/profile", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()
    assert data["user"]["email"] == "a@x.com"
    assert data["isPremium"] is True
    assert data["isBasic"] is False
    assert data["subscription"]["plan"] == "premium"
    assert data["subscription"]["accessToken"]
    assert data["payments"] == []


def test_profile_requires_auth(client):
    assert client.get("/api/profile").status_code == 401


def test_profile_for_deleted_user(client, auth_headers):
    ghost = User(id=4242, email="ghost@x.com")
    response = client.get("/api/profile", headers=auth_headers(ghost))

    assert response.status_code == 401
    assert response.json()["error"] == "user_not_found"


def test_change_password(client, make_user, auth_headers, session_factory):
    user = make_user()

    response = client.post(
        "/api/user/change-password",
        json={"currentPassword": "pw123456", "newPassword": "new-password-1"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    with session_factory() as s:
        assert verify_password("new-password-1", s.get(User, user.id).password_hash)
    assert client.post("/api/login", json={"email": "a@x.com", "password": "new-password-1"}).status_code == 200


def test_change_password_wrong_current(client, make_user, auth_headers):
    user = make_user()

    response = client.post(
        "/api/user/change-password",
        json={"currentPassword": "nope-nope", "newPassword": "new-password-1"},
        headers=auth_headers(user),
    )

    assert response.status_code == 401


def test_delete_account_removes_owned_rows(client, make_user, auth_headers, session_factory, monkeypatch):
    user = make_user()
    canceled = []
    with session_factory() as s:
        ledger_service.activate_plan(s, user.id, "premium", utcnow() + timedelta(days=30), subscription_id="sub_del")
        s.add(SavedVehicle(user_id=user.id, year=2020, make="Toyota", model="Camry", mileage=1, reliability_data={}))
        s.commit()

    def fake_cancel(subscription_id):
        canceled.append(subscription_id)
        raise ExternalServiceError("Stripe down")

    monkeypatch.setattr(stripe_service, "cancel_subscription", fake_cancel)

    response = client.delete("/api/user/delete-account", headers=auth_headers(user))

    assert response.status_code == 200
    assert canceled == ["sub_del"]
    with session_factory() as s:
        assert s.get(User, user.id) is None
        assert s.query(EntitlementRecord).count() == 0
        assert s.query(SavedVehicle).count() == 0

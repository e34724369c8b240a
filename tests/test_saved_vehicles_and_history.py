"""
Saved vehicles and search history, scoped to the current user.
"""
from datetime import timedelta

from car_reliability.core.timeutils import utcnow
from car_reliability.db.models.saved_vehicle import SavedVehicle
from car_reliability.db.models.search_log import SearchLogEntry
from car_reliability.services import ledger_service

VEHICLE = {"year": 2019, "make": "Honda", "model": "Civic", "mileage": 30000, "reliability_data": {"overallScore": 85}}


def _add_vehicles(session_factory, user_id, count):
    with session_factory() as s:
        for i in range(count):
            s.add(SavedVehicle(user_id=user_id, year=2000 + i, make="Ford", model="Focus", mileage=i, reliability_data={}))
        s.commit()


def test_save_and_fetch_vehicle(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)

    created = client.post("/api/saved-vehicles", json=VEHICLE, headers=headers)

    assert created.status_code == 201
    vehicle_id = created.json()["id"]
    fetched = client.get(f"/api/saved-vehicles/{vehicle_id}", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json()["make"] == "Honda"
    assert fetched.json()["reliability_data"] == {"overallScore": 85}


def test_save_vehicle_defaults_mileage(client, make_user, auth_headers):
    user = make_user()
    body = {"year": 2019, "make": "Honda", "model": "Civic"}

    response = client.post("/api/saved-vehicles", json=body, headers=auth_headers(user))

    assert response.status_code == 201
    assert response.json()["mileage"] == 0


def test_saved_vehicles_require_auth(client):
    assert client.get("/api/saved-vehicles").status_code == 401
    assert client.post("/api/saved-vehicles", json=VEHICLE).status_code == 401


def test_other_users_vehicle_is_not_found(client, make_user, auth_headers):
    owner = make_user(email="owner@x.com")
    intruder = make_user(email="intruder@x.com")
    vehicle_id = client.post("/api/saved-vehicles", json=VEHICLE, headers=auth_headers(owner)).json()["id"]

    assert client.get(f"/api/saved-vehicles/{vehicle_id}", headers=auth_headers(intruder)).status_code == 404
    assert client.delete(f"/api/saved-vehicles/{vehicle_id}", headers=auth_headers(intruder)).status_code == 404
    assert client.get(f"/api/saved-vehicles/{vehicle_id}", headers=auth_headers(owner)).status_code == 200


def test_delete_vehicle(client, make_user, auth_headers, session_factory):
    user = make_user()
    headers = auth_headers(user)
    vehicle_id = client.post("/api/saved-vehicles", json=VEHICLE, headers=headers).json()["id"]

    response = client.delete(f"/api/saved-vehicles/{vehicle_id}", headers=headers)

    assert response.status_code == 200
    assert response.json()["id"] == vehicle_id
    with session_factory() as s:
        assert s.query(SavedVehicle).count() == 0


def test_list_limit_for_basic_user(client, make_user, auth_headers, session_factory):
    user = make_user()
    _add_vehicles(session_factory, user.id, 7)

    data = client.get("/api/saved-vehicles", headers=auth_headers(user)).json()

    assert len(data["savedVehicles"]) == 5
    assert data["subscription"] == {"plan": "basic", "limit": 5}


def test_list_limit_for_premium_user(client, make_user, auth_headers, session_factory, db_session):
    user = make_user()
    ledger_service.activate_plan(db_session, user.id, "premium", utcnow() + timedelta(days=30))
    db_session.commit()
    _add_vehicles(session_factory, user.id, 7)

    data = client.get("/api/saved-vehicles", headers=auth_headers(user)).json()

    assert len(data["savedVehicles"]) == 7
    assert data["subscription"] == {"plan": "premium", "limit": 20}


def test_lapsed_premium_user_gets_basic_limit(client, make_user, auth_headers, session_factory, db_session):
    user = make_user()
    record = ledger_service.activate_plan(db_session, user.id, "premium", utcnow() + timedelta(days=30))
    record.status = "past_due"
    db_session.commit()
    _add_vehicles(session_factory, user.id, 7)

    data = client.get("/api/saved-vehicles", headers=auth_headers(user)).json()

    assert len(data["savedVehicles"]) == 5


def test_search_history_is_newest_first_and_limited(client, make_user, auth_headers, session_factory):
    user = make_user()
    other = make_user(email="other@x.com")
    with session_factory() as s:
        for i in range(12):
            s.add(SearchLogEntry(user_id=user.id, year=2000 + i, make="Mazda", model="3", mileage=i, results={}))
        s.add(SearchLogEntry(user_id=other.id, year=1999, make="Kia", model="Rio", mileage=1, results={}))
        s.commit()

    response = client.get("/api/user/searches", headers=auth_headers(user))

    assert response.status_code == 200
    entries = response.json()
    assert len(entries) == 10
    assert entries[0]["year"] == 2011
    assert all(e["make"] == "Mazda" for e in entries)


def test_search_history_for_premium_user(client, make_user, auth_headers, session_factory, db_session):
    user = make_user()
    ledger_service.activate_plan(db_session, user.id, "professional", None)
    db_session.commit()
    with session_factory() as s:
        for i in range(12):
            s.add(SearchLogEntry(user_id=user.id, year=2000 + i, make="Mazda", model="3", mileage=i, results={}))
        s.commit()

    entries = client.get("/api/user/searches", headers=auth_headers(user)).json()

    assert len(entries) == 12


def test_report_request_appears_in_history(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    client.post("/api/car-reliability", json={"year": 2020, "make": "Toyota", "model": "Camry", "mileage": 45000}, headers=headers)

    entries = client.get("/api/user/searches", headers=headers).json()

    assert len(entries) == 1
    assert entries[0]["make"] == "Toyota"
    assert entries[0]["results"]["isPremium"] is False

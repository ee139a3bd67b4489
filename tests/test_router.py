"""Test the courts API routes with in-memory dependencies."""
from datetime import time, timedelta

import pytest
from fastapi.testclient import TestClient

from api.main import app
from fakes import NOW, TODAY, TOMORROW, FakeReads, FakeWriter, make_booking, make_strike
from verticals.courts.catalog import DEFINITIONS_BY_CODE
from verticals.courts.engine import RulesEngine
from verticals.courts.errors import NotFoundError
from verticals.courts.repository import (
    get_booking_service,
    get_rule_config_repository,
    get_rules_engine,
)
from verticals.courts.rule_config import validate_config
from verticals.courts.service import BookingService

HEADERS = {"X-Facility-ID": "fac-1"}
BOOKING = {
    "user_id": "user-1",
    "court_id": "court-1",
    "booking_date": TOMORROW.isoformat(),
    "start_time": "10:00",
    "end_time": "11:00",
}


class FakeRuleConfigRepository:
    def __init__(self):
        self.rows: list[dict] = []

    async def list(self, facility_id, page=1, limit=50, filters=None):
        code = (filters or {}).get("rule_code")
        rows = [r for r in self.rows if r["facility_id"] == facility_id and (not code or r["rule_code"] == code)]
        return rows[(page - 1) * limit: page * limit], len(rows)

    async def list_for_facility(self, facility_id, rule_code=None):
        rows, _ = await self.list(facility_id, filters={"rule_code": rule_code})
        return rows

    async def upsert(self, facility_id, rule_code, data):
        if rule_code not in DEFINITIONS_BY_CODE:
            raise NotFoundError("Rule", rule_code)
        validate_config(rule_code, data.get("rule_config") or {})
        row = {"id": f"rc-{len(self.rows) + 1}", "facility_id": facility_id, "rule_code": rule_code, **data}
        self.rows.append(row)
        return row

    async def delete_for_rule(self, facility_id, rule_code):
        before = len(self.rows)
        self.rows = [
            r for r in self.rows if not (r["facility_id"] == facility_id and r["rule_code"] == rule_code)
        ]
        return before - len(self.rows)


@pytest.fixture
def store():
    return FakeReads(strikes=[make_strike(NOW - timedelta(days=d)) for d in (9, 4, 1)])


@pytest.fixture
def client(store):
    engine = RulesEngine(store, clock=lambda: NOW)
    service = BookingService(engine, FakeWriter(store))
    repo = FakeRuleConfigRepository()

    app.dependency_overrides[get_rules_engine] = lambda: engine
    app.dependency_overrides[get_booking_service] = lambda: service
    app.dependency_overrides[get_rule_config_repository] = lambda: repo
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    data = client.get("/health").json()
    assert data["status"] == "healthy"
    assert data["rules_loaded"] == 26


def test_validate_requires_facility_header(client):
    response = client.post("/api/courts/bookings/validate", json=BOOKING)
    assert response.status_code == 400


def test_validate_returns_blockers(client):
    response = client.post("/api/courts/bookings/validate", json=BOOKING, headers=HEADERS)
    assert response.status_code == 200
    data = response.json()
    assert data["allowed"] is False
    assert [b["rule_code"] for b in data["blockers"]] == ["ACC-009"]
    assert len(data["results"]) == 26


def test_validate_unknown_court_is_404(client):
    response = client.post(
        "/api/courts/bookings/validate", json={**BOOKING, "court_id": "nope"}, headers=HEADERS
    )
    assert response.status_code == 404


def test_validate_inverted_times_is_422(client):
    response = client.post(
        "/api/courts/bookings/validate",
        json={**BOOKING, "start_time": "11:00", "end_time": "10:00"},
        headers=HEADERS,
    )
    assert response.status_code == 422


def test_validate_override_returns_audit(client):
    body = {**BOOKING, "admin_id": "admin-1", "reason": "Coach exception"}
    response = client.post("/api/courts/bookings/validate-override", json=body, headers=HEADERS)
    assert response.status_code == 200
    data = response.json()
    assert data["allowed"] is True
    assert data["override"]["overridden_rule_codes"] == ["ACC-009"]


def test_strike_check(client):
    response = client.get("/api/courts/strikes/check/user-1", headers=HEADERS)
    data = response.json()
    assert data["is_locked_out"] is True
    assert data["strike_count"] == 3

    response = client.get("/api/courts/strikes/check/user-1?facility_id=fac-1")
    assert response.json()["facility_id"] == "fac-1"

    assert client.get("/api/courts/strikes/check/user-1").status_code == 400


def test_create_booking_conflict_is_409(client):
    response = client.post("/api/courts/bookings", json=BOOKING, headers=HEADERS)
    assert response.status_code == 409
    assert response.json()["detail"]["evaluation"]["allowed"] is False


def test_create_booking(client, store):
    store.strikes.clear()
    response = client.post("/api/courts/bookings", json=BOOKING, headers=HEADERS)
    assert response.status_code == 201
    assert response.json()["booking"]["user_id"] == "user-1"


def test_override_booking(client):
    body = {**BOOKING, "admin_id": "admin-1", "reason": "Coach exception"}
    response = client.post("/api/courts/bookings/override", json=body, headers=HEADERS)
    assert response.status_code == 201
    assert response.json()["override"]["admin_id"] == "admin-1"


def test_cancel_and_preview(client, store):
    store.add_booking(make_booking(id="bk-9", booking_date=TODAY, start_time=time(11)))
    body = {"user_id": "user-1", "booking_id": "bk-9"}

    preview = client.post("/api/courts/cancellations/evaluate", json=body, headers=HEADERS)
    assert preview.json()["strike_will_be_issued"] is True

    stranger = client.post("/api/courts/bookings/bk-9/cancel", json={"user_id": "user-2"}, headers=HEADERS)
    assert stranger.status_code == 404

    response = client.post("/api/courts/bookings/bk-9/cancel", json={"user_id": "user-1"}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["strike_id"] is not None

    again = client.post("/api/courts/bookings/bk-9/cancel", json={"user_id": "user-1"}, headers=HEADERS)
    assert again.status_code == 409


def test_no_show(client, store):
    store.add_booking(make_booking(id="bk-ns"))
    response = client.post("/api/courts/bookings/bk-ns/no-show", json={}, headers=HEADERS)
    assert response.status_code == 200
    assert client.post("/api/courts/bookings/missing/no-show", json={}, headers=HEADERS).status_code == 404


def test_rule_definitions(client):
    data = client.get("/api/courts/rules/definitions?category=account").json()
    assert data["count"] == 11


def test_rule_config_lifecycle(client):
    url = "/api/courts/rules/configs/ACC-002"
    response = client.put(url, json={"rule_config": {"max_per_week": 5}}, headers=HEADERS)
    assert response.status_code == 200

    data = client.get(url, headers=HEADERS).json()
    assert data["default_config"]["max_per_week"] == 3
    assert data["data"][0]["rule_config"] == {"max_per_week": 5}

    listing = client.get("/api/courts/rules/configs", headers=HEADERS).json()
    assert listing["pagination"]["total"] == 1

    assert client.delete(url, headers=HEADERS).status_code == 204
    assert client.delete(url, headers=HEADERS).status_code == 404


def test_rule_config_validation_errors(client):
    bad = client.put(
        "/api/courts/rules/configs/CRT-005", json={"rule_config": {"slot_minutes": 0}}, headers=HEADERS
    )
    assert bad.status_code == 422
    unknown = client.put("/api/courts/rules/configs/XYZ-1", json={}, headers=HEADERS)
    assert unknown.status_code == 404

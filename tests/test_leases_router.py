from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from shared.core.auth import create_access_token, validate_current_token
from shared.core.database import get_leasing_db
from shared.core.schemas import UserToken
from shared.utils.app_status_code import AppStatusCode
from leasing_service.app.core.exceptions import Busy
from leasing_service.app.core.services import get_expiry_sweeper, get_lease_engine
from leasing_service.app.main import app

from .conftest import PROPERTY_A


@pytest.fixture
def current_user():
    return {"token": UserToken(user_id="admin-1", role="admin")}


@pytest.fixture
def client(lease_engine, sweeper, session_factory, current_user):
    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[validate_current_token] = lambda: current_user["token"]
    app.dependency_overrides[get_lease_engine] = lambda: lease_engine
    app.dependency_overrides[get_expiry_sweeper] = lambda: sweeper
    app.dependency_overrides[get_leasing_db] = override_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def lease_body(unit, tenant):
    def _body(start, end, **extra):
        return {
            "unit_id": str(unit),
            "tenant_id": str(tenant),
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "amount": "1200.00",
            **extra,
        }
    return _body


def test_create_lease_returns_201(client, lease_body):
    response = client.post("/api/leases/", json=lease_body(date(2025, 1, 1), date(2025, 2, 1)))

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "active"
    assert body["reference"].startswith("LEASE-JEAN-MUGISHA-")


def test_overlap_returns_409_with_conflicting_lease(client, lease_body):
    first = client.post("/api/leases/", json=lease_body(date(2025, 1, 1), date(2025, 3, 1))).json()

    response = client.post("/api/leases/", json=lease_body(date(2025, 2, 1), date(2025, 4, 1)))

    assert response.status_code == 409
    body = response.json()
    assert body["status"] == "Failure"
    assert body["status_code"] == AppStatusCode.DUPLICATE_ADD_ERROR
    assert body["data"]["kind"] == "overlap_conflict"
    assert body["data"]["retryable"] is False
    assert body["data"]["conflicting_lease"]["id"] == first["id"]


def test_inverted_interval_returns_400(client, lease_body):
    response = client.post("/api/leases/", json=lease_body(date(2025, 3, 1), date(2025, 2, 1)))

    assert response.status_code == 400
    assert response.json()["data"]["kind"] == "validation_error"


def test_malformed_body_returns_422(client, unit):
    response = client.post("/api/leases/", json={"unit_id": str(unit)})

    assert response.status_code == 422
    assert response.json()["status_code"] == AppStatusCode.INVALID_INPUT


def test_unknown_lease_returns_404(client):
    response = client.get("/api/leases/00000000-0000-0000-0000-000000000001")

    assert response.status_code == 404
    assert response.json()["data"]["kind"] == "not_found"


def test_update_lease(client, lease_body):
    created = client.post("/api/leases/", json=lease_body(date(2025, 1, 1), date(2025, 2, 1))).json()

    response = client.put(f"/api/leases/{created['id']}", json={"amount": "1500.00"})

    assert response.status_code == 200
    assert Decimal(response.json()["amount"]) == Decimal("1500.00")


def test_cancel_twice_is_idempotent(client, lease_body):
    created = client.post("/api/leases/", json=lease_body(date(2025, 1, 1), date(2025, 2, 1))).json()

    first = client.delete(f"/api/leases/{created['id']}")
    second = client.delete(f"/api/leases/{created['id']}")

    assert first.status_code == 200
    assert first.json() == {"lease_id": created["id"], "status": "cancelled", "already_cancelled": False}
    assert second.json()["already_cancelled"] is True
    assert client.get(f"/api/leases/{created['id']}").status_code == 404


def test_list_filters_on_effective_status(client, insert_lease):
    insert_lease(date(2024, 1, 1), date(2024, 6, 1))
    insert_lease(date(2025, 1, 1), date(2025, 6, 1))

    response = client.get("/api/leases/all", params={"status": "expired"})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["leases"][0]["status"] == "expired"
    assert body["leases"][0]["stored_status"] == "active"
    assert body["leases"][0]["tenant"]["name"] == "Jean Mugisha"


def test_employee_cannot_create(client, current_user, lease_body):
    current_user["token"] = UserToken(user_id="emp-1", role="employee")

    response = client.post("/api/leases/", json=lease_body(date(2025, 1, 1), date(2025, 2, 1)))

    assert response.status_code == 403
    assert response.json()["data"]["kind"] == "access_denied"


def test_unknown_role_is_denied(client, current_user, lease_body):
    current_user["token"] = UserToken(user_id="x-1", role="janitor")

    response = client.post("/api/leases/", json=lease_body(date(2025, 1, 1), date(2025, 2, 1)))

    assert response.status_code == 403


def test_manager_cannot_trigger_sweep(client, current_user):
    current_user["token"] = UserToken(user_id="manager-1", role="manager", property_ids=[PROPERTY_A])

    response = client.post("/api/leases/expire")

    assert response.status_code == 403


def test_admin_triggers_sweep(client, insert_lease):
    lease_id = insert_lease(date(2024, 1, 1), date(2024, 6, 1))

    response = client.post("/api/leases/expire")

    assert response.status_code == 200
    assert response.json() == {"updated_count": 1, "expired_ids": [str(lease_id)]}
    assert client.post("/api/leases/expire").json()["updated_count"] == 0


def test_status_lookup(client):
    response = client.get("/api/leases/status-lookup")

    assert [item["id"] for item in response.json()] == ["active", "expired", "cancelled"]


def test_health(client):
    assert client.get("/api/health").json() == {"status": "healthy"}


# ----------------------------------------------------
# Real tokens
# ----------------------------------------------------
@pytest.fixture
def token_client(lease_engine):
    app.dependency_overrides[get_lease_engine] = lambda: lease_engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_signed_token_is_accepted(token_client):
    token = create_access_token({"user_id": "admin-1", "role": "admin", "property_ids": [PROPERTY_A]})

    response = token_client.get("/api/leases/all", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["total"] == 0


def test_bad_token_returns_401(token_client):
    response = token_client.get("/api/leases/all", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401
    assert response.json()["status_code"] == AppStatusCode.AUTHENTICATION_TOKEN_EXPIRED


def test_busy_returns_503_with_retry_after(client):
    class BusyEngine:
        def list_leases(self, params):
            raise Busy("The lease store is busy, retry shortly")

    app.dependency_overrides[get_lease_engine] = lambda: BusyEngine()

    response = client.get("/api/leases/all")

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.json()["data"] == {"kind": "busy", "retryable": True}

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from slotbook.config.database import get_db
from slotbook.main import create_app
from slotbook.models import Appointment
from slotbook.repositories.booking_repositories import BusinessRepository

from tests.conftest import API_TOKEN, create_access_token

# The HTTP layer runs on the real clock, so book a week ahead
DAY = (datetime.now(timezone.utc) + timedelta(days=7)).date()


@pytest.fixture
def client(session_factory):
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def public_headers():
    return {"Authorization": f"Bearer {API_TOKEN}"}


@pytest.fixture
def operator_headers(business):
    token = create_access_token({"sub": "operator-1", "business_id": str(business.id)})
    return {"Authorization": f"Bearer {token}"}


def booking_body(professional, service, at="10:00", **extra):
    body = {
        "professional_id": str(professional.id),
        "service_id": str(service.id),
        "customer_name": "Joana",
        "customer_phone": "+5511977776666",
        "date": DAY.isoformat(),
        "time": at,
    }
    body.update(extra)
    return body


# ============================================================================
# Public booking page
# ============================================================================

def test_public_availability(client, business, professional, service, public_headers):
    response = client.get(
        f"/api/v1/public/businesses/{business.id}/availability",
        params={"professional_id": str(professional.id), "service_id": str(service.id), "date": DAY.isoformat()},
        headers=public_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["slots"][0] == "09:00"
    assert data["slots"][-1] == "17:00"


def test_public_availability_requires_token(client, business, professional, service):
    params = {"professional_id": str(professional.id), "service_id": str(service.id), "date": DAY.isoformat()}

    missing = client.get(f"/api/v1/public/businesses/{business.id}/availability", params=params)
    wrong = client.get(
        f"/api/v1/public/businesses/{business.id}/availability",
        params=params,
        headers={"Authorization": "Bearer bk_nope"},
    )

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert wrong.json()["error"] == "unauthorized"


def test_public_booking_flow(client, session_factory, business, professional, service, public_headers):
    response = client.post(
        f"/api/v1/public/businesses/{business.id}/appointments",
        json=booking_body(professional, service, channel="bot"),
        headers=public_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["source"] == "bot"
    assert data["duration_minutes"] == 60

    check = client.get(
        f"/api/v1/public/businesses/{business.id}/availability/check",
        params={
            "professional_id": str(professional.id),
            "service_id": str(service.id),
            "date": DAY.isoformat(),
            "time": "11:00",
        },
        headers=public_headers,
    )
    assert check.status_code == 200
    assert check.json() == {"available": False}


def test_public_booking_conflict_returns_409(client, business, professional, service, public_headers):
    url = f"/api/v1/public/businesses/{business.id}/appointments"
    assert client.post(url, json=booking_body(professional, service), headers=public_headers).status_code == 201

    response = client.post(url, json=booking_body(professional, service, at="10:30"), headers=public_headers)

    assert response.status_code == 409
    assert response.json()["error"] == "slot_no_longer_available"
    assert response.json()["reason"] == "appointment"


def test_public_booking_idempotency_header(client, session_factory, business, professional, service, public_headers):
    url = f"/api/v1/public/businesses/{business.id}/appointments"
    headers = {**public_headers, "Idempotency-Key": "checkout-42"}

    first = client.post(url, json=booking_body(professional, service), headers=headers)
    second = client.post(url, json=booking_body(professional, service), headers=headers)

    assert first.json()["id"] == second.json()["id"]
    session = session_factory()
    try:
        assert session.query(Appointment).count() == 1
    finally:
        session.close()


def test_public_booking_with_wrong_token_writes_nothing(client, session_factory, business, professional, service):
    response = client.post(
        f"/api/v1/public/businesses/{business.id}/appointments",
        json=booking_body(professional, service),
        headers={"Authorization": "Bearer bk_stolen"},
    )

    assert response.status_code == 401
    session = session_factory()
    try:
        assert session.query(Appointment).count() == 0
    finally:
        session.close()


def test_malformed_time_returns_422(client, business, professional, service, public_headers):
    response = client.post(
        f"/api/v1/public/businesses/{business.id}/appointments",
        json=booking_body(professional, service, at="tomorrow"),
        headers=public_headers,
    )
    assert response.status_code == 422
    assert response.json()["error"] == "invalid_booking_request"


def test_unknown_business_returns_404(client, public_headers, professional, service):
    response = client.get(
        f"/api/v1/public/businesses/{uuid.uuid4()}/availability",
        params={"professional_id": str(professional.id), "service_id": str(service.id), "date": DAY.isoformat()},
        headers=public_headers,
    )
    assert response.status_code == 404


def test_public_any_professional(client, business, make_professional, service, public_headers):
    make_professional(name="Ana")
    make_professional(name="Bruno")

    response = client.get(
        f"/api/v1/public/businesses/{business.id}/availability/any",
        params={"service_id": str(service.id), "date": DAY.isoformat()},
        headers=public_headers,
    )

    assert response.status_code == 200
    assert len(response.json()["slots"]) == 9


# ============================================================================
# Operator dashboard
# ============================================================================

def test_dashboard_requires_jwt(client, professional, service):
    response = client.post("/api/v1/dashboard/appointments", json=booking_body(professional, service))
    assert response.status_code == 401


def test_operator_books_cancels_and_reschedules(client, business, professional, service, operator_headers):
    created = client.post(
        "/api/v1/dashboard/appointments",
        json=booking_body(professional, service),
        headers=operator_headers,
    )
    assert created.status_code == 201
    appointment_id = created.json()["id"]
    assert created.json()["source"] == "operator"

    moved = client.post(
        f"/api/v1/dashboard/appointments/{appointment_id}/reschedule",
        json={"date": DAY.isoformat(), "time": "15:00"},
        headers=operator_headers,
    )
    assert moved.status_code == 200
    assert moved.json()["id"] == appointment_id

    cancelled = client.patch(
        f"/api/v1/dashboard/appointments/{appointment_id}/status",
        json={"status": "cancelled", "reason": "Rain"},
        headers=operator_headers,
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["cancellation_reason"] == "Rain"

    revived = client.patch(
        f"/api/v1/dashboard/appointments/{appointment_id}/status",
        json={"status": "confirmed"},
        headers=operator_headers,
    )
    assert revived.status_code == 409
    assert revived.json()["error"] == "invalid_status_transition"


def test_operator_agenda_availability(client, business, professional, service, operator_headers):
    response = client.get(
        "/api/v1/dashboard/availability",
        params={"service_id": str(service.id), "date": DAY.isoformat(), "professional_id": str(professional.id)},
        headers=operator_headers,
    )
    assert response.status_code == 200
    assert len(response.json()["slots"]) == 9


def test_rotate_api_token(client, business, professional, service, operator_headers, public_headers):
    rotated = client.post("/api/v1/dashboard/booking-settings/api-token", headers=operator_headers)

    assert rotated.status_code == 200
    new_token = rotated.json()["api_token"]
    assert new_token.startswith("bk_") and new_token != API_TOKEN

    params = {"professional_id": str(professional.id), "service_id": str(service.id), "date": DAY.isoformat()}
    url = f"/api/v1/public/businesses/{business.id}/availability"
    assert client.get(url, params=params, headers=public_headers).status_code == 401
    assert client.get(url, params=params, headers={"Authorization": f"Bearer {new_token}"}).status_code == 200


def test_available_now(client, monkeypatch, business, professional, service, operator_headers):
    monkeypatch.setattr(
        "slotbook.services.availability.availability_service.utc_now",
        lambda: datetime(2025, 3, 10, 10, 30, tzinfo=timezone.utc),
    )

    response = client.get(
        "/api/v1/dashboard/available-now",
        params={"service_id": str(service.id)},
        headers=operator_headers,
    )

    assert response.status_code == 200
    professionals = response.json()["professionals"]
    assert len(professionals) == 1
    assert professionals[0]["professional_id"] == str(professional.id)
    assert professionals[0]["free_minutes"] == 450


# ============================================================================
# Storage failures
# ============================================================================

def test_storage_failure_returns_503_with_retry_after(client, monkeypatch, business, professional, service,
                                                      public_headers):
    def connection_lost(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection lost"))

    monkeypatch.setattr(BusinessRepository, "get_booking_settings", connection_lost)

    response = client.get(
        f"/api/v1/public/businesses/{business.id}/availability",
        params={"professional_id": str(professional.id), "service_id": str(service.id), "date": DAY.isoformat()},
        headers=public_headers,
    )

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.json()["error"] == "storage_unavailable"


# ============================================================================
# Monitoring
# ============================================================================

def test_health(client):
    response = client.get("/health/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_detailed_health_pings_database(client):
    response = client.get("/health/detailed")
    assert response.json()["database"] == "healthy"
    assert response.json()["overall"] == "healthy"


def test_correlation_id_is_echoed(client):
    response = client.get("/health/", headers={"X-Correlation-ID": "trace-abc"})
    assert response.headers["X-Correlation-ID"] == "trace-abc"

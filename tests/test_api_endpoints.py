import pytest
from fastapi.testclient import TestClient

from inkbook.core.dependencies import get_orchestrator
from inkbook.main import create_app
from inkbook.services.availability_service import ScheduleAvailabilityService
from inkbook.services.booking_lifecycle import BookingLifecycleOrchestrator
from inkbook.services.memory_store import InMemoryBookingRepository, InMemoryReviewStore
from inkbook.services.notification_service import LoggingNotifier

BASE = "/api/v1/bookings"
SLOT = "2025-03-01T14:00:00Z"


@pytest.fixture
def client(settings):
    orchestrator = BookingLifecycleOrchestrator(
        repository=InMemoryBookingRepository(),
        availability=ScheduleAvailabilityService(),
        notifier=LoggingNotifier(),
        review_store=InMemoryReviewStore(),
        settings=settings,
    )
    app = create_app()
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(app) as test_client:
        yield test_client


def agree(client, customer_id="C1"):
    response = client.post(
        f"{BASE}/consent",
        json={"customer_id": customer_id, "version": "2024-01", "agreement_text": "I accept"},
    )
    assert response.status_code == 200
    return response.json()


def create(client, customer_id="C1", artist_id="A1"):
    return client.post(
        BASE,
        json={
            "customer_id": customer_id,
            "artist_id": artist_id,
            "description": "Botanical half sleeve",
            "body_location": "upper arm",
            "preferred_date": SLOT,
            "estimated_duration": 90,
        },
    )


def confirm(client, booking_id, when=SLOT, duration=90):
    return client.post(
        f"{BASE}/{booking_id}/confirm",
        json={"confirmed_date": when, "confirmed_price": 30000, "confirmed_duration": duration},
    )


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_consent_status(client):
    before = client.get(f"{BASE}/consent/C1").json()
    assert before["legal_consent_state"] == "notAgreed"
    assert before["can_create_booking"] is False
    assert before["version"] is None
    assert before["current_terms_version"]

    after = agree(client)
    assert after["legal_consent_state"] == "agreed"
    assert after["can_create_booking"] is True


def test_create_without_consent_is_rejected(client):
    response = create(client)

    assert response.status_code == 422
    assert response.json()["error"] == "PreconditionFailed"


def test_create_and_fetch_booking(client):
    agree(client)

    created = create(client)
    assert created.status_code == 201
    body = created.json()
    assert body["booking"]["state"] == "requested"
    assert body["can_confirm"] is True
    assert body["can_write_review"] is False

    booking_id = body["booking"]["id"]
    fetched = client.get(f"{BASE}/{booking_id}")
    assert fetched.status_code == 200
    assert fetched.json()["booking"]["customer_id"] == "C1"

    listed = client.get(BASE, params={"participant_id": "A1", "role": "artist"})
    assert [b["booking"]["id"] for b in listed.json()] == [booking_id]


def test_unknown_booking_is_404(client):
    assert client.get(f"{BASE}/missing").status_code == 404
    assert client.post(f"{BASE}/missing/complete").status_code == 404


def test_invalid_payload_is_422(client):
    agree(client)
    booking_id = create(client).json()["booking"]["id"]

    response = client.post(
        f"{BASE}/{booking_id}/confirm",
        json={"confirmed_date": SLOT, "confirmed_price": -1, "confirmed_duration": 90},
    )

    assert response.status_code == 422


def test_full_lifecycle_through_review(client):
    agree(client)
    booking_id = create(client).json()["booking"]["id"]

    confirmed = confirm(client, booking_id)
    assert confirmed.status_code == 200
    assert confirmed.json()["booking"]["state"] == "confirmed"
    assert confirmed.json()["booking"]["confirmed_price"] == 30000

    completed = client.post(f"{BASE}/{booking_id}/complete", json={"completed_by": "A1"})
    assert completed.status_code == 200
    assert completed.json()["booking"]["state"] == "completed"
    assert completed.json()["can_write_review"] is True

    review = {"rating": 5, "comment": "Clean lines, great aftercare advice"}
    submitted = client.post(f"{BASE}/{booking_id}/review", json=review)
    assert submitted.status_code == 200
    assert submitted.json()["booking"]["review_state"] == "submitted"

    again = client.post(f"{BASE}/{booking_id}/review", json=review)
    assert again.status_code == 409
    assert again.json()["error"] == "StateViolation"

    history = client.get(f"{BASE}/{booking_id}/history").json()
    assert history[0]["from_state"] == "idle"
    assert history[-1]["to_state"] == "completed"


def test_cancel_twice_is_409(client):
    agree(client)
    booking_id = create(client).json()["booking"]["id"]
    payload = {"reason": "Moving abroad", "cancelled_by": "C1"}

    first = client.post(f"{BASE}/{booking_id}/cancel", json=payload)
    second = client.post(f"{BASE}/{booking_id}/cancel", json=payload)

    assert first.status_code == 200
    assert first.json()["booking"]["state"] == "cancelled"
    assert second.status_code == 409


def test_blank_cancel_reason_is_422(client):
    agree(client)
    booking_id = create(client).json()["booking"]["id"]

    response = client.post(f"{BASE}/{booking_id}/cancel", json={"reason": "   "})

    assert response.status_code == 422


def test_conflicting_confirmation_returns_outcome(client):
    agree(client, "C1")
    agree(client, "C2")
    first_id = create(client, "C1").json()["booking"]["id"]
    second_id = create(client, "C2").json()["booking"]["id"]
    assert confirm(client, first_id).status_code == 200

    response = confirm(client, second_id, when="2025-03-01T15:00:00Z", duration=60)

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "ConflictDetected"
    assert body["outcome"]["winner_id"] == first_id
    assert body["outcome"]["loser_id"] == second_id
    assert len(body["outcome"]["alternatives"]) > 0
    assert client.get(f"{BASE}/{second_id}").json()["booking"]["state"] != "confirmed"


def test_suggest_alternative_slots(client):
    response = client.get(f"{BASE}/alternatives/A1", params={"date": SLOT, "duration": 60})

    assert response.status_code == 200
    starts = response.json()
    assert starts[0].startswith("2025-03-01T10:00:00")


def test_consent_to_outdated_terms_blocks_booking(client):
    response = client.post(
        f"{BASE}/consent",
        json={"customer_id": "C1", "version": "1999-01", "agreement_text": "Old terms"},
    )

    assert response.json()["legal_consent_state"] == "notAgreed"
    assert response.json()["can_create_booking"] is False
    assert create(client).status_code == 422

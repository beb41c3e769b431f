from datetime import datetime, timezone

import pytest

from inkbook.core.exceptions import PreconditionFailed, StateViolation
from inkbook.models.enums import BookingState, LegalConsentState, ReviewState
from inkbook.models.schemas import Booking
from inkbook.services import review_gate
from inkbook.services.consent_gate import LegalConsentGate
from inkbook.services.memory_store import InMemoryBookingRepository

WHEN = datetime(2025, 3, 1, 14, 0, tzinfo=timezone.utc)


def make_booking(**kwargs) -> Booking:
    fields = {"customer_id": "C1", "artist_id": "A1", "preferred_date": WHEN}
    fields.update(kwargs)
    return Booking(**fields)


# ── Review Unlock Gate ───────────────────────────────────────────────────────


@pytest.mark.parametrize("review_state", list(ReviewState))
def test_cannot_write_review_without_studio_visit(review_state):
    booking = make_booking(review_state=review_state, visited_studio=False)
    assert review_gate.can_write_review(booking) is False


def test_can_write_review_when_unlocked_and_visited():
    booking = make_booking(
        state=BookingState.COMPLETED, review_state=ReviewState.UNLOCKED, visited_studio=True
    )
    assert review_gate.can_write_review(booking) is True


def test_unlock_requires_studio_visit():
    booking = make_booking(state=BookingState.COMPLETED, visited_studio=False)

    with pytest.raises(PreconditionFailed):
        review_gate.unlock_review(booking)


def test_unlock_requires_completion():
    booking = make_booking(state=BookingState.CONFIRMED, visited_studio=True)

    with pytest.raises(PreconditionFailed):
        review_gate.unlock_review(booking)


def test_unlock_then_submit():
    booking = make_booking(state=BookingState.COMPLETED, visited_studio=True)

    unlocked = review_gate.unlock_review(booking)
    submitted = review_gate.submit_review(unlocked)

    assert booking.review_state == ReviewState.LOCKED
    assert unlocked.review_state == ReviewState.UNLOCKED
    assert submitted.review_state == ReviewState.SUBMITTED


@pytest.mark.parametrize("review_state", [ReviewState.LOCKED, ReviewState.SUBMITTED])
def test_submit_only_from_unlocked(review_state):
    booking = make_booking(
        state=BookingState.COMPLETED, visited_studio=True, review_state=review_state
    )
    with pytest.raises(StateViolation):
        review_gate.submit_review(booking)


def test_studio_visit_needs_confirmed_booking():
    with pytest.raises(PreconditionFailed):
        review_gate.mark_studio_visited(make_booking(state=BookingState.PENDING))

    visited = review_gate.mark_studio_visited(make_booking(state=BookingState.CONFIRMED))
    assert visited.visited_studio is True


# ── Legal Consent Gate ───────────────────────────────────────────────────────


@pytest.fixture
def gate(settings):
    return LegalConsentGate(InMemoryBookingRepository(), settings)


@pytest.mark.asyncio
async def test_consent_round_trip(gate, settings):
    assert await gate.can_create_booking("C1") is False

    await gate.agree_legal_terms("C1", settings.LEGAL_TERMS_VERSION, "terms")

    assert await gate.state_for("C1") == LegalConsentState.AGREED
    assert await gate.can_create_booking("C1") is True
    assert await gate.can_create_booking("C1", BookingState.CANCELLED) is False


@pytest.mark.asyncio
async def test_re_agreeing_overwrites_consent(gate, settings):
    first = await gate.agree_legal_terms("C1", "2023-06", "old terms")
    second = await gate.agree_legal_terms("C1", settings.LEGAL_TERMS_VERSION, "new terms")

    stored = await gate.consent_for("C1")
    assert stored == second
    assert stored.version == settings.LEGAL_TERMS_VERSION
    assert stored.accepted_at >= first.accepted_at


@pytest.mark.asyncio
async def test_consent_to_superseded_terms_does_not_count(gate):
    await gate.agree_legal_terms("C9", "1999-old", "terms nobody uses anymore")

    assert await gate.state_for("C9") == LegalConsentState.NOT_AGREED
    assert await gate.can_create_booking("C9") is False
    with pytest.raises(PreconditionFailed, match="current terms"):
        await gate.require_consent("C9")


@pytest.mark.asyncio
async def test_require_consent(gate):
    with pytest.raises(PreconditionFailed):
        await gate.require_consent("C9")


@pytest.mark.asyncio
async def test_consent_is_read_back_from_the_repository(settings):
    repository = InMemoryBookingRepository()
    await LegalConsentGate(repository, settings).agree_legal_terms(
        "C1", settings.LEGAL_TERMS_VERSION, "terms"
    )

    restarted = LegalConsentGate(repository, settings)

    assert await restarted.can_create_booking("C1") is True
    assert (await restarted.require_consent("C1")).customer_id == "C1"

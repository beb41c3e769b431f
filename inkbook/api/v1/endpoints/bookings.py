"""
Inkbook — Booking API endpoints
Consent, booking lifecycle transitions, reviews, conflicts and history.
Lifecycle errors are mapped to HTTP responses by the app's exception handlers.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, status

from inkbook.core.dependencies import AppSettings, Orchestrator
from inkbook.models.enums import ParticipantRole
from inkbook.models.schemas import (
    Booking,
    BookingCancelSchema,
    BookingCompleteSchema,
    BookingConfirmSchema,
    BookingCreateSchema,
    BookingResponse,
    ConflictOutcome,
    ConsentSchema,
    ConsentStatusResponse,
    ReviewSubmitSchema,
    TransitionLedgerEntry,
)
from inkbook.services import booking_state_machine as machine
from inkbook.services import review_gate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])


def _respond(booking: Booking) -> BookingResponse:
    return BookingResponse(
        booking=booking,
        can_write_review=review_gate.can_write_review(booking),
        can_confirm=booking.state in machine.CONFIRMABLE_STATES,
    )


# ── Legal Consent ────────────────────────────────────────────────────────────


@router.post(
    "/consent",
    response_model=ConsentStatusResponse,
    summary="Agree to the booking terms",
)
async def agree_legal_terms(
    data: ConsentSchema, engine: Orchestrator, settings: AppSettings
) -> ConsentStatusResponse:
    consent = await engine.agree_legal_terms(data.customer_id, data.version, data.agreement_text)
    return ConsentStatusResponse(
        customer_id=consent.customer_id,
        legal_consent_state=await engine.consent.state_for(consent.customer_id),
        version=consent.version,
        can_create_booking=await engine.can_create_booking(consent.customer_id),
        current_terms_version=settings.LEGAL_TERMS_VERSION,
    )


@router.get(
    "/consent/{customer_id}",
    response_model=ConsentStatusResponse,
    summary="Get a customer's consent status",
)
async def get_consent_status(
    customer_id: str, engine: Orchestrator, settings: AppSettings
) -> ConsentStatusResponse:
    consent = await engine.consent.consent_for(customer_id)
    return ConsentStatusResponse(
        customer_id=customer_id,
        legal_consent_state=await engine.consent.state_for(customer_id),
        version=consent.version if consent else None,
        can_create_booking=await engine.can_create_booking(customer_id),
        current_terms_version=settings.LEGAL_TERMS_VERSION,
    )


# ── Availability ─────────────────────────────────────────────────────────────


@router.get(
    "/alternatives/{artist_id}",
    response_model=list[datetime],
    summary="Suggest free start times for an artist on a given day",
)
async def suggest_alternative_slots(
    artist_id: str,
    date: datetime,
    engine: Orchestrator,
    duration: int | None = None,
) -> list[datetime]:
    return list(await engine.suggest_alternative_slots(artist_id, date, duration))


# ── Booking CRUD ─────────────────────────────────────────────────────────────


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a booking request",
    description="Requires agreed legal terms. The booking moves to 'pending' shortly after.",
)
async def create_booking(data: BookingCreateSchema, engine: Orchestrator) -> BookingResponse:
    booking = await engine.create_booking_request(data.customer_id, data.artist_id, data.details())
    logger.info("📥 Booking request %s created for artist %s", booking.id, booking.artist_id)
    return _respond(booking)


@router.get(
    "",
    response_model=list[BookingResponse],
    summary="List a participant's bookings",
)
async def list_bookings(
    participant_id: str,
    engine: Orchestrator,
    role: ParticipantRole = ParticipantRole.CUSTOMER,
) -> list[BookingResponse]:
    return [_respond(b) for b in await engine.list_bookings(participant_id, role)]


@router.get("/{booking_id}", response_model=BookingResponse, summary="Get a booking")
async def get_booking(booking_id: str, engine: Orchestrator) -> BookingResponse:
    return _respond(await engine.get_booking(booking_id))


@router.get(
    "/{booking_id}/history",
    response_model=list[TransitionLedgerEntry],
    summary="Transition history of a booking",
)
async def get_transition_history(
    booking_id: str, engine: Orchestrator
) -> list[TransitionLedgerEntry]:
    await engine.get_booking(booking_id)
    return list(await engine.get_transition_history(booking_id))


# ── State Transitions ────────────────────────────────────────────────────────


@router.post("/{booking_id}/accept", response_model=BookingResponse, summary="Accept a pending booking")
async def accept_booking(booking_id: str, engine: Orchestrator) -> BookingResponse:
    return _respond(await engine.accept_booking(booking_id))


@router.post(
    "/{booking_id}/confirm",
    response_model=BookingResponse,
    summary="Confirm date, price and duration",
    description="Returns 409 with the conflict outcome if a confirmed booking already holds the time.",
)
async def confirm_booking(
    booking_id: str, data: BookingConfirmSchema, engine: Orchestrator
) -> BookingResponse:
    booking = await engine.confirm_booking(
        booking_id,
        data.confirmed_date,
        data.confirmed_price,
        data.confirmed_duration,
    )
    return _respond(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse, summary="Cancel a booking")
async def cancel_booking(
    booking_id: str, data: BookingCancelSchema, engine: Orchestrator
) -> BookingResponse:
    return _respond(await engine.cancel_booking(booking_id, data.reason, data.cancelled_by))


@router.post(
    "/{booking_id}/complete",
    response_model=BookingResponse,
    summary="Mark treatment completed",
)
async def complete_booking(
    booking_id: str, engine: Orchestrator, data: BookingCompleteSchema | None = None
) -> BookingResponse:
    completed_by = data.completed_by if data else "system"
    return _respond(await engine.complete_booking(booking_id, completed_by))


# ── Reviews ──────────────────────────────────────────────────────────────────


@router.post("/{booking_id}/studio-visit", response_model=BookingResponse, summary="Record a studio visit")
async def mark_studio_visited(booking_id: str, engine: Orchestrator) -> BookingResponse:
    return _respond(await engine.mark_studio_visited(booking_id))


@router.post("/{booking_id}/review/unlock", response_model=BookingResponse, summary="Unlock the review")
async def unlock_review(booking_id: str, engine: Orchestrator) -> BookingResponse:
    return _respond(await engine.unlock_review(booking_id))


@router.post("/{booking_id}/review", response_model=BookingResponse, summary="Submit a review")
async def submit_review(
    booking_id: str, data: ReviewSubmitSchema, engine: Orchestrator
) -> BookingResponse:
    return _respond(await engine.submit_review(booking_id, data.model_dump()))


# ── Conflicts ────────────────────────────────────────────────────────────────


@router.post(
    "/{booking_id}/conflicts/{competitor_booking_id}",
    response_model=ConflictOutcome,
    summary="Resolve two bookings competing for the same time",
)
async def handle_concurrent_booking(
    booking_id: str, competitor_booking_id: str, engine: Orchestrator
) -> ConflictOutcome:
    return await engine.handle_concurrent_booking(booking_id, competitor_booking_id)

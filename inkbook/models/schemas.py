"""
Inkbook — Pydantic Schemas
Domain records owned by the lifecycle engine and request/response models
for the FastAPI endpoints.
"""

from datetime import datetime, timezone
from typing import Annotated, Any
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from inkbook.models.enums import (
    BookingState,
    LegalConsentState,
    ParticipantRole,
    PreferredSize,
    ReviewState,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


# ============================================================================
# Base
# ============================================================================


class InkbookBase(BaseModel):
    """Shared model config for all schemas."""

    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
    )


class FrozenRecord(InkbookBase):
    """Engine-owned records are replaced, never edited in place."""

    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        frozen=True,
    )


# ============================================================================
# Booking
# ============================================================================


class BookingRequestDetails(InkbookBase):
    """What the customer asks for when opening a booking request."""

    description: str = Field(default="", max_length=2000)
    body_location: str | None = None
    preferred_size: PreferredSize = PreferredSize.MEDIUM
    preferred_date: UtcDatetime
    alternative_dates: list[UtcDatetime] = Field(default_factory=list)
    estimated_duration: int = Field(default=60, ge=15, le=720)
    estimated_price: int | None = Field(default=None, ge=0)
    additional_notes: str | None = Field(default=None, max_length=2000)


class Booking(FrozenRecord):
    id: str = Field(default_factory=new_id)
    customer_id: str
    artist_id: str

    # Request
    description: str = ""
    body_location: str | None = None
    preferred_size: PreferredSize = PreferredSize.MEDIUM
    preferred_date: UtcDatetime
    alternative_dates: tuple[UtcDatetime, ...] = ()
    estimated_duration: int = 60
    estimated_price: int | None = None
    additional_notes: str | None = None

    # Confirmation
    confirmed_date: UtcDatetime | None = None
    confirmed_duration: int | None = None
    confirmed_price: int | None = None
    confirmed_at: datetime | None = None

    # Lifecycle
    state: BookingState = BookingState.IDLE
    review_state: ReviewState = ReviewState.LOCKED
    visited_studio: bool = False

    # Consent captured at creation
    legal_consent_state: LegalConsentState = LegalConsentState.NOT_AGREED
    consent_version: str | None = None
    consent_accepted_at: datetime | None = None

    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    completed_by: str | None = None
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def slot_start(self) -> datetime:
        return self.confirmed_date or self.preferred_date

    @property
    def slot_duration(self) -> int:
        return self.confirmed_duration or self.estimated_duration

    def involves(self, participant_id: str, role: ParticipantRole) -> bool:
        if role == ParticipantRole.CUSTOMER:
            return self.customer_id == participant_id
        return self.artist_id == participant_id


class TransitionLedgerEntry(FrozenRecord):
    """One immutable line of a booking's audit history."""

    id: str = Field(default_factory=new_id)
    booking_id: str
    from_state: BookingState
    to_state: BookingState
    reason: str
    actor: str = "system"
    timestamp: datetime = Field(default_factory=utc_now)


class LegalConsent(FrozenRecord):
    customer_id: str
    version: str
    agreement_text: str
    accepted_at: datetime = Field(default_factory=utc_now)


# ============================================================================
# Availability & Conflicts
# ============================================================================


class TimeSlot(FrozenRecord):
    artist_id: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    is_available: bool = True
    booking_id: str | None = None

    @property
    def duration_mins(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start_time < end and self.end_time > start


class ConflictCase(FrozenRecord):
    booking_id: str
    competitor_booking_id: str
    winner_id: str
    loser_id: str
    detected_at: datetime = Field(default_factory=utc_now)


class ConflictOutcome(FrozenRecord):
    """Result handed to the losing party: who keeps the slot, and where else to go."""

    winner_id: str
    loser_id: str
    alternatives: tuple[datetime, ...] = ()


# ============================================================================
# API Requests
# ============================================================================


class ConsentSchema(InkbookBase):
    customer_id: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    agreement_text: str = Field(..., min_length=1)


class BookingCreateSchema(BookingRequestDetails):
    customer_id: str = Field(..., min_length=1)
    artist_id: str = Field(..., min_length=1)

    def details(self) -> BookingRequestDetails:
        return BookingRequestDetails(
            **self.model_dump(exclude={"customer_id", "artist_id"})
        )


class BookingConfirmSchema(InkbookBase):
    confirmed_date: UtcDatetime
    confirmed_price: int = Field(..., ge=0)
    confirmed_duration: int = Field(..., ge=15, le=720)


class BookingCancelSchema(InkbookBase):
    reason: str = Field(..., min_length=1, max_length=2000)
    cancelled_by: str = "user"


class BookingCompleteSchema(InkbookBase):
    completed_by: str = "system"


class ReviewSubmitSchema(InkbookBase):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(default="", max_length=5000)
    extra: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# API Responses
# ============================================================================


class BookingResponse(InkbookBase):
    booking: Booking
    can_write_review: bool
    can_confirm: bool


class ConsentStatusResponse(InkbookBase):
    customer_id: str
    legal_consent_state: LegalConsentState
    version: str | None = None
    can_create_booking: bool
    current_terms_version: str

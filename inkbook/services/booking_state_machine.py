"""
Inkbook — Booking State Machine
Pure transition rules for one booking. No I/O: callers persist the
returned record and ledger entry themselves.

State diagram:
    idle ──► requested ──► pending ──► confirmed ──► completed
                 │  │          │           │
                 │  └──────────┼──────────►│ (artist confirms directly)
                 ▼             ▼           ▼
             cancelled     cancelled   cancelled
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from inkbook.core.exceptions import StateViolation
from inkbook.models.enums import BookingState
from inkbook.models.schemas import Booking, TransitionLedgerEntry, as_utc, utc_now


# ── Valid Transitions ────────────────────────────────────────────────────────

VALID_TRANSITIONS: dict[BookingState, frozenset[BookingState]] = {
    BookingState.IDLE: frozenset({BookingState.REQUESTED}),
    BookingState.REQUESTED: frozenset(
        {BookingState.PENDING, BookingState.CONFIRMED, BookingState.CANCELLED}
    ),
    BookingState.PENDING: frozenset({BookingState.CONFIRMED, BookingState.CANCELLED}),
    BookingState.CONFIRMED: frozenset({BookingState.COMPLETED, BookingState.CANCELLED}),
    BookingState.COMPLETED: frozenset(),  # terminal state
    BookingState.CANCELLED: frozenset(),  # terminal state
}

CONFIRMABLE_STATES = frozenset({BookingState.REQUESTED, BookingState.PENDING})
CANCELLABLE_STATES = frozenset(
    {BookingState.REQUESTED, BookingState.PENDING, BookingState.CONFIRMED}
)


@dataclass(frozen=True)
class TransitionResult:
    booking: Booking
    entry: TransitionLedgerEntry


def can_transition(current: BookingState, target: BookingState) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())


def is_terminal(state: BookingState) -> bool:
    return not VALID_TRANSITIONS.get(state)


def validate_transition(
    current: BookingState, target: BookingState, booking_id: str | None = None
) -> None:
    """Raise StateViolation if the edge is not in the graph."""
    if not can_transition(current, target):
        raise StateViolation(current, target, booking_id)


def is_valid_walk(states: list[BookingState]) -> bool:
    """True when consecutive states are all edges of the graph."""
    return all(can_transition(a, b) for a, b in zip(states, states[1:]))


def apply_transition(
    booking: Booking,
    target: BookingState,
    reason: str,
    actor: str = "system",
    **updates: Any,
) -> TransitionResult:
    """
    Compute the next record for ``booking``:
    1. Validate the edge
    2. Rebuild the booking with the new state and any field updates
    3. Produce the matching ledger entry
    The input booking is left untouched.
    """
    validate_transition(booking.state, target, booking.id)

    now = utc_now()
    # re-validated so datetime fields pass through UtcDatetime
    updated = type(booking).model_validate(
        {**booking.model_dump(), **updates, "state": target, "updated_at": now}
    )
    entry = TransitionLedgerEntry(
        booking_id=booking.id,
        from_state=booking.state,
        to_state=target,
        reason=reason,
        actor=actor,
        timestamp=now,
    )
    return TransitionResult(booking=updated, entry=entry)


# ── Named Transitions ────────────────────────────────────────────────────────


def request(booking: Booking, actor: str) -> TransitionResult:
    return apply_transition(
        booking, BookingState.REQUESTED, "Booking request created", actor
    )


def mark_pending(booking: Booking) -> TransitionResult:
    return apply_transition(
        booking, BookingState.PENDING, "Awaiting artist response", "system"
    )


def accept(booking: Booking, actor: str = "artist") -> TransitionResult:
    if booking.state != BookingState.PENDING:
        raise StateViolation(booking.state, BookingState.CONFIRMED, booking.id)
    return apply_transition(
        booking, BookingState.CONFIRMED, "Booking accepted by artist", actor
    )


def confirm(
    booking: Booking,
    confirmed_date: datetime,
    confirmed_price: int,
    confirmed_duration: int,
    actor: str = "artist",
) -> TransitionResult:
    confirmed_date = as_utc(confirmed_date)
    return apply_transition(
        booking,
        BookingState.CONFIRMED,
        f"Booking confirmed for {confirmed_date.isoformat()}",
        actor,
        confirmed_date=confirmed_date,
        confirmed_price=confirmed_price,
        confirmed_duration=confirmed_duration,
        confirmed_at=utc_now(),
    )


def cancel(booking: Booking, reason: str, cancelled_by: str) -> TransitionResult:
    return apply_transition(
        booking,
        BookingState.CANCELLED,
        f"Booking cancelled: {reason}",
        cancelled_by,
        cancelled_by=cancelled_by,
        cancellation_reason=reason,
    )


def complete(booking: Booking, completed_by: str) -> TransitionResult:
    """Treatment completion implies the customer was at the studio."""
    return apply_transition(
        booking,
        BookingState.COMPLETED,
        "Treatment completed",
        completed_by,
        completed_by=completed_by,
        completed_at=utc_now(),
        visited_studio=True,
    )

"""
Inkbook — Review Unlock Gate
Derived eligibility for reviews. Holds no storage of its own: every
operation reads the booking's flags and returns an updated copy.
"""

import logging

from inkbook.core.exceptions import PreconditionFailed, StateViolation
from inkbook.models.enums import BookingState, ReviewState
from inkbook.models.schemas import Booking, utc_now

logger = logging.getLogger(__name__)

VISIT_STATES = frozenset({BookingState.CONFIRMED, BookingState.COMPLETED})


def can_write_review(booking: Booking) -> bool:
    return booking.review_state == ReviewState.UNLOCKED and booking.visited_studio


def mark_studio_visited(booking: Booking) -> Booking:
    if booking.state not in VISIT_STATES:
        raise PreconditionFailed(
            f"Booking {booking.id} is {booking.state}; a studio visit needs a confirmed booking"
        )
    return booking.model_copy(update={"visited_studio": True, "updated_at": utc_now()})


def unlock_review(booking: Booking) -> Booking:
    if not booking.visited_studio:
        raise PreconditionFailed(f"Booking {booking.id}: studio not visited")
    if booking.state != BookingState.COMPLETED:
        raise PreconditionFailed(
            f"Booking {booking.id} is {booking.state}; reviews open after completion"
        )
    if booking.review_state == ReviewState.SUBMITTED:
        raise StateViolation(booking.review_state, ReviewState.UNLOCKED, booking.id)

    logger.info("🔓 Review unlocked for booking %s", booking.id)
    return booking.model_copy(
        update={"review_state": ReviewState.UNLOCKED, "updated_at": utc_now()}
    )


def submit_review(booking: Booking) -> Booking:
    """Eligibility only; the review content is stored by the caller."""
    if booking.review_state != ReviewState.UNLOCKED:
        raise StateViolation(booking.review_state, ReviewState.SUBMITTED, booking.id)

    return booking.model_copy(
        update={"review_state": ReviewState.SUBMITTED, "updated_at": utc_now()}
    )

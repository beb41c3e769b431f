"""
Inkbook — Lifecycle Errors
Every public engine operation either succeeds with a defined post-state or
raises one of these.
"""

from typing import TYPE_CHECKING

from inkbook.models.enums import BookingState, ReviewState

if TYPE_CHECKING:
    from inkbook.models.schemas import ConflictOutcome


class BookingLifecycleError(Exception):
    """Base class for booking lifecycle failures."""


class StateViolation(BookingLifecycleError):
    """Raised when a transition is not legal from the current state. Never retried."""

    def __init__(
        self,
        current: BookingState | ReviewState,
        attempted: BookingState | ReviewState,
        booking_id: str | None = None,
    ):
        self.current = current
        self.attempted = attempted
        self.booking_id = booking_id
        target = f" for booking {booking_id}" if booking_id else ""
        super().__init__(
            f"Cannot transition from '{current}' to '{attempted}'{target}"
        )


class PreconditionFailed(BookingLifecycleError):
    """Raised when a guard (consent, studio visit, mandatory reason) is not satisfied."""


class BookingNotFound(BookingLifecycleError):
    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")


class CollaboratorTimeout(BookingLifecycleError):
    """A collaborator did not answer in time after all retries. Recoverable."""

    def __init__(
        self,
        service_name: str,
        message: str,
        attempts: int = 0,
        original_error: Exception | None = None,
    ):
        self.service_name = service_name
        self.attempts = attempts
        self.original_error = original_error
        super().__init__(f"[{service_name}] {message}")


class ConflictDetected(BookingLifecycleError):
    """
    Not a failure: the requested slot is already held by a confirmed booking.
    The caller decides whether to take an alternative or cancel.
    """

    def __init__(self, outcome: "ConflictOutcome"):
        self.outcome = outcome
        super().__init__(
            f"Booking {outcome.loser_id} conflicts with confirmed booking "
            f"{outcome.winner_id} ({len(outcome.alternatives)} alternatives)"
        )

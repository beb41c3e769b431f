from datetime import datetime, timezone

import pytest

from inkbook.core.exceptions import StateViolation
from inkbook.models.enums import BookingState
from inkbook.models.schemas import Booking
from inkbook.services import booking_state_machine as machine

WHEN = datetime(2025, 3, 1, 14, 0, tzinfo=timezone.utc)


def booking_in(state: BookingState) -> Booking:
    return Booking(customer_id="C1", artist_id="A1", preferred_date=WHEN, state=state)


EDGES = {
    (BookingState.IDLE, BookingState.REQUESTED),
    (BookingState.REQUESTED, BookingState.PENDING),
    (BookingState.REQUESTED, BookingState.CONFIRMED),
    (BookingState.REQUESTED, BookingState.CANCELLED),
    (BookingState.PENDING, BookingState.CONFIRMED),
    (BookingState.PENDING, BookingState.CANCELLED),
    (BookingState.CONFIRMED, BookingState.COMPLETED),
    (BookingState.CONFIRMED, BookingState.CANCELLED),
}


@pytest.mark.parametrize("current", list(BookingState))
@pytest.mark.parametrize("target", list(BookingState))
def test_only_graph_edges_are_reachable(current, target):
    assert machine.can_transition(current, target) == ((current, target) in EDGES)


def test_terminal_states():
    assert machine.is_terminal(BookingState.COMPLETED)
    assert machine.is_terminal(BookingState.CANCELLED)
    assert not machine.is_terminal(BookingState.CONFIRMED)


def test_apply_transition_returns_new_record_and_entry():
    booking = booking_in(BookingState.REQUESTED)

    result = machine.mark_pending(booking)

    assert booking.state == BookingState.REQUESTED
    assert result.booking.state == BookingState.PENDING
    assert result.booking.id == booking.id
    assert result.entry.booking_id == booking.id
    assert result.entry.from_state == BookingState.REQUESTED
    assert result.entry.to_state == BookingState.PENDING


def test_invalid_transition_names_both_states():
    booking = booking_in(BookingState.PENDING)

    with pytest.raises(StateViolation) as excinfo:
        machine.complete(booking, "artist")

    assert excinfo.value.current == BookingState.PENDING
    assert excinfo.value.attempted == BookingState.COMPLETED
    assert "pending" in str(excinfo.value)
    assert "completed" in str(excinfo.value)


@pytest.mark.parametrize(
    "state",
    [s for s in BookingState if s != BookingState.CONFIRMED],
)
def test_complete_only_from_confirmed(state):
    with pytest.raises(StateViolation):
        machine.complete(booking_in(state), "artist")


def test_complete_marks_studio_visit():
    result = machine.complete(booking_in(BookingState.CONFIRMED), "artist")

    assert result.booking.state == BookingState.COMPLETED
    assert result.booking.visited_studio is True
    assert result.booking.completed_by == "artist"


def test_accept_requires_pending():
    with pytest.raises(StateViolation):
        machine.accept(booking_in(BookingState.REQUESTED))

    result = machine.accept(booking_in(BookingState.PENDING))
    assert result.booking.state == BookingState.CONFIRMED


@pytest.mark.parametrize("state", [BookingState.REQUESTED, BookingState.PENDING])
def test_confirm_from_requested_or_pending(state):
    result = machine.confirm(booking_in(state), WHEN, 30000, 90)

    assert result.booking.state == BookingState.CONFIRMED
    assert result.booking.confirmed_price == 30000
    assert result.booking.confirmed_duration == 90
    assert result.booking.confirmed_date == WHEN
    assert result.booking.confirmed_at is not None


def test_cancel_keeps_reason_in_entry():
    result = machine.cancel(booking_in(BookingState.CONFIRMED), "Artist is ill", "A1")

    assert result.booking.cancellation_reason == "Artist is ill"
    assert result.booking.cancelled_by == "A1"
    assert "Artist is ill" in result.entry.reason
    assert result.entry.actor == "A1"


def test_valid_walk():
    assert machine.is_valid_walk(
        [
            BookingState.IDLE,
            BookingState.REQUESTED,
            BookingState.PENDING,
            BookingState.CONFIRMED,
            BookingState.COMPLETED,
        ]
    )
    assert not machine.is_valid_walk(
        [BookingState.IDLE, BookingState.REQUESTED, BookingState.COMPLETED]
    )

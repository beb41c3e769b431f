"""
Inkbook — Conflict Resolver
Policy for two bookings competing for the same artist time.

First valid confirmation wins: whichever booking reached "confirmed" first
keeps the slot. The other party gets a list of alternative start times.
The resolver never cancels the losing booking; that stays an explicit
action by the customer or the artist.

Held time comes from two places: the availability collaborator's reservations
and the artist's confirmed bookings in the repository. The repository is
the durable one, so a restarted worker still sees every held slot.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Iterable

from inkbook.core.config import Settings
from inkbook.core.exceptions import BookingNotFound, PreconditionFailed
from inkbook.models.enums import BookingState, ParticipantRole
from inkbook.models.schemas import Booking, ConflictCase, ConflictOutcome, TimeSlot
from inkbook.services.base import BaseExternalService
from inkbook.services.collaborators import AvailabilityProvider, BookingRepository

logger = logging.getLogger(__name__)


def pick_winner(booking: Booking, competitor: Booking) -> tuple[Booking, Booking]:
    """Return (winner, loser). Raises PreconditionFailed if neither holds the slot."""
    booking_held = booking.state == BookingState.CONFIRMED
    competitor_held = competitor.state == BookingState.CONFIRMED

    if booking_held and competitor_held:
        # Both confirmed (e.g. replayed writes): earliest confirmation keeps it
        if (booking.confirmed_at or booking.updated_at) <= (
            competitor.confirmed_at or competitor.updated_at
        ):
            return booking, competitor
        return competitor, booking
    if competitor_held:
        return competitor, booking
    if booking_held:
        return booking, competitor

    raise PreconditionFailed(
        f"Neither booking {booking.id} nor {competitor.id} holds a confirmed slot"
    )


def candidate_dates(loser: Booking, search_days: int) -> list[date]:
    """Preferred day, then the customer's alternative days, then nearby days, no repeats."""
    preferred = loser.preferred_date.date()
    ordered = [preferred] + [d.date() for d in loser.alternative_dates]
    for offset in range(1, search_days + 1):
        ordered += [preferred + timedelta(days=offset), preferred - timedelta(days=offset)]

    seen: set[date] = set()
    unique = []
    for day in ordered:
        if day not in seen:
            seen.add(day)
            unique.append(day)
    return unique


class ConflictResolver(BaseExternalService):
    service_name = "ConflictResolver"

    def __init__(
        self,
        repository: BookingRepository,
        availability: AvailabilityProvider,
        settings: Settings | None = None,
    ):
        super().__init__(settings)
        self.repository = repository
        self.availability = availability

    async def _load(self, booking_id: str) -> Booking:
        booking = await self._execute_with_retry(self.repository.get_booking, booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    async def _confirmed_bookings(
        self, artist_id: str, exclude_booking_id: str | None = None
    ) -> list[Booking]:
        bookings = await self._execute_with_retry(
            self.repository.list_bookings_by_participant, artist_id, ParticipantRole.ARTIST
        )
        return [
            b
            for b in bookings
            if b.state == BookingState.CONFIRMED and b.id != exclude_booking_id
        ]

    async def find_confirmed_competitor(
        self, booking: Booking, start: datetime, duration_minutes: int
    ) -> Booking | None:
        """The confirmed booking already holding [start, start + duration) for this artist, if any."""
        end = start + timedelta(minutes=duration_minutes)
        for competitor in await self._confirmed_bookings(booking.artist_id, booking.id):
            if _holds(competitor, start, end):
                return competitor

        # time held only in the availability collaborator, such as an external calendar
        overlapping = await self._execute_with_retry(
            self.availability.find_overlapping_bookings,
            booking.artist_id,
            start,
            duration_minutes,
            booking.id,
        )
        for competitor_id in overlapping:
            competitor = await self._execute_with_retry(
                self.repository.get_booking, competitor_id
            )
            if competitor is not None and competitor.state == BookingState.CONFIRMED:
                return competitor
        return None

    async def handle_concurrent_booking(
        self, booking_id: str, competitor_booking_id: str
    ) -> ConflictOutcome:
        """
        Resolve a clash between two bookings:
        1. Load both and pick the winner by confirmation order
        2. Search the loser's preferred, alternative and nearby days
        3. Return the winner and the loser's alternative start times
        """
        booking = await self._load(booking_id)
        competitor = await self._load(competitor_booking_id)
        winner, loser = pick_winner(booking, competitor)

        conflict = ConflictCase(
            booking_id=booking_id,
            competitor_booking_id=competitor_booking_id,
            winner_id=winner.id,
            loser_id=loser.id,
        )
        logger.warning(
            "⚡ Booking conflict on artist %s: %s keeps the slot, %s needs another time",
            winner.artist_id,
            conflict.winner_id,
            conflict.loser_id,
        )

        alternatives = await self._alternatives_for(loser, winner)
        logger.info(
            "🔄 %d alternative slots suggested for booking %s", len(alternatives), loser.id
        )
        return ConflictOutcome(
            winner_id=winner.id,
            loser_id=loser.id,
            alternatives=alternatives,
        )

    async def _alternatives_for(self, loser: Booking, winner: Booking) -> tuple[datetime, ...]:
        duration = loser.estimated_duration
        slots = await self._execute_with_retry(
            self.availability.find_available_slots,
            loser.artist_id,
            candidate_dates(loser, self.settings.ALTERNATIVE_SEARCH_DAYS),
            duration,
        )
        held = [winner, *await self._confirmed_bookings(loser.artist_id, loser.id)]
        starts = _free_starts(slots, duration, held)
        return tuple(sorted(starts, key=lambda s: (abs(s - loser.preferred_date), s)))

    async def suggest_alternative_slots(
        self, artist_id: str, original_date: datetime, duration_minutes: int | None = None
    ) -> tuple[datetime, ...]:
        duration = duration_minutes or self.settings.DEFAULT_SLOT_DURATION_MINS
        slots = await self._execute_with_retry(
            self.availability.find_available_slots,
            artist_id,
            [original_date.date()],
            duration,
        )
        held = await self._confirmed_bookings(artist_id)
        return tuple(sorted(_free_starts(slots, duration, held)))


def _holds(booking: Booking, start: datetime, end: datetime) -> bool:
    held_start = booking.slot_start
    held_end = held_start + timedelta(minutes=booking.slot_duration)
    return held_start < end and held_end > start


def _free_starts(
    slots: Iterable[TimeSlot], duration: int, held: list[Booking]
) -> set[datetime]:
    return {
        slot.start_time
        for slot in slots
        if slot.is_available
        and slot.duration_mins >= duration
        and not any(_holds(b, slot.start_time, slot.end_time) for b in held)
    }

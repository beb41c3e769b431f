"""
Inkbook — Artist Availability
Schedule-backed availability: working hours per artist and weekday,
holidays, and the slots held by confirmed bookings.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from inkbook.models.schemas import TimeSlot
from inkbook.services.collaborators import AvailabilityProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkingHours:
    open_time: time = time(10, 0)
    close_time: time = time(19, 0)
    is_open: bool = True


@dataclass(frozen=True)
class Reservation:
    artist_id: str
    booking_id: str
    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and self.end > start


# Python weekday: Mon=0, Sun=6
DEFAULT_WEEK = {day: WorkingHours() for day in range(6)} | {6: WorkingHours(is_open=False)}


class ScheduleAvailabilityService(AvailabilityProvider):
    """
    Times are UTC. Slots for a day start at the artist's opening time and
    advance by ``step_minutes``; a slot is offered only if the whole
    requested duration fits before closing and clears every reservation.
    """

    def __init__(self, step_minutes: int = 30):
        self.step_minutes = step_minutes
        self._weeks: dict[str, dict[int, WorkingHours]] = {}
        self._holidays: dict[str, set[date]] = {}
        self._reservations: dict[str, Reservation] = {}

    # ── Schedule management ──────────────────────────────────────────────

    def set_working_hours(self, artist_id: str, weekday: int, hours: WorkingHours) -> None:
        week = self._weeks.setdefault(artist_id, dict(DEFAULT_WEEK))
        week[weekday] = hours

    def add_holiday(self, artist_id: str, day: date) -> None:
        self._holidays.setdefault(artist_id, set()).add(day)

    def hours_for(self, artist_id: str, day: date) -> WorkingHours:
        if day in self._holidays.get(artist_id, set()):
            return WorkingHours(is_open=False)
        return self._weeks.get(artist_id, DEFAULT_WEEK)[day.weekday()]

    def reservations_for(self, artist_id: str) -> list[Reservation]:
        return [r for r in self._reservations.values() if r.artist_id == artist_id]

    # ── AvailabilityProvider ─────────────────────────────────────────────

    async def find_available_slots(
        self, artist_id: str, dates: list[date], duration_minutes: int
    ) -> list[TimeSlot]:
        reservations = self.reservations_for(artist_id)
        length = timedelta(minutes=duration_minutes)
        step = timedelta(minutes=self.step_minutes)
        slots: list[TimeSlot] = []

        for day in dates:
            hours = self.hours_for(artist_id, day)
            if not hours.is_open:
                continue

            current = datetime.combine(day, hours.open_time, tzinfo=timezone.utc)
            closing = datetime.combine(day, hours.close_time, tzinfo=timezone.utc)

            while current + length <= closing:
                slot_end = current + length
                if not any(r.overlaps(current, slot_end) for r in reservations):
                    slots.append(
                        TimeSlot(artist_id=artist_id, start_time=current, end_time=slot_end)
                    )
                current += step

        return slots

    async def find_overlapping_bookings(
        self,
        artist_id: str,
        start: datetime,
        duration_minutes: int,
        exclude_booking_id: str | None = None,
    ) -> list[str]:
        end = start + timedelta(minutes=duration_minutes)
        return [
            r.booking_id
            for r in self.reservations_for(artist_id)
            if r.booking_id != exclude_booking_id and r.overlaps(start, end)
        ]

    async def reserve_slot(
        self, artist_id: str, start: datetime, duration_minutes: int, booking_id: str
    ) -> None:
        self._reservations[booking_id] = Reservation(
            artist_id=artist_id,
            booking_id=booking_id,
            start=start,
            end=start + timedelta(minutes=duration_minutes),
        )
        logger.info("📅 Slot %s reserved for booking %s", start.isoformat(), booking_id)

    async def release_slot(self, artist_id: str, booking_id: str) -> None:
        reservation = self._reservations.pop(booking_id, None)
        if reservation is not None:
            logger.info("🗑️ Slot released for booking %s", booking_id)

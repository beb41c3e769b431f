"""
Inkbook — In-Memory Persistence
Repository and review store used in development and tests.
"""

from typing import Any

from inkbook.models.enums import ParticipantRole
from inkbook.models.schemas import Booking, LegalConsent, TransitionLedgerEntry
from inkbook.services.collaborators import BookingRepository, ReviewStore


class InMemoryBookingRepository(BookingRepository):
    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._ledger: dict[str, list[TransitionLedgerEntry]] = {}
        self._ledger_ids: set[str] = set()
        self._consents: dict[str, LegalConsent] = {}

    async def get_booking(self, booking_id: str) -> Booking | None:
        return self._bookings.get(booking_id)

    async def save_booking(self, booking: Booking) -> None:
        self._bookings[booking.id] = booking

    async def append_ledger_entry(self, entry: TransitionLedgerEntry) -> None:
        if entry.id in self._ledger_ids:
            return
        self._ledger_ids.add(entry.id)
        self._ledger.setdefault(entry.booking_id, []).append(entry)

    async def list_ledger_entries(self, booking_id: str) -> list[TransitionLedgerEntry]:
        return list(self._ledger.get(booking_id, []))

    async def list_bookings_by_participant(
        self, participant_id: str, role: ParticipantRole
    ) -> list[Booking]:
        matches = [b for b in self._bookings.values() if b.involves(participant_id, role)]
        return sorted(matches, key=lambda b: b.created_at, reverse=True)

    async def save_consent(self, consent: LegalConsent) -> None:
        self._consents[consent.customer_id] = consent

    async def get_consent(self, customer_id: str) -> LegalConsent | None:
        return self._consents.get(customer_id)


class InMemoryReviewStore(ReviewStore):
    def __init__(self) -> None:
        self.reviews: dict[str, dict[str, Any]] = {}

    async def save_review(self, booking_id: str, payload: dict[str, Any]) -> None:
        self.reviews[booking_id] = dict(payload)

"""
Inkbook — Collaborator Contracts
Persistence, availability, notification and review storage are supplied
from outside the engine. These are the shapes the engine calls into.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any

from inkbook.models.enums import NotificationKind, ParticipantRole
from inkbook.models.schemas import Booking, LegalConsent, TimeSlot, TransitionLedgerEntry


class BookingRepository(ABC):
    @abstractmethod
    async def get_booking(self, booking_id: str) -> Booking | None:
        raise NotImplementedError

    @abstractmethod
    async def save_booking(self, booking: Booking) -> None:
        """Upsert by id. Writes may be delivered more than once."""
        raise NotImplementedError

    @abstractmethod
    async def append_ledger_entry(self, entry: TransitionLedgerEntry) -> None:
        """Append-only. A repeated entry id must not create a second row."""
        raise NotImplementedError

    @abstractmethod
    async def list_ledger_entries(self, booking_id: str) -> list[TransitionLedgerEntry]:
        raise NotImplementedError

    @abstractmethod
    async def list_bookings_by_participant(
        self, participant_id: str, role: ParticipantRole
    ) -> list[Booking]:
        """Newest first."""
        raise NotImplementedError

    @abstractmethod
    async def save_consent(self, consent: LegalConsent) -> None:
        """One record per customer; agreeing again replaces it."""
        raise NotImplementedError

    @abstractmethod
    async def get_consent(self, customer_id: str) -> LegalConsent | None:
        raise NotImplementedError


class AvailabilityProvider(ABC):
    @abstractmethod
    async def find_available_slots(
        self, artist_id: str, dates: list[date], duration_minutes: int
    ) -> list[TimeSlot]:
        """Free slots on the given days that are at least duration_minutes long."""
        raise NotImplementedError

    @abstractmethod
    async def find_overlapping_bookings(
        self,
        artist_id: str,
        start: datetime,
        duration_minutes: int,
        exclude_booking_id: str | None = None,
    ) -> list[str]:
        """Ids of bookings holding time that overlaps [start, start + duration)."""
        raise NotImplementedError

    @abstractmethod
    async def reserve_slot(
        self, artist_id: str, start: datetime, duration_minutes: int, booking_id: str
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    async def release_slot(self, artist_id: str, booking_id: str) -> None:
        raise NotImplementedError


class Notifier(ABC):
    @abstractmethod
    async def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        kind: NotificationKind = NotificationKind.INFO,
    ) -> None:
        """Fire-and-forget delivery of a human-readable status update."""
        raise NotImplementedError


class ReviewStore(ABC):
    @abstractmethod
    async def save_review(self, booking_id: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError

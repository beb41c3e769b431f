"""
Inkbook — Supabase Persistence
Stores bookings, transition history and reviews in Supabase tables:

    bookings             one row per booking, keyed by id
    booking_transitions  append-only ledger, keyed by entry id
    reviews              one row per booking
    legal_consents       latest accepted terms, one row per customer

The Supabase client is synchronous; calls run in a worker thread so the
event loop is never blocked.
"""

import asyncio
import logging
from typing import Any

from supabase import Client, create_client

from inkbook.core.config import Settings
from inkbook.models.enums import ParticipantRole
from inkbook.models.schemas import Booking, LegalConsent, TransitionLedgerEntry
from inkbook.services.collaborators import BookingRepository, ReviewStore

logger = logging.getLogger(__name__)

BOOKINGS_TABLE = "bookings"
TRANSITIONS_TABLE = "booking_transitions"
REVIEWS_TABLE = "reviews"
CONSENTS_TABLE = "legal_consents"


def create_supabase_client(settings: Settings) -> Client:
    """Create a Supabase client using the service role key (server-side)."""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


class SupabaseBookingRepository(BookingRepository):
    def __init__(self, client: Client):
        self.client = client

    async def get_booking(self, booking_id: str) -> Booking | None:
        def _query() -> Any:
            return (
                self.client.table(BOOKINGS_TABLE)
                .select("*")
                .eq("id", booking_id)
                .limit(1)
                .execute()
            )

        result = await asyncio.to_thread(_query)
        if not result.data:
            return None
        return Booking.model_validate(result.data[0])

    async def save_booking(self, booking: Booking) -> None:
        row = booking.model_dump(mode="json")

        def _upsert() -> Any:
            return (
                self.client.table(BOOKINGS_TABLE)
                .upsert(row, on_conflict="id")
                .execute()
            )

        await asyncio.to_thread(_upsert)

    async def append_ledger_entry(self, entry: TransitionLedgerEntry) -> None:
        row = entry.model_dump(mode="json")

        def _insert() -> Any:
            # Re-delivered entries hit the primary key and are ignored
            return (
                self.client.table(TRANSITIONS_TABLE)
                .upsert(row, on_conflict="id", ignore_duplicates=True)
                .execute()
            )

        await asyncio.to_thread(_insert)

    async def list_ledger_entries(self, booking_id: str) -> list[TransitionLedgerEntry]:
        def _query() -> Any:
            return (
                self.client.table(TRANSITIONS_TABLE)
                .select("*")
                .eq("booking_id", booking_id)
                .order("timestamp")
                .execute()
            )

        result = await asyncio.to_thread(_query)
        return [TransitionLedgerEntry.model_validate(r) for r in result.data or []]

    async def list_bookings_by_participant(
        self, participant_id: str, role: ParticipantRole
    ) -> list[Booking]:
        field = "customer_id" if role == ParticipantRole.CUSTOMER else "artist_id"

        def _query() -> Any:
            return (
                self.client.table(BOOKINGS_TABLE)
                .select("*")
                .eq(field, participant_id)
                .order("created_at", desc=True)
                .execute()
            )

        result = await asyncio.to_thread(_query)
        return [Booking.model_validate(r) for r in result.data or []]

    async def save_consent(self, consent: LegalConsent) -> None:
        row = consent.model_dump(mode="json")

        def _upsert() -> Any:
            return (
                self.client.table(CONSENTS_TABLE)
                .upsert(row, on_conflict="customer_id")
                .execute()
            )

        await asyncio.to_thread(_upsert)

    async def get_consent(self, customer_id: str) -> LegalConsent | None:
        def _query() -> Any:
            return (
                self.client.table(CONSENTS_TABLE)
                .select("*")
                .eq("customer_id", customer_id)
                .limit(1)
                .execute()
            )

        result = await asyncio.to_thread(_query)
        if not result.data:
            return None
        return LegalConsent.model_validate(result.data[0])


class SupabaseReviewStore(ReviewStore):
    def __init__(self, client: Client):
        self.client = client

    async def save_review(self, booking_id: str, payload: dict[str, Any]) -> None:
        row = {"booking_id": booking_id, **payload}

        def _upsert() -> Any:
            return (
                self.client.table(REVIEWS_TABLE)
                .upsert(row, on_conflict="booking_id")
                .execute()
            )

        await asyncio.to_thread(_upsert)
        logger.info("⭐ Review stored for booking %s", booking_id)

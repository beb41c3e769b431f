"""
Inkbook — Booking Lifecycle Orchestrator
Facade over the state machine, ledger, consent and review gates, and the
conflict resolver. Every command follows the same sequence:

    1. Acquire the booking's lock (one writer per booking id)
    2. Load the current record and compute the transition (pure)
    3. Persist the new record (bounded, retried)
    4. Record the ledger entry (best-effort persistence)
    5. Fire notifications (fire-and-forget)

A failed save aborts the command with the persisted state untouched.
Notification and ledger persistence failures never fail a command.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

from inkbook.core.config import Settings
from inkbook.core.exceptions import (
    BookingNotFound,
    CollaboratorTimeout,
    ConflictDetected,
    PreconditionFailed,
)
from inkbook.models.enums import (
    BookingState,
    LegalConsentState,
    NotificationKind,
    ParticipantRole,
)
from inkbook.models.schemas import (
    Booking,
    BookingRequestDetails,
    ConflictOutcome,
    LegalConsent,
    TransitionLedgerEntry,
)
from inkbook.services import booking_state_machine as machine
from inkbook.services import review_gate
from inkbook.services.base import BaseExternalService
from inkbook.services.booking_locks import BookingLockArena
from inkbook.services.collaborators import (
    AvailabilityProvider,
    BookingRepository,
    Notifier,
    ReviewStore,
)
from inkbook.services.conflict_resolver import ConflictResolver
from inkbook.services.consent_gate import LegalConsentGate
from inkbook.services.scheduler import DeferredTransitionScheduler
from inkbook.services.transition_ledger import TransitionLedger

logger = logging.getLogger(__name__)


class BookingLifecycleOrchestrator(BaseExternalService):
    service_name = "BookingLifecycle"

    def __init__(
        self,
        repository: BookingRepository,
        availability: AvailabilityProvider,
        notifier: Notifier,
        review_store: ReviewStore,
        settings: Settings | None = None,
    ):
        super().__init__(settings)
        self.repository = repository
        self.availability = availability
        self.notifier = notifier
        self.review_store = review_store

        self.ledger = TransitionLedger(repository, self.settings)
        self.consent = LegalConsentGate(repository, self.settings)
        self.resolver = ConflictResolver(repository, availability, self.settings)
        self.locks = BookingLockArena()
        self.scheduler = DeferredTransitionScheduler(self.settings.AUTO_PENDING_DELAY_SECONDS)
        self._side_effects: set[asyncio.Task] = set()

    # ── Consent ──────────────────────────────────────────────────────────

    async def agree_legal_terms(
        self, customer_id: str, version: str, agreement_text: str
    ) -> LegalConsent:
        return await self.consent.agree_legal_terms(customer_id, version, agreement_text)

    async def can_create_booking(self, customer_id: str, booking_id: str | None = None) -> bool:
        """
        With no booking id this asks about a fresh, idle booking. An existing
        booking is never idle again, so for it the answer is always False.
        """
        state = BookingState.IDLE
        if booking_id is not None:
            state = (await self.get_booking(booking_id)).state
        return await self.consent.can_create_booking(customer_id, state)

    # ── Queries ──────────────────────────────────────────────────────────

    async def get_booking(self, booking_id: str) -> Booking:
        booking = await self._execute_with_retry(self.repository.get_booking, booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    async def list_bookings(
        self, participant_id: str, role: ParticipantRole
    ) -> list[Booking]:
        return await self._execute_with_retry(
            self.repository.list_bookings_by_participant, participant_id, role
        )

    async def can_confirm_booking(self, booking_id: str) -> bool:
        booking = await self.get_booking(booking_id)
        return booking.state in machine.CONFIRMABLE_STATES

    async def can_write_review(self, booking_id: str) -> bool:
        return review_gate.can_write_review(await self.get_booking(booking_id))

    async def get_transition_history(
        self, booking_id: str | None = None
    ) -> tuple[TransitionLedgerEntry, ...]:
        """
        A single booking's history is merged with what the repository holds,
        so entries written before a restart or by another worker are included.
        Without an id only this process's entries are returned.
        """
        if booking_id is None:
            return self.ledger.history()
        return await self.ledger.hydrate(booking_id)

    # ── Booking Transitions ──────────────────────────────────────────────

    async def create_booking_request(
        self, customer_id: str, artist_id: str, details: BookingRequestDetails
    ) -> Booking:
        consent = await self.consent.require_consent(customer_id)
        draft = Booking(
            customer_id=customer_id,
            artist_id=artist_id,
            **details.model_dump(),
            legal_consent_state=LegalConsentState.AGREED,
            consent_version=consent.version,
            consent_accepted_at=consent.accepted_at,
        )

        async with self.locks.hold(draft.id):
            result = machine.request(draft, actor=customer_id)
            await self._commit(result)

        self._notify(
            artist_id,
            "New booking request",
            f"Request for {draft.preferred_date:%Y-%m-%d %H:%M} is waiting for your reply",
        )
        self._notify(
            customer_id,
            "Booking request sent",
            "Please wait for the artist's reply",
            NotificationKind.SUCCESS,
        )
        self.scheduler.schedule(draft.id, self._auto_mark_pending)
        return result.booking

    async def _auto_mark_pending(self, booking_id: str) -> None:
        async with self.locks.hold(booking_id):
            booking = await self.get_booking(booking_id)
            if booking.state != BookingState.REQUESTED:
                logger.debug(
                    "Deferred pending transition for %s skipped, booking is %s",
                    booking_id,
                    booking.state,
                )
                return
            await self._commit(machine.mark_pending(booking))

    async def accept_booking(self, booking_id: str, accepted_by: str = "artist") -> Booking:
        async with self.locks.hold(booking_id):
            booking = await self.get_booking(booking_id)
            result = machine.accept(booking, accepted_by)
            async with self.locks.hold(self._artist_key(booking.artist_id)):
                await self._guard_slot(booking, booking.slot_start, booking.slot_duration)
                await self._commit_with_reservation(result)

        self.scheduler.cancel(booking_id)
        self._notify(
            booking.customer_id,
            "Booking accepted",
            "The artist accepted your booking request",
            NotificationKind.SUCCESS,
        )
        return result.booking

    async def confirm_booking(
        self,
        booking_id: str,
        confirmed_date: datetime,
        confirmed_price: int,
        confirmed_duration: int,
        confirmed_by: str = "artist",
    ) -> Booking:
        """
        Confirm from "requested" or "pending". If another confirmed booking
        already holds the window, raises ConflictDetected with the outcome
        and leaves this booking unchanged.
        """
        async with self.locks.hold(booking_id):
            booking = await self.get_booking(booking_id)
            result = machine.confirm(
                booking, confirmed_date, confirmed_price, confirmed_duration, confirmed_by
            )
            confirmed = result.booking
            async with self.locks.hold(self._artist_key(booking.artist_id)):
                await self._guard_slot(booking, confirmed.slot_start, confirmed.slot_duration)
                await self._commit_with_reservation(result)

        self.scheduler.cancel(booking_id)
        message = (
            f"Confirmed for {confirmed.slot_start:%Y-%m-%d %H:%M}, "
            f"{confirmed_duration} min, ¥{confirmed_price:,}"
        )
        for recipient in (confirmed.customer_id, confirmed.artist_id):
            self._notify(recipient, "Booking confirmed", message, NotificationKind.SUCCESS)
        return confirmed

    async def cancel_booking(
        self, booking_id: str, reason: str, cancelled_by: str = "user"
    ) -> Booking:
        if not reason or not reason.strip():
            raise PreconditionFailed("A cancellation reason is required")

        async with self.locks.hold(booking_id):
            booking = await self.get_booking(booking_id)
            result = machine.cancel(booking, reason.strip(), cancelled_by)
            await self._commit(result)
            self.scheduler.cancel(booking_id)

            if booking.state == BookingState.CONFIRMED:
                try:
                    await self._execute_with_retry(
                        self.availability.release_slot, booking.artist_id, booking_id
                    )
                except CollaboratorTimeout as exc:
                    logger.error("Slot for cancelled booking %s not released: %s", booking_id, exc)

        for recipient in (booking.customer_id, booking.artist_id):
            self._notify(
                recipient,
                "Booking cancelled",
                f"Reason: {reason.strip()}",
                NotificationKind.WARNING,
            )
        return result.booking

    async def complete_booking(self, booking_id: str, completed_by: str = "system") -> Booking:
        async with self.locks.hold(booking_id):
            booking = await self.get_booking(booking_id)
            result = machine.complete(booking, completed_by)
            unlocked = review_gate.unlock_review(result.booking)
            await self._commit(machine.TransitionResult(booking=unlocked, entry=result.entry))

        self._notify(
            booking.customer_id,
            "Treatment completed",
            "Thank you for visiting. You can now post a review.",
            NotificationKind.SUCCESS,
        )
        return unlocked

    # ── Reviews ──────────────────────────────────────────────────────────

    async def mark_studio_visited(self, booking_id: str) -> Booking:
        async with self.locks.hold(booking_id):
            updated = review_gate.mark_studio_visited(await self.get_booking(booking_id))
            await self._save(updated)
        logger.info("🏢 Studio visit recorded for booking %s", booking_id)
        return updated

    async def unlock_review(self, booking_id: str) -> Booking:
        async with self.locks.hold(booking_id):
            updated = review_gate.unlock_review(await self.get_booking(booking_id))
            await self._save(updated)
        self._notify(updated.customer_id, "Review unlocked", "You can now post a review")
        return updated

    async def submit_review(self, booking_id: str, payload: dict[str, Any]) -> Booking:
        async with self.locks.hold(booking_id):
            updated = review_gate.submit_review(await self.get_booking(booking_id))
            await self._execute_with_retry(self.review_store.save_review, booking_id, payload)
            await self._save(updated)

        logger.info("⭐ Review submitted for booking %s", booking_id)
        self._notify(
            updated.customer_id,
            "Review posted",
            "Thank you for your review",
            NotificationKind.SUCCESS,
        )
        return updated

    # ── Conflicts ────────────────────────────────────────────────────────

    async def handle_concurrent_booking(
        self, booking_id: str, competitor_booking_id: str
    ) -> ConflictOutcome:
        outcome = await self.resolver.handle_concurrent_booking(booking_id, competitor_booking_id)
        loser = await self.get_booking(outcome.loser_id)
        self._notify(
            loser.customer_id,
            "Booking conflict",
            "Another booking took this time. Alternatives have been suggested.",
            NotificationKind.WARNING,
        )
        return outcome

    async def suggest_alternative_slots(
        self, artist_id: str, original_date: datetime, duration_minutes: int | None = None
    ) -> tuple[datetime, ...]:
        return await self.resolver.suggest_alternative_slots(
            artist_id, original_date, duration_minutes
        )

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def wait_for_auto_transition(self, booking_id: str) -> None:
        await self.scheduler.wait(booking_id)

    async def shutdown(self) -> None:
        """Cancel deferred transitions, drain side effects and retry unsaved ledger entries."""
        await self.scheduler.stop()
        if self._side_effects:
            await asyncio.gather(*list(self._side_effects), return_exceptions=True)
        remaining = await self.ledger.flush()
        if remaining:
            logger.error("%d ledger entries could not be persisted before shutdown", remaining)

    # ── Internals ────────────────────────────────────────────────────────

    @staticmethod
    def _artist_key(artist_id: str) -> str:
        return f"artist:{artist_id}"

    async def _guard_slot(self, booking: Booking, start: datetime, duration: int) -> None:
        competitor = await self.resolver.find_confirmed_competitor(booking, start, duration)
        if competitor is None:
            return
        outcome = await self.handle_concurrent_booking(booking.id, competitor.id)
        raise ConflictDetected(outcome)

    async def _save(self, booking: Booking) -> None:
        await self._execute_with_retry(self.repository.save_booking, booking)

    async def _commit(self, result: machine.TransitionResult) -> None:
        await self._save(result.booking)
        self.ledger.record(result.entry)

    async def _commit_with_reservation(self, result: machine.TransitionResult) -> None:
        """Hold the artist's time before the confirmation is persisted."""
        booking = result.booking
        await self._execute_with_retry(
            self.availability.reserve_slot,
            booking.artist_id,
            booking.slot_start,
            booking.slot_duration,
            booking.id,
        )
        try:
            await self._commit(result)
        except Exception:
            try:
                await self._execute_with_retry(
                    self.availability.release_slot, booking.artist_id, booking.id
                )
            except CollaboratorTimeout as exc:
                logger.error(
                    "Slot for booking %s not released after failed save: %s", booking.id, exc
                )
            raise

    def _notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        kind: NotificationKind = NotificationKind.INFO,
    ) -> None:
        task = asyncio.get_running_loop().create_task(
            self._deliver(recipient_id, title, message, kind)
        )
        self._side_effects.add(task)
        task.add_done_callback(self._side_effects.discard)

    async def _deliver(
        self, recipient_id: str, title: str, message: str, kind: NotificationKind
    ) -> None:
        try:
            await self._execute_with_retry(
                self.notifier.notify, recipient_id, title, message, kind
            )
        except Exception as exc:
            # Graceful degradation: log but don't fail the transition
            logger.error("Notification '%s' to %s failed: %s", title, recipient_id, exc)

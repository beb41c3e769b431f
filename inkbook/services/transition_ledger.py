"""
Inkbook — Transition Ledger
Append-only audit trail of every booking state change.

Entries are recorded in memory synchronously, so a transition that has
been persisted always has its ledger line. Writing the entry to the
repository is best-effort: failures are logged and the entry is kept
for a later flush, never surfaced as a failed booking mutation.
"""

import asyncio
import logging

from inkbook.core.config import Settings
from inkbook.models.schemas import TransitionLedgerEntry
from inkbook.services.base import BaseExternalService
from inkbook.services.collaborators import BookingRepository

logger = logging.getLogger(__name__)


class TransitionLedger(BaseExternalService):
    service_name = "TransitionLedger"

    def __init__(self, repository: BookingRepository, settings: Settings | None = None):
        super().__init__(settings)
        self.repository = repository
        self._entries: list[TransitionLedgerEntry] = []
        self._entry_ids: set[str] = set()
        self._unpersisted: list[TransitionLedgerEntry] = []
        self._tasks: set[asyncio.Task] = set()

    # ── Writes ───────────────────────────────────────────────────────────

    def record(self, entry: TransitionLedgerEntry) -> bool:
        """
        Append an entry and start persisting it in the background.
        Returns False when the same entry id was already recorded.
        """
        if entry.id in self._entry_ids:
            return False

        self._entries.append(entry)
        self._entry_ids.add(entry.id)
        logger.info(
            "📝 Booking %s: %s → %s (%s) by %s",
            entry.booking_id,
            entry.from_state,
            entry.to_state,
            entry.reason,
            entry.actor,
        )

        task = asyncio.get_running_loop().create_task(self._persist(entry))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _persist(self, entry: TransitionLedgerEntry) -> None:
        try:
            await self._execute_with_retry(self.repository.append_ledger_entry, entry)
        except Exception as exc:
            logger.error(
                "Ledger entry %s for booking %s not persisted, kept for flush: %s",
                entry.id,
                entry.booking_id,
                exc,
            )
            self._unpersisted.append(entry)

    async def flush(self) -> int:
        """Retry entries whose earlier persistence failed. Returns how many are still unpersisted."""
        await self.drain()
        retry_batch, self._unpersisted = self._unpersisted, []
        for entry in retry_batch:
            await self._persist(entry)
        return len(self._unpersisted)

    async def drain(self) -> None:
        """Wait for in-flight background writes."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ── Reads ────────────────────────────────────────────────────────────

    def history(self, booking_id: str | None = None) -> tuple[TransitionLedgerEntry, ...]:
        entries = (
            self._entries
            if booking_id is None
            else [e for e in self._entries if e.booking_id == booking_id]
        )
        return tuple(sorted(entries, key=lambda e: e.timestamp))

    @property
    def unpersisted(self) -> tuple[TransitionLedgerEntry, ...]:
        return tuple(self._unpersisted)

    async def hydrate(self, booking_id: str) -> tuple[TransitionLedgerEntry, ...]:
        """Load a booking's persisted history into the in-memory ledger."""
        stored = await self._execute_with_retry(
            self.repository.list_ledger_entries, booking_id
        )
        for entry in sorted(stored, key=lambda e: e.timestamp):
            if entry.id not in self._entry_ids:
                self._entries.append(entry)
                self._entry_ids.add(entry.id)
        return self.history(booking_id)

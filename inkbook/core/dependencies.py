"""
Inkbook — Shared Dependencies
FastAPI dependency injectors for settings and the lifecycle orchestrator.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from inkbook.core.config import Settings, get_settings
from inkbook.services.availability_service import ScheduleAvailabilityService
from inkbook.services.booking_lifecycle import BookingLifecycleOrchestrator
from inkbook.services.memory_store import InMemoryBookingRepository, InMemoryReviewStore
from inkbook.services.notification_service import build_notifier


def build_orchestrator(settings: Settings) -> BookingLifecycleOrchestrator:
    """Wire the engine to the collaborators selected by STORAGE_BACKEND."""
    if settings.STORAGE_BACKEND == "supabase":
        from inkbook.services.supabase_store import (
            SupabaseBookingRepository,
            SupabaseReviewStore,
            create_supabase_client,
        )

        client = create_supabase_client(settings)
        repository = SupabaseBookingRepository(client)
        review_store = SupabaseReviewStore(client)
    else:
        repository = InMemoryBookingRepository()
        review_store = InMemoryReviewStore()

    return BookingLifecycleOrchestrator(
        repository=repository,
        availability=ScheduleAvailabilityService(),
        notifier=build_notifier(settings),
        review_store=review_store,
        settings=settings,
    )


@lru_cache()
def get_orchestrator() -> BookingLifecycleOrchestrator:
    """One engine per process: booking locks and deferred tasks must be shared."""
    return build_orchestrator(get_settings())


# ── Type aliases for cleaner endpoint signatures ─────────────────────────────

Orchestrator = Annotated[BookingLifecycleOrchestrator, Depends(get_orchestrator)]
AppSettings = Annotated[Settings, Depends(get_settings)]

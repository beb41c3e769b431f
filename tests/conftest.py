from datetime import datetime, timezone

import pytest
import pytest_asyncio

from inkbook.core.config import Settings
from inkbook.models.schemas import BookingRequestDetails
from inkbook.services.availability_service import ScheduleAvailabilityService
from inkbook.services.booking_lifecycle import BookingLifecycleOrchestrator
from inkbook.services.memory_store import InMemoryBookingRepository, InMemoryReviewStore
from inkbook.services.notification_service import LoggingNotifier

# Saturday; studios are open Mon-Sat by default
SLOT_DAY = datetime(2025, 3, 1, 14, 0, tzinfo=timezone.utc)


def make_details(when: datetime = SLOT_DAY, duration: int = 90) -> BookingRequestDetails:
    return BookingRequestDetails(
        description="Fine-line peony on the forearm",
        body_location="forearm",
        preferred_date=when,
        estimated_duration=duration,
        estimated_price=30000,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        AUTO_PENDING_DELAY_SECONDS=0.01,
        COLLABORATOR_TIMEOUT_SECONDS=0.2,
        EXTERNAL_API_MAX_RETRIES=3,
        EXTERNAL_API_RETRY_DELAY=0.0,
    )


@pytest.fixture
def repository() -> InMemoryBookingRepository:
    return InMemoryBookingRepository()


@pytest.fixture
def availability() -> ScheduleAvailabilityService:
    return ScheduleAvailabilityService()


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def review_store() -> InMemoryReviewStore:
    return InMemoryReviewStore()


@pytest_asyncio.fixture
async def engine(settings, repository, availability, notifier, review_store):
    orchestrator = BookingLifecycleOrchestrator(
        repository=repository,
        availability=availability,
        notifier=notifier,
        review_store=review_store,
        settings=settings,
    )
    yield orchestrator
    await orchestrator.shutdown()


@pytest_asyncio.fixture
async def consenting_engine(engine, settings):
    for customer_id in ("C1", "C2"):
        await engine.agree_legal_terms(
            customer_id, settings.LEGAL_TERMS_VERSION, "I accept the studio terms"
        )
    return engine

"""
Inkbook — Legal Consent Gate
Tracks which customers accepted the current terms. Booking creation is
refused until they have. Consent records are stored through the booking
repository, so they survive restarts and are shared between workers.
"""

import logging

from inkbook.core.config import Settings
from inkbook.core.exceptions import PreconditionFailed
from inkbook.models.enums import BookingState, LegalConsentState
from inkbook.models.schemas import LegalConsent
from inkbook.services.base import BaseExternalService
from inkbook.services.collaborators import BookingRepository

logger = logging.getLogger(__name__)


class LegalConsentGate(BaseExternalService):
    service_name = "LegalConsentGate"

    def __init__(self, repository: BookingRepository, settings: Settings | None = None):
        super().__init__(settings)
        self.repository = repository
        self.current_version = self.settings.LEGAL_TERMS_VERSION
        self._consents: dict[str, LegalConsent] = {}

    async def agree_legal_terms(
        self, customer_id: str, version: str, agreement_text: str
    ) -> LegalConsent:
        """Record consent. Agreeing again replaces the stored version and timestamp."""
        consent = LegalConsent(
            customer_id=customer_id,
            version=version,
            agreement_text=agreement_text,
        )
        await self._execute_with_retry(self.repository.save_consent, consent)
        self._consents[customer_id] = consent
        logger.info("⚖️ Legal terms %s agreed by %s", version, customer_id)
        return consent

    async def consent_for(self, customer_id: str) -> LegalConsent | None:
        consent = self._consents.get(customer_id)
        if consent is None:
            consent = await self._execute_with_retry(self.repository.get_consent, customer_id)
            if consent is not None:
                self._consents[customer_id] = consent
        return consent

    def is_current(self, consent: LegalConsent | None) -> bool:
        return consent is not None and consent.version == self.current_version

    async def state_for(self, customer_id: str) -> LegalConsentState:
        """Consent to a superseded version of the terms counts as not agreed."""
        if self.is_current(await self.consent_for(customer_id)):
            return LegalConsentState.AGREED
        return LegalConsentState.NOT_AGREED

    async def can_create_booking(
        self, customer_id: str, booking_state: BookingState = BookingState.IDLE
    ) -> bool:
        return (
            booking_state == BookingState.IDLE
            and await self.state_for(customer_id) == LegalConsentState.AGREED
        )

    async def require_consent(self, customer_id: str) -> LegalConsent:
        consent = await self.consent_for(customer_id)
        if consent is None:
            raise PreconditionFailed(
                f"Customer {customer_id} has not agreed to the legal terms"
            )
        if not self.is_current(consent):
            raise PreconditionFailed(
                f"Customer {customer_id} agreed to terms {consent.version}; "
                f"current terms are {self.current_version}"
            )
        return consent

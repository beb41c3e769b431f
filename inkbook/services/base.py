"""
Inkbook — Base Collaborator Service
Provides timeouts, retry logic, structured error handling, and logging
for every call the lifecycle engine makes into an external collaborator.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from inkbook.core.config import Settings, get_settings
from inkbook.core.exceptions import CollaboratorTimeout

T = TypeVar("T")

RETRYABLE_ERRORS = (ConnectionError, TimeoutError, OSError)


class BaseExternalService:
    """
    Base class for collaborator wrappers.

    Features:
    - Per-attempt timeout (asyncio.wait_for)
    - Automatic retry with exponential backoff (via tenacity)
    - Structured logging for all calls
    - Exhausted retries surface as CollaboratorTimeout
    """

    service_name: str = "BaseService"

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(f"inkbook.services.{self.service_name}")

    def _get_retry_decorator(self) -> Any:
        """Build a tenacity retry decorator from settings."""
        return retry(
            stop=stop_after_attempt(self.settings.EXTERNAL_API_MAX_RETRIES),
            wait=wait_exponential(
                multiplier=self.settings.EXTERNAL_API_RETRY_DELAY,
                max=self.settings.EXTERNAL_API_RETRY_MAX_DELAY,
            ),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=self._log_retry,
        )

    def _log_retry(self, retry_state: Any) -> None:
        """Log each retry attempt."""
        self.logger.warning(
            "Retry %d/%d for %s — %s",
            retry_state.attempt_number,
            self.settings.EXTERNAL_API_MAX_RETRIES,
            self.service_name,
            retry_state.outcome.exception() if retry_state.outcome else "unknown",
        )

    async def _execute_with_retry(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """
        Execute an async collaborator call with a timeout per attempt and
        retry logic. Returns the result or raises CollaboratorTimeout once
        every attempt has timed out or failed with a transport error.
        """
        retry_decorator = self._get_retry_decorator()
        timeout = self.settings.COLLABORATOR_TIMEOUT_SECONDS

        @retry_decorator
        async def _wrapped() -> T:
            return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)

        try:
            result = await _wrapped()
            self.logger.debug("✅ %s call succeeded", self.service_name)
            return result
        except RetryError as exc:
            self.logger.error(
                "❌ %s failed after %d attempts",
                self.service_name,
                self.settings.EXTERNAL_API_MAX_RETRIES,
            )
            original = exc.last_attempt.exception() if exc.last_attempt else None
            raise CollaboratorTimeout(
                service_name=self.service_name,
                message=f"All {self.settings.EXTERNAL_API_MAX_RETRIES} attempts exhausted",
                attempts=self.settings.EXTERNAL_API_MAX_RETRIES,
                original_error=original,  # type: ignore[arg-type]
            ) from exc

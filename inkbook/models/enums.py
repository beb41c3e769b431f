"""
Inkbook — Python Enums
Lifecycle states shared by the engine, the persistence layer and the API.
"""

from enum import StrEnum


class BookingState(StrEnum):
    IDLE = "idle"  # pre-creation only, never persisted
    REQUESTED = "requested"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ReviewState(StrEnum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    SUBMITTED = "submitted"


class LegalConsentState(StrEnum):
    NOT_AGREED = "notAgreed"
    AGREED = "agreed"


class ParticipantRole(StrEnum):
    CUSTOMER = "customer"
    ARTIST = "artist"


class PreferredSize(StrEnum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class NotificationKind(StrEnum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

"""Shared SQLAlchemy base, column types and enums for Botsy models."""

from __future__ import annotations

import datetime as dt
import uuid
from enum import Enum

from sqlalchemy import DateTime, Enum as SqlEnum
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

__all__ = [
    "Base",
    "BotsyEnum",
    "UTCDateTime",
    "ChannelType",
    "ConflictStatus",
    "FAQSource",
    "InstructionCategory",
    "InstructionPriority",
    "InvitationStatus",
    "MembershipRole",
    "MembershipStatus",
    "MessageDirection",
    "SyncJobStatus",
    "TransferStatus",
    "enum_column",
    "new_id",
    "utcnow",
]


class Base(DeclarativeBase):
    """Declarative base class shared by all Botsy models."""


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def new_id(prefix: str | None = None) -> str:
    """Return a random document id, optionally prefixed (``sync-…``)."""

    value = uuid.uuid4().hex
    return f"{prefix}-{value}" if prefix else value


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that always round-trips as UTC.

    SQLite drops tzinfo on the way back, so naive values read from the
    database are re-tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value.astimezone(dt.timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value


class BotsyEnum(str, Enum):
    """Base class for enums persisted by value."""

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(item.value for item in cls)


class MembershipRole(BotsyEnum):
    OWNER = "owner"
    ADMIN = "admin"
    EMPLOYEE = "employee"


class MembershipStatus(BotsyEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class InvitationStatus(BotsyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class TransferStatus(BotsyEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class ChannelType(BotsyEnum):
    INSTAGRAM = "instagram"
    MESSENGER = "messenger"
    EMAIL = "email"


class MessageDirection(BotsyEnum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class FAQSource(BotsyEnum):
    MANUAL = "manual"
    USER = "user"
    EXTRACTED = "extracted"
    GENERATED = "generated"
    WEBSITE = "website"
    WEBSITE_AUTO = "website_auto"


class InstructionCategory(BotsyEnum):
    PROMOTION = "promotion"
    AVAILABILITY = "availability"
    POLICY = "policy"
    GENERAL = "general"


class InstructionPriority(BotsyEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SyncJobStatus(BotsyEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ConflictStatus(BotsyEnum):
    PENDING = "pending"
    RESOLVED_KEEP_CURRENT = "resolved_keep_current"
    RESOLVED_USE_WEBSITE = "resolved_use_website"
    RESOLVED_MERGED = "resolved_merged"
    RESOLVED_KEEP_BOTH = "resolved_keep_both"
    DISMISSED = "dismissed"


def enum_column(enum_cls: type[BotsyEnum]) -> SqlEnum:
    """Return a portable ``VARCHAR`` enum column storing member values."""

    return SqlEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda cls: [item.value for item in cls],
        validate_strings=True,
    )

"""Knowledge base models: FAQs, instructions and website sync records."""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import (
    Base,
    ConflictStatus,
    FAQSource,
    InstructionCategory,
    InstructionPriority,
    SyncJobStatus,
    UTCDateTime,
    enum_column,
    new_id,
    utcnow,
)

if TYPE_CHECKING:  # pragma: no cover
    from .companies import Company

__all__ = [
    "FAQ",
    "Instruction",
    "KnowledgeConflict",
    "SyncConfiguration",
    "WebsiteSyncJob",
]


class FAQ(Base):
    """Question/answer pair the bot may use when replying."""

    __tablename__ = "faqs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[FAQSource] = mapped_column(
        enum_column(FAQSource), default=FAQSource.MANUAL, nullable=False
    )
    confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    website_url: Mapped[str | None] = mapped_column(Text)
    website_last_seen: Mapped[dt.datetime | None] = mapped_column(UTCDateTime)
    possibly_outdated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )

    company: Mapped["Company"] = relationship(back_populates="faqs")


class Instruction(Base):
    """Owner-defined rule the bot follows, optionally time boxed."""

    __tablename__ = "instructions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[InstructionCategory] = mapped_column(
        enum_column(InstructionCategory), default=InstructionCategory.GENERAL, nullable=False
    )
    priority: Mapped[InstructionPriority] = mapped_column(
        enum_column(InstructionPriority), default=InstructionPriority.MEDIUM, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    starts_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime)
    expires_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)

    company: Mapped["Company"] = relationship(back_populates="instructions")


class SyncConfiguration(Base):
    """Per-company website sync settings (one row per company)."""

    __tablename__ = "sync_configurations"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), primary_key=True
    )
    website_url: Mapped[str] = mapped_column(Text, default="", nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sync_interval_hours: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    auto_approve_website_faqs: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    notify_on_conflicts: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notify_on_new_faqs: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_sync_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime)
    last_sync_job_id: Mapped[str | None] = mapped_column(String(64))
    last_content_hash: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )


class WebsiteSyncJob(Base):
    """One execution of the website sync pipeline."""

    __tablename__ = "website_sync_jobs"
    __table_args__ = (Index("idx_sync_jobs_company", "company_id", "started_at"),)

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: new_id("sync")
    )
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    website_url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[SyncJobStatus] = mapped_column(
        enum_column(SyncJobStatus), default=SyncJobStatus.PENDING, nullable=False
    )
    new_faqs_found: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    conflicts_found: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    faqs_updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    faqs_marked_outdated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    started_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
    completed_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime)
    duration_ms: Mapped[int | None] = mapped_column(Integer)
    error: Mapped[str | None] = mapped_column(Text)
    content_hash: Mapped[str | None] = mapped_column(String(64))


class KnowledgeConflict(Base):
    """Disagreement between a manual FAQ and what the website now says."""

    __tablename__ = "knowledge_conflicts"
    __table_args__ = (Index("idx_conflicts_company_status", "company_id", "status"),)

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: new_id("conflict")
    )
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    faq_id: Mapped[str] = mapped_column(String(64), nullable=False)
    current_question: Mapped[str] = mapped_column(Text, nullable=False)
    current_answer: Mapped[str] = mapped_column(Text, nullable=False)
    current_source: Mapped[FAQSource] = mapped_column(enum_column(FAQSource), nullable=False)
    website_question: Mapped[str] = mapped_column(Text, nullable=False)
    website_answer: Mapped[str] = mapped_column(Text, nullable=False)
    website_url: Mapped[str | None] = mapped_column(Text)
    similarity_score: Mapped[float | None] = mapped_column(Float)
    status: Mapped[ConflictStatus] = mapped_column(
        enum_column(ConflictStatus), default=ConflictStatus.PENDING, nullable=False
    )
    resolved_by: Mapped[str | None] = mapped_column(String(128))
    resolved_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime)
    resolution_note: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )

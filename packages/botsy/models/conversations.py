"""Channel chat history and employee performance models."""

from __future__ import annotations

import datetime as dt

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import (
    Base,
    ChannelType,
    MessageDirection,
    UTCDateTime,
    enum_column,
    new_id,
    utcnow,
)

__all__ = ["ChannelChat", "ChatMessage", "EmployeePerformance"]


class ChannelChat(Base):
    """Conversation with one external sender on one channel."""

    __tablename__ = "channel_chats"
    __table_args__ = (
        UniqueConstraint("company_id", "channel", "sender_id", name="uq_chat_sender"),
        Index("idx_chats_recent", "company_id", "channel", "last_message_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    channel: Mapped[ChannelType] = mapped_column(enum_column(ChannelType), nullable=False)
    sender_id: Mapped[str] = mapped_column(String(128), nullable=False)
    last_message_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )

    messages: Mapped[list["ChatMessage"]] = relationship(
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatMessage.seq",
    )


class ChatMessage(Base):
    """Single inbound or outbound message; ``seq`` preserves arrival order."""

    __tablename__ = "chat_messages"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(
        String(64), unique=True, default=lambda: new_id("msg"), nullable=False
    )
    chat_id: Mapped[str] = mapped_column(
        ForeignKey("channel_chats.id", ondelete="CASCADE"), nullable=False, index=True
    )
    direction: Mapped[MessageDirection] = mapped_column(
        enum_column(MessageDirection), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(String(128), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    timestamp: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
    message_id: Mapped[str | None] = mapped_column(String(255))

    chat: Mapped[ChannelChat] = relationship(back_populates="messages")


class EmployeePerformance(Base):
    """Monthly leaderboard counters for one team member."""

    __tablename__ = "employee_performance"
    __table_args__ = (
        UniqueConstraint("company_id", "user_id", "month", name="uq_performance_month"),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    answered_customers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    positive_feedback: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_updated: Mapped[dt.datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )

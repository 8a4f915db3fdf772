"""Company, user, membership and channel models."""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import (
    Base,
    ChannelType,
    InvitationStatus,
    MembershipRole,
    MembershipStatus,
    TransferStatus,
    UTCDateTime,
    enum_column,
    new_id,
    utcnow,
)

if TYPE_CHECKING:  # pragma: no cover
    from .knowledge import FAQ, Instruction

__all__ = [
    "ChannelConnection",
    "Company",
    "Invitation",
    "Membership",
    "OwnershipTransfer",
    "User",
]


class User(Base):
    """Identity-provider user mirrored locally.

    Owners created during signup carry ``company_id`` and ``role`` directly
    on this record and may have no membership row.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), index=True)
    display_name: Mapped[str | None] = mapped_column(String(255))
    avatar_url: Mapped[str | None] = mapped_column(Text)
    company_id: Mapped[str | None] = mapped_column(String(64))
    role: Mapped[str | None] = mapped_column(String(32))
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)


class Company(Base):
    """Tenant owning channels, knowledge and team memberships."""

    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[str | None] = mapped_column(String(128))
    website_url: Mapped[str | None] = mapped_column(Text)
    business_profile: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )

    memberships: Mapped[list["Membership"]] = relationship(
        back_populates="company", cascade="all, delete-orphan"
    )
    channels: Mapped[list["ChannelConnection"]] = relationship(
        back_populates="company", cascade="all, delete-orphan"
    )
    faqs: Mapped[list["FAQ"]] = relationship(
        back_populates="company", cascade="all, delete-orphan"
    )
    instructions: Mapped[list["Instruction"]] = relationship(
        back_populates="company", cascade="all, delete-orphan"
    )


class ChannelConnection(Base):
    """OAuth-connected messaging channel of a company."""

    __tablename__ = "channel_connections"
    __table_args__ = (
        UniqueConstraint("company_id", "channel", name="uq_channel_per_company"),
        Index("idx_channel_page", "channel", "page_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    channel: Mapped[ChannelType] = mapped_column(enum_column(ChannelType), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    page_id: Mapped[str | None] = mapped_column(String(128))
    page_name: Mapped[str | None] = mapped_column(String(255))
    account_id: Mapped[str | None] = mapped_column(String(128))
    username: Mapped[str | None] = mapped_column(String(255))
    email_address: Mapped[str | None] = mapped_column(String(320))
    credentials: Mapped[dict | None] = mapped_column(JSON)
    connected_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )

    company: Mapped[Company] = relationship(back_populates="channels")


class Membership(Base):
    """A user's role and permission grant within a company."""

    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "company_id", name="uq_membership_user_company"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[MembershipRole] = mapped_column(enum_column(MembershipRole), nullable=False)
    permissions: Mapped[dict | None] = mapped_column(JSON)
    status: Mapped[MembershipStatus] = mapped_column(
        enum_column(MembershipStatus), default=MembershipStatus.ACTIVE, nullable=False
    )
    invited_by: Mapped[str | None] = mapped_column(String(128))
    joined_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)

    company: Mapped[Company] = relationship(back_populates="memberships")


class Invitation(Base):
    """Pending e-mail invitation to join a company."""

    __tablename__ = "invitations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    role: Mapped[MembershipRole] = mapped_column(enum_column(MembershipRole), nullable=False)
    permissions: Mapped[dict | None] = mapped_column(JSON)
    invited_by: Mapped[str] = mapped_column(String(128), nullable=False)
    inviter_name: Mapped[str | None] = mapped_column(String(255))
    company_name: Mapped[str | None] = mapped_column(String(255))
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    status: Mapped[InvitationStatus] = mapped_column(
        enum_column(InvitationStatus), default=InvitationStatus.PENDING, nullable=False
    )
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
    expires_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, nullable=False)


class OwnershipTransfer(Base):
    """Two-party confirmed handover of company ownership."""

    __tablename__ = "ownership_transfers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    to_user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    from_user_token: Mapped[str] = mapped_column(String(128), nullable=False)
    to_user_token: Mapped[str] = mapped_column(String(128), nullable=False)
    from_user_confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    to_user_confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[TransferStatus] = mapped_column(
        enum_column(TransferStatus), default=TransferStatus.PENDING, nullable=False
    )
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow)
    expires_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, nullable=False)

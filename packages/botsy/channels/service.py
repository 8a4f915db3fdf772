"""Channel connections and per-sender chat history."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, List, Optional

import structlog
from sqlalchemy import and_, desc, func, or_, select
from sqlalchemy.orm import Session

from ..audit import AuditEvent, AuditLogger
from ..errors import OAuthError
from ..models import (
    ChannelChat,
    ChannelConnection,
    ChannelType,
    ChatMessage,
    Company,
    MessageDirection,
    utcnow,
)
from ..oauth.facebook import FacebookOAuthClient, verify_webhook_signature
from ..oauth.google import GmailProfile, GoogleOAuthClient
from .webhooks import parse_webhook

__all__ = ["ChannelService", "ChatSummary", "HISTORY_LIMIT"]

HISTORY_LIMIT = 100

logger = structlog.get_logger(__name__)


@dataclass
class ChatSummary:
    sender_id: str
    last_message: Optional[ChatMessage]
    last_message_at: dt.datetime
    message_count: int


class ChannelService:
    def __init__(self, session: Session, audit: AuditLogger | None = None):
        self.session = session
        self.audit = audit

    # ========================================================================
    # Connections
    # ========================================================================

    def get_connection(self, company_id: str, channel: ChannelType) -> Optional[ChannelConnection]:
        return (
            self.session.execute(
                select(ChannelConnection).where(
                    and_(
                        ChannelConnection.company_id == company_id,
                        ChannelConnection.channel == channel,
                    )
                )
            )
            .scalars()
            .first()
        )

    def save_connection(self, company_id: str, channel: ChannelType, **fields) -> ChannelConnection:
        """Create or replace the company's connection for ``channel``."""

        if self.session.get(Company, company_id) is None:
            raise LookupError("Company not found")
        connection = self.get_connection(company_id, channel)
        if connection is None:
            connection = ChannelConnection(company_id=company_id, channel=channel)
            self.session.add(connection)
        for key, value in fields.items():
            setattr(connection, key, value)
        connection.connected_at = utcnow()
        if self.audit is not None:
            self.audit.log(
                AuditEvent(
                    action="channel.connected",
                    actor="system",
                    company_id=company_id,
                    resource_type="channel",
                    resource_id=channel.value,
                    metadata={"page_id": fields.get("page_id"), "email": fields.get("email_address")},
                )
            )
        self.session.commit()
        return connection

    def find_connection_by_page_id(
        self, channel: ChannelType, page_id: str
    ) -> Optional[ChannelConnection]:
        """Active connection whose page (or Instagram account) is ``page_id``."""

        return (
            self.session.execute(
                select(ChannelConnection)
                .where(
                    and_(
                        ChannelConnection.channel == channel,
                        or_(
                            ChannelConnection.page_id == page_id,
                            ChannelConnection.account_id == page_id,
                        ),
                        ChannelConnection.is_active.is_(True),
                    )
                )
                .limit(1)
            )
            .scalars()
            .first()
        )

    def connect_facebook(
        self,
        client: FacebookOAuthClient,
        *,
        company_id: str,
        channel: ChannelType,
        code: str,
        redirect_uri: str,
    ) -> ChannelConnection:
        """Finish the Meta OAuth flow and store the page connection.

        The first managed page is used. Webhook subscription failures are
        logged and ignored because subscriptions can be set up manually.
        """

        token = client.exchange_code_for_token(code=code, redirect_uri=redirect_uri)
        pages = client.get_user_pages(token["access_token"])
        if not pages:
            raise OAuthError(
                "No Facebook pages found. You need at least one Facebook page to connect."
            )
        if len(pages) > 1:
            logger.info("facebook_multiple_pages", company_id=company_id, using=pages[0].id)
        page = pages[0]

        page_token = client.get_page_access_token(
            page_id=page.id, user_access_token=token["access_token"]
        )
        try:
            client.subscribe_webhook(page_id=page.id, page_access_token=page_token)
        except OAuthError as exc:
            logger.warning("facebook_webhook_subscription_failed", page_id=page.id, error=str(exc))

        fields = {
            "is_active": True,
            "is_verified": True,
            "page_id": page.id,
            "page_name": page.name,
            "credentials": {
                "page_access_token": page_token,
                "app_secret": client.app_secret or "",
            },
        }
        if channel == ChannelType.INSTAGRAM:
            account = client.get_instagram_business_account(
                page_id=page.id, page_access_token=page_token
            )
            if not account:
                raise OAuthError(
                    "No Instagram business account is linked to this Facebook page. "
                    "Please link your Instagram account in Meta Business Suite first."
                )
            fields["account_id"] = account.get("id")
            fields["username"] = account.get("username") or ""
        return self.save_connection(company_id, channel, **fields)

    def connect_gmail(
        self,
        client: GoogleOAuthClient,
        *,
        company_id: str,
        code: str,
        redirect_uri: str,
    ) -> tuple[ChannelConnection, GmailProfile]:
        tokens = client.exchange_code_for_tokens(code=code, redirect_uri=redirect_uri)
        profile = client.get_gmail_profile(tokens.access_token)
        connection = self.save_connection(
            company_id,
            ChannelType.EMAIL,
            is_active=True,
            is_verified=True,
            email_address=profile.email_address,
            credentials={
                "provider": "gmail",
                "access_token": tokens.access_token,
                "refresh_token": tokens.refresh_token or "",
                "expires_at": tokens.expires_at_ms(),
            },
        )
        return connection, profile

    # ========================================================================
    # Chats
    # ========================================================================

    def _get_chat(self, company_id: str, channel: ChannelType, sender_id: str) -> Optional[ChannelChat]:
        return (
            self.session.execute(
                select(ChannelChat).where(
                    and_(
                        ChannelChat.company_id == company_id,
                        ChannelChat.channel == channel,
                        ChannelChat.sender_id == sender_id,
                    )
                )
            )
            .scalars()
            .first()
        )

    def save_message(
        self,
        company_id: str,
        channel: ChannelType,
        sender_id: str,
        *,
        direction: MessageDirection,
        text: str,
        timestamp: dt.datetime | None = None,
        message_id: str | None = None,
        author_id: str | None = None,
    ) -> ChatMessage:
        """Append a message to the sender's chat, creating the chat if needed."""

        chat = self._get_chat(company_id, channel, sender_id)
        if chat is None:
            chat = ChannelChat(company_id=company_id, channel=channel, sender_id=sender_id)
            self.session.add(chat)
            self.session.flush()
        message = ChatMessage(
            chat_id=chat.id,
            direction=direction,
            sender_id=author_id or sender_id,
            text=text,
            timestamp=timestamp or utcnow(),
            message_id=message_id,
        )
        self.session.add(message)
        chat.last_message_at = utcnow()
        self.session.commit()
        return message

    def receive_webhook(
        self,
        channel: ChannelType,
        payload: Any,
        *,
        raw_body: bytes,
        signature: str | None,
    ) -> List[ChatMessage]:
        """Store the inbound text messages of a Meta webhook delivery.

        Messages for unknown or inactive pages are dropped. When the
        connection holds an app secret the ``X-Hub-Signature-256`` header
        must match the raw body.
        """

        saved: List[ChatMessage] = []
        for inbound in parse_webhook(channel, payload):
            connection = self.find_connection_by_page_id(channel, inbound.recipient_id)
            if connection is None:
                logger.info("webhook_unknown_page", channel=channel.value, page_id=inbound.recipient_id)
                continue
            app_secret = (connection.credentials or {}).get("app_secret")
            if app_secret and not verify_webhook_signature(app_secret, signature or "", raw_body):
                logger.warning(
                    "webhook_signature_invalid",
                    channel=channel.value,
                    company_id=connection.company_id,
                )
                continue
            saved.append(
                self.save_message(
                    connection.company_id,
                    channel,
                    inbound.sender_id,
                    direction=MessageDirection.INBOUND,
                    text=inbound.text,
                    timestamp=inbound.timestamp,
                    message_id=inbound.message_id,
                )
            )
        if saved:
            logger.info("webhook_messages_saved", channel=channel.value, count=len(saved))
        return saved

    def get_history(
        self,
        company_id: str,
        channel: ChannelType,
        sender_id: str,
        limit: int = HISTORY_LIMIT,
    ) -> List[ChatMessage]:
        """Return the newest ``limit`` messages in chronological order."""

        chat = self._get_chat(company_id, channel, sender_id)
        if chat is None:
            return []
        newest = (
            self.session.execute(
                select(ChatMessage)
                .where(ChatMessage.chat_id == chat.id)
                .order_by(desc(ChatMessage.seq))
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return list(reversed(newest))

    def list_chats(self, company_id: str, channel: ChannelType) -> List[ChatSummary]:
        """All chats for the channel, most recent activity first."""

        counts = (
            select(ChatMessage.chat_id, func.count(ChatMessage.seq).label("n"), func.max(ChatMessage.seq).label("last_seq"))
            .group_by(ChatMessage.chat_id)
            .subquery()
        )
        rows = self.session.execute(
            select(ChannelChat, counts.c.n, counts.c.last_seq)
            .outerjoin(counts, counts.c.chat_id == ChannelChat.id)
            .where(
                and_(
                    ChannelChat.company_id == company_id,
                    ChannelChat.channel == channel,
                )
            )
        ).all()

        last_seqs = [row.last_seq for row in rows if row.last_seq is not None]
        last_messages = {}
        if last_seqs:
            last_messages = {
                m.seq: m
                for m in self.session.execute(
                    select(ChatMessage).where(ChatMessage.seq.in_(last_seqs))
                ).scalars()
            }

        summaries = [
            ChatSummary(
                sender_id=chat.sender_id,
                last_message=last_messages.get(last_seq),
                last_message_at=chat.last_message_at,
                message_count=n or 0,
            )
            for chat, n, last_seq in rows
        ]
        summaries.sort(key=lambda s: s.last_message_at, reverse=True)
        return summaries

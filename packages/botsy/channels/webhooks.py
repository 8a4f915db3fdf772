"""Meta webhook payloads for Instagram and Messenger."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, List, Optional

from ..models import ChannelType

__all__ = ["InboundMessage", "WEBHOOK_OBJECTS", "parse_webhook"]

WEBHOOK_OBJECTS = {ChannelType.MESSENGER: "page", ChannelType.INSTAGRAM: "instagram"}


@dataclass
class InboundMessage:
    """A text message a customer sent to a connected page or account.

    ``recipient_id`` is the page id for Messenger and the Instagram
    business account id (the entry id) for Instagram.
    """

    recipient_id: str
    sender_id: str
    text: str
    timestamp: dt.datetime
    message_id: Optional[str] = None


def _timestamp(value: Any) -> dt.datetime:
    try:
        return dt.datetime.fromtimestamp(int(value) / 1000, tz=dt.timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return dt.datetime.now(dt.timezone.utc)


def parse_webhook(channel: ChannelType, payload: Any) -> List[InboundMessage]:
    """Collect the text messages of a webhook delivery.

    Deliveries for another object type, delivery and read receipts and
    attachments without text are skipped.
    """

    if not isinstance(payload, dict) or payload.get("object") != WEBHOOK_OBJECTS[channel]:
        return []
    messages: List[InboundMessage] = []
    for entry in payload.get("entry") or []:
        if not isinstance(entry, dict):
            continue
        for event in entry.get("messaging") or []:
            message = event.get("message") if isinstance(event, dict) else None
            if not isinstance(message, dict) or not message.get("text"):
                continue
            if message.get("is_echo"):
                continue
            sender = (event.get("sender") or {}).get("id")
            if channel == ChannelType.INSTAGRAM:
                recipient = entry.get("id")
            else:
                recipient = (event.get("recipient") or {}).get("id")
            if not sender or not recipient:
                continue
            messages.append(
                InboundMessage(
                    recipient_id=str(recipient),
                    sender_id=str(sender),
                    text=message["text"],
                    timestamp=_timestamp(event.get("timestamp")),
                    message_id=message.get("mid"),
                )
            )
    return messages

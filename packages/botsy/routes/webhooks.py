"""Meta webhook endpoints feeding the Instagram and Messenger chat history."""

from __future__ import annotations

import json
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from .. import schemas
from ..channels import ChannelService
from ..dependencies import get_channel_service, get_settings
from ..models import ChannelType
from ..settings import BotsySettings

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

logger = structlog.get_logger(__name__)

WEBHOOK_CHANNELS = {
    "instagram": ChannelType.INSTAGRAM,
    "messenger": ChannelType.MESSENGER,
}


def _channel(name: str) -> ChannelType:
    channel = WEBHOOK_CHANNELS.get(name)
    if channel is None:
        raise HTTPException(status_code=404, detail="Not found")
    return channel


async def raw_body(request: Request) -> bytes:
    return await request.body()


@router.get("/{channel_name}", response_class=PlainTextResponse)
def verify_webhook(
    channel_name: str,
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    settings: BotsySettings = Depends(get_settings),
) -> PlainTextResponse:
    """Answer Meta's subscription handshake with the challenge."""

    channel = _channel(channel_name)
    expected = settings.webhook_verify_token
    if mode == "subscribe" and expected and token == expected:
        logger.info("webhook_verified", channel=channel.value)
        return PlainTextResponse(challenge or "")
    logger.warning("webhook_verification_failed", channel=channel.value, mode=mode)
    raise HTTPException(status_code=403, detail="Verification failed")


@router.post("/{channel_name}", response_model=schemas.WebhookAck)
def receive_webhook(
    channel_name: str,
    body: bytes = Depends(raw_body),
    signature: Optional[str] = Header(None, alias="X-Hub-Signature-256"),
    service: ChannelService = Depends(get_channel_service),
) -> schemas.WebhookAck:
    channel = _channel(channel_name)
    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning("webhook_body_not_json", channel=channel.value)
        return schemas.WebhookAck()
    saved = service.receive_webhook(channel, payload, raw_body=body, signature=signature)
    return schemas.WebhookAck(received=len(saved))

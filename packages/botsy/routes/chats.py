"""Instagram and Messenger chat lists and message history."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import AuthResult
from ..channels import ChannelService
from ..channels.service import HISTORY_LIMIT
from ..dependencies import get_channel_service, get_current_user, get_session, require_access
from ..models import ChannelType

router = APIRouter(prefix="/api", tags=["chats"])


def _chats(
    channel: ChannelType,
    company_id: Optional[str],
    sender_id: Optional[str],
    auth: AuthResult,
    session: Session,
    service: ChannelService,
) -> schemas.ChatsResponse:
    require_access(session, auth, company_id)
    if sender_id:
        messages = service.get_history(company_id, channel, sender_id, HISTORY_LIMIT)
        return schemas.ChatsResponse(
            messages=[schemas.MessageResponse.model_validate(m) for m in messages]
        )
    return schemas.ChatsResponse(
        chats=[
            schemas.ChatSummaryResponse.model_validate(chat)
            for chat in service.list_chats(company_id, channel)
        ]
    )


@router.get(
    "/instagram/chats",
    response_model=schemas.ChatsResponse,
    response_model_exclude_none=True,
)
def instagram_chats(
    company_id: Optional[str] = Query(None, alias="companyId"),
    sender_id: Optional[str] = Query(None, alias="senderId"),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: ChannelService = Depends(get_channel_service),
) -> schemas.ChatsResponse:
    return _chats(ChannelType.INSTAGRAM, company_id, sender_id, auth, session, service)


@router.get(
    "/messenger/chats",
    response_model=schemas.ChatsResponse,
    response_model_exclude_none=True,
)
def messenger_chats(
    company_id: Optional[str] = Query(None, alias="companyId"),
    sender_id: Optional[str] = Query(None, alias="senderId"),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: ChannelService = Depends(get_channel_service),
) -> schemas.ChatsResponse:
    return _chats(ChannelType.MESSENGER, company_id, sender_id, auth, session, service)

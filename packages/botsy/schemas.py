"""Pydantic schemas for Botsy API requests and responses.

Responses are serialised with camelCase keys and carry ``success``.
Request fields are optional where the handler reports a missing value with
its own 400 message.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import (
    ConflictStatus,
    FAQSource,
    InstructionCategory,
    InstructionPriority,
    InvitationStatus,
    MembershipRole,
    MembershipStatus,
    MessageDirection,
    SyncJobStatus,
    TransferStatus,
)

__all__ = [
    "AIProviderTestRequest",
    "AIProviderTestResponse",
    "ChatSummaryResponse",
    "ChatsResponse",
    "ConflictResolveRequest",
    "ConflictResolveResponse",
    "ConflictResponse",
    "ConflictsResponse",
    "ErrorResponse",
    "FeedbackRequest",
    "HealthResponse",
    "InstructionCreateRequest",
    "InstructionEnvelope",
    "InstructionInput",
    "InstructionListResponse",
    "InstructionResponse",
    "InstructionUpdate",
    "InstructionUpdateRequest",
    "InvitationAcceptResponse",
    "InvitationCreateRequest",
    "InvitationCreateResponse",
    "InvitationEnvelope",
    "InvitationListResponse",
    "InvitationPublicResponse",
    "InvitationResponse",
    "KnowledgeConflictResponse",
    "LeaderboardEntryResponse",
    "LeaderboardResponse",
    "LeaveRequest",
    "LeaveResponse",
    "MemberResponse",
    "MemberUserResponse",
    "MembersResponse",
    "MembershipResponse",
    "MessageResponse",
    "PerformanceResponse",
    "SuccessResponse",
    "SyncConfigResponse",
    "SyncConfigUpdateRequest",
    "SyncConfigEnvelope",
    "SyncJobResponse",
    "SyncResultResponse",
    "SyncRunRequest",
    "SyncStatusResponse",
    "TransferConfirmRequest",
    "TransferConfirmResponse",
    "TransferCreateRequest",
    "TransferCreateResponse",
    "TransferEnvelope",
    "TransferResponse",
    "WebhookAck",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _as_utc(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


class SuccessResponse(CamelModel):
    success: bool = True


class ErrorResponse(CamelModel):
    success: bool = False
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"


# ========================================================================
# Chats
# ========================================================================


class MessageResponse(CamelModel):
    id: str
    direction: MessageDirection
    sender_id: str
    text: str
    timestamp: dt.datetime
    message_id: Optional[str] = None


class ChatSummaryResponse(CamelModel):
    sender_id: str
    last_message: Optional[MessageResponse] = None
    last_message_at: dt.datetime
    message_count: int = 0


class ChatsResponse(SuccessResponse):
    chats: Optional[List[ChatSummaryResponse]] = None
    messages: Optional[List[MessageResponse]] = None


class WebhookAck(CamelModel):
    status: str = "ok"
    received: int = 0


# ========================================================================
# Leaderboard
# ========================================================================


class FeedbackRequest(CamelModel):
    user_id: Optional[str] = None
    company_id: Optional[str] = None
    type: Optional[str] = None


class LeaderboardEntryResponse(CamelModel):
    user_id: str
    display_name: str
    avatar_url: Optional[str] = None
    answered_customers: int
    positive_feedback: int
    total_score: int
    rank: int


class PerformanceResponse(CamelModel):
    id: str
    user_id: str
    company_id: str
    month: str
    answered_customers: int
    positive_feedback: int
    total_score: int
    last_updated: Optional[dt.datetime] = None


class LeaderboardResponse(SuccessResponse):
    month: str
    month_name: str
    leaderboard: Optional[List[LeaderboardEntryResponse]] = None
    performances: Optional[List[PerformanceResponse]] = None


# ========================================================================
# AI provider test
# ========================================================================


class AIProviderTestRequest(CamelModel):
    prompt: Optional[str] = None


class AIProviderTestResponse(CamelModel):
    success: bool
    provider: Optional[str] = None
    response: Optional[str] = None
    error: Optional[str] = None
    response_time_ms: int


# ========================================================================
# Website sync
# ========================================================================


class SyncRunRequest(CamelModel):
    company_id: Optional[str] = None


class SyncConfigUpdateRequest(CamelModel):
    company_id: Optional[str] = None
    website_url: Optional[str] = None
    enabled: Optional[bool] = None
    sync_interval_hours: Optional[int] = Field(None, ge=1)
    auto_approve_website_faqs: Optional[bool] = None
    notify_on_conflicts: Optional[bool] = None
    notify_on_new_faqs: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"company_id"}, by_alias=False)


class SyncConfigResponse(CamelModel):
    company_id: Optional[str] = None
    website_url: str = ""
    enabled: bool = False
    sync_interval_hours: int = 1
    auto_approve_website_faqs: bool = False
    notify_on_conflicts: bool = True
    notify_on_new_faqs: bool = True
    last_sync_at: Optional[dt.datetime] = None
    last_sync_job_id: Optional[str] = None


class SyncConfigEnvelope(SuccessResponse):
    config: SyncConfigResponse


class SyncResultResponse(CamelModel):
    success: bool
    job_id: str
    total_faqs_on_website: int
    new_faqs_created: int
    conflicts_created: int
    faqs_updated: int
    faqs_marked_outdated: int
    content_changed: bool
    errors: List[str]
    warnings: List[str]


class SyncJobResponse(CamelModel):
    id: str
    company_id: str
    website_url: str
    status: SyncJobStatus
    new_faqs_found: int
    conflicts_found: int
    faqs_updated: int
    faqs_marked_outdated: int
    started_at: dt.datetime
    completed_at: Optional[dt.datetime] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None
    content_hash: Optional[str] = None


class SyncStatusResponse(SuccessResponse):
    config: Optional[SyncConfigResponse] = None
    recent_jobs: Optional[List[SyncJobResponse]] = None
    pending_conflicts: Optional[int] = None
    last_sync: Optional[dt.datetime] = None
    job: Optional[SyncJobResponse] = None


# ========================================================================
# Conflicts
# ========================================================================


class KnowledgeConflictResponse(CamelModel):
    id: str
    company_id: str
    faq_id: str
    current_question: str
    current_answer: str
    current_source: FAQSource
    website_question: str
    website_answer: str
    website_url: Optional[str] = None
    similarity_score: Optional[float] = None
    status: ConflictStatus
    resolved_by: Optional[str] = None
    resolved_at: Optional[dt.datetime] = None
    resolution_note: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime


class ConflictsResponse(SuccessResponse):
    conflicts: List[KnowledgeConflictResponse]
    pending_count: int


class ConflictResponse(SuccessResponse):
    conflict: KnowledgeConflictResponse


class ConflictResolveRequest(CamelModel):
    company_id: Optional[str] = None
    conflict_id: Optional[str] = None
    resolution: Optional[str] = None
    note: Optional[str] = None


class ConflictResolveResponse(SuccessResponse):
    resolution: ConflictStatus


# ========================================================================
# Instructions
# ========================================================================


class InstructionInput(CamelModel):
    content: Optional[str] = None
    category: InstructionCategory = InstructionCategory.GENERAL
    priority: InstructionPriority = InstructionPriority.MEDIUM
    is_active: bool = True
    starts_at: Optional[dt.datetime] = None
    expires_at: Optional[dt.datetime] = None

    normalize_times = field_validator("starts_at", "expires_at")(_as_utc)


class InstructionUpdate(CamelModel):
    content: Optional[str] = None
    category: Optional[InstructionCategory] = None
    priority: Optional[InstructionPriority] = None
    is_active: Optional[bool] = None
    starts_at: Optional[dt.datetime] = None
    expires_at: Optional[dt.datetime] = None

    normalize_times = field_validator("starts_at", "expires_at")(_as_utc)


class InstructionCreateRequest(CamelModel):
    company_id: Optional[str] = None
    instruction: Optional[InstructionInput] = None


class InstructionUpdateRequest(CamelModel):
    company_id: Optional[str] = None
    instruction_id: Optional[str] = None
    updates: InstructionUpdate = Field(default_factory=InstructionUpdate)


class InstructionResponse(CamelModel):
    id: str
    content: str
    category: InstructionCategory
    priority: InstructionPriority
    is_active: bool
    starts_at: Optional[dt.datetime] = None
    expires_at: Optional[dt.datetime] = None
    created_at: dt.datetime
    created_by: str


class InstructionEnvelope(SuccessResponse):
    instruction: InstructionResponse


class InstructionListResponse(SuccessResponse):
    instructions: List[InstructionResponse]


# ========================================================================
# Memberships and invitations
# ========================================================================


class MembershipResponse(CamelModel):
    id: str
    user_id: str
    company_id: str
    role: MembershipRole
    permissions: Optional[Dict[str, Any]] = None
    invited_by: Optional[str] = None
    joined_at: Optional[dt.datetime] = None
    status: MembershipStatus


class MemberUserResponse(CamelModel):
    email: str = ""
    display_name: str = ""
    avatar_url: Optional[str] = None


class MemberResponse(CamelModel):
    membership: MembershipResponse
    user: MemberUserResponse


class MembersResponse(SuccessResponse):
    members: Optional[List[MemberResponse]] = None
    membership: Optional[MembershipResponse] = None


class LeaveRequest(CamelModel):
    membership_id: Optional[str] = None


class LeaveResponse(SuccessResponse):
    message: str


class InvitationResponse(CamelModel):
    id: str
    company_id: str
    email: str
    role: MembershipRole
    permissions: Optional[Dict[str, Any]] = None
    invited_by: str
    inviter_name: str = ""
    company_name: str = ""
    created_at: dt.datetime
    expires_at: dt.datetime
    status: InvitationStatus
    token: str


class InvitationListResponse(SuccessResponse):
    invitations: List[InvitationResponse]


class InvitationCreateRequest(CamelModel):
    company_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[MembershipRole] = None
    permissions: Optional[Dict[str, Any]] = None
    inviter_name: Optional[str] = None


class InvitationCreateResponse(SuccessResponse):
    invitation_id: str
    token: str
    invite_url: str


class InvitationPublicResponse(CamelModel):
    id: str
    company_id: str
    email: str
    role: MembershipRole
    inviter_name: str = ""
    company_name: str = ""
    expires_at: dt.datetime


class InvitationEnvelope(SuccessResponse):
    invitation: InvitationPublicResponse


class InvitationAcceptResponse(SuccessResponse):
    company_id: str


# ========================================================================
# Ownership transfer
# ========================================================================


class TransferCreateRequest(CamelModel):
    company_id: Optional[str] = None
    to_user_id: Optional[str] = None


class TransferCreateResponse(SuccessResponse):
    transfer_id: str
    from_user_url: str
    to_user_url: str
    expires_at: dt.datetime


class TransferResponse(CamelModel):
    id: str
    company_id: str
    from_user_id: str
    to_user_id: str
    created_at: dt.datetime
    expires_at: dt.datetime
    from_user_confirmed: bool
    to_user_confirmed: bool
    status: TransferStatus


class TransferEnvelope(SuccessResponse):
    transfer: Optional[TransferResponse] = None


class TransferConfirmRequest(CamelModel):
    token: Optional[str] = None
    user_type: Optional[str] = Field(
        None, validation_alias=AliasChoices("userType", "type", "user_type")
    )
    transfer_id: Optional[str] = None


class TransferConfirmResponse(SuccessResponse):
    completed: bool
    status: TransferStatus

"""Botsy SQLAlchemy models organized by domain."""

from .audit import AuditLog
from .base import (
    Base,
    ChannelType,
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
    new_id,
    utcnow,
)
from .companies import (
    ChannelConnection,
    Company,
    Invitation,
    Membership,
    OwnershipTransfer,
    User,
)
from .conversations import ChannelChat, ChatMessage, EmployeePerformance
from .knowledge import (
    FAQ,
    Instruction,
    KnowledgeConflict,
    SyncConfiguration,
    WebsiteSyncJob,
)

__all__ = [
    "AuditLog",
    "Base",
    "ChannelChat",
    "ChannelConnection",
    "ChannelType",
    "ChatMessage",
    "Company",
    "ConflictStatus",
    "EmployeePerformance",
    "FAQ",
    "FAQSource",
    "Instruction",
    "InstructionCategory",
    "InstructionPriority",
    "Invitation",
    "InvitationStatus",
    "KnowledgeConflict",
    "Membership",
    "MembershipRole",
    "MembershipStatus",
    "MessageDirection",
    "OwnershipTransfer",
    "SyncConfiguration",
    "SyncJobStatus",
    "TransferStatus",
    "User",
    "WebsiteSyncJob",
    "new_id",
    "utcnow",
]

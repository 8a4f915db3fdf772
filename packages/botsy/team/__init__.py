from .service import (
    INVITATION_TTL,
    TRANSFER_TTL,
    TeamService,
    TransferLinks,
)

__all__ = ["INVITATION_TTL", "TRANSFER_TTL", "TeamService", "TransferLinks"]

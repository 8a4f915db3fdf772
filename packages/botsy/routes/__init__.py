from . import (
    ai_test,
    chats,
    conflicts,
    health,
    instructions,
    invitations,
    leaderboard,
    memberships,
    oauth,
    ownership_transfer,
    sync,
    webhooks,
)

ROUTERS = (
    health.router,
    oauth.router,
    chats.router,
    leaderboard.router,
    ai_test.router,
    sync.router,
    conflicts.router,
    instructions.router,
    memberships.router,
    invitations.router,
    ownership_transfer.router,
    webhooks.router,
)

__all__ = ["ROUTERS"]

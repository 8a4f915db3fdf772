from .service import (
    FEEDBACK_TYPES,
    LeaderboardEntry,
    LeaderboardService,
    current_month,
    month_name,
)

__all__ = [
    "FEEDBACK_TYPES",
    "LeaderboardEntry",
    "LeaderboardService",
    "current_month",
    "month_name",
]

"""Monthly employee leaderboard.

Scoring: one point per answered customer and five points per positive
feedback. Counters are stored per (company, user, month).
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import and_, desc, select
from sqlalchemy.orm import Session

from ..models import EmployeePerformance, Membership, MembershipStatus, User, utcnow

__all__ = [
    "FEEDBACK_TYPES",
    "LeaderboardEntry",
    "LeaderboardService",
    "current_month",
    "month_name",
    "total_score",
]

POSITIVE_FEEDBACK = "positive_feedback"
ANSWERED_CUSTOMER = "answered_customer"
FEEDBACK_TYPES: frozenset[str] = frozenset({POSITIVE_FEEDBACK, ANSWERED_CUSTOMER})
FEEDBACK_WEIGHT = 5
UNKNOWN_NAME = "Ukjent"

MONTH_NAMES = (
    "Januar",
    "Februar",
    "Mars",
    "April",
    "Mai",
    "Juni",
    "Juli",
    "August",
    "September",
    "Oktober",
    "November",
    "Desember",
)


def current_month(now: dt.datetime | None = None) -> str:
    now = now or utcnow()
    return f"{now.year}-{now.month:02d}"


def month_name(month: str) -> str:
    """``"2024-03"`` -> ``"Mars"``."""

    index = int(month.split("-")[1]) - 1
    if not 0 <= index < 12:
        raise ValueError(f"Invalid month: {month}")
    return MONTH_NAMES[index]


def total_score(answered_customers: int, positive_feedback: int) -> int:
    return answered_customers + FEEDBACK_WEIGHT * positive_feedback


@dataclass
class LeaderboardEntry:
    user_id: str
    display_name: str
    avatar_url: Optional[str]
    answered_customers: int
    positive_feedback: int
    total_score: int
    rank: int = 0


class LeaderboardService:
    def __init__(self, session: Session):
        self.session = session

    def get_performance(
        self, user_id: str, company_id: str, month: str | None = None
    ) -> Optional[EmployeePerformance]:
        month = month or current_month()
        return self.session.get(EmployeePerformance, f"{company_id}_{user_id}_{month}")

    def record_feedback(self, user_id: str, company_id: str, feedback_type: str) -> EmployeePerformance:
        if feedback_type not in FEEDBACK_TYPES:
            raise ValueError("Invalid type")
        month = current_month()
        perf = self.get_performance(user_id, company_id, month)
        if perf is None:
            perf = EmployeePerformance(
                id=f"{company_id}_{user_id}_{month}",
                company_id=company_id,
                user_id=user_id,
                month=month,
                answered_customers=0,
                positive_feedback=0,
                total_score=0,
            )
            self.session.add(perf)
        if feedback_type == POSITIVE_FEEDBACK:
            perf.positive_feedback += 1
        else:
            perf.answered_customers += 1
        perf.total_score = total_score(perf.answered_customers, perf.positive_feedback)
        perf.last_updated = utcnow()
        self.session.commit()
        return perf

    def get_leaderboard(
        self, company_id: str, top_count: int = 3, month: str | None = None
    ) -> List[LeaderboardEntry]:
        """Rank every active member, including those without points.

        ``top_count`` of zero or less returns the full list.
        """

        month = month or current_month()
        members = self.session.execute(
            select(User)
            .join(Membership, Membership.user_id == User.id)
            .where(
                and_(
                    Membership.company_id == company_id,
                    Membership.status == MembershipStatus.ACTIVE,
                )
            )
        ).scalars().all()

        performances = {
            perf.user_id: perf
            for perf in self.session.execute(
                select(EmployeePerformance).where(
                    and_(
                        EmployeePerformance.company_id == company_id,
                        EmployeePerformance.month == month,
                    )
                )
            ).scalars()
        }

        entries = []
        for user in members:
            perf = performances.get(user.id)
            entries.append(
                LeaderboardEntry(
                    user_id=user.id,
                    display_name=user.display_name or user.email or UNKNOWN_NAME,
                    avatar_url=user.avatar_url,
                    answered_customers=perf.answered_customers if perf else 0,
                    positive_feedback=perf.positive_feedback if perf else 0,
                    total_score=perf.total_score if perf else 0,
                )
            )

        entries.sort(key=lambda e: (-e.total_score, e.display_name.casefold()))
        for index, entry in enumerate(entries, start=1):
            entry.rank = index
        return entries[:top_count] if top_count > 0 else entries

    def list_performances(self, company_id: str, month: str | None = None) -> List[EmployeePerformance]:
        month = month or current_month()
        return list(
            self.session.execute(
                select(EmployeePerformance)
                .where(
                    and_(
                        EmployeePerformance.company_id == company_id,
                        EmployeePerformance.month == month,
                    )
                )
                .order_by(desc(EmployeePerformance.total_score))
            ).scalars()
        )

"""Monthly employee leaderboard and feedback counters."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import AuthResult
from ..dependencies import get_current_user, get_leaderboard_service, get_session, require_access
from ..leaderboard import LeaderboardService, current_month, month_name

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])

CACHE_CONTROL = "private, s-maxage=60, stale-while-revalidate=120"


@router.get("", response_model=schemas.LeaderboardResponse, response_model_exclude_none=True)
def leaderboard(
    response: Response,
    company_id: Optional[str] = Query(None, alias="companyId"),
    top_count: int = Query(3, alias="topCount"),
    include_all: bool = Query(False, alias="includeAll"),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: LeaderboardService = Depends(get_leaderboard_service),
) -> schemas.LeaderboardResponse:
    require_access(session, auth, company_id)
    month = current_month()
    response.headers["Cache-Control"] = CACHE_CONTROL
    if include_all:
        return schemas.LeaderboardResponse(
            month=month,
            month_name=month_name(month),
            performances=[
                schemas.PerformanceResponse.model_validate(p)
                for p in service.list_performances(company_id, month)
            ],
        )
    return schemas.LeaderboardResponse(
        month=month,
        month_name=month_name(month),
        leaderboard=[
            schemas.LeaderboardEntryResponse.model_validate(e)
            for e in service.get_leaderboard(company_id, top_count, month)
        ],
    )


@router.post("/feedback", response_model=schemas.SuccessResponse)
def record_feedback(
    request: schemas.FeedbackRequest,
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: LeaderboardService = Depends(get_leaderboard_service),
) -> schemas.SuccessResponse:
    if not request.user_id or not request.company_id or not request.type:
        raise HTTPException(status_code=400, detail="Missing required fields")
    require_access(session, auth, request.company_id)
    try:
        service.record_feedback(request.user_id, request.company_id, request.type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return schemas.SuccessResponse()

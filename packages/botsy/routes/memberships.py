"""Team members of a company and leaving a company."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import AuthResult
from ..dependencies import get_current_user, get_session, get_team_service, require_access
from ..team import TeamService

router = APIRouter(prefix="/api/memberships", tags=["team"])

LEFT_MESSAGE = "Du har forlatt bedriften"


@router.get("", response_model=schemas.MembersResponse, response_model_exclude_none=True)
def list_memberships(
    company_id: Optional[str] = Query(None, alias="companyId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: TeamService = Depends(get_team_service),
) -> schemas.MembersResponse:
    require_access(session, auth, company_id)
    if user_id:
        membership = service.get_membership(user_id, company_id)
        if membership is None:
            raise HTTPException(status_code=404, detail="Membership not found")
        return schemas.MembersResponse(
            membership=schemas.MembershipResponse.model_validate(membership)
        )

    members = []
    for membership, user in service.list_members(company_id):
        members.append(
            schemas.MemberResponse(
                membership=schemas.MembershipResponse.model_validate(membership),
                user=schemas.MemberUserResponse(
                    email=(user.email if user else None) or "",
                    display_name=(user.display_name if user else None) or "",
                    avatar_url=user.avatar_url if user else None,
                ),
            )
        )
    return schemas.MembersResponse(members=members)


@router.post("/leave", response_model=schemas.LeaveResponse)
def leave_company(
    request: schemas.LeaveRequest,
    auth: AuthResult = Depends(get_current_user),
    service: TeamService = Depends(get_team_service),
) -> schemas.LeaveResponse:
    if not request.membership_id:
        raise HTTPException(status_code=400, detail="membershipId is required")
    try:
        service.leave_company(auth.uid, request.membership_id)
    except NoResultFound:
        raise HTTPException(status_code=404, detail="Membership not found") from None
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None
    return schemas.LeaveResponse(message=LEFT_MESSAGE)

"""Team invitations.

Listing, creating and cancelling need an owner or admin of the company.
Looking up an invitation by token is public (and rate limited) so the
invite page can render before sign-in; accepting it needs a signed-in user.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import AuthResult
from ..dependencies import (
    enforce_rate_limit,
    get_current_user,
    get_session,
    get_team_service,
    require_access,
)
from ..models import MembershipRole
from ..team import TeamService

router = APIRouter(prefix="/api/invitations", tags=["team"])


@router.get("", response_model=schemas.InvitationListResponse)
def list_invitations(
    company_id: Optional[str] = Query(None, alias="companyId"),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: TeamService = Depends(get_team_service),
) -> schemas.InvitationListResponse:
    require_access(session, auth, company_id)
    invitations = service.list_pending_invitations(company_id)
    return schemas.InvitationListResponse(
        invitations=[schemas.InvitationResponse.model_validate(i) for i in invitations]
    )


@router.post("", response_model=schemas.InvitationCreateResponse, status_code=201)
def create_invitation(
    request: schemas.InvitationCreateRequest,
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: TeamService = Depends(get_team_service),
) -> schemas.InvitationCreateResponse:
    access = require_access(session, auth, request.company_id)
    if not request.email or "@" not in request.email:
        raise HTTPException(status_code=400, detail="A valid email is required")
    try:
        invitation = service.create_invitation(
            access,
            company_id=request.company_id,
            email=request.email,
            role=request.role or MembershipRole.EMPLOYEE,
            invited_by=auth.uid,
            permissions=request.permissions,
            inviter_name=request.inviter_name,
        )
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None
    except NoResultFound:
        raise HTTPException(status_code=404, detail="Company not found") from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return schemas.InvitationCreateResponse(
        invitation_id=invitation.id,
        token=invitation.token,
        invite_url=service.invite_url(invitation),
    )


@router.delete("", response_model=schemas.SuccessResponse)
def cancel_invitation(
    company_id: Optional[str] = Query(None, alias="companyId"),
    invitation_id: Optional[str] = Query(None, alias="invitationId"),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: TeamService = Depends(get_team_service),
) -> schemas.SuccessResponse:
    access = require_access(session, auth, company_id)
    if not invitation_id:
        raise HTTPException(status_code=400, detail="invitationId is required")
    try:
        service.cancel_invitation(access, company_id, invitation_id, actor_id=auth.uid)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None
    except NoResultFound:
        raise HTTPException(status_code=404, detail="Invitation not found") from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return schemas.SuccessResponse()


@router.get(
    "/{token}",
    response_model=schemas.InvitationEnvelope,
    dependencies=[Depends(enforce_rate_limit)],
)
def get_invitation(
    token: str, service: TeamService = Depends(get_team_service)
) -> schemas.InvitationEnvelope:
    try:
        invitation = service.get_invitation(token)
    except NoResultFound:
        raise HTTPException(status_code=404, detail="Invitation not found") from None
    return schemas.InvitationEnvelope(
        invitation=schemas.InvitationPublicResponse.model_validate(invitation)
    )


@router.post("/{token}", response_model=schemas.InvitationAcceptResponse)
def accept_invitation(
    token: str,
    auth: AuthResult = Depends(get_current_user),
    service: TeamService = Depends(get_team_service),
) -> schemas.InvitationAcceptResponse:
    try:
        membership = service.accept_invitation(token, auth.uid, auth.email)
    except NoResultFound:
        raise HTTPException(status_code=404, detail="Invitation not found") from None
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    return schemas.InvitationAcceptResponse(company_id=membership.company_id)

"""Bot instructions: list, create, update and deactivate."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import AuthResult
from ..dependencies import get_current_user, get_instruction_service, get_session, require_access
from ..instructions import InstructionService

router = APIRouter(prefix="/api/instructions", tags=["instructions"])


@router.get("", response_model=schemas.InstructionListResponse)
def list_instructions(
    company_id: Optional[str] = Query(None, alias="companyId"),
    active_only: bool = Query(False, alias="activeOnly"),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: InstructionService = Depends(get_instruction_service),
) -> schemas.InstructionListResponse:
    require_access(session, auth, company_id)
    instructions = service.list_instructions(company_id, active_only=active_only)
    return schemas.InstructionListResponse(
        instructions=[schemas.InstructionResponse.model_validate(i) for i in instructions]
    )


@router.post("", response_model=schemas.InstructionEnvelope, status_code=201)
def create_instruction(
    request: schemas.InstructionCreateRequest,
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: InstructionService = Depends(get_instruction_service),
) -> schemas.InstructionEnvelope:
    require_access(session, auth, request.company_id)
    body = request.instruction
    if body is None or not (body.content or "").strip():
        raise HTTPException(status_code=400, detail="Instruction content is required")
    try:
        instruction = service.create_instruction(
            request.company_id,
            content=body.content,
            created_by=auth.uid,
            category=body.category,
            priority=body.priority,
            is_active=body.is_active,
            starts_at=body.starts_at,
            expires_at=body.expires_at,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except LookupError:
        raise HTTPException(status_code=404, detail="Company not found") from None
    return schemas.InstructionEnvelope(
        instruction=schemas.InstructionResponse.model_validate(instruction)
    )


@router.patch("", response_model=schemas.InstructionEnvelope)
def update_instruction(
    request: schemas.InstructionUpdateRequest,
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: InstructionService = Depends(get_instruction_service),
) -> schemas.InstructionEnvelope:
    require_access(session, auth, request.company_id)
    if not request.instruction_id:
        raise HTTPException(status_code=400, detail="instructionId is required")
    try:
        instruction = service.update_instruction(
            request.company_id,
            request.instruction_id,
            request.updates.model_dump(exclude_unset=True),
            actor_id=auth.uid,
        )
    except NoResultFound:
        raise HTTPException(status_code=404, detail="Instruction not found") from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return schemas.InstructionEnvelope(
        instruction=schemas.InstructionResponse.model_validate(instruction)
    )


@router.delete("", response_model=schemas.SuccessResponse)
def delete_instruction(
    company_id: Optional[str] = Query(None, alias="companyId"),
    instruction_id: Optional[str] = Query(None, alias="instructionId"),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: InstructionService = Depends(get_instruction_service),
) -> schemas.SuccessResponse:
    require_access(session, auth, company_id)
    if not instruction_id:
        raise HTTPException(status_code=400, detail="instructionId is required")
    try:
        service.deactivate_instruction(company_id, instruction_id, actor_id=auth.uid)
    except NoResultFound:
        raise HTTPException(status_code=404, detail="Instruction not found") from None
    return schemas.SuccessResponse()

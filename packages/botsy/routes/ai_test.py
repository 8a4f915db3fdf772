"""Developer route for checking the configured AI providers."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, HTTPException

from .. import schemas
from ..ai_providers import AIMessage
from ..dependencies import enforce_rate_limit, get_ai

router = APIRouter(prefix="/api/test", tags=["test"])

TEST_SYSTEM_PROMPT = "Du er en hjelpsom assistent. Svar kort og konsist."


@router.post(
    "/ai-provider",
    response_model=schemas.AIProviderTestResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(enforce_rate_limit)],
)
def test_ai_provider(
    request: schemas.AIProviderTestRequest,
    ai=Depends(get_ai),
) -> schemas.AIProviderTestResponse:
    if not request.prompt:
        raise HTTPException(status_code=400, detail="prompt is required")

    started = time.monotonic()
    result = ai(
        TEST_SYSTEM_PROMPT,
        [AIMessage("user", request.prompt)],
        max_tokens=100,
        temperature=0.7,
    )
    elapsed_ms = int((time.monotonic() - started) * 1000)
    if not result.success:
        return schemas.AIProviderTestResponse(
            success=False,
            error="AI provider failed to respond",
            response_time_ms=elapsed_ms,
        )
    return schemas.AIProviderTestResponse(
        success=True,
        provider=result.provider,
        response=result.response,
        response_time_ms=elapsed_ms,
    )

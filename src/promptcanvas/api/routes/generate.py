"""Image generation API endpoint.

- POST /generate - Spend one credit to turn a prompt into a stored image

The request waits for the full round trip (provider inference and upload).
"""

from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from promptcanvas.api.dependencies import get_orchestrator, get_principal
from promptcanvas.services.auth import SessionClaims
from promptcanvas.services.exceptions import (
    GenerationFailed,
    InsufficientCredits,
    InvalidPrompt,
    StoreFailure,
    Unauthorized,
)
from promptcanvas.services.generation import GenerationOrchestrator

logger = structlog.get_logger()
router = APIRouter(tags=["generation"])


class GenerateRequest(BaseModel):
    """Request model for image generation.

    The prompt is validated by the orchestrator, after authentication and the
    credit check, so a missing or non-string prompt yields 400 rather than 422.
    """

    prompt: Any = Field(default=None, description="Non-empty text prompt")


class GenerateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt_id: UUID = Field(..., alias="promptId")
    image_url: str = Field(..., alias="imageUrl")
    status: str = Field(..., description="Always 'completed' on success")
    request_id: str = Field(..., alias="requestId")


@router.post("/generate", response_model=GenerateResponse, status_code=status.HTTP_200_OK)
async def generate(
    request: GenerateRequest,
    principal: SessionClaims | None = Depends(get_principal),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerateResponse:
    """Generate an image for the logged-in user, charging one credit.

    Raises:
        HTTPException 401: Not logged in or session expired
        HTTPException 402: Not enough credits
        HTTPException 400: Prompt missing, not a string, or empty
        HTTPException 500: Generation or storage failed (no credit charged)

    Example:
        POST /generate
        {"prompt": "a red fox in snow"}

        Response 200:
        {
            "promptId": "6f1c...",
            "imageUrl": "https://storage.example.com/...",
            "status": "completed",
            "requestId": "abc123"
        }
    """
    try:
        outcome = await orchestrator.generate(principal, request.prompt)
    except Unauthorized:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    except InsufficientCredits:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED, detail="Insufficient credits"
        )
    except InvalidPrompt as e:
        logger.info("generation.invalid_prompt", reason=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid prompt")
    except GenerationFailed:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate image"
        )
    except StoreFailure:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal Server Error"
        )

    return GenerateResponse(
        prompt_id=outcome.prompt_id,
        image_url=outcome.image_url,
        status=outcome.status.value,
        request_id=outcome.request_id,
    )

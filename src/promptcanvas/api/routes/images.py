"""Gallery API endpoint.

- GET /images - The logged-in user's most recent images, newest first
"""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from promptcanvas.api.dependencies import (
    NO_STORE_HEADERS,
    get_authenticator,
    get_principal,
    get_settings,
    get_uow_factory,
)
from promptcanvas.core.config import Settings
from promptcanvas.services.auth import Authenticator, SessionClaims

logger = structlog.get_logger()
router = APIRouter(tags=["gallery"])


class GalleryImageDTO(BaseModel):
    """One generated image with its originating prompt text."""

    id: UUID
    image_url: str = Field(..., serialization_alias="imageUrl")
    created_at: datetime = Field(..., serialization_alias="createdAt")
    user_id: UUID = Field(..., serialization_alias="userId")
    metadata: dict[str, Any] | None = None
    prompt: str | None = None


class GalleryResponse(BaseModel):
    images: list[GalleryImageDTO]


@router.get("/images", response_model=GalleryResponse)
async def list_images(
    principal: SessionClaims | None = Depends(get_principal),
    uow_factory=Depends(get_uow_factory),
    authenticator: Authenticator = Depends(get_authenticator),
    settings: Settings = Depends(get_settings),
):
    """List the current user's images (at most GALLERY_LIMIT, default 20).

    Raises:
        HTTPException 401: Not logged in or session expired
        HTTPException 500: Database error
    """
    try:
        async with await uow_factory() as uow:
            user = await authenticator.resolve_current_user(uow, principal)
            if user is None:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required"
                )
            rows = await uow.images.list_for_user(user.id, limit=settings.gallery_limit)
    except SQLAlchemyError as e:
        logger.error("gallery.fetch_failed", error=str(e), error_type=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch images"
        )

    body = GalleryResponse(
        images=[
            GalleryImageDTO(
                id=image.id,
                image_url=image.image_url,
                created_at=image.created_at,
                user_id=image.user_id,
                metadata=image.image_metadata,
                prompt=prompt_text,
            )
            for image, prompt_text in rows
        ]
    )
    return JSONResponse(
        content=body.model_dump(mode="json", by_alias=True), headers=NO_STORE_HEADERS
    )

"""GeneratedImage repository for promptcanvas."""

from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promptcanvas.models.generated_image import GeneratedImage
from promptcanvas.models.prompt import Prompt

logger = structlog.get_logger()


class GeneratedImageRepository:
    """Repository for GeneratedImage entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def record(
        self, user_id: UUID, prompt_id: UUID, image_url: str, metadata: dict
    ) -> GeneratedImage:
        """Persist the record of a durably stored image.

        Only call after the upload has succeeded.

        Args:
            user_id: Owning user's identifier
            prompt_id: Originating prompt's identifier
            image_url: Durable (signed) asset URL
            metadata: Prompt text, model, settings and fallback provider URL

        Returns:
            Persisted image record
        """
        image = GeneratedImage(
            user_id=user_id,
            prompt_id=prompt_id,
            image_url=image_url,
            image_metadata=metadata,
        )
        self.session.add(image)
        await self.session.flush()
        return image

    async def get_by_prompt(self, prompt_id: UUID) -> list[GeneratedImage]:
        """Retrieve images recorded for a prompt."""
        result = await self.session.execute(
            select(GeneratedImage).where(GeneratedImage.prompt_id == prompt_id)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())

    async def list_for_user(
        self, user_id: UUID, limit: int = 20
    ) -> list[tuple[GeneratedImage, str | None]]:
        """Retrieve a user's gallery joined with the originating prompt text.

        Rows are owned by user_id only, ordered newest first and capped at limit.
        Rows without an image URL are skipped.

        Args:
            user_id: Owning user's identifier
            limit: Maximum number of images to return (default: 20)

        Returns:
            List of tuples (image, prompt_text)
        """
        stmt = (
            select(GeneratedImage, Prompt.prompt_text)  # type: ignore[call-overload]
            .outerjoin(Prompt, GeneratedImage.prompt_id == Prompt.id)  # type: ignore[arg-type]
            .where(GeneratedImage.user_id == user_id)  # type: ignore[arg-type]
            .order_by(GeneratedImage.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        result = await self.session.execute(stmt)

        images = []
        for image, prompt_text in result.all():
            if not image.image_url:
                logger.warning("gallery.invalid_image_skipped", image_id=str(image.id))
                continue
            images.append((image, prompt_text))
        return images

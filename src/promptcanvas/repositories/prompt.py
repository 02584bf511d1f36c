"""Prompt repository for promptcanvas.

Provides the work-ledger operations for generation requests.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promptcanvas.models.prompt import Prompt, PromptStatus


class PromptRepository:
    """Repository for Prompt entities.

    Status transitions are delegated to the Prompt model, which raises
    InvalidStateTransition for any move out of a terminal state.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get_by_id(self, prompt_id: UUID) -> Prompt | None:
        """Retrieve prompt by UUID.

        Args:
            prompt_id: Prompt's unique identifier

        Returns:
            Prompt if found, None otherwise
        """
        result = await self.session.execute(select(Prompt).where(Prompt.id == prompt_id))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def create_pending(self, user_id: UUID, prompt_text: str, model_settings: dict) -> Prompt:
        """Create a new prompt in pending state.

        Args:
            user_id: Owning user's identifier
            prompt_text: Validated prompt text
            model_settings: Model identifier and generation parameters

        Returns:
            Persisted prompt with generated ID
        """
        prompt = Prompt(
            user_id=user_id,
            prompt_text=prompt_text,
            model_settings=model_settings,
            status=PromptStatus.PENDING,
        )
        self.session.add(prompt)
        await self.session.flush()
        return prompt

    async def _require(self, prompt_id: UUID) -> Prompt:
        prompt = await self.get_by_id(prompt_id)
        if prompt is None:
            raise ValueError(f"Prompt {prompt_id} not found")
        return prompt

    async def mark_processing(self, prompt_id: UUID) -> Prompt:
        """Transition prompt pending → processing."""
        prompt = await self._require(prompt_id)
        prompt.mark_processing()
        await self.session.flush()
        return prompt

    async def mark_completed(self, prompt_id: UUID) -> Prompt:
        """Transition prompt processing → completed.

        Raises:
            ValueError: If the prompt does not exist
            InvalidStateTransition: If the prompt is not processing
        """
        prompt = await self._require(prompt_id)
        prompt.mark_completed()
        await self.session.flush()
        return prompt

    async def mark_failed(self, prompt_id: UUID, error_dict: dict) -> Prompt:
        """Transition prompt to failed, keeping error details for the audit trail.

        Raises:
            ValueError: If the prompt does not exist
            InvalidStateTransition: If the prompt is already terminal
        """
        prompt = await self._require(prompt_id)
        prompt.mark_failed(error_dict)
        await self.session.flush()
        return prompt

    async def list_for_user(self, user_id: UUID, limit: int = 20) -> list[Prompt]:
        """Retrieve a user's prompts, newest first."""
        result = await self.session.execute(
            select(Prompt)
            .where(Prompt.user_id == user_id)  # type: ignore[arg-type]
            .order_by(Prompt.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return list(result.scalars().all())

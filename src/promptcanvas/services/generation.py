"""Credit-gated image generation transaction.

Runs one end-to-end generation for an authenticated principal:

    Unauthenticated → Authorized → CreditChecked → Pending → Generating
        → Persisting → Completed

with an exit to Failed from any state after Pending.

## Transaction boundaries

Each ledger step runs in its own Unit of Work so the prompt record is durable
before the provider is called and the audit trail survives any later failure:

1. Read user, check credits, validate prompt, create pending prompt (commit)
2. Mark prompt processing (commit)
3. Provider call, then download + upload (no database session held)
4. Record image + mark completed + debit one credit (single commit)

Step 4 is atomic: a GeneratedImage never exists without its prompt being
completed and the credit being spent. The debit is a conditional UPDATE, so if
concurrent requests from the same user both passed the credit check, only one
of them can spend the last credit; the others roll back step 4, mark their
prompt failed and raise InsufficientCredits.

Nothing is retried. Provider and storage details are logged, never returned.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError

from promptcanvas.models.prompt import PromptStatus
from promptcanvas.services.auth import Authenticator, SessionClaims
from promptcanvas.services.exceptions import (
    GenerationFailed,
    InsufficientCredits,
    ProviderFailure,
    StoreFailure,
    Unauthorized,
    UploadFailure,
)
from promptcanvas.services.image_generation.gateway import GenerationGateway
from promptcanvas.services.image_generation.prompt_validator import validate_prompt
from promptcanvas.services.image_generation.replicate_client import GenerationFailure
from promptcanvas.services.storage.s3_client import build_storage_key

logger = structlog.get_logger(__name__)

GENERATION_COST = 1
GENERATION_FAILED_MESSAGE = "Failed to generate image"


@dataclass(frozen=True)
class GenerationOutcome:
    """Result of a completed generation transaction."""

    prompt_id: UUID
    image_url: str
    status: PromptStatus
    request_id: str
    credits_remaining: int


class GenerationOrchestrator:
    """Coordinates authenticator, ledger and gateway for one generation."""

    def __init__(
        self,
        uow_factory: Callable,
        gateway: GenerationGateway,
        authenticator: Authenticator,
    ):
        """Initialize orchestrator.

        Args:
            uow_factory: UnitOfWork factory (one UoW per ledger step)
            gateway: Provider + storage boundary
            authenticator: Resolves the principal to a live user record
        """
        self.uow_factory = uow_factory
        self.gateway = gateway
        self.authenticator = authenticator

    async def generate(self, principal: SessionClaims | None, prompt: Any) -> GenerationOutcome:
        """Run one generation transaction.

        Args:
            principal: Verified session claims, or None when not logged in
            prompt: Prompt value from the request body

        Returns:
            GenerationOutcome with status completed

        Raises:
            Unauthorized: No principal, or the user no longer exists (no writes)
            InsufficientCredits: Balance below one credit (no writes), or a
                concurrent request spent the last credit (prompt marked failed)
            InvalidPrompt: Prompt not a non-empty string (no writes)
            GenerationFailed: Provider or storage failure (prompt marked failed, no debit)
            StoreFailure: Database unavailable
        """
        start_time = time.time()

        # Steps 1-3: authorize, check credits, validate, record pending prompt
        try:
            async with await self.uow_factory() as uow:
                user = await self.authenticator.resolve_current_user(uow, principal)
                if user is None:
                    logger.info("generation.unauthorized")
                    raise Unauthorized("Unauthorized")

                if user.credits < GENERATION_COST:
                    logger.info(
                        "generation.insufficient_credits",
                        user_id=str(user.id),
                        credits=user.credits,
                    )
                    raise InsufficientCredits("Insufficient credits")

                prompt_text = validate_prompt(prompt)

                record = await uow.prompts.create_pending(
                    user_id=user.id,
                    prompt_text=prompt_text,
                    model_settings={
                        "model": self.gateway.model,
                        **self.gateway.settings_summary,
                    },
                )
                user_id, prompt_id = user.id, record.id
        except SQLAlchemyError as e:
            logger.error("generation.store_failed", step="create_prompt", error=str(e))
            raise StoreFailure("Internal Server Error") from e

        log = logger.bind(user_id=str(user_id), prompt_id=str(prompt_id))
        log.info("generation.started", model=self.gateway.model)

        # Pending → Generating
        try:
            async with await self.uow_factory() as uow:
                await uow.prompts.mark_processing(prompt_id)
        except SQLAlchemyError as e:
            log.error("generation.store_failed", step="mark_processing", error=str(e))
            await self._mark_failed(prompt_id, {"error": "store_failure", "step": "processing"})
            raise StoreFailure("Internal Server Error") from e

        # Generating → Persisting
        result = None
        try:
            result = await self.gateway.generate(prompt_text)
            if isinstance(result, GenerationFailure):
                raise ProviderFailure(result.reason)

            destination_key = build_storage_key(user_id, prompt_id)
            durable_url = await self.gateway.persist(result.image_url, destination_key)
        except ProviderFailure as e:
            failure = result if isinstance(result, GenerationFailure) else None
            log.error(
                "generation.provider_failed",
                reason=str(e),
                kind=failure.kind.value if failure else None,
                request_id=failure.request_id if failure else None,
            )
            await self._mark_failed(
                prompt_id,
                {
                    "error": "provider_failure",
                    "reason": str(e),
                    "kind": failure.kind.value if failure else None,
                },
            )
            raise GenerationFailed(GENERATION_FAILED_MESSAGE) from e
        except UploadFailure as e:
            log.error(
                "generation.upload_failed",
                reason=str(e),
                request_id=getattr(result, "request_id", None),
            )
            await self._mark_failed(prompt_id, {"error": "upload_failure", "reason": str(e)})
            raise GenerationFailed(GENERATION_FAILED_MESSAGE) from e
        except Exception as e:
            log.error("generation.unexpected_error", error_type=type(e).__name__, exc_info=e)
            await self._mark_failed(
                prompt_id, {"error": "unexpected", "error_type": type(e).__name__}
            )
            raise GenerationFailed(GENERATION_FAILED_MESSAGE) from e

        # Persisting → Completed (one transaction)
        try:
            async with await self.uow_factory() as uow:
                await uow.images.record(
                    user_id=user_id,
                    prompt_id=prompt_id,
                    image_url=durable_url,
                    metadata={
                        "prompt": prompt_text,
                        "model": self.gateway.model,
                        "settings": self.gateway.settings_summary,
                        "fallbackUrl": result.image_url,
                        "storageKey": destination_key,
                        "requestId": result.request_id,
                    },
                )
                await uow.prompts.mark_completed(prompt_id)
                balance = await uow.users.debit_credits(user_id, GENERATION_COST)
        except InsufficientCredits:
            log.info("generation.lost_credit_race", storage_key=destination_key)
            await self._mark_failed(prompt_id, {"error": "insufficient_credits"})
            raise
        except SQLAlchemyError as e:
            log.error("generation.store_failed", step="complete", error=str(e))
            await self._mark_failed(prompt_id, {"error": "store_failure", "step": "complete"})
            raise StoreFailure("Internal Server Error") from e

        log.info(
            "generation.completed",
            request_id=result.request_id,
            credits_remaining=balance,
            duration_seconds=time.time() - start_time,
        )

        return GenerationOutcome(
            prompt_id=prompt_id,
            image_url=durable_url,
            status=PromptStatus.COMPLETED,
            request_id=result.request_id,
            credits_remaining=balance,
        )

    async def _mark_failed(self, prompt_id: UUID, error_dict: dict) -> None:
        """Record the failed attempt in its own transaction.

        Raises:
            StoreFailure: If the ledger cannot be written
        """
        try:
            async with await self.uow_factory() as uow:
                await uow.prompts.mark_failed(prompt_id, error_dict)
        except SQLAlchemyError as e:
            logger.error(
                "generation.mark_failed_failed", prompt_id=str(prompt_id), error=str(e)
            )
            raise StoreFailure("Internal Server Error") from e

        logger.info("generation.failed", prompt_id=str(prompt_id), error=error_dict.get("error"))

"""Generation gateway: provider inference plus durable storage behind one boundary."""

from typing import Any

from promptcanvas.core.config import Settings
from promptcanvas.services.image_generation.replicate_client import (
    GenerationResult,
    ReplicateImageClient,
    settings_summary,
)
from promptcanvas.services.storage.s3_client import ObjectStorage, create_s3_client


class GenerationGateway:
    """Turns a prompt into a durably hosted image URL.

    generate() returns a tagged result and never raises for provider problems;
    persist() raises UploadFailure. Neither step is retried.
    """

    def __init__(self, image_client: ReplicateImageClient, storage: ObjectStorage):
        self.image_client = image_client
        self.storage = storage

    @property
    def model(self) -> str:
        return self.image_client.model

    @property
    def settings_summary(self) -> dict[str, Any]:
        return settings_summary()

    async def generate(self, prompt_text: str) -> GenerationResult:
        return await self.image_client.generate(prompt_text)

    async def persist(self, temporary_url: str, destination_key: str) -> str:
        return await self.storage.persist(temporary_url, destination_key)


def create_gateway(settings: Settings) -> GenerationGateway:
    """Build the production gateway from settings."""
    image_client = ReplicateImageClient(
        api_token=settings.replicate_api_token,
        model=settings.replicate_model,
        timeout_seconds=settings.provider_timeout_seconds,
    )
    storage = ObjectStorage(
        s3_client=create_s3_client(settings),
        bucket_name=settings.bucket_name,
        signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
        timeout_seconds=settings.upload_timeout_seconds,
    )
    return GenerationGateway(image_client=image_client, storage=storage)

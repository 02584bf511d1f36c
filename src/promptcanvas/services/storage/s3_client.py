"""S3-compatible object storage client for durable image hosting."""

import asyncio
import time
from typing import Any, Optional
from uuid import UUID

import boto3
import httpx
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from promptcanvas.core.config import Settings
from promptcanvas.services.exceptions import UploadFailure

logger = structlog.get_logger()

DOWNLOAD_TIMEOUT_SECONDS = 30.0


def build_storage_key(user_id: UUID, prompt_id: UUID, timestamp_ms: Optional[int] = None) -> str:
    """Build an object key namespaced by user and prompt.

    The millisecond timestamp keeps keys unique across attempts.

    Example:
        >>> build_storage_key(user_id, prompt_id, 1700000000000)
        '3f0c.../9a1e..._1700000000000.png'
    """
    ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"{user_id}/{prompt_id}_{ms}.png"


def create_s3_client(settings: Settings) -> Any:
    """Create a boto3 S3 client from settings.

    Path-style addressing is used so S3-compatible endpoints work unchanged.
    """
    return boto3.client(
        "s3",
        region_name=settings.aws_region,
        endpoint_url=settings.aws_endpoint_url_s3,
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
        config=Config(s3={"addressing_style": "path"}),
    )


class ObjectStorage:
    """Copies provider-hosted images into long-lived private storage."""

    def __init__(
        self,
        s3_client: Any,
        bucket_name: str,
        signed_url_ttl_seconds: int = 24 * 60 * 60,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize storage client.

        Args:
            s3_client: boto3 S3 client
            bucket_name: Destination bucket
            signed_url_ttl_seconds: Lifetime of returned retrieval URLs (default: 24h)
            timeout_seconds: Upper bound on download + upload + signing
            transport: httpx transport override for downloads
        """
        self.s3_client = s3_client
        self.bucket_name = bucket_name
        self.signed_url_ttl_seconds = signed_url_ttl_seconds
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def download(self, source_url: str) -> bytes:
        """Fetch the provider asset.

        Raises:
            UploadFailure: On timeout, network error or non-2xx response
        """
        try:
            async with httpx.AsyncClient(
                timeout=DOWNLOAD_TIMEOUT_SECONDS, transport=self.transport
            ) as client:
                response = await client.get(source_url)
                response.raise_for_status()
                return response.content
        except httpx.TimeoutException as e:
            raise UploadFailure(f"Download timeout after {DOWNLOAD_TIMEOUT_SECONDS}s: {e}") from e
        except httpx.HTTPStatusError as e:
            raise UploadFailure(
                f"Download failed with status {e.response.status_code}: {source_url}"
            ) from e
        except httpx.HTTPError as e:
            raise UploadFailure(f"Download network error: {e}") from e

    def _put_object(self, key: str, body: bytes) -> None:
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=body,
            ContentType="image/png",
            ACL="private",
        )

    def _presign(self, key: str) -> str:
        return self.s3_client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket_name, "Key": key},
            ExpiresIn=self.signed_url_ttl_seconds,
        )

    async def _persist(self, source_url: str, key: str) -> str:
        body = await self.download(source_url)
        try:
            await asyncio.to_thread(self._put_object, key, body)
            signed_url = await asyncio.to_thread(self._presign, key)
        except (BotoCoreError, ClientError) as e:
            raise UploadFailure(f"Object storage error: {e}") from e

        logger.info("storage.uploaded", key=key, size_bytes=len(body))
        return signed_url

    async def persist(self, source_url: str, key: str) -> str:
        """Download an image and store it under key.

        Args:
            source_url: Temporary provider URL
            key: Destination object key (see build_storage_key)

        Returns:
            Presigned retrieval URL valid for signed_url_ttl_seconds

        Raises:
            UploadFailure: If any step fails or the whole operation times out
        """
        try:
            return await asyncio.wait_for(
                self._persist(source_url, key), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise UploadFailure(f"Upload timeout after {self.timeout_seconds}s") from e

"""Replicate API client for image generation with error classification.

The client never raises for provider problems: every outcome is returned as a
tagged result, GenerationSuccess or GenerationFailure.
"""

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import replicate
import structlog
from replicate.exceptions import ReplicateError as ReplicateAPIError

logger = structlog.get_logger()

DEFAULT_MODEL = "black-forest-labs/flux-dev"

# Applied uniformly to every generation
IMAGE_WIDTH = 1024
IMAGE_HEIGHT = 1024
NUM_INFERENCE_STEPS = 50
GUIDANCE_SCALE = 7.5
NEGATIVE_PROMPT = "ugly, blurry, low quality, distorted, deformed"
SCHEDULER = "dpm++2m"
MAX_SEED = 1_000_000


class FailureKind(str, Enum):
    """Classification of a failed provider call."""

    TRANSIENT = "transient"
    CONTENT_POLICY = "content_policy"
    PERMANENT = "permanent"


@dataclass(frozen=True)
class GenerationSuccess:
    """Provider produced an image.

    Attributes:
        image_url: Temporary provider-hosted URL (time-limited)
        request_id: Provider prediction identifier
    """

    image_url: str
    request_id: str


@dataclass(frozen=True)
class GenerationFailure:
    """Provider call failed.

    Attributes:
        reason: Internal failure description (logged, never shown to clients)
        kind: Failure classification
        request_id: Provider prediction identifier, when one was created
    """

    reason: str
    kind: FailureKind
    request_id: Optional[str] = None


GenerationResult = GenerationSuccess | GenerationFailure


def settings_summary() -> dict[str, Any]:
    """Generation settings recorded in image metadata."""
    return {
        "width": IMAGE_WIDTH,
        "height": IMAGE_HEIGHT,
        "steps": NUM_INFERENCE_STEPS,
        "guidance_scale": GUIDANCE_SCALE,
    }


def build_generation_input(prompt: str, seed: Optional[int] = None) -> dict[str, Any]:
    """Build provider input with the fixed parameters and a fresh random seed."""
    return {
        "prompt": prompt,
        "width": IMAGE_WIDTH,
        "height": IMAGE_HEIGHT,
        "num_inference_steps": NUM_INFERENCE_STEPS,
        "guidance_scale": GUIDANCE_SCALE,
        "negative_prompt": NEGATIVE_PROMPT,
        "scheduler": SCHEDULER,
        "seed": seed if seed is not None else random.randrange(MAX_SEED),
    }


def classify_error(exception: Exception) -> FailureKind:
    """Classify exception into failure category.

    Classification rules:
        - Timeout, 429 (rate limit), 503, connection errors → TRANSIENT
        - 401/403 (authentication) → PERMANENT
        - Content policy violations → CONTENT_POLICY
        - Everything else → PERMANENT
    """
    error_message = str(exception)
    error_message_lower = error_message.lower()

    if isinstance(exception, (TimeoutError, asyncio.TimeoutError)):
        return FailureKind.TRANSIENT

    if "timeout" in error_message_lower or "timed out" in error_message_lower:
        return FailureKind.TRANSIENT

    if "429" in error_message or "rate limit" in error_message_lower:
        return FailureKind.TRANSIENT

    if "503" in error_message or "service unavailable" in error_message_lower:
        return FailureKind.TRANSIENT

    if (
        "401" in error_message
        or "403" in error_message
        or "unauthorized" in error_message_lower
        or "forbidden" in error_message_lower
        or "authentication" in error_message_lower
        or "invalid api token" in error_message_lower
    ):
        return FailureKind.PERMANENT

    if (
        "content policy" in error_message_lower
        or "nsfw" in error_message_lower
        or "safety" in error_message_lower
        or "inappropriate" in error_message_lower
    ):
        return FailureKind.CONTENT_POLICY

    if isinstance(exception, (ConnectionError, OSError)):
        return FailureKind.TRANSIENT

    return FailureKind.PERMANENT


def extract_image_url(output: Any) -> Optional[str]:
    """Extract the first image URL from a provider output.

    Output shape varies by model: a URL string, a list of URLs, a file object
    exposing ``url``, or a mapping with ``images: [{"url": ...}]``.
    """
    if output is None:
        return None

    if isinstance(output, str):
        return output or None

    if isinstance(output, dict):
        images = output.get("images")
        if images:
            return extract_image_url(images[0])
        return extract_image_url(output.get("url"))

    if isinstance(output, (list, tuple)):
        if not output:
            return None
        return extract_image_url(output[0])

    url = getattr(output, "url", None)
    if url:
        return str(url)

    return None


def parse_prediction(prediction: Any) -> GenerationResult:
    """Turn a finished Replicate prediction into a tagged result."""
    request_id = getattr(prediction, "id", None)
    status = getattr(prediction, "status", None)

    if status != "succeeded":
        reason = str(getattr(prediction, "error", None) or f"Prediction {status}")
        return GenerationFailure(
            reason=reason, kind=classify_error(Exception(reason)), request_id=request_id
        )

    image_url = extract_image_url(getattr(prediction, "output", None))
    if not image_url:
        return GenerationFailure(
            reason="No image generated", kind=FailureKind.PERMANENT, request_id=request_id
        )

    return GenerationSuccess(image_url=image_url, request_id=str(request_id or ""))


class ReplicateImageClient:
    """Image generation via Replicate predictions."""

    def __init__(self, api_token: str, model: str = DEFAULT_MODEL, timeout_seconds: float = 120.0):
        """Initialize Replicate client.

        Args:
            api_token: Replicate API authentication token
            model: Model identifier (default: "black-forest-labs/flux-dev")
            timeout_seconds: Upper bound on one generation, including queueing
        """
        self.api_token = api_token
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client = replicate.Client(api_token=api_token) if api_token else None

    def _run_prediction(self, inputs: dict[str, Any], started: list[Any]) -> Any:
        # SDK is synchronous; runs in a worker thread
        prediction = self._client.predictions.create(model=self.model, input=inputs)  # type: ignore[union-attr]
        started.append(prediction)
        logger.info("provider.prediction_created", request_id=prediction.id, model=self.model)
        prediction.wait()
        return prediction

    async def generate(self, prompt: str, seed: Optional[int] = None) -> GenerationResult:
        """Generate one image.

        Args:
            prompt: Validated prompt text
            seed: Fixed seed override (random when omitted)

        Returns:
            GenerationSuccess with the temporary image URL and request id,
            or GenerationFailure with a classified reason
        """
        if self._client is None:
            return GenerationFailure(
                reason="REPLICATE_API_TOKEN not configured", kind=FailureKind.PERMANENT
            )

        inputs = build_generation_input(prompt, seed)

        started: list[Any] = []
        try:
            prediction = await asyncio.wait_for(
                asyncio.to_thread(self._run_prediction, inputs, started),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            request_id = None
            if started:
                request_id = started[0].id
                await self._cancel(started[0])
            return GenerationFailure(
                reason=f"Provider timeout after {self.timeout_seconds}s",
                kind=FailureKind.TRANSIENT,
                request_id=request_id,
            )
        except (ReplicateAPIError, ConnectionError, OSError) as e:
            return GenerationFailure(reason=str(e), kind=classify_error(e))
        except Exception as e:
            # Anything else from the SDK is a permanent failure
            return GenerationFailure(reason=f"Unexpected error: {e}", kind=FailureKind.PERMANENT)

        return parse_prediction(prediction)

    async def _cancel(self, prediction: Any) -> None:
        """Cancel a timed-out prediction so the worker thread's wait() returns."""
        try:
            await asyncio.to_thread(prediction.cancel)
        except (ReplicateAPIError, ConnectionError, OSError) as e:
            logger.warning("provider.cancel_failed", request_id=prediction.id, error=str(e))
            return
        logger.info("provider.prediction_canceled", request_id=prediction.id)

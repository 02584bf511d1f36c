"""Prompt validation for image generation.

Validates text prompts before anything is written to the ledger.
"""

from typing import Any

from promptcanvas.services.exceptions import InvalidPrompt


def validate_prompt(prompt: Any) -> str:
    """Validate prompt text for image generation.

    Any non-empty string is accepted as-is; length and content are left to the provider.

    Args:
        prompt: Prompt value from the request body (any JSON type)

    Returns:
        Validated prompt (unchanged if valid)

    Raises:
        InvalidPrompt: If prompt is missing, not a string, or empty
    """
    if not isinstance(prompt, str):
        raise InvalidPrompt(f"Prompt must be a string, got {type(prompt).__name__}")

    if not prompt:
        raise InvalidPrompt("Prompt cannot be empty")

    return prompt

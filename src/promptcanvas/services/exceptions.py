"""Service error hierarchy for authentication, credits and image generation.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- Validation errors: detected before any side effect (no partial state)
- Gateway errors: provider or storage failures mid-transaction
- StoreFailure: database unavailable
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


# Validation errors (raised before any write)
class Unauthorized(ServiceError):
    """No session, or the session token is invalid or expired."""

    pass


class DuplicateEmail(ServiceError):
    """Registration attempted with an email that already exists."""

    pass


class InvalidCredentials(ServiceError):
    """Unknown email or wrong password."""

    pass


class InsufficientCredits(ServiceError):
    """Credit balance is lower than the cost of the operation."""

    pass


class InvalidPrompt(ServiceError):
    """Prompt is missing, not a string, or empty."""

    pass


# Gateway errors
class GatewayError(ServiceError):
    """Base exception for external generation and storage failures."""

    pass


class ProviderFailure(GatewayError):
    """Image generation provider call failed or timed out."""

    pass


class UploadFailure(GatewayError):
    """Download of the provider asset or upload to object storage failed."""

    pass


class GenerationFailed(ServiceError):
    """Generation transaction failed after the prompt was recorded.

    Wraps ProviderFailure / UploadFailure; the message is safe to show to clients.
    """

    pass


class StoreFailure(ServiceError):
    """Credential store or ledger unavailable."""

    pass

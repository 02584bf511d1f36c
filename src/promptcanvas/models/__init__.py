"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from promptcanvas.models.generated_image import GeneratedImage
from promptcanvas.models.prompt import InvalidStateTransition, Prompt, PromptStatus
from promptcanvas.models.user import User

__all__ = [
    "User",
    "Prompt",
    "PromptStatus",
    "InvalidStateTransition",
    "GeneratedImage",
]

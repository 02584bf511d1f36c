"""Repository layer for promptcanvas.

Provides data access abstractions for all domain entities.
No base classes - each repository is self-contained.
"""

from promptcanvas.repositories.generated_image import GeneratedImageRepository
from promptcanvas.repositories.prompt import PromptRepository
from promptcanvas.repositories.user import UserRepository

__all__ = [
    "UserRepository",
    "PromptRepository",
    "GeneratedImageRepository",
]

"""GeneratedImage entity - durable output of a completed prompt."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from promptcanvas.core.timezone import utcnow


class GeneratedImage(SQLModel, table=True):
    """GeneratedImage links a stored asset URL to its user and prompt. Immutable once written."""

    __tablename__ = "generated_images"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    prompt_id: UUID = Field(foreign_key="prompts.id", index=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    image_url: str = Field(max_length=1024)
    # "metadata" is reserved on declarative models
    image_metadata: Optional[dict] = Field(default=None, sa_column=Column("metadata", JSON))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )

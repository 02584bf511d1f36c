"""User entity - account identity, password hash and credit balance."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Column, DateTime
from sqlmodel import Field, SQLModel

from promptcanvas.core.timezone import utcnow


class User(SQLModel, table=True):
    """User represents an account that spends credits on image generation.

    Email is unique and compared case-sensitively, exactly as stored.
    """

    __tablename__ = "users"  # type: ignore[assignment]
    __table_args__ = (CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=255)
    email: str = Field(max_length=255, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    image: Optional[str] = Field(default=None, max_length=255)
    credits: int = Field(default=10, ge=0)
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )

"""Prompt entity - a generation request with lifecycle status tracking."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from promptcanvas.core.timezone import utcnow


class PromptStatus(str, Enum):
    """Prompt lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (PromptStatus.COMPLETED, PromptStatus.FAILED)


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid prompt state transition."""

    pass


class Prompt(SQLModel, table=True):
    """Prompt stores one user generation request and its outcome."""

    __tablename__ = "prompts"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    prompt_text: str
    model_settings: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    status: PromptStatus = Field(default=PromptStatus.PENDING, index=True)
    error_data: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def mark_processing(self) -> None:
        """Transition from pending to processing.

        Raises:
            InvalidStateTransition: If current status is not pending
        """
        if self.status != PromptStatus.PENDING:
            raise InvalidStateTransition(
                f"Cannot mark processing from {self.status.value}. Prompt must be in pending state."
            )
        self.status = PromptStatus.PROCESSING

    def mark_completed(self) -> None:
        """Transition from processing to completed.

        Raises:
            InvalidStateTransition: If current status is not processing
        """
        if self.status != PromptStatus.PROCESSING:
            raise InvalidStateTransition(
                f"Cannot mark completed from {self.status.value}. "
                "Prompt must be in processing state."
            )
        self.status = PromptStatus.COMPLETED

    def mark_failed(self, error_dict: dict) -> None:
        """Transition from any non-terminal state to failed.

        Args:
            error_dict: Error details kept for the audit trail

        Raises:
            InvalidStateTransition: If current status is already terminal (completed/failed)
        """
        if self.is_terminal:
            raise InvalidStateTransition(
                f"Cannot mark failed from terminal state {self.status.value}."
            )
        self.error_data = error_dict
        self.status = PromptStatus.FAILED

"""Source model: the durable record of one generation attempt."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field, SQLModel


class SourceStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class Source(SQLModel, table=True):
    """One generation attempt and its lifecycle status.

    Status only moves forward: pending -> processing -> completed | failed.
    Transitions go through SourceStateTracker, never direct assignment.
    """

    __tablename__ = "sources"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", ondelete="CASCADE", index=True)
    type: str = Field(default="url", max_length=20)
    input_url: Optional[str] = Field(default=None, sa_column=Column(Text))
    status: str = Field(default=SourceStatus.pending.value, max_length=20, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True))
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True))
    )

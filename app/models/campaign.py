"""Campaign model: the persisted unified output of a successful run."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, JSON, Text
from sqlmodel import Field, SQLModel


class Campaign(SQLModel, table=True):
    """Generated campaign. Only ever written for a source that completes."""

    __tablename__ = "campaigns"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    project_id: UUID = Field(foreign_key="projects.id", ondelete="CASCADE", index=True)
    source_id: UUID = Field(foreign_key="sources.id", ondelete="CASCADE", index=True)
    name: str = Field(max_length=255)
    objective: Optional[str] = Field(default=None, sa_column=Column(Text))
    platforms: list = Field(default_factory=list, sa_column=Column(JSON))
    generation_result: dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True))
    )

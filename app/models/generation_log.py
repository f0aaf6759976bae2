"""Generation log model (write once, never updated)."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, JSON
from sqlmodel import Field, SQLModel


class GenerationLog(SQLModel, table=True):
    """Audit and billing record for one generation run."""

    __tablename__ = "generation_logs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True, max_length=64)
    campaign_id: Optional[UUID] = Field(
        default=None, foreign_key="campaigns.id", ondelete="SET NULL", index=True
    )
    agent: str = Field(max_length=50)  # tool family, e.g. 'adyn'
    request_payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    response_payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    # {"prompt": int, "completion": int, "total": int}
    tokens_used: dict = Field(default_factory=dict, sa_column=Column(JSON))
    module_usage: list = Field(default_factory=list, sa_column=Column(JSON))
    estimated_cost: float = Field(default=0.0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), index=True)
    )

"""Request and response schemas for project endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProjectCreateRequest(BaseModel):
    """Request schema for POST /v1/projects."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class ProjectUpdateRequest(BaseModel):
    """Request schema for PUT /v1/projects/{id}. Omitted fields are left as they are."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProjectSummary(ProjectResponse):
    """Project with the number of campaigns and sources it owns."""

    campaign_count: int = 0
    source_count: int = 0


class SourceResponse(BaseModel):
    """A generation attempt and where it is in its lifecycle."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    type: str
    input_url: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime


class CampaignSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    source_id: UUID
    name: str
    objective: Optional[str] = None
    platforms: List[str] = Field(default_factory=list)
    created_at: datetime


class CampaignDetail(CampaignSummary):
    project_id: UUID
    generation_result: Dict[str, Any] = Field(default_factory=dict)


class ProjectDetail(ProjectResponse):
    """A project with every source and campaign under it."""

    sources: List[SourceResponse] = Field(default_factory=list)
    campaigns: List[CampaignSummary] = Field(default_factory=list)

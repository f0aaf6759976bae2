"""Response schemas for campaign and source lookups."""

from typing import Optional

from pydantic import BaseModel

from app.api.projects.schemas import CampaignDetail, ProjectResponse, SourceResponse


class CampaignView(BaseModel):
    """A campaign together with the project and source it came from."""

    campaign: CampaignDetail
    project: ProjectResponse
    source: Optional[SourceResponse] = None

"""Request and response schemas for POST /v1/adyn/generate."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.services.stage_contracts import UnifiedResult


class GenerateCampaignRequest(BaseModel):
    """Request body for campaign generation.

    Fields are optional at the schema level so a missing field produces the
    same ``{"error": ...}`` body as every other client error.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "projectId": "0b6f3c1e-6f53-4a43-9a8e-1c2d7e4b5a10",
                "url": "https://example.com/product",
                "objective": "Conversions",
            }
        },
    )

    project_id: Optional[str] = Field(default=None, alias="projectId", description="Project that will own the campaign")
    url: Optional[str] = Field(default=None, description="Product page to build the campaign from")
    objective: Optional[str] = Field(default=None, description="Campaign objective, defaults to Conversions")


class GenerateCampaignResponse(BaseModel):
    """Successful generation: the new campaign id and the unified result."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    campaign_id: str = Field(..., alias="campaignId")
    data: UnifiedResult

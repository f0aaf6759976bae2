"""Lookups and deletion for generated campaigns and their sources."""

from fastapi import APIRouter, Depends

from app.api.campaigns.schemas import CampaignView
from app.api.deps import get_result_store, resolve_id
from app.api.projects.schemas import CampaignDetail, ProjectResponse, SourceResponse
from app.config.logger import app_logger
from app.services.errors import AuthorizationError
from app.services.result_store import SQLResultStore
from app.utils.auth import require_auth
from app.utils.responses import SuccessResponse, success_response

router = APIRouter(prefix="/v1", tags=["campaigns"])


@router.get("/campaigns/{campaign_id}", response_model=SuccessResponse[CampaignView])
async def get_campaign(
    campaign_id: str,
    user_id: str = Depends(require_auth),
    store: SQLResultStore = Depends(get_result_store),
):
    campaign = await store.get_campaign_for_user(resolve_id(campaign_id, "Campaign"), user_id)
    if campaign is None:
        raise AuthorizationError("Campaign not found")

    project = await store.get_project(campaign.project_id, user_id)
    source = await store.get_source(campaign.source_id)
    view = CampaignView(
        campaign=CampaignDetail.model_validate(campaign),
        project=ProjectResponse.model_validate(project),
        source=SourceResponse.model_validate(source) if source else None,
    )
    return success_response(data=view)


@router.delete("/campaigns/{campaign_id}", response_model=SuccessResponse[dict])
async def delete_campaign(
    campaign_id: str,
    user_id: str = Depends(require_auth),
    store: SQLResultStore = Depends(get_result_store),
):
    """Delete a campaign along with the source it came from and its generation logs."""
    campaign_uuid = resolve_id(campaign_id, "Campaign")
    if not await store.delete_campaign_for_user(campaign_uuid, user_id):
        raise AuthorizationError("Campaign not found")

    app_logger.info(f"Campaign deleted: id={campaign_uuid} user={user_id}")
    return success_response(data={"id": str(campaign_uuid)}, message="Campaign deleted")


@router.get("/sources/{source_id}", response_model=SuccessResponse[SourceResponse])
async def get_source(
    source_id: str,
    user_id: str = Depends(require_auth),
    store: SQLResultStore = Depends(get_result_store),
):
    """Poll a generation attempt's status."""
    source = await store.get_source_for_user(resolve_id(source_id, "Source"), user_id)
    if source is None:
        raise AuthorizationError("Source not found")
    return success_response(data=SourceResponse.model_validate(source))

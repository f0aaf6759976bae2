"""Token usage and cost statistics from generation logs."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_result_store, resolve_id
from app.api.stats.schemas import (
    AgentUsage,
    CampaignRef,
    EstimatedCost,
    ModuleBreakdown,
    RatePair,
    StatsResponse,
    TokenUsage,
)
from app.services.errors import AuthorizationError
from app.services.result_store import SQLResultStore
from app.services.stats import UsageStats, summarize_logs
from app.utils.auth import require_auth
from app.utils.responses import SuccessResponse, success_response

router = APIRouter(prefix="/v1", tags=["stats"])


def _to_response(stats: UsageStats, **extra) -> StatsResponse:
    return StatsResponse(
        total_generations=stats.total_generations,
        token_usage=TokenUsage(
            prompt=stats.prompt_tokens,
            completion=stats.completion_tokens,
            total=stats.total_tokens,
        ),
        estimated_cost=EstimatedCost(
            total=stats.total_cost,
            per_million_tokens=RatePair(prompt=stats.prompt_rate, completion=stats.completion_rate),
        ),
        distribution={agent: AgentUsage.model_validate(t) for agent, t in stats.distribution.items()},
        module_breakdown=[ModuleBreakdown.model_validate(m) for m in stats.module_breakdown],
        **extra,
    )


@router.get("/stats", response_model=SuccessResponse[StatsResponse])
async def get_stats(
    campaign_id: Optional[str] = Query(default=None, alias="campaignId"),
    user_id: str = Depends(require_auth),
    store: SQLResultStore = Depends(get_result_store),
):
    """Usage across all of the caller's generations, or for one campaign.

    Pass ``campaignId`` to narrow the figures to that campaign. Campaigns
    that belong to someone else are reported as not found.
    """
    if campaign_id:
        campaign = await store.get_campaign_for_user(resolve_id(campaign_id, "Campaign"), user_id)
        if campaign is None:
            raise AuthorizationError("Campaign not found")

        logs = await store.list_generation_logs(user_id, campaign_id=campaign.id)
        data = _to_response(
            summarize_logs(logs),
            campaign=CampaignRef(id=str(campaign.id), name=campaign.name),
            note=None if logs else "No generation logs found for this campaign",
        )
        return success_response(data=data)

    logs = await store.list_generation_logs(user_id)
    data = _to_response(summarize_logs(logs), total_campaigns=await store.count_campaigns(user_id))
    return success_response(data=data)

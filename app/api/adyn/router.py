"""URL-to-campaign generation endpoint."""

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.adyn.schemas import GenerateCampaignRequest, GenerateCampaignResponse
from app.api.deps import get_result_store, get_tool_invoker, resolve_id
from app.config.logger import app_logger
from app.services.campaign_pipeline import GenerationRequest, PipelineOrchestrator
from app.services.errors import AuthorizationError, ValidationError
from app.services.result_store import ResultStore
from app.services.tool_invoker import ToolInvoker
from app.utils.auth import require_auth
from app.utils.responses import ErrorResponse

router = APIRouter(prefix="/v1/adyn", tags=["adyn"])


@router.post(
    "/generate",
    response_model=GenerateCampaignResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def generate_campaign(
    body: GenerateCampaignRequest,
    user_id: str = Depends(require_auth),
    store: ResultStore = Depends(get_result_store),
    invoker: ToolInvoker = Depends(get_tool_invoker),
) -> GenerateCampaignResponse:
    """Run the six-stage pipeline for one product URL.

    The project must belong to the caller. A stage failure returns 500 with
    the tool's message and leaves the Source marked failed.
    """
    project_ref = (body.project_id or "").strip()
    url = (body.url or "").strip()
    if not project_ref or not url:
        raise ValidationError("Missing required fields: projectId and url")

    project_id = resolve_id(project_ref, "Project")
    project = await store.get_project(project_id, user_id)
    if project is None:
        raise AuthorizationError("Project not found")

    app_logger.info(f"Campaign generation requested: user={user_id} project={project_id} url={url}")
    outcome = await PipelineOrchestrator(store, invoker).run(
        GenerationRequest(user_id=user_id, project_id=project_id, url=url, objective=body.objective)
    )

    if not outcome.ok:
        raise HTTPException(status_code=outcome.error.status_code, detail=outcome.error.message)

    return GenerateCampaignResponse(
        success=True,
        campaign_id=str(outcome.campaign_id),
        data=outcome.result,
    )

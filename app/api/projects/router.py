"""Project endpoints: create, list, read, update, delete, and the campaigns under a project."""

from typing import List

from fastapi import APIRouter, Depends, status

from app.api.deps import get_result_store, resolve_id
from app.api.projects.schemas import (
    CampaignSummary,
    ProjectCreateRequest,
    ProjectDetail,
    ProjectResponse,
    ProjectSummary,
    ProjectUpdateRequest,
    SourceResponse,
)
from app.config.logger import app_logger
from app.services.errors import AuthorizationError
from app.services.result_store import SQLResultStore
from app.utils.auth import require_auth
from app.utils.responses import SuccessResponse, success_response

router = APIRouter(prefix="/v1/projects", tags=["projects"])


@router.post("", response_model=SuccessResponse[ProjectResponse], status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreateRequest,
    user_id: str = Depends(require_auth),
    store: SQLResultStore = Depends(get_result_store),
):
    project = await store.create_project(user_id, body.name.strip(), body.description)
    app_logger.info(f"Project created: id={project.id} user={user_id}")
    return success_response(data=ProjectResponse.model_validate(project), message="Project created")


@router.get("", response_model=SuccessResponse[List[ProjectSummary]])
async def list_projects(
    user_id: str = Depends(require_auth),
    store: SQLResultStore = Depends(get_result_store),
):
    """List the caller's projects, newest first, with usage counts."""
    rows = await store.list_projects_with_counts(user_id)
    summaries = [
        ProjectSummary(
            **ProjectResponse.model_validate(row["project"]).model_dump(),
            campaign_count=row["campaigns"],
            source_count=row["sources"],
        )
        for row in rows
    ]
    return success_response(data=summaries, message=f"Found {len(summaries)} projects")


@router.get("/{project_id}", response_model=SuccessResponse[ProjectDetail])
async def get_project(
    project_id: str,
    user_id: str = Depends(require_auth),
    store: SQLResultStore = Depends(get_result_store),
):
    """A project with its sources and campaigns, newest first."""
    project_uuid = resolve_id(project_id, "Project")
    project = await store.get_project(project_uuid, user_id)
    if project is None:
        raise AuthorizationError("Project not found")

    sources = await store.list_sources(project_uuid)
    campaigns = await store.list_campaigns(project_uuid)
    detail = ProjectDetail(
        **ProjectResponse.model_validate(project).model_dump(),
        sources=[SourceResponse.model_validate(s) for s in sources],
        campaigns=[CampaignSummary.model_validate(c) for c in campaigns],
    )
    return success_response(data=detail)


@router.put("/{project_id}", response_model=SuccessResponse[ProjectResponse])
async def update_project(
    project_id: str,
    body: ProjectUpdateRequest,
    user_id: str = Depends(require_auth),
    store: SQLResultStore = Depends(get_result_store),
):
    name = body.name.strip() if body.name is not None else None
    project = await store.update_project(
        resolve_id(project_id, "Project"), user_id, name=name or None, description=body.description
    )
    if project is None:
        raise AuthorizationError("Project not found")

    app_logger.info(f"Project updated: id={project.id} user={user_id}")
    return success_response(data=ProjectResponse.model_validate(project), message="Project updated")


@router.delete("/{project_id}", response_model=SuccessResponse[dict])
async def delete_project(
    project_id: str,
    user_id: str = Depends(require_auth),
    store: SQLResultStore = Depends(get_result_store),
):
    """Delete a project and everything generated under it."""
    project_uuid = resolve_id(project_id, "Project")
    if not await store.delete_project(project_uuid, user_id):
        raise AuthorizationError("Project not found")

    app_logger.info(f"Project deleted: id={project_uuid} user={user_id}")
    return success_response(data={"id": str(project_uuid)}, message="Project deleted")


@router.get("/{project_id}/campaigns", response_model=SuccessResponse[List[CampaignSummary]])
async def list_project_campaigns(
    project_id: str,
    user_id: str = Depends(require_auth),
    store: SQLResultStore = Depends(get_result_store),
):
    project_uuid = resolve_id(project_id, "Project")
    if await store.get_project(project_uuid, user_id) is None:
        raise AuthorizationError("Project not found")

    campaigns = await store.list_campaigns(project_uuid)
    return success_response(
        data=[CampaignSummary.model_validate(c) for c in campaigns],
        message=f"Found {len(campaigns)} campaigns",
    )

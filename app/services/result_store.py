"""Persistence for generation runs.

``ResultStore`` is the interface the pipeline depends on; ``SQLResultStore``
implements it on one AsyncSession. A session belongs to a single request, so
concurrent runs never share a store instance.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.config.logger import app_logger
from app.models.campaign import Campaign
from app.models.generation_log import GenerationLog
from app.models.project import Project
from app.models.source import Source, SourceStatus
from app.services.errors import PersistenceError


class ResultStore(ABC):
    """Durable records touched by one pipeline run."""

    @abstractmethod
    async def get_project(self, project_id: UUID, user_id: str) -> Optional[Project]:
        """Return the project if it exists and is owned by ``user_id``."""

    @abstractmethod
    async def create_source(self, project_id: UUID, input_url: str, input_type: str = "url") -> Source:
        """Insert a new Source in ``pending`` state."""

    @abstractmethod
    async def get_source(self, source_id: UUID) -> Optional[Source]:
        ...

    @abstractmethod
    async def update_source_status(self, source_id: UUID, status: SourceStatus) -> Source:
        ...

    @abstractmethod
    async def create_campaign(
        self,
        project_id: UUID,
        source_id: UUID,
        name: str,
        objective: Optional[str],
        platforms: List[str],
        generation_result: Dict[str, Any],
    ) -> Campaign:
        ...

    @abstractmethod
    async def delete_campaign(self, campaign_id: UUID) -> None:
        """Remove a campaign whose source could not be completed."""

    @abstractmethod
    async def create_generation_log(
        self,
        user_id: str,
        campaign_id: Optional[UUID],
        agent: str,
        request_payload: Dict[str, Any],
        response_payload: Dict[str, Any],
        tokens_used: Dict[str, int],
        module_usage: List[Dict[str, Any]],
        estimated_cost: float,
    ) -> GenerationLog:
        ...


class SQLResultStore(ResultStore):
    """ResultStore on SQLModel tables. Every write commits immediately."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, record, what: str):
        try:
            self.session.add(record)
            await self.session.commit()
            await self.session.refresh(record)
            return record
        except SQLAlchemyError as exc:
            await self.session.rollback()
            app_logger.error(f"Failed to persist {what}: {exc}")
            raise PersistenceError(f"Failed to persist {what}: {exc}") from exc

    async def get_project(self, project_id: UUID, user_id: str) -> Optional[Project]:
        try:
            result = await self.session.execute(
                select(Project).where(Project.id == project_id, Project.user_id == user_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load project: {exc}") from exc

    async def create_source(self, project_id: UUID, input_url: str, input_type: str = "url") -> Source:
        source = Source(
            project_id=project_id,
            type=input_type,
            input_url=input_url,
            status=SourceStatus.pending.value,
        )
        return await self._save(source, "source")

    async def get_source(self, source_id: UUID) -> Optional[Source]:
        try:
            return await self.session.get(Source, source_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load source: {exc}") from exc

    async def update_source_status(self, source_id: UUID, status: SourceStatus) -> Source:
        source = await self.get_source(source_id)
        if source is None:
            raise PersistenceError(f"Source {source_id} not found")
        source.status = status.value
        source.updated_at = datetime.now(timezone.utc)
        return await self._save(source, f"source status '{status.value}'")

    async def create_campaign(
        self,
        project_id: UUID,
        source_id: UUID,
        name: str,
        objective: Optional[str],
        platforms: List[str],
        generation_result: Dict[str, Any],
    ) -> Campaign:
        campaign = Campaign(
            project_id=project_id,
            source_id=source_id,
            name=name,
            objective=objective,
            platforms=list(platforms),
            generation_result=generation_result,
        )
        return await self._save(campaign, "campaign")

    async def delete_campaign(self, campaign_id: UUID) -> None:
        try:
            campaign = await self.session.get(Campaign, campaign_id)
            if campaign is not None:
                await self.session.delete(campaign)
                await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceError(f"Failed to delete campaign: {exc}") from exc

    async def create_generation_log(
        self,
        user_id: str,
        campaign_id: Optional[UUID],
        agent: str,
        request_payload: Dict[str, Any],
        response_payload: Dict[str, Any],
        tokens_used: Dict[str, int],
        module_usage: List[Dict[str, Any]],
        estimated_cost: float,
    ) -> GenerationLog:
        log = GenerationLog(
            user_id=user_id,
            campaign_id=campaign_id,
            agent=agent,
            request_payload=request_payload,
            response_payload=response_payload,
            tokens_used=tokens_used,
            module_usage=module_usage,
            estimated_cost=estimated_cost,
        )
        return await self._save(log, "generation log")

    # Read side and management used by the project, campaign and stats endpoints

    async def create_project(self, user_id: str, name: str, description: Optional[str] = None) -> Project:
        return await self._save(Project(user_id=user_id, name=name, description=description), "project")

    async def list_projects_with_counts(self, user_id: str) -> List[Dict[str, Any]]:
        """Caller's projects, newest first, with campaign and source counts."""
        campaign_count = (
            select(func.count(Campaign.id))
            .where(Campaign.project_id == Project.id)
            .correlate(Project)
            .scalar_subquery()
        )
        source_count = (
            select(func.count(Source.id))
            .where(Source.project_id == Project.id)
            .correlate(Project)
            .scalar_subquery()
        )
        try:
            result = await self.session.execute(
                select(Project, campaign_count.label("campaigns"), source_count.label("sources"))
                .where(Project.user_id == user_id)
                .order_by(Project.created_at.desc())
            )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to list projects: {exc}") from exc
        return [
            {"project": project, "campaigns": campaigns or 0, "sources": sources or 0}
            for project, campaigns, sources in result.all()
        ]

    async def update_project(
        self,
        project_id: UUID,
        user_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[Project]:
        project = await self.get_project(project_id, user_id)
        if project is None:
            return None
        if name is not None:
            project.name = name
        if description is not None:
            project.description = description
        project.updated_at = datetime.now(timezone.utc)
        return await self._save(project, "project")

    async def delete_project(self, project_id: UUID, user_id: str) -> bool:
        """Delete an owned project with its sources and campaigns.

        Generation logs outlive their campaign (campaign_id is cleared) so
        per-user usage totals stay intact.
        """
        project = await self.get_project(project_id, user_id)
        if project is None:
            return False

        campaign_ids = select(Campaign.id).where(Campaign.project_id == project_id)
        try:
            await self.session.execute(
                update(GenerationLog)
                .where(GenerationLog.campaign_id.in_(campaign_ids))
                .values(campaign_id=None)
            )
            await self.session.execute(delete(Campaign).where(Campaign.project_id == project_id))
            await self.session.execute(delete(Source).where(Source.project_id == project_id))
            await self.session.delete(project)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceError(f"Failed to delete project: {exc}") from exc
        app_logger.info(f"Project {project_id} deleted with its sources and campaigns")
        return True

    async def get_campaign_for_user(self, campaign_id: UUID, user_id: str) -> Optional[Campaign]:
        """Campaign by id, only if its project belongs to ``user_id``."""
        try:
            result = await self.session.execute(
                select(Campaign)
                .join(Project, Project.id == Campaign.project_id)
                .where(Campaign.id == campaign_id, Project.user_id == user_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load campaign: {exc}") from exc

    async def delete_campaign_for_user(self, campaign_id: UUID, user_id: str) -> bool:
        """Delete an owned campaign together with its source and generation logs."""
        campaign = await self.get_campaign_for_user(campaign_id, user_id)
        if campaign is None:
            return False

        source_id = campaign.source_id
        try:
            await self.session.execute(delete(GenerationLog).where(GenerationLog.campaign_id == campaign_id))
            await self.session.delete(campaign)
            await self.session.flush()
            await self.session.execute(delete(Source).where(Source.id == source_id))
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceError(f"Failed to delete campaign: {exc}") from exc
        app_logger.info(f"Campaign {campaign_id} deleted with source {source_id}")
        return True

    async def list_campaigns(self, project_id: UUID) -> List[Campaign]:
        try:
            result = await self.session.execute(
                select(Campaign).where(Campaign.project_id == project_id).order_by(Campaign.created_at.desc())
            )
            return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to list campaigns: {exc}") from exc

    async def list_sources(self, project_id: UUID) -> List[Source]:
        try:
            result = await self.session.execute(
                select(Source).where(Source.project_id == project_id).order_by(Source.created_at.desc())
            )
            return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to list sources: {exc}") from exc

    async def get_source_for_user(self, source_id: UUID, user_id: str) -> Optional[Source]:
        try:
            result = await self.session.execute(
                select(Source)
                .join(Project, Project.id == Source.project_id)
                .where(Source.id == source_id, Project.user_id == user_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load source: {exc}") from exc

    async def list_generation_logs(self, user_id: str, campaign_id: Optional[UUID] = None) -> List[GenerationLog]:
        """The caller's generation logs, optionally narrowed to one campaign."""
        query = select(GenerationLog).where(GenerationLog.user_id == user_id)
        if campaign_id is not None:
            query = query.where(GenerationLog.campaign_id == campaign_id)
        try:
            result = await self.session.execute(query.order_by(GenerationLog.created_at.desc()))
            return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load generation logs: {exc}") from exc

    async def count_campaigns(self, user_id: str) -> int:
        try:
            count = await self.session.scalar(
                select(func.count(Campaign.id))
                .join(Project, Project.id == Campaign.project_id)
                .where(Project.user_id == user_id)
            )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to count campaigns: {exc}") from exc
        return count or 0

"""Models module - imports all models for SQLModel registration."""

from app.models.project import Project
from app.models.source import Source, SourceStatus
from app.models.campaign import Campaign
from app.models.generation_log import GenerationLog

__all__ = [
    "Project",
    "Source",
    "SourceStatus",
    "Campaign",
    "GenerationLog",
]

"""Shared fixtures: isolated settings, an in-memory result store and a scripted tool invoker."""

import os
import tempfile
from pathlib import Path

# Settings are read at import time, so the environment must be in place
# before anything under app/ is imported.
_TEST_DIR = Path(tempfile.mkdtemp(prefix="adyn-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR / 'test.db'}"
os.environ["LOGS_DIR"] = str(_TEST_DIR / "logs")
os.environ["LOCAL_AUTH_SECRET"] = "test-secret"
os.environ["TOOL_GATEWAY_URL"] = "http://tools.test"
os.environ["STRICT_STAGE_OUTPUTS"] = "false"

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import UUID

import pytest

from app.models.campaign import Campaign
from app.models.generation_log import GenerationLog
from app.models.project import Project
from app.models.source import Source, SourceStatus
from app.services.errors import PersistenceError, ToolInvocationError
from app.services.result_store import ResultStore
from app.services.tool_invoker import ToolInvoker
from app.utils.local_tokens import create_local_token


class InMemoryResultStore(ResultStore):
    """ResultStore kept in dicts. ``fail_on`` names operations that raise PersistenceError."""

    def __init__(self, fail_on: Optional[set] = None):
        self.projects: Dict[UUID, Project] = {}
        self.sources: Dict[UUID, Source] = {}
        self.campaigns: Dict[UUID, Campaign] = {}
        self.logs: List[GenerationLog] = []
        self.status_writes: List[tuple] = []
        self.fail_on = set(fail_on or ())

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise PersistenceError(f"{operation} failed")

    def add_project(self, user_id: str, name: str = "Test project") -> Project:
        project = Project(user_id=user_id, name=name)
        self.projects[project.id] = project
        return project

    async def get_project(self, project_id, user_id):
        project = self.projects.get(project_id)
        if project is None or project.user_id != user_id:
            return None
        return project

    async def create_source(self, project_id, input_url, input_type="url"):
        self._maybe_fail("create_source")
        source = Source(project_id=project_id, input_url=input_url, type=input_type)
        self.sources[source.id] = source
        return source

    async def get_source(self, source_id):
        return self.sources.get(source_id)

    async def update_source_status(self, source_id, status: SourceStatus):
        self._maybe_fail(f"update_source_status:{status.value}")
        source = self.sources[source_id]
        source.status = status.value
        source.updated_at = datetime.now(timezone.utc)
        self.status_writes.append((source_id, status.value))
        return source

    async def create_campaign(self, project_id, source_id, name, objective, platforms, generation_result):
        self._maybe_fail("create_campaign")
        campaign = Campaign(
            project_id=project_id,
            source_id=source_id,
            name=name,
            objective=objective,
            platforms=list(platforms),
            generation_result=generation_result,
        )
        self.campaigns[campaign.id] = campaign
        return campaign

    async def delete_campaign(self, campaign_id):
        self.campaigns.pop(campaign_id, None)

    async def create_generation_log(
        self, user_id, campaign_id, agent, request_payload, response_payload,
        tokens_used, module_usage, estimated_cost,
    ):
        self._maybe_fail("create_generation_log")
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
        self.logs.append(log)
        return log


Response = Union[Dict[str, Any], Exception, Callable[[Dict[str, Any]], Dict[str, Any]]]


def default_tool_responses() -> Dict[str, Response]:
    """Well-formed payloads for all six tools."""
    return {
        "fetch_url": {"html": "<html><body><h1>Trail Runner X</h1></body></html>"},
        "extract_content": {
            "title": "Trail Runner X",
            "text_blocks": ["Lightweight trail shoe.", "Grippy outsole."],
            "images": ["https://example.com/shoe.jpg"],
            "metadata": {"lang": "en"},
        },
        "semantic_analyze": {
            "summary": "A lightweight trail running shoe.",
            "keywords": ["trail running", "shoes"],
            "value_proposition": "Grip without weight",
            "unique_selling_point": "Lightest in class",
            "brand_tone": "energetic",
            "audience_persona": "Weekend trail runners",
            "category": "footwear",
            "use_cases": ["trail races"],
            "target_segments": [{"name": "Ultra runners"}],
        },
        "audience_builder": {
            "age_range": "25-44",
            "interest_groups": ["trail running"],
            "geos": ["US"],
        },
        "generate_ads": {
            "ads": [
                {"platform": "facebook", "headline": "Run further", "cta": "Shop now"},
                {"platform": "tiktok", "headline": "Own the trail", "hashtags": ["#trail"]},
            ],
            "usage": {"promptTokens": 120, "completionTokens": 80, "totalTokens": 200},
        },
        "campaign_builder": lambda args: {
            "campaign_name": "Trail Season Launch",
            "objective": args.get("objective"),
            "budget_suggestion": "$50/day",
            "duration_days": 30,
            "platform_mix": ["facebook", "tiktok"],
            "formats": ["image", "video"],
        },
    }


class ScriptedInvoker(ToolInvoker):
    """Answers each tool from a script and records every call in order."""

    def __init__(self, responses: Optional[Dict[str, Response]] = None):
        self.responses = default_tool_responses()
        self.responses.update(responses or {})
        self.calls: List[tuple] = []

    @property
    def tool_names(self) -> List[str]:
        return [name for _, name, _ in self.calls]

    async def invoke(self, namespace, tool_name, args):
        self.calls.append((namespace, tool_name, args))
        response = self.responses[tool_name]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(args)
        return dict(response)


def tool_error(tool_name: str, message: str) -> ToolInvocationError:
    return ToolInvocationError(tool_name, message)


@pytest.fixture
def store():
    return InMemoryResultStore()


@pytest.fixture
def invoker():
    return ScriptedInvoker()


@pytest.fixture
def user_id():
    return "user-123"


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {create_local_token(user_id)}"}

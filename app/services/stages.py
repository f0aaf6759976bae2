"""Typed stage operations over the untyped tool boundary.

``CampaignStages`` is the only place that knows tool names; the orchestrator
calls typed methods and gets typed outputs back.
"""

from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

from app.config.logger import app_logger
from app.config.settings import settings
from app.services.errors import ToolInvocationError
from app.services.stage_contracts import (
    AdsInput,
    AdsOutput,
    AnalysisOutput,
    AnalyzeInput,
    AudienceInput,
    AudienceOutput,
    CampaignInput,
    ExtractInput,
    ExtractOutput,
    FetchInput,
    FetchOutput,
    StageInput,
    StageOutput,
    StrategyOutput,
)
from app.services.tool_invoker import ToolInvoker

OutputT = TypeVar("OutputT", bound=StageOutput)


class Stage(str, Enum):
    """The six stages, valued by the tool that backs each one."""

    FETCH = "fetch_url"
    EXTRACT = "extract_content"
    ANALYZE = "semantic_analyze"
    BUILD_AUDIENCE = "audience_builder"
    GENERATE_ADS = "generate_ads"
    BUILD_CAMPAIGN = "campaign_builder"

    @property
    def uses_model(self) -> bool:
        return self not in (Stage.FETCH, Stage.EXTRACT)


STAGE_ORDER = (
    Stage.FETCH,
    Stage.EXTRACT,
    Stage.ANALYZE,
    Stage.BUILD_AUDIENCE,
    Stage.GENERATE_ADS,
    Stage.BUILD_CAMPAIGN,
)


class CampaignStages:
    """Closed set of typed operations backed by one ToolInvoker."""

    def __init__(
        self,
        invoker: ToolInvoker,
        namespace: Optional[str] = None,
        strict: Optional[bool] = None,
    ):
        self.invoker = invoker
        self.namespace = namespace or settings.TOOL_NAMESPACE
        self.strict = settings.STRICT_STAGE_OUTPUTS if strict is None else strict

    async def _call(self, stage: Stage, args: StageInput, output_type: Type[OutputT]) -> OutputT:
        payload: Dict[str, Any] = await self.invoker.invoke(self.namespace, stage.value, args.to_args())
        if not payload:
            if self.strict:
                raise ToolInvocationError(stage.value, f"Tool '{stage.value}' returned an empty result")
            app_logger.warning(f"Stage {stage.value} returned an empty payload; continuing with defaults")
        return output_type.parse_payload(payload)

    async def fetch_url(self, args: FetchInput) -> FetchOutput:
        return await self._call(Stage.FETCH, args, FetchOutput)

    async def extract_content(self, args: ExtractInput) -> ExtractOutput:
        return await self._call(Stage.EXTRACT, args, ExtractOutput)

    async def semantic_analyze(self, args: AnalyzeInput) -> AnalysisOutput:
        return await self._call(Stage.ANALYZE, args, AnalysisOutput)

    async def build_audience(self, args: AudienceInput) -> AudienceOutput:
        return await self._call(Stage.BUILD_AUDIENCE, args, AudienceOutput)

    async def generate_ads(self, args: AdsInput) -> AdsOutput:
        return await self._call(Stage.GENERATE_ADS, args, AdsOutput)

    async def build_campaign(self, args: CampaignInput) -> StrategyOutput:
        return await self._call(Stage.BUILD_CAMPAIGN, args, StrategyOutput)

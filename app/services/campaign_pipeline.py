"""URL-to-campaign pipeline.

Runs the six stages strictly in order, each stage's output feeding the next:

    fetch_url -> extract_content -> semantic_analyze
        -> audience_builder -> generate_ads -> campaign_builder

The analysis is the pivot: audience, ads and campaign inputs are all derived
from it. The first failing stage ends the run; nothing after it is called,
the Source is marked failed and no Campaign or GenerationLog is written.

Stage failures travel as ``StageResult`` values and the run returns early on
the first one, so every abort path is visible in ``run`` itself.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar
from uuid import UUID

from app.config.logger import app_logger, log_performance
from app.config.settings import settings
from app.services.errors import PersistenceError, PipelineError, ToolInvocationError
from app.services.result_store import ResultStore
from app.services.source_tracker import SourceStateTracker
from app.services.stage_contracts import (
    DEFAULT_PLATFORM_MIX,
    AdsInput,
    AdsOutput,
    AnalysisOutput,
    AnalyzeInput,
    AudienceInput,
    AudienceOutput,
    CampaignInput,
    ExtractInput,
    FetchInput,
    MarketingInsights,
    StageInput,
    StageOutput,
    StrategyOutput,
    UnifiedResult,
)
from app.services.stages import CampaignStages, Stage
from app.services.tool_invoker import ToolInvoker
from app.services.usage import ModuleUsage, UsageAccountant, UsageEstimate, usage_summary

OutputT = TypeVar("OutputT", bound=StageOutput)


class PipelineState(str, Enum):
    CREATED = "created"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    ANALYZING = "analyzing"
    BUILDING_AUDIENCE = "building_audience"
    GENERATING_ADS = "generating_ads"
    BUILDING_CAMPAIGN = "building_campaign"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"


STAGE_STATES = {
    Stage.FETCH: PipelineState.FETCHING,
    Stage.EXTRACT: PipelineState.EXTRACTING,
    Stage.ANALYZE: PipelineState.ANALYZING,
    Stage.BUILD_AUDIENCE: PipelineState.BUILDING_AUDIENCE,
    Stage.GENERATE_ADS: PipelineState.GENERATING_ADS,
    Stage.BUILD_CAMPAIGN: PipelineState.BUILDING_CAMPAIGN,
}


@dataclass
class GenerationRequest:
    user_id: str
    project_id: UUID
    url: str
    objective: Optional[str] = None

    def to_payload(self) -> dict:
        return {"projectId": str(self.project_id), "url": self.url, "objective": self.objective}


@dataclass
class StageResult(Generic[OutputT]):
    """Outcome of one stage: an output or the error that stopped the run."""

    stage: Stage
    output: Optional[OutputT] = None
    error: Optional[PipelineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PipelineRun:
    """Mutable state of a single run. Never shared between runs."""

    request: GenerationRequest
    state: PipelineState = PipelineState.CREATED
    source_id: Optional[UUID] = None
    stages_run: List[Stage] = field(default_factory=list)
    module_usage: List[ModuleUsage] = field(default_factory=list)


@dataclass
class PipelineOutcome:
    state: PipelineState
    source_id: Optional[UUID]
    stages_run: List[Stage]
    module_usage: List[ModuleUsage]
    campaign_id: Optional[UUID] = None
    result: Optional[UnifiedResult] = None
    error: Optional[PipelineError] = None
    failed_stage: Optional[Stage] = None

    @property
    def ok(self) -> bool:
        return self.state == PipelineState.COMPLETED

    @property
    def usage(self) -> UsageEstimate:
        return UsageAccountant.totals(self.module_usage)


def fallback_campaign_name(today: date) -> str:
    return f"Campaign - {today.isoformat()}"


def resolve_campaign_name(strategy: StrategyOutput, today: date) -> str:
    name = (strategy.campaign_name or "").strip()
    return name or fallback_campaign_name(today)


def resolve_objective(strategy: StrategyOutput, requested: Optional[str], default: str) -> str:
    for candidate in (strategy.objective, requested):
        if candidate and candidate.strip():
            return candidate.strip()
    return default


def resolve_platforms(strategy: StrategyOutput) -> List[str]:
    if strategy.platform_mix:
        return list(strategy.platform_mix)
    return list(DEFAULT_PLATFORM_MIX)


def build_unified_result(
    analysis: AnalysisOutput,
    audience: AudienceOutput,
    ads: AdsOutput,
    strategy: StrategyOutput,
) -> UnifiedResult:
    return UnifiedResult(
        product_summary=analysis.payload(),
        marketing_insights=MarketingInsights.from_analysis(analysis),
        ad_creatives=ads.creatives(),
        audience_targeting=audience.payload(),
        campaign_strategy=strategy.payload(),
    )


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class PipelineOrchestrator:
    """Sequences the six stage calls for one generation request.

    Build one per request: the store is bound to that request's session. The
    invoker may be shared across orchestrators.
    """

    def __init__(
        self,
        store: ResultStore,
        invoker: ToolInvoker,
        accountant: Optional[UsageAccountant] = None,
        today: Callable[[], date] = _utc_today,
        default_objective: Optional[str] = None,
        namespace: Optional[str] = None,
        strict: Optional[bool] = None,
    ):
        self.store = store
        self.tracker = SourceStateTracker(store)
        self.stages = CampaignStages(invoker, namespace=namespace, strict=strict)
        self.accountant = accountant or UsageAccountant()
        self.today = today
        self.default_objective = default_objective or settings.DEFAULT_OBJECTIVE

    async def run(self, request: GenerationRequest) -> PipelineOutcome:
        run = PipelineRun(request=request)

        # The Source exists before the first tool call so a crash mid-run
        # still leaves a durable record.
        try:
            source = await self.store.create_source(request.project_id, request.url)
            run.source_id = source.id
            await self.tracker.start(source.id)
        except PersistenceError as exc:
            return await self._abort(run, exc)

        app_logger.info(f"Pipeline started: source={run.source_id} url={request.url}")

        fetched = await self._run_stage(run, Stage.FETCH, self.stages.fetch_url, FetchInput(url=request.url))
        if not fetched.ok:
            return await self._abort(run, fetched.error, fetched.stage)

        extracted = await self._run_stage(
            run, Stage.EXTRACT, self.stages.extract_content, ExtractInput(html=fetched.output.html)
        )
        if not extracted.ok:
            return await self._abort(run, extracted.error, extracted.stage)

        analyzed = await self._run_stage(
            run, Stage.ANALYZE, self.stages.semantic_analyze, AnalyzeInput(text=extracted.output.joined_text())
        )
        if not analyzed.ok:
            return await self._abort(run, analyzed.error, analyzed.stage)
        analysis = analyzed.output

        audience = await self._run_stage(
            run, Stage.BUILD_AUDIENCE, self.stages.build_audience, AudienceInput.from_analysis(analysis)
        )
        if not audience.ok:
            return await self._abort(run, audience.error, audience.stage)

        ads = await self._run_stage(
            run, Stage.GENERATE_ADS, self.stages.generate_ads, AdsInput.from_analysis(analysis)
        )
        if not ads.ok:
            return await self._abort(run, ads.error, ads.stage)

        campaign_input = CampaignInput(
            ads=ads.output.creatives(),
            audience=audience.output.payload(),
            objective=(request.objective or "").strip() or self.default_objective,
        )
        strategy = await self._run_stage(run, Stage.BUILD_CAMPAIGN, self.stages.build_campaign, campaign_input)
        if not strategy.ok:
            return await self._abort(run, strategy.error, strategy.stage)

        return await self._finalize(run, analysis, audience.output, ads.output, strategy.output)

    async def _run_stage(
        self,
        run: PipelineRun,
        stage: Stage,
        operation: Callable[[StageInput], Awaitable[OutputT]],
        args: StageInput,
    ) -> StageResult[OutputT]:
        run.state = STAGE_STATES[stage]
        run.stages_run.append(stage)
        app_logger.info(f"Stage {stage.value} started (source={run.source_id})")

        start = time.perf_counter()
        try:
            output = await operation(args)
        except ToolInvocationError as exc:
            app_logger.error(f"Stage {stage.value} failed: {exc.message}")
            return StageResult(stage=stage, error=exc)
        except Exception as exc:
            app_logger.exception(f"Stage {stage.value} raised unexpectedly: {exc}")
            return StageResult(stage=stage, error=ToolInvocationError(stage.value, str(exc), cause=exc))

        log_performance(f"stage {stage.value}", time.perf_counter() - start, source_id=run.source_id)
        run.module_usage.append(
            self.accountant.for_module(
                stage.value,
                args.to_args(),
                output.payload(),
                reported=output.usage.model_dump() if output.usage else None,
                uses_model=stage.uses_model,
            )
        )
        return StageResult(stage=stage, output=output)

    async def _finalize(
        self,
        run: PipelineRun,
        analysis: AnalysisOutput,
        audience: AudienceOutput,
        ads: AdsOutput,
        strategy: StrategyOutput,
    ) -> PipelineOutcome:
        run.state = PipelineState.FINALIZING
        request = run.request

        unified = build_unified_result(analysis, audience, ads, strategy)
        result_payload = unified.model_dump(mode="json")

        campaign = None
        try:
            campaign = await self.store.create_campaign(
                project_id=request.project_id,
                source_id=run.source_id,
                name=resolve_campaign_name(strategy, self.today()),
                objective=resolve_objective(strategy, request.objective, self.default_objective),
                platforms=resolve_platforms(strategy),
                generation_result=result_payload,
            )
            await self.tracker.complete(run.source_id)
        except PersistenceError as exc:
            if campaign is not None:
                await self._discard_campaign(campaign.id)
            return await self._abort(run, exc)

        totals = UsageAccountant.totals(run.module_usage)
        try:
            await self.store.create_generation_log(
                user_id=request.user_id,
                campaign_id=campaign.id,
                agent=self.stages.namespace,
                request_payload=request.to_payload(),
                response_payload=result_payload,
                tokens_used=usage_summary(run.module_usage),
                module_usage=[m.to_dict() for m in run.module_usage],
                estimated_cost=totals.cost,
            )
        except PersistenceError as exc:
            # The source is already completed and cannot move back.
            app_logger.error(f"Generation log for campaign {campaign.id} was not written: {exc}")

        run.state = PipelineState.COMPLETED
        app_logger.info(
            f"Pipeline completed: source={run.source_id} campaign={campaign.id} "
            f"tokens={totals.total_tokens} cost=${totals.cost:.4f}"
        )
        return PipelineOutcome(
            state=run.state,
            source_id=run.source_id,
            stages_run=list(run.stages_run),
            module_usage=list(run.module_usage),
            campaign_id=campaign.id,
            result=unified,
        )

    async def _discard_campaign(self, campaign_id: UUID) -> None:
        try:
            await self.store.delete_campaign(campaign_id)
        except PersistenceError as exc:
            app_logger.error(f"Could not discard campaign {campaign_id} after failed completion: {exc}")

    async def _abort(
        self,
        run: PipelineRun,
        error: PipelineError,
        failed_stage: Optional[Stage] = None,
    ) -> PipelineOutcome:
        run.state = PipelineState.FAILED
        if run.source_id is not None:
            try:
                await self.tracker.fail(run.source_id)
            except PersistenceError as exc:
                app_logger.error(f"Could not mark source {run.source_id} failed: {exc}")

        where = f"at stage {failed_stage.value}" if failed_stage else "during persistence"
        app_logger.error(f"Pipeline failed {where} (source={run.source_id}): {error.message}")
        return PipelineOutcome(
            state=run.state,
            source_id=run.source_id,
            stages_run=list(run.stages_run),
            module_usage=list(run.module_usage),
            error=error,
            failed_stage=failed_stage,
        )

"""Orchestrator tests: stage ordering, fail-fast, fallbacks and persistence."""

import asyncio
from datetime import date
from uuid import uuid4

import pytest

from conftest import InMemoryResultStore, ScriptedInvoker, tool_error
from app.services.campaign_pipeline import (
    GenerationRequest,
    PipelineOrchestrator,
    PipelineState,
    fallback_campaign_name,
)
from app.services.errors import PersistenceError, ToolInvocationError
from app.services.stages import STAGE_ORDER, Stage

TODAY = date(2026, 3, 14)


def _run(store, invoker, objective=None, user_id="user-123", **kwargs):
    project = store.add_project(user_id)
    orchestrator = PipelineOrchestrator(store, invoker, today=lambda: TODAY, **kwargs)
    request = GenerationRequest(
        user_id=user_id,
        project_id=project.id,
        url="https://example.com/product",
        objective=objective,
    )
    return asyncio.run(orchestrator.run(request))


class TestSuccessfulRun:

    def test_all_stages_run_in_order(self, store, invoker):
        outcome = _run(store, invoker, objective="Conversions")

        assert outcome.ok
        assert outcome.state == PipelineState.COMPLETED
        assert invoker.tool_names == [stage.value for stage in STAGE_ORDER]
        assert outcome.stages_run == list(STAGE_ORDER)
        assert all(namespace == "adyn" for namespace, _, _ in invoker.calls)

    def test_records_are_written_once(self, store, invoker):
        outcome = _run(store, invoker, objective="Conversions")

        source = store.sources[outcome.source_id]
        assert source.status == "completed"
        assert [status for _, status in store.status_writes] == ["processing", "completed"]
        assert list(store.campaigns) == [outcome.campaign_id]
        assert len(store.logs) == 1
        assert store.logs[0].campaign_id == outcome.campaign_id

    def test_unified_result_is_fully_populated(self, store, invoker):
        outcome = _run(store, invoker, objective="Conversions")
        result = outcome.result.model_dump()

        assert result["product_summary"]["summary"] == "A lightweight trail running shoe."
        assert result["marketing_insights"]["keywords"] == ["trail running", "shoes"]
        assert [ad["platform"] for ad in result["ad_creatives"]] == ["facebook", "tiktok"]
        assert result["audience_targeting"]["age_range"] == "25-44"
        assert result["campaign_strategy"]["objective"] == "Conversions"

        campaign = store.campaigns[outcome.campaign_id]
        assert campaign.generation_result == outcome.result.model_dump(mode="json")
        assert campaign.name == "Trail Season Launch"
        assert campaign.platforms == ["facebook", "tiktok"]

    def test_stage_inputs_follow_the_data_chain(self, store, invoker):
        _run(store, invoker)
        args = {name: call_args for _, name, call_args in invoker.calls}

        assert args["fetch_url"] == {"url": "https://example.com/product"}
        assert args["extract_content"]["html"].startswith("<html>")
        assert args["semantic_analyze"] == {"text": "Lightweight trail shoe. Grippy outsole."}
        assert args["audience_builder"]["persona"] == "Weekend trail runners"
        assert args["audience_builder"]["category"] == "footwear"
        assert args["generate_ads"]["platforms"] == ["facebook", "instagram", "tiktok", "google"]
        assert args["campaign_builder"]["audience"]["geos"] == ["US"]
        assert len(args["campaign_builder"]["ads"]) == 2

    def test_default_objective_is_sent_to_campaign_builder(self, store, invoker):
        outcome = _run(store, invoker)

        _, _, campaign_args = invoker.calls[-1]
        assert campaign_args["objective"] == "Conversions"
        assert store.campaigns[outcome.campaign_id].objective == "Conversions"

    def test_usage_block_is_stripped_and_recorded(self, store):
        invoker = ScriptedInvoker({
            "campaign_builder": {
                "campaign_name": "Spring",
                "usage": {"promptTokens": 50, "completionTokens": 25, "reasoningTokens": 12, "cachedInputTokens": 8},
            },
        })

        outcome = _run(store, invoker)

        assert "usage" not in outcome.result.campaign_strategy
        assert outcome.result.campaign_strategy["campaign_name"] == "Spring"
        by_module = {m.module: m for m in outcome.module_usage}
        assert by_module["generate_ads"].reported is True
        assert by_module["generate_ads"].total_tokens == 200
        assert by_module["fetch_url"].total_tokens == 0
        assert by_module["extract_content"].total_tokens == 0
        assert by_module["semantic_analyze"].total_tokens > 0
        assert by_module["campaign_builder"].total_tokens == 75
        assert by_module["campaign_builder"].reasoning_tokens == 12
        assert by_module["campaign_builder"].cached_input_tokens == 8
        assert by_module["generate_ads"].reasoning_tokens == 0

        log = store.logs[0]
        assert log.tokens_used["total"] == outcome.usage.total_tokens
        assert log.estimated_cost == pytest.approx(outcome.usage.cost)
        assert len(log.module_usage) == 6
        logged = {entry["module"]: entry for entry in log.module_usage}
        assert logged["campaign_builder"]["reasoning_tokens"] == 12
        assert logged["campaign_builder"]["cached_input_tokens"] == 8
        assert log.request_payload["url"] == "https://example.com/product"


class TestFailFast:

    @pytest.mark.parametrize("position, stage", list(enumerate(STAGE_ORDER, start=1)))
    def test_failure_stops_remaining_stages(self, store, position, stage):
        message = f"{stage.value} exploded"
        invoker = ScriptedInvoker({stage.value: tool_error(stage.value, message)})

        outcome = _run(store, invoker)

        assert not outcome.ok
        assert outcome.state == PipelineState.FAILED
        assert len(invoker.calls) == position
        assert outcome.failed_stage == stage
        assert outcome.error.message == message
        assert store.sources[outcome.source_id].status == "failed"
        assert store.campaigns == {}
        assert store.logs == []

    def test_unexpected_exception_becomes_tool_error(self, store):
        invoker = ScriptedInvoker({"semantic_analyze": RuntimeError("socket closed")})

        outcome = _run(store, invoker)

        assert isinstance(outcome.error, ToolInvocationError)
        assert outcome.error.tool_name == "semantic_analyze"
        assert outcome.error.message == "socket closed"
        assert store.sources[outcome.source_id].status == "failed"

    def test_source_creation_failure_calls_no_tools(self, invoker):
        store = InMemoryResultStore(fail_on={"create_source"})

        outcome = _run(store, invoker)

        assert not outcome.ok
        assert isinstance(outcome.error, PersistenceError)
        assert invoker.calls == []

    def test_campaign_persistence_failure_fails_source(self, invoker):
        store = InMemoryResultStore(fail_on={"create_campaign"})

        outcome = _run(store, invoker)

        assert not outcome.ok
        assert len(invoker.calls) == 6
        assert outcome.failed_stage is None
        assert store.sources[outcome.source_id].status == "failed"
        assert store.logs == []

    def test_source_completion_failure_discards_campaign(self, invoker):
        store = InMemoryResultStore(fail_on={"update_source_status:completed"})

        outcome = _run(store, invoker)

        assert not outcome.ok
        assert store.campaigns == {}
        assert store.sources[outcome.source_id].status == "failed"

    def test_log_failure_keeps_run_successful(self, invoker):
        store = InMemoryResultStore(fail_on={"create_generation_log"})

        outcome = _run(store, invoker)

        assert outcome.ok
        assert outcome.campaign_id in store.campaigns
        assert store.sources[outcome.source_id].status == "completed"


class TestDegradedOutputs:

    def test_empty_strategy_uses_fallbacks(self, store):
        invoker = ScriptedInvoker({"campaign_builder": {}})

        outcome = _run(store, invoker, objective="Awareness")

        campaign = store.campaigns[outcome.campaign_id]
        assert campaign.name == "Campaign - 2026-03-14"
        assert campaign.name == fallback_campaign_name(TODAY)
        assert campaign.objective == "Awareness"
        assert campaign.platforms == ["facebook", "instagram"]

    def test_blank_name_and_empty_platform_mix(self, store):
        invoker = ScriptedInvoker({"campaign_builder": {"campaign_name": "   ", "platform_mix": []}})

        outcome = _run(store, invoker)

        campaign = store.campaigns[outcome.campaign_id]
        assert campaign.name == "Campaign - 2026-03-14"
        assert campaign.objective == "Conversions"
        assert campaign.platforms == ["facebook", "instagram"]

    def test_fallback_name_is_stable_within_a_day(self, store):
        first = _run(store, ScriptedInvoker({"campaign_builder": {}}))
        second = _run(store, ScriptedInvoker({"campaign_builder": {}}))
        assert store.campaigns[first.campaign_id].name == store.campaigns[second.campaign_id].name

    def test_empty_extract_yields_empty_text(self, store):
        invoker = ScriptedInvoker({"extract_content": {"text_blocks": []}})

        outcome = _run(store, invoker)

        assert outcome.ok
        _, _, analyze_args = invoker.calls[2]
        assert analyze_args == {"text": ""}

    def test_malformed_fields_are_dropped(self, store):
        invoker = ScriptedInvoker({"semantic_analyze": {"summary": "ok", "keywords": "not-a-list"}})

        outcome = _run(store, invoker)

        assert outcome.ok
        assert outcome.result.product_summary["summary"] == "ok"
        assert outcome.result.marketing_insights.keywords == []
        assert outcome.result.product_summary["keywords"] == "not-a-list"

    def test_one_bad_ad_does_not_drop_the_others(self, store):
        invoker = ScriptedInvoker({
            "generate_ads": {
                "ads": [
                    {"platform": "facebook", "headline": "Good"},
                    {"platform": "tiktok", "hashtags": "#notalist"},
                ],
            },
        })

        outcome = _run(store, invoker)

        assert outcome.ok
        good, bad = outcome.result.ad_creatives
        assert good["headline"] == "Good"
        assert bad["platform"] == "tiktok"
        assert bad["hashtags"] == "#notalist"
        _, _, campaign_args = invoker.calls[-1]
        assert [ad["platform"] for ad in campaign_args["ads"]] == ["facebook", "tiktok"]

    def test_non_object_ads_are_skipped(self, store):
        invoker = ScriptedInvoker({"generate_ads": {"ads": [{"platform": "google"}, "stray text", 7]}})

        outcome = _run(store, invoker)

        assert [ad["platform"] for ad in outcome.result.ad_creatives] == ["google"]

    def test_empty_payloads_succeed_when_permissive(self, store):
        invoker = ScriptedInvoker({name.value: {} for name in STAGE_ORDER})

        outcome = _run(store, invoker, strict=False)

        assert outcome.ok
        assert store.sources[outcome.source_id].status == "completed"

    def test_strict_mode_fails_empty_stage(self, store):
        invoker = ScriptedInvoker({"semantic_analyze": {}})

        outcome = _run(store, invoker, strict=True)

        assert not outcome.ok
        assert outcome.failed_stage == Stage.ANALYZE
        assert len(invoker.calls) == 3
        assert store.sources[outcome.source_id].status == "failed"


def test_concurrent_runs_share_no_state(invoker):
    store = InMemoryResultStore()
    project = store.add_project("user-123")

    async def run_many():
        requests = [
            GenerationRequest(user_id="user-123", project_id=project.id, url=f"https://example.com/{i}")
            for i in range(3)
        ]
        return await asyncio.gather(
            *(PipelineOrchestrator(store, invoker).run(request) for request in requests)
        )

    outcomes = asyncio.run(run_many())

    assert all(outcome.ok for outcome in outcomes)
    assert len({outcome.source_id for outcome in outcomes}) == 3
    assert len(store.campaigns) == 3
    assert len(invoker.calls) == 18


def test_unknown_project_id_still_creates_source():
    store = InMemoryResultStore()
    outcome = asyncio.run(
        PipelineOrchestrator(store, ScriptedInvoker()).run(
            GenerationRequest(user_id="u", project_id=uuid4(), url="https://example.com")
        )
    )
    assert outcome.source_id in store.sources

"""Usage statistics: aggregation over generation logs and GET /v1/stats."""

from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_tool_invoker
from app.main import app
from app.services.stats import summarize_logs
from app.services.usage import UsageAccountant
from app.utils.local_tokens import create_local_token


def _log(agent="adyn", tokens_used=None, module_usage=None, estimated_cost=0.0,
         request_payload=None, response_payload=None):
    return SimpleNamespace(
        agent=agent,
        tokens_used=tokens_used or {},
        module_usage=module_usage or [],
        estimated_cost=estimated_cost,
        request_payload=request_payload or {},
        response_payload=response_payload or {},
    )


def _module(name, prompt, completion, cost, **extra):
    entry = {
        "module": name,
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": prompt + completion,
        "cost": cost,
        "call_count": 1,
    }
    entry.update(extra)
    return entry


class TestSummarizeLogs:

    def test_totals_and_module_breakdown(self):
        logs = [
            _log(
                tokens_used={"prompt": 150, "completion": 90, "total": 240},
                module_usage=[
                    _module("generate_ads", 100, 60, 0.001, reasoning_tokens=10),
                    _module("campaign_builder", 50, 30, 0.0005, cached_input_tokens=20),
                ],
                estimated_cost=0.0015,
            ),
            _log(
                tokens_used={"prompt": 100, "completion": 60, "total": 160},
                module_usage=[_module("generate_ads", 100, 60, 0.001, reasoning_tokens=5)],
                estimated_cost=0.001,
            ),
        ]

        stats = summarize_logs(logs, UsageAccountant(prompt_rate=2.5, completion_rate=10.0))

        assert stats.total_generations == 2
        assert (stats.prompt_tokens, stats.completion_tokens, stats.total_tokens) == (250, 150, 400)
        assert stats.total_cost == pytest.approx(0.0025)
        assert stats.distribution["adyn"].count == 2
        assert stats.distribution["adyn"].tokens == 400
        ads, builder = stats.module_breakdown
        assert ads.module == "generate_ads"
        assert (ads.total_tokens, ads.reasoning_tokens, ads.call_count) == (320, 15, 2)
        assert ads.cost == pytest.approx(0.002)
        assert builder.cached_input_tokens == 20

    def test_falls_back_to_module_usage_then_payloads(self):
        accountant = UsageAccountant(prompt_rate=2.5, completion_rate=10.0, chars_per_token=4)
        logs = [
            _log(module_usage=[_module("semantic_analyze", 40, 20, 0.0)]),
            _log(agent="legacy", request_payload={"url": "https://example.com"}, response_payload={"ok": True}),
        ]

        stats = summarize_logs(logs, accountant)

        estimate = accountant.estimate({"url": "https://example.com"}, {"ok": True})
        assert stats.prompt_tokens == 40 + estimate.prompt_tokens
        assert stats.distribution["legacy"].tokens == estimate.total_tokens
        assert stats.total_cost == pytest.approx(accountant.cost(40, 20) + estimate.cost)

    def test_no_logs(self):
        stats = summarize_logs([], UsageAccountant(prompt_rate=1.0, completion_rate=2.0))

        assert stats.total_generations == 0
        assert stats.total_cost == 0.0
        assert stats.module_breakdown == []
        assert (stats.prompt_rate, stats.completion_rate) == (1.0, 2.0)


@pytest.fixture
def api(invoker):
    app.dependency_overrides[get_tool_invoker] = lambda: invoker
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return {"Authorization": f"Bearer {create_local_token(f'user-{uuid4().hex[:8]}')}"}


def _generate(api, headers):
    project = api.post("/v1/projects", json={"name": "Stats"}, headers=headers).json()["data"]
    response = api.post(
        "/v1/adyn/generate",
        json={"projectId": project["id"], "url": "https://example.com/product"},
        headers=headers,
    )
    assert response.status_code == 200
    return response.json()["campaignId"]


class TestStatsEndpoint:

    def test_user_totals(self, api, headers):
        _generate(api, headers)
        _generate(api, headers)

        response = api.get("/v1/stats", headers=headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total_generations"] == 2
        assert data["total_campaigns"] == 2
        assert data["campaign"] is None
        usage = data["token_usage"]
        assert usage["total"] == usage["prompt"] + usage["completion"] > 0
        assert data["estimated_cost"]["per_million_tokens"] == {"prompt": 2.5, "completion": 10.0}
        assert data["distribution"]["adyn"]["count"] == 2
        breakdown = data["module_breakdown"]
        assert len(breakdown) == 6
        assert [m["total_tokens"] for m in breakdown] == sorted((m["total_tokens"] for m in breakdown), reverse=True)
        ads = next(m for m in breakdown if m["module"] == "generate_ads")
        assert (ads["total_tokens"], ads["call_count"]) == (400, 2)

    def test_campaign_scope(self, api, headers):
        campaign_id = _generate(api, headers)
        _generate(api, headers)

        response = api.get("/v1/stats", params={"campaignId": campaign_id}, headers=headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total_generations"] == 1
        assert data["campaign"] == {"id": campaign_id, "name": "Trail Season Launch"}
        assert data["total_campaigns"] is None
        assert data["note"] is None

    def test_new_user_has_empty_stats(self, api, headers):
        data = api.get("/v1/stats", headers=headers).json()["data"]

        assert data["total_generations"] == 0
        assert data["total_campaigns"] == 0
        assert data["token_usage"] == {"prompt": 0, "completion": 0, "total": 0}

    @pytest.mark.parametrize("campaign_id", [str(uuid4()), "C1"])
    def test_unknown_campaign(self, api, headers, campaign_id):
        response = api.get("/v1/stats", params={"campaignId": campaign_id}, headers=headers)

        assert response.status_code == 404
        assert response.json() == {"error": "Campaign not found"}

    def test_other_users_campaign_is_not_found(self, api, headers):
        campaign_id = _generate(api, headers)
        intruder = {"Authorization": f"Bearer {create_local_token(f'intruder-{uuid4().hex[:8]}')}"}

        response = api.get("/v1/stats", params={"campaignId": campaign_id}, headers=intruder)

        assert response.status_code == 404

    def test_requires_authentication(self, api):
        assert api.get("/v1/stats").status_code == 401

"""Usage statistics aggregated from stored generation logs."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from app.services.usage import UsageAccountant


@dataclass
class AgentTotals:
    tokens: int = 0
    cost: float = 0.0
    count: int = 0


@dataclass
class ModuleTotals:
    module: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int = 0
    cached_input_tokens: int = 0
    cost: float = 0.0
    call_count: int = 0


@dataclass
class UsageStats:
    total_generations: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    prompt_rate: float = 0.0
    completion_rate: float = 0.0
    distribution: Dict[str, AgentTotals] = field(default_factory=dict)
    module_breakdown: List[ModuleTotals] = field(default_factory=list)


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _float(value: Any) -> float:
    try:
        return float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0


def _log_tokens(log: Any, accountant: UsageAccountant) -> Dict[str, int]:
    """Prompt, completion and total tokens of one log.

    Prefers the stored ``tokens_used`` summary, then the per-module records,
    then an estimate over the stored payloads.
    """
    tokens_used = log.tokens_used or {}
    if tokens_used:
        prompt = _int(tokens_used.get("prompt"))
        completion = _int(tokens_used.get("completion"))
        return {
            "prompt": prompt,
            "completion": completion,
            "total": _int(tokens_used.get("total")) or prompt + completion,
        }

    modules = [m for m in (log.module_usage or []) if isinstance(m, dict)]
    if modules:
        return {
            "prompt": sum(_int(m.get("prompt_tokens")) for m in modules),
            "completion": sum(_int(m.get("completion_tokens")) for m in modules),
            "total": sum(_int(m.get("total_tokens")) for m in modules),
        }

    if log.request_payload and log.response_payload:
        estimate = accountant.estimate(log.request_payload, log.response_payload)
        return {
            "prompt": estimate.prompt_tokens,
            "completion": estimate.completion_tokens,
            "total": estimate.total_tokens,
        }
    return {"prompt": 0, "completion": 0, "total": 0}


def summarize_logs(logs: Iterable[Any], accountant: Optional[UsageAccountant] = None) -> UsageStats:
    """Aggregate token usage and cost over generation logs.

    A log's cost is its stored ``estimated_cost``. Logs written without one
    are priced with the accountant's current rates.
    """
    accountant = accountant or UsageAccountant()
    stats = UsageStats(prompt_rate=accountant.prompt_rate, completion_rate=accountant.completion_rate)
    modules: Dict[str, ModuleTotals] = {}

    for log in logs:
        tokens = _log_tokens(log, accountant)
        cost = _float(log.estimated_cost) or accountant.cost(tokens["prompt"], tokens["completion"])

        stats.total_generations += 1
        stats.prompt_tokens += tokens["prompt"]
        stats.completion_tokens += tokens["completion"]
        stats.total_tokens += tokens["total"]
        stats.total_cost += cost

        agent = stats.distribution.setdefault(log.agent or "unknown", AgentTotals())
        agent.tokens += tokens["total"]
        agent.cost += cost
        agent.count += 1

        for entry in log.module_usage or []:
            if not isinstance(entry, dict) or not entry.get("module"):
                continue
            totals = modules.setdefault(entry["module"], ModuleTotals(module=entry["module"]))
            totals.prompt_tokens += _int(entry.get("prompt_tokens"))
            totals.completion_tokens += _int(entry.get("completion_tokens"))
            totals.total_tokens += _int(entry.get("total_tokens"))
            totals.reasoning_tokens += _int(entry.get("reasoning_tokens"))
            totals.cached_input_tokens += _int(entry.get("cached_input_tokens"))
            totals.cost += _float(entry.get("cost"))
            totals.call_count += _int(entry.get("call_count", 1))

    stats.module_breakdown = sorted(modules.values(), key=lambda m: m.total_tokens, reverse=True)
    return stats

"""Token and cost estimation for generation runs.

Token counts are a length-based approximation (about four characters per
token) over the serialized JSON of a request and its response. They are an
estimate for reporting, not a billing-grade figure.
"""

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from app.config.settings import settings
from app.services.tool_invoker import serialize_args

TOKENS_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class UsageEstimate:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float


@dataclass(frozen=True)
class ModuleUsage:
    """Usage attributed to one stage of a run."""

    module: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    cost: float
    reported: bool = False
    call_count: int = 1
    reasoning_tokens: int = 0
    cached_input_tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class UsageAccountant:
    """Estimates tokens and prices them with one fixed rate pair.

    Construct one accountant per run so every module in the run is priced
    with the same rates.
    """

    def __init__(
        self,
        prompt_rate: Optional[float] = None,
        completion_rate: Optional[float] = None,
        chars_per_token: Optional[int] = None,
    ):
        self.prompt_rate = settings.USAGE_PROMPT_RATE_PER_MILLION if prompt_rate is None else prompt_rate
        self.completion_rate = (
            settings.USAGE_COMPLETION_RATE_PER_MILLION if completion_rate is None else completion_rate
        )
        self.chars_per_token = chars_per_token or settings.USAGE_CHARS_PER_TOKEN

    def estimate_tokens(self, text: str) -> int:
        return math.ceil(len(text) / self.chars_per_token)

    def cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        return (
            prompt_tokens / TOKENS_PER_MILLION * self.prompt_rate
            + completion_tokens / TOKENS_PER_MILLION * self.completion_rate
        )

    def estimate(self, request: Any, response: Any) -> UsageEstimate:
        """Estimate usage for one request/response pair.

        Pure function of the serialized request and response: the same
        inputs always give the same estimate.
        """
        prompt_tokens = self.estimate_tokens(serialize_args(request))
        completion_tokens = self.estimate_tokens(serialize_args(response))
        return UsageEstimate(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            cost=self.cost(prompt_tokens, completion_tokens),
        )

    def for_module(
        self,
        module: str,
        request: Any,
        response: Any,
        reported: Optional[Dict[str, int]] = None,
        uses_model: bool = True,
    ) -> ModuleUsage:
        """Usage for one stage call.

        Tool-reported token counts win over the estimate. Stages that run no
        model are recorded with zero tokens.
        """
        if not uses_model:
            return ModuleUsage(module=module, prompt_tokens=0, completion_tokens=0, total_tokens=0, cost=0.0)

        if reported:
            prompt_tokens = int(reported.get("prompt_tokens") or 0)
            completion_tokens = int(reported.get("completion_tokens") or 0)
            total_tokens = int(reported.get("total_tokens") or 0) or prompt_tokens + completion_tokens
            return ModuleUsage(
                module=module,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=total_tokens,
                cost=self.cost(prompt_tokens, completion_tokens),
                reported=True,
                reasoning_tokens=int(reported.get("reasoning_tokens") or 0),
                cached_input_tokens=int(reported.get("cached_input_tokens") or 0),
            )

        estimate = self.estimate(request, response)
        return ModuleUsage(
            module=module,
            prompt_tokens=estimate.prompt_tokens,
            completion_tokens=estimate.completion_tokens,
            total_tokens=estimate.total_tokens,
            cost=estimate.cost,
        )

    @staticmethod
    def totals(modules: Iterable[ModuleUsage]) -> UsageEstimate:
        modules = list(modules)
        return UsageEstimate(
            prompt_tokens=sum(m.prompt_tokens for m in modules),
            completion_tokens=sum(m.completion_tokens for m in modules),
            total_tokens=sum(m.total_tokens for m in modules),
            cost=sum(m.cost for m in modules),
        )


def usage_summary(modules: List[ModuleUsage]) -> Dict[str, int]:
    """``{prompt, completion, total}`` as stored on a GenerationLog."""
    totals = UsageAccountant.totals(modules)
    return {
        "prompt": totals.prompt_tokens,
        "completion": totals.completion_tokens,
        "total": totals.total_tokens,
    }

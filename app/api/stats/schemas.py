"""Response schemas for usage statistics."""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenUsage(BaseModel):
    prompt: int = 0
    completion: int = 0
    total: int = 0


class RatePair(BaseModel):
    prompt: float
    completion: float


class EstimatedCost(BaseModel):
    total: float = 0.0
    per_million_tokens: RatePair


class AgentUsage(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tokens: int = 0
    cost: float = 0.0
    count: int = 0


class ModuleBreakdown(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    module: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int = 0
    cached_input_tokens: int = 0
    cost: float = 0.0
    call_count: int = 0


class CampaignRef(BaseModel):
    id: str
    name: str


class StatsResponse(BaseModel):
    """Usage totals for the caller, or for one of the caller's campaigns."""

    total_generations: int = 0
    token_usage: TokenUsage
    estimated_cost: EstimatedCost
    distribution: Dict[str, AgentUsage] = Field(default_factory=dict)
    module_breakdown: List[ModuleBreakdown] = Field(default_factory=list)
    total_campaigns: Optional[int] = None
    campaign: Optional[CampaignRef] = None
    note: Optional[str] = None

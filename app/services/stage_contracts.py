"""Typed input/output shapes for the six campaign generation stages.

Outputs are deliberately lenient: every field has a default and unknown
fields are preserved, so a tool that omits or adds fields never breaks the
chain. Use ``parse_payload`` rather than ``model_validate`` for tool output.

A malformed value degrades only itself. In a list, each bad item is skipped
(or, for nested lenient models, only the bad sub-field is); a scalar of the
wrong type falls back to its default. The raw value is kept and comes back
out of ``payload()``, so persisted results show what the tool actually sent.
"""

from typing import Any, Dict, List, Optional, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, TypeAdapter, ValidationError

from app.config.logger import app_logger


AD_PLATFORMS: List[str] = ["facebook", "instagram", "tiktok", "google"]
DEFAULT_PLATFORM_MIX: List[str] = ["facebook", "instagram"]

_UNSALVAGEABLE = object()


class StageInput(BaseModel):
    """Base for stage arguments. ``None`` fields are not sent to the tool."""

    model_config = ConfigDict(extra="forbid")

    def to_args(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def _list_item_type(annotation: Any) -> Optional[Any]:
    """Item type of ``List[X]`` or ``Optional[List[X]]``, else None."""
    if get_origin(annotation) is Union:
        for arg in get_args(annotation):
            if arg is not type(None):
                return _list_item_type(arg)
        return None
    if get_origin(annotation) in (list, List):
        args = get_args(annotation)
        return args[0] if args else Any
    return None


def _salvage_list(annotation: Any, raw: Any) -> Any:
    """Keep the items of ``raw`` that validate against the list's item type."""
    item_type = _list_item_type(annotation)
    if item_type is None or not isinstance(raw, list):
        return _UNSALVAGEABLE

    lenient = isinstance(item_type, type) and issubclass(item_type, LenientModel)
    adapter = None if lenient else TypeAdapter(item_type)
    kept = []
    for item in raw:
        if lenient:
            if isinstance(item, dict):
                kept.append(item_type.parse_payload(item))
            continue
        try:
            kept.append(adapter.validate_python(item))
        except ValidationError:
            continue
    return kept


class LenientModel(BaseModel):
    """Model that validates tool output field by field instead of all-or-nothing."""

    model_config = ConfigDict(extra="allow")

    _malformed: Dict[str, Any] = PrivateAttr(default_factory=dict)

    @classmethod
    def parse_payload(cls, payload: Dict[str, Any]):
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            bad_fields = {err["loc"][0] for err in exc.errors() if err.get("loc")}

        cleaned = dict(payload)
        malformed: Dict[str, Any] = {}
        for name in bad_fields:
            raw = cleaned.pop(name, None)
            field = cls.model_fields.get(name)
            salvaged = _salvage_list(field.annotation, raw) if field else _UNSALVAGEABLE
            if salvaged is _UNSALVAGEABLE:
                malformed[name] = raw
            else:
                cleaned[name] = salvaged

        app_logger.warning(
            f"{cls.__name__}: malformed fields {sorted(map(str, bad_fields))}, "
            f"reset to defaults: {sorted(malformed)}"
        )
        model = cls.model_validate(cleaned)
        model._malformed = malformed
        return model

    def payload(self) -> Dict[str, Any]:
        """Declared and extra fields, with malformed raw values put back."""
        data = self.model_dump(mode="json")
        data.update(self._malformed)
        return data


class ToolUsage(BaseModel):
    """Token usage block some tools attach to their payload."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    prompt_tokens: int = Field(default=0, alias="promptTokens")
    completion_tokens: int = Field(default=0, alias="completionTokens")
    total_tokens: int = Field(default=0, alias="totalTokens")
    reasoning_tokens: int = Field(default=0, alias="reasoningTokens")
    cached_input_tokens: int = Field(default=0, alias="cachedInputTokens")


class StageOutput(LenientModel):
    """Base for stage payloads."""

    usage: Optional[ToolUsage] = None

    def payload(self) -> Dict[str, Any]:
        """Full payload without the usage block."""
        data = super().payload()
        data.pop("usage", None)
        return data


# Fetch

class FetchInput(StageInput):
    url: str


class FetchOutput(StageOutput):
    html: str = ""


# Extract

class ExtractInput(StageInput):
    html: str = ""


class ExtractOutput(StageOutput):
    title: str = ""
    text_blocks: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def joined_text(self) -> str:
        """Space-joined text blocks; an empty list yields an empty string."""
        return " ".join(self.text_blocks)


# Analyze

class AnalyzeInput(StageInput):
    text: str = ""


class AnalysisOutput(StageOutput):
    """The pivot artifact: consumed by audience, ads and campaign stages."""

    summary: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    value_proposition: Optional[str] = None
    unique_selling_point: Optional[str] = None
    brand_tone: Optional[str] = None
    audience_persona: Optional[str] = None
    category: Optional[str] = None
    use_cases: List[str] = Field(default_factory=list)
    target_segments: List[Dict[str, Any]] = Field(default_factory=list)
    geographic_analysis: Optional[Dict[str, Any]] = None
    competitor_analysis: Optional[Dict[str, Any]] = None
    market_size_estimation: Optional[Dict[str, Any]] = None


class MarketingInsights(BaseModel):
    """Projection of the analysis used by the unified result."""

    keywords: List[str] = Field(default_factory=list)
    value_proposition: Optional[str] = None
    brand_tone: Optional[str] = None
    category: Optional[str] = None

    @classmethod
    def from_analysis(cls, analysis: AnalysisOutput) -> "MarketingInsights":
        return cls(
            keywords=analysis.keywords,
            value_proposition=analysis.value_proposition,
            brand_tone=analysis.brand_tone,
            category=analysis.category,
        )


# Build audience

class AudienceInput(StageInput):
    persona: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    target_segments: List[Dict[str, Any]] = Field(default_factory=list)
    geographic_analysis: Optional[Dict[str, Any]] = None

    @classmethod
    def from_analysis(cls, analysis: AnalysisOutput) -> "AudienceInput":
        return cls(
            persona=analysis.audience_persona,
            keywords=analysis.keywords,
            category=analysis.category,
            target_segments=analysis.target_segments,
            geographic_analysis=analysis.geographic_analysis,
        )


class AudienceOutput(StageOutput):
    age_range: Optional[str] = None
    interest_groups: List[str] = Field(default_factory=list)
    geos: List[str] = Field(default_factory=list)
    behaviors: List[str] = Field(default_factory=list)
    segment_targeting: List[Dict[str, Any]] = Field(default_factory=list)
    broad_audiences: List[Dict[str, Any]] = Field(default_factory=list)
    detailed_interests: List[Dict[str, Any]] = Field(default_factory=list)


# Generate ads

class AdsInput(StageInput):
    summary: Optional[str] = None
    brand_tone: Optional[str] = None
    persona: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=lambda: list(AD_PLATFORMS))
    target_segments: List[Dict[str, Any]] = Field(default_factory=list)
    use_cases: List[str] = Field(default_factory=list)

    @classmethod
    def from_analysis(cls, analysis: AnalysisOutput) -> "AdsInput":
        return cls(
            summary=analysis.summary,
            brand_tone=analysis.brand_tone,
            persona=analysis.audience_persona,
            keywords=analysis.keywords,
            platforms=list(AD_PLATFORMS),
            target_segments=analysis.target_segments,
            use_cases=analysis.use_cases,
        )


class AdCreative(LenientModel):
    platform: Optional[str] = None
    target_segment: Optional[str] = None
    headline: Optional[str] = None
    primary_text: Optional[str] = None
    cta: Optional[str] = None
    creative_description: Optional[str] = None
    hashtags: List[str] = Field(default_factory=list)


class AdsOutput(StageOutput):
    ads: List[AdCreative] = Field(default_factory=list)

    def creatives(self) -> List[Dict[str, Any]]:
        return [ad.payload() for ad in self.ads]


# Build campaign

class CampaignInput(StageInput):
    ads: List[Dict[str, Any]] = Field(default_factory=list)
    audience: Dict[str, Any] = Field(default_factory=dict)
    objective: str


class StrategyOutput(StageOutput):
    campaign_name: Optional[str] = None
    objective: Optional[str] = None
    budget_suggestion: Optional[str] = None
    duration_days: Optional[int] = None
    platform_mix: Optional[List[str]] = None
    formats: List[str] = Field(default_factory=list)


class UnifiedResult(BaseModel):
    """Aggregate of all stage outputs for one campaign."""

    product_summary: Dict[str, Any]
    marketing_insights: MarketingInsights
    ad_creatives: List[Dict[str, Any]]
    audience_targeting: Dict[str, Any]
    campaign_strategy: Dict[str, Any]

"""Report type enums and the GSC / AEO data shapes exchanged with the LLM."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


class ReportKind(str, Enum):
    """Shape family of an LLM report response; drives chunk recombination."""

    RECORD_LIST = "record-list"
    INSIGHT_LIST = "insight-list"
    GENERIC = "generic"


class ReportType(str, Enum):
    """Report families offered by the dashboard."""

    TOP_GAINERS = "top_gainers"
    UNDERPERFORMING_PAGES = "underperforming_pages"
    BOFU_PAGES = "bofu_pages"
    EMERGING_KEYWORDS = "emerging_keywords"
    RANKING_VOLATILITY = "ranking_volatility"
    QUICK_WINS = "quick_wins"

    @property
    def kind(self) -> ReportKind:
        if self in _RECORD_LIST_TYPES:
            return ReportKind.RECORD_LIST
        return ReportKind.INSIGHT_LIST


_RECORD_LIST_TYPES = frozenset({
    ReportType.TOP_GAINERS,
    ReportType.UNDERPERFORMING_PAGES,
    ReportType.BOFU_PAGES,
})


@dataclass
class GSCDataPoint:
    """One row of Search Console performance data."""
    query: str
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    position: float = 0.0
    page: Optional[str] = None
    device: Optional[str] = None
    country: Optional[str] = None
    date: Optional[str] = None
    intent: Optional[str] = None
    type: Optional[str] = None

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "GSCDataPoint":
        """Build a data point from a GSC API / export row, ignoring unknown keys."""
        return cls(
            query=str(row.get("query", "")),
            clicks=int(row.get("clicks", 0) or 0),
            impressions=int(row.get("impressions", 0) or 0),
            ctr=float(row.get("ctr", 0.0) or 0.0),
            position=float(row.get("position", 0.0) or 0.0),
            page=row.get("page"),
            device=row.get("device"),
            country=row.get("country"),
            date=row.get("date"),
            intent=row.get("intent"),
            type=row.get("type"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise without the optional dimensions that are unset."""
        return {k: v for k, v in asdict(self).items() if v is not None}


def _clamp(value: Any, low: int, high: int, default: int = 5) -> float:
    try:
        number = float(value) if value else default
    except (TypeError, ValueError):
        number = default
    return max(low, min(high, number))


@dataclass
class AEOScore:
    """Answer-engine optimisation score for a bottom-of-funnel page."""
    overall: float = 5
    content_structure: float = 5
    direct_question_answering: float = 5
    clarity_of_value_prop: float = 5
    semantic_relevance: float = 5
    presence_in_3rd_party_datasets: float = 5
    industry_adjustments: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, score: Any) -> "AEOScore":
        """Validate a raw ``aeoScore`` object, clamping every value into range."""
        score = score if isinstance(score, dict) else {}
        factors = score.get("factors") if isinstance(score.get("factors"), dict) else {}
        adjustments = score.get("industryAdjustments")
        return cls(
            overall=_clamp(score.get("overall"), 1, 10),
            content_structure=_clamp(factors.get("contentStructure"), 0, 10),
            direct_question_answering=_clamp(factors.get("directQuestionAnswering"), 0, 10),
            clarity_of_value_prop=_clamp(factors.get("clarityOfValueProp"), 0, 10),
            semantic_relevance=_clamp(factors.get("semanticRelevance"), 0, 10),
            presence_in_3rd_party_datasets=_clamp(
                factors.get("presenceIn3rdPartyDatasets"), 0, 10
            ),
            industry_adjustments=adjustments if isinstance(adjustments, dict) else {},
        )


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


@dataclass
class LLMSimulation:
    """Simulated answer-engine view of a bottom-of-funnel page."""
    bofu_query: str
    simulated_llm_summary: str
    is_mentioned_in_llm_response: bool
    competitors_likely_mentioned: list[str]
    aeo_score: AEOScore
    content_improvement_suggestions: list[str]
    outreach_targets: list[str]
    misrepresentation_found: bool
    fix_suggestions: list[str]

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "LLMSimulation":
        """Validate a parsed LLM response, filling defaults for missing fields."""
        return cls(
            bofu_query=data.get("bofuQuery") or "No query generated",
            simulated_llm_summary=data.get("simulatedLlmSummary") or "No summary generated",
            is_mentioned_in_llm_response=bool(data.get("isMentionedInLlmResponse")),
            competitors_likely_mentioned=_string_list(data.get("competitorsLikelyMentioned")),
            aeo_score=AEOScore.from_response(data.get("aeoScore")),
            content_improvement_suggestions=_string_list(
                data.get("contentImprovementSuggestions")
            ),
            outreach_targets=_string_list(data.get("outreachTargets")),
            misrepresentation_found=bool(data.get("misrepresentationFound")),
            fix_suggestions=_string_list(data.get("fixSuggestions")),
        )

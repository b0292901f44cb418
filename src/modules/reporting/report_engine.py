"""AI report generation on top of the request orchestrator.

Builds report prompts from Search Console rows, sends them through
:class:`RequestOrchestrator`, and validates structured responses such as
the bottom-of-funnel AEO simulation.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from src.errors import InsufficientData, ParseError
from src.integrations.request_orchestrator import RequestOrchestrator
from src.models.report import GSCDataPoint, LLMSimulation, ReportKind, ReportType
from src.utils.text_processing import strip_code_fences

logger = logging.getLogger(__name__)

Row = Union[GSCDataPoint, dict[str, Any]]

BOFU_ROW_LIMIT = 20
BOFU_CONTENT_PREVIEW_CHARS = 1000


@dataclass(frozen=True)
class ReportTemplate:
    title: str
    description: str
    min_data_points: int
    has_aeo: bool = False


REPORT_TEMPLATES: dict[ReportType, ReportTemplate] = {
    ReportType.TOP_GAINERS: ReportTemplate(
        "Top Gainers Report",
        "Best performing pages with the biggest improvements in clicks and CTR",
        min_data_points=10,
    ),
    ReportType.UNDERPERFORMING_PAGES: ReportTemplate(
        "Underperforming Pages",
        "Pages with high impressions but low CTR that need optimization",
        min_data_points=15,
    ),
    ReportType.EMERGING_KEYWORDS: ReportTemplate(
        "Emerging Keywords",
        "New keyword opportunities that are starting to gain traction",
        min_data_points=20,
    ),
    ReportType.BOFU_PAGES: ReportTemplate(
        "BoFu Pages + AEO Analysis",
        "Bottom-funnel pages with AI/LLM optimization insights",
        min_data_points=5,
        has_aeo=True,
    ),
    ReportType.RANKING_VOLATILITY: ReportTemplate(
        "Ranking Volatility",
        "Pages with unstable rankings and stabilization strategies",
        min_data_points=25,
    ),
    ReportType.QUICK_WINS: ReportTemplate(
        "Quick Wins",
        "Pages ranking 5-20 with optimization opportunities for immediate impact",
        min_data_points=10,
    ),
}

SUMMARY_SYSTEM_PROMPT = (
    "You are an expert SEO analyst with deep knowledge of Google Search Console "
    "data analysis. Provide clear, actionable insights in a professional, "
    "data-driven tone. Focus on the most important trends, opportunities, and "
    "specific recommendations. Keep responses accessible to non-SEO users."
)

BOFU_SYSTEM_PROMPT = (
    "You are an expert in Answer Engine Optimization (AEO) and SEO, specializing "
    "in analyzing how content performs in both traditional search and AI language "
    "models. Provide structured analysis in valid JSON format only."
)

_PAGE_RECORD_FORMAT = (
    '{"url": "string", "clicks": number, "impressions": number, "ctr": number, '
    '"position": number, "seo_recommendation": "string", "aeo_recommendation": "string"}'
)

_INSIGHT_FORMAT = '{"insights": ["string"], "recommendations": ["string"], "summary": "string"}'

_REPORT_INSTRUCTIONS: dict[ReportType, str] = {
    ReportType.TOP_GAINERS: (
        "Analyze the following Google Search Console data and provide actionable "
        "SEO and AEO recommendations for each page winning in Google searches.\n\n"
        'Return in JSON format only: {"summary_heading": "string", '
        f'"top_pages": [{_PAGE_RECORD_FORMAT}]}}'
    ),
    ReportType.UNDERPERFORMING_PAGES: (
        "Identify underperforming pages: high impressions, low CTR (<1%) and a "
        "position between 10 and 40. Give one SEO and one AEO recommendation per page.\n\n"
        f'Return in JSON format only: {{"pages": [{_PAGE_RECORD_FORMAT}]}}'
    ),
    ReportType.BOFU_PAGES: (
        "Identify bottom-of-funnel pages and analyze their performance. Focus on "
        "conversion optimization opportunities.\n\n"
        f'Return in JSON format only: {{"pages": [{_PAGE_RECORD_FORMAT}]}}'
    ),
    ReportType.EMERGING_KEYWORDS: (
        "Identify new keywords gaining traction. Provide insights on search intent "
        f"and content optimization opportunities.\n\nReturn in JSON format only: {_INSIGHT_FORMAT}"
    ),
    ReportType.RANKING_VOLATILITY: (
        "Identify pages with unstable rankings. Provide insights on causes and "
        f"stabilization strategies.\n\nReturn in JSON format only: {_INSIGHT_FORMAT}"
    ),
    ReportType.QUICK_WINS: (
        "Identify quick wins: optimization opportunities based on current rankings "
        f"and potential impact.\n\nReturn in JSON format only: {_INSIGHT_FORMAT}"
    ),
}


def _row_dict(row: Row) -> dict[str, Any]:
    if isinstance(row, GSCDataPoint):
        return row.to_dict()
    return dict(row)


def build_report_prompt(
    report_type: ReportType,
    rows: Sequence[Row],
    date_range: tuple[str, str],
) -> str:
    """Return the user prompt for *report_type* with the rows embedded as JSON.

    The rows follow a ``GSC Data from <start> to <end>:`` header so the
    orchestrator can batch them when the prompt is too large.
    """
    start_date, end_date = date_range
    data = json.dumps([_row_dict(r) for r in rows], indent=2, ensure_ascii=False)
    return (
        f"{_REPORT_INSTRUCTIONS[report_type]}\n\n"
        f"GSC Data from {start_date} to {end_date}:\n{data}"
    )


def build_bofu_prompt(url: str, rows: Sequence[Row], content: Optional[str] = None) -> str:
    data = json.dumps(
        [_row_dict(r) for r in rows[:BOFU_ROW_LIMIT]], indent=2, ensure_ascii=False
    )
    preview = ""
    if content:
        preview = f"Content Preview: {content[:BOFU_CONTENT_PREVIEW_CHARS]}...\n"
    return (
        "Analyze this bottom-funnel page for AI/LLM optimization:\n\n"
        f"URL: {url}\nGSC Data: {data}\n{preview}\n"
        "Provide a structured analysis in valid JSON with these exact fields: "
        "bofuQuery, simulatedLlmSummary, isMentionedInLlmResponse, "
        "competitorsLikelyMentioned, aeoScore {overall, factors {contentStructure, "
        "directQuestionAnswering, clarityOfValueProp, semanticRelevance, "
        "presenceIn3rdPartyDatasets}}, contentImprovementSuggestions, "
        "outreachTargets, misrepresentationFound, fixSuggestions.\n\n"
        "Return only valid JSON, no additional text."
    )


class ReportEngine:
    """Generate AI report summaries from Search Console data."""

    def __init__(self, orchestrator: RequestOrchestrator) -> None:
        self.orchestrator = orchestrator

    async def generate_report_summary(
        self,
        report_type: ReportType,
        rows: Sequence[Row],
        date_range: tuple[str, str],
        use_cache: bool = True,
    ) -> str:
        """Return the AI summary (JSON text or prose) for *report_type*.

        Raises:
            InsufficientData: fewer rows than the report's template requires.
        """
        template = REPORT_TEMPLATES[report_type]
        if len(rows) < template.min_data_points:
            raise InsufficientData(
                f"{template.title} needs at least {template.min_data_points} "
                f"data points, got {len(rows)}"
            )
        logger.info(
            "Generating %s report from %d rows (%s to %s)",
            report_type.value, len(rows), date_range[0], date_range[1],
        )
        prompt = build_report_prompt(report_type, rows, date_range)
        return await self.orchestrator.complete(
            SUMMARY_SYSTEM_PROMPT, prompt, report_type, use_cache=use_cache
        )

    async def analyze_bofu_page(
        self, url: str, rows: Sequence[Row], content: Optional[str] = None
    ) -> LLMSimulation:
        """Simulate how answer engines treat a bottom-of-funnel page.

        Raises:
            ParseError: the response was not a JSON object.
        """
        prompt = build_bofu_prompt(url, rows, content)
        response = await self.orchestrator.complete(
            BOFU_SYSTEM_PROMPT, prompt, ReportKind.GENERIC, use_cache=False
        )
        try:
            parsed = json.loads(strip_code_fences(response))
        except ValueError as exc:
            logger.error("Failed to parse LLM simulation response: %s", exc)
            logger.debug("Raw response: %s", response[:500])
            raise ParseError(f"LLM returned invalid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ParseError("LLM simulation response is not a JSON object")
        return LLMSimulation.from_response(parsed)

    async def test_connection(self) -> bool:
        """Return True if the completion service answers a trivial prompt."""
        try:
            response = await self.orchestrator.complete(
                'Respond with "Connection successful"',
                "Test connection",
                ReportKind.GENERIC,
                use_cache=False,
            )
        except Exception as exc:
            logger.error("OpenAI connection test failed: %s", exc)
            return False
        return "connection successful" in response.lower()

"""Request orchestrator: the single entry point for LLM report completions.

Decides whether a prompt fits in one request or must be chunked, annotates
each chunk's system prompt with its position, pushes every request through
the shared :class:`RateLimitedQueue`, and recombines chunk responses with the
:class:`ResultCombiner`. Completed outputs are cached by prompt.
"""

import json
import logging
from functools import partial
from typing import Any, Optional, Union

from src.config import LLMSettings
from src.integrations.llm_client import LLMClient
from src.models.llm_request import Chunk, ChunkResult, CompletionOutcome, PromptRequest
from src.models.report import ReportKind, ReportType
from src.utils.chunking import DEFAULT_CHUNK_BUDGET_RATIO, ChunkingEngine
from src.utils.rate_limiter import RateLimitedQueue
from src.utils.response_cache import ResponseCache
from src.utils.result_combiner import ResultCombiner
from src.utils.text_processing import estimate_tokens, get_model_token_limit

logger = logging.getLogger(__name__)

ReportSpec = Union[ReportType, ReportKind]

TEXT_CONTEXT_PREFIX = "(Continued from the previous part of the same input.)\n\n"

CHUNK_INSTRUCTIONS: dict[ReportSpec, str] = {
    ReportType.TOP_GAINERS: (
        "Analyze the pages in this chunk and provide individual recommendations for each."
    ),
    ReportType.UNDERPERFORMING_PAGES: (
        "Analyze the pages in this chunk and provide individual recommendations for each."
    ),
    ReportType.BOFU_PAGES: (
        "Analyze the pages in this chunk and provide individual recommendations for each."
    ),
    ReportType.EMERGING_KEYWORDS: "Focus on the keywords in this chunk and their trends.",
    ReportType.RANKING_VOLATILITY: "Analyze ranking changes for the pages in this chunk.",
    ReportType.QUICK_WINS: (
        "Identify optimization opportunities for the pages in this chunk."
    ),
    ReportKind.RECORD_LIST: "Analyze the pages in this chunk individually.",
    ReportKind.INSIGHT_LIST: (
        "Report the insights and recommendations supported by the data in this chunk."
    ),
}

# (report type, phrases that identify it), checked in order.
_DETECTION_RULES: tuple[tuple[ReportType, tuple[str, ...]], ...] = (
    (ReportType.TOP_GAINERS, ("top_gainers", "pages winning")),
    (ReportType.UNDERPERFORMING_PAGES, ("underperforming", "low ctr")),
    (ReportType.BOFU_PAGES, ("bofu", "bottom-of-funnel")),
    (ReportType.EMERGING_KEYWORDS, ("emerging", "new keywords")),
    (ReportType.RANKING_VOLATILITY, ("volatility", "unstable")),
    (ReportType.QUICK_WINS, ("quick wins", "optimization opportunities")),
)


def detect_report_type(system_prompt: str, user_prompt: str) -> ReportType:
    """Guess the report type from keywords in the prompts (default: top gainers)."""
    combined = f"{system_prompt} {user_prompt}".lower()
    for report_type, phrases in _DETECTION_RULES:
        if any(phrase in combined for phrase in phrases):
            return report_type
    return ReportType.TOP_GAINERS


def build_chunk_system_prompt(
    system_prompt: str, position: int, total: int, report: ReportSpec
) -> str:
    """Append chunk orientation to *system_prompt*.

    Args:
        position: 1-based chunk position.
        total: Number of chunks in the request.
    """
    if total <= 1:
        return system_prompt

    notes = [f"IMPORTANT: This is chunk {position} of {total}."]
    if position == 1:
        notes.append("Focus on the beginning of the analysis.")
    elif position == total:
        notes.append("Focus on completing the analysis and provide summary insights.")
    else:
        notes.append("Continue the analysis from previous chunks.")
    instruction = CHUNK_INSTRUCTIONS.get(report)
    if instruction:
        notes.append(instruction)
    return system_prompt + "\n\n" + " ".join(notes)


def extract_record_payload(prompt: str) -> Optional[tuple[list[Any], str]]:
    """Find the embedded JSON array of records in *prompt*.

    Only arrays of JSON objects count as records. Instructions may embed
    small example arrays, so the largest one is taken as the payload.

    Returns:
        ``(records, context_prefix)`` where the prefix is the surrounding
        prompt text, or ``None`` if no non-empty array is embedded.
    """
    decoder = json.JSONDecoder()
    best: Optional[tuple[list[Any], int, int]] = None
    start = prompt.find("[")
    while start != -1:
        try:
            value, end = decoder.raw_decode(prompt, start)
        except ValueError:
            start = prompt.find("[", start + 1)
            continue
        is_records = bool(value) and all(isinstance(item, dict) for item in value)
        if is_records and (best is None or len(value) > len(best[0])):
            best = (value, start, end)
        start = prompt.find("[", end)

    if best is None:
        return None
    records, start, end = best
    head = prompt[:start].rstrip()
    tail = prompt[end:].strip()
    prefix = f"{head}\n\n{tail}\n" if tail else f"{head}\n"
    return records, prefix


def plan_prompt_chunks(chunker: ChunkingEngine, user_prompt: str) -> list[Chunk]:
    """Choose record batching for an embedded array, free-text splitting otherwise."""
    payload = extract_record_payload(user_prompt)
    if payload is not None:
        records, prefix = payload
        logger.debug("Embedded array of %d records found, batching", len(records))
        return chunker.split_records(records, context_prefix=prefix)
    return chunker.split_text(user_prompt, context_prefix=TEXT_CONTEXT_PREFIX)


class RequestOrchestrator:
    """Turn a possibly oversized prompt into rate-limited completion requests.

    Usage::

        orchestrator = RequestOrchestrator(LLMClient())
        text = await orchestrator.complete(
            system_prompt, user_prompt, ReportType.TOP_GAINERS, use_cache=True
        )
    """

    def __init__(
        self,
        client: LLMClient,
        queue: Optional[RateLimitedQueue] = None,
        cache: Optional[ResponseCache] = None,
        combiner: Optional[ResultCombiner] = None,
        max_input_tokens: Optional[int] = None,
        chunk_budget_ratio: float = DEFAULT_CHUNK_BUDGET_RATIO,
        cache_enabled: bool = True,
    ):
        self._client = client
        self.max_input_tokens = max_input_tokens or get_model_token_limit(client.model)
        self._chunker = ChunkingEngine.for_model_ceiling(
            self.max_input_tokens, chunk_budget_ratio
        )
        self._queue = queue or RateLimitedQueue(name="openai")
        self._cache = cache if cache is not None else ResponseCache()
        self._combiner = combiner or ResultCombiner()
        self._cache_enabled = cache_enabled
        logger.info(
            "RequestOrchestrator initialised (model=%s, input ceiling=%d, chunk budget=%d)",
            client.model, self.max_input_tokens, self._chunker.max_tokens_per_chunk,
        )

    @classmethod
    def from_settings(
        cls, settings: LLMSettings, client: Optional[LLMClient] = None
    ) -> "RequestOrchestrator":
        """Wire client, queue and cache from :class:`LLMSettings`."""
        client = client or LLMClient(
            api_key=settings.api_key,
            model=settings.model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout=settings.timeout,
        )
        return cls(
            client,
            queue=RateLimitedQueue(
                requests_per_minute=settings.requests_per_minute,
                min_interval=settings.min_interval_seconds,
                name="openai",
            ),
            cache=ResponseCache(
                ttl_seconds=settings.cache_ttl_seconds,
                max_size=settings.cache_max_size,
            ),
            max_input_tokens=settings.max_input_tokens,
            chunk_budget_ratio=settings.chunk_budget_ratio,
            cache_enabled=settings.cache_enabled,
        )

    @property
    def chunker(self) -> ChunkingEngine:
        return self._chunker

    @property
    def client(self) -> LLMClient:
        return self._client

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        report: Optional[ReportSpec] = None,
        use_cache: bool = True,
    ) -> str:
        """Return the completion for a prompt of any size.

        Raises:
            ApiError: the single request failed.
            RateLimitExceeded: the service throttled the single request.
            AllChunksFailed: every chunk of a chunked request failed.
        """
        outcome = await self.complete_with_details(
            system_prompt, user_prompt, report=report, use_cache=use_cache
        )
        return outcome.content

    async def complete_with_details(
        self,
        system_prompt: str,
        user_prompt: str,
        report: Optional[ReportSpec] = None,
        use_cache: bool = True,
    ) -> CompletionOutcome:
        """Like :meth:`complete` but also return the per-chunk results."""
        request = PromptRequest(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            use_cache=use_cache and self._cache_enabled,
            report=report if report is not None else detect_report_type(
                system_prompt, user_prompt
            ),
        )
        cache_key = ResponseCache.make_key(system_prompt, user_prompt)

        if request.use_cache:
            cached = self._cache_get(cache_key)
            if cached is not None:
                logger.debug("Cache hit for prompt (len=%d)", len(user_prompt))
                return CompletionOutcome(
                    content=cached, from_cache=True, report_kind=request.kind
                )

        total_tokens = estimate_tokens(user_prompt + system_prompt)
        if total_tokens <= self.max_input_tokens:
            content = await self._dispatch(system_prompt, user_prompt)
            if request.use_cache:
                self._cache_set(cache_key, content)
            return CompletionOutcome(
                content=content,
                chunk_results=[
                    ChunkResult(index=0, content=content, tokens=estimate_tokens(content))
                ],
                report_kind=request.kind,
            )

        logger.info(
            "Large prompt detected (%d estimated tokens > %d), using chunking",
            total_tokens, self.max_input_tokens,
        )
        chunks = self.plan_chunks(user_prompt)
        results = await self._process_chunks(chunks, request)
        combined = self._combiner.combine(results, request.kind)
        if request.use_cache:
            self._cache_set(cache_key, combined)
        return CompletionOutcome(
            content=combined, chunk_results=results, report_kind=request.kind
        )

    def plan_chunks(self, user_prompt: str) -> list[Chunk]:
        """Split *user_prompt* the way an oversized request would be split."""
        return plan_prompt_chunks(self._chunker, user_prompt)

    def clear_cache(self, prefix: Optional[str] = None) -> None:
        self._cache.clear(prefix)

    def get_usage_summary(self) -> dict[str, Any]:
        summary = self._client.get_usage_summary()
        summary["cached_responses"] = len(self._cache)
        summary["requests_in_window"] = self._queue.requests_in_window
        summary["rate_limit_per_window"] = self._queue.limit
        return summary

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _process_chunks(
        self, chunks: list[Chunk], request: PromptRequest
    ) -> list[ChunkResult]:
        """Dispatch chunks one at a time, turning failures into placeholders."""
        logger.info("Processing %d chunks for %s report", len(chunks), request.report.value)
        results: list[ChunkResult] = []
        total = len(chunks)
        for chunk in chunks:
            chunk_system = build_chunk_system_prompt(
                request.system_prompt, chunk.index + 1, total, request.report
            )
            try:
                content = await self._dispatch_cached(
                    chunk_system, chunk.content, request.use_cache
                )
            except Exception as exc:
                logger.error("Error processing chunk %d/%d: %s", chunk.index + 1, total, exc)
                results.append(ChunkResult(
                    index=chunk.index,
                    content=f"Error processing chunk {chunk.index + 1}: {exc}",
                    tokens=0,
                    failed=True,
                ))
            else:
                results.append(ChunkResult(
                    index=chunk.index,
                    content=content,
                    tokens=estimate_tokens(content),
                ))
        return results

    async def _dispatch_cached(self, system_prompt: str, prompt: str, use_cache: bool) -> str:
        key = ResponseCache.make_key(system_prompt, prompt)
        if use_cache:
            cached = self._cache_get(key)
            if cached is not None:
                return cached
        content = await self._dispatch(system_prompt, prompt)
        if use_cache:
            self._cache_set(key, content)
        return content

    async def _dispatch(self, system_prompt: str, prompt: str) -> str:
        return await self._queue.submit(
            partial(self._client.create_completion, system_prompt, prompt)
        )

    def _cache_get(self, key: str) -> Optional[str]:
        try:
            return self._cache.get(key)
        except Exception as exc:
            logger.warning("Cache read failed, treating as miss: %s", exc)
            return None

    def _cache_set(self, key: str, value: str) -> None:
        try:
            self._cache.set(key, value)
        except Exception as exc:
            logger.warning("Cache write failed, result not cached: %s", exc)

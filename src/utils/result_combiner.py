"""Merge per-chunk LLM responses back into one logical result."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence, Union

from src.errors import AllChunksFailed
from src.models.llm_request import ChunkResult
from src.models.report import ReportKind
from src.utils.text_processing import strip_code_fences

logger = logging.getLogger(__name__)

TEXT_SEPARATOR = "\n\n---\n\n"
RECORD_KEY = "url"
INSIGHT_FIELDS = ("insights", "recommendations")


@dataclass(frozen=True)
class JsonResult:
    value: Any
    raw: str


@dataclass(frozen=True)
class TextResult:
    text: str


ParsedResult = Union[JsonResult, TextResult]


def parse_result(content: str) -> ParsedResult:
    """Tag a chunk response as JSON (if it parses) or plain text."""
    try:
        return JsonResult(value=json.loads(strip_code_fences(content)), raw=content)
    except ValueError:
        return TextResult(text=content)


class ResultCombiner:
    """Combine ordered chunk results according to the report kind.

    Usage::

        combiner = ResultCombiner()
        output = combiner.combine(chunk_results, ReportKind.RECORD_LIST)
    """

    def __init__(self) -> None:
        self._json_strategies: dict[ReportKind, Callable[[list[Any]], Any]] = {
            ReportKind.RECORD_LIST: self._combine_records,
            ReportKind.INSIGHT_LIST: self._combine_insights,
            ReportKind.GENERIC: self._combine_generic,
        }

    def combine(self, results: Sequence[ChunkResult], kind: ReportKind) -> str:
        """Return a single output string for *results*.

        Raises:
            AllChunksFailed: every result is marked failed (or none was given).
        """
        ordered = sorted(results, key=lambda r: r.index)
        succeeded = [r for r in ordered if not r.failed]
        if not succeeded:
            raise AllChunksFailed([r.content for r in ordered])
        if len(succeeded) < len(ordered):
            logger.warning(
                "Combining partial results: %d of %d chunk(s) failed",
                len(ordered) - len(succeeded), len(ordered),
            )

        parsed = [parse_result(r.content) for r in succeeded]
        if not all(isinstance(p, JsonResult) for p in parsed):
            return self._combine_text([r.content for r in succeeded])

        try:
            combined = self._json_strategies[kind]([p.value for p in parsed])
            return json.dumps(combined, indent=2, ensure_ascii=False)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.error("Error combining JSON results, joining as text: %s", exc)
            return self._combine_text([p.raw for p in parsed])

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    @staticmethod
    def _combine_text(contents: list[str]) -> str:
        return TEXT_SEPARATOR.join(contents)

    def _combine_records(self, values: list[Any]) -> dict[str, Any]:
        """Concatenate same-named arrays, then dedupe records by URL."""
        combined: dict[str, Any] = {}
        for value in values:
            if not isinstance(value, dict):
                raise TypeError("record-list chunk result is not a JSON object")
            for key, field_value in value.items():
                existing = combined.get(key)
                if isinstance(field_value, list):
                    if existing is None:
                        combined[key] = list(field_value)
                    elif isinstance(existing, list):
                        existing.extend(field_value)
                elif key not in combined:
                    combined[key] = field_value

        for key in list(combined):
            if isinstance(combined[key], list):
                combined[key] = _dedupe_records(combined[key])
                if not combined[key]:
                    del combined[key]
        return combined

    @staticmethod
    def _combine_insights(values: list[Any]) -> dict[str, Any]:
        combined: dict[str, Any] = {field: [] for field in INSIGHT_FIELDS}
        for value in values:
            if not isinstance(value, dict):
                raise TypeError("insight-list chunk result is not a JSON object")
            for field in INSIGHT_FIELDS:
                item = value.get(field)
                if not item:
                    continue
                combined[field].extend(item if isinstance(item, list) else [item])
        combined["summary"] = f"Combined analysis from {len(values)} data chunks"
        return combined

    @staticmethod
    def _combine_generic(values: list[Any]) -> Any:
        if not isinstance(values[0], list):
            return values
        flat: list[Any] = []
        for value in values:
            if isinstance(value, list):
                flat.extend(value)
            else:
                flat.append(value)
        return flat


def _dedupe_records(records: list[Any]) -> list[Any]:
    """Keep the first record per URL; records without a URL are all kept."""
    seen: set[str] = set()
    unique = []
    for record in records:
        url = record.get(RECORD_KEY) if isinstance(record, dict) else None
        if url is not None:
            marker = str(url)
            if marker in seen:
                continue
            seen.add(marker)
        unique.append(record)
    return unique

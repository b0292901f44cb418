"""Split oversized prompts into ordered, token-bounded chunks.

Two strategies are offered:

* :meth:`ChunkingEngine.split_text` for free text, using a delimiter cascade
  (sentences, paragraphs, lines, whitespace) followed by greedy packing.
* :meth:`ChunkingEngine.split_records` for lists of discrete records, packed
  greedily into JSON-array batches.
"""

import json
import logging
import re
from typing import Any, Sequence

from src.models.llm_request import Chunk
from src.utils.text_processing import (
    estimate_tokens,
    has_structural_markers,
    token_cost,
)

logger = logging.getLogger(__name__)

# Coarsest first; each level only re-splits segments still over budget.
SPLIT_CASCADE: tuple[re.Pattern, ...] = (
    re.compile(r"(?<=[.!?])\s+"),  # sentences
    re.compile(r"\n\n"),           # paragraphs
    re.compile(r"\n"),             # lines
    re.compile(r"\s+"),            # words
)

SEGMENT_JOINER = " "

# Layout of json.dumps(batch, indent=2): "[\n" + items joined by ",\n" + "\n]",
# each item line indented one extra level.
ARRAY_INDENT = "  "
ITEM_SEPARATOR = ",\n"
ARRAY_OVERHEAD = len("[\n") + len("\n]")

# Fraction of the model's input ceiling usable for chunk content.
DEFAULT_CHUNK_BUDGET_RATIO = 0.7


class ChunkingEngine:
    """Produce chunks whose estimated size stays within ``max_tokens_per_chunk``.

    Usage::

        engine = ChunkingEngine.for_model_ceiling(8000)
        chunks = engine.split_text(long_prompt, context_prefix="(continued)\\n")
        batches = engine.split_records(rows, context_prefix="GSC rows:\\n")
    """

    def __init__(self, max_tokens_per_chunk: int):
        if max_tokens_per_chunk < 1:
            raise ValueError("max_tokens_per_chunk must be positive")
        self.max_tokens_per_chunk = max_tokens_per_chunk

    @classmethod
    def for_model_ceiling(
        cls, max_input_tokens: int, ratio: float = DEFAULT_CHUNK_BUDGET_RATIO
    ) -> "ChunkingEngine":
        """Build an engine whose budget is *ratio* of the model's input ceiling."""
        return cls(max(1, int(max_input_tokens * ratio)))

    # ------------------------------------------------------------------
    # Free text
    # ------------------------------------------------------------------

    def split_text(self, text: str, context_prefix: str = "") -> list[Chunk]:
        """Split free text into chunks in narrative order.

        Every chunk after the first is prefixed with *context_prefix*. A
        segment that cannot be split further (a single very long word) is
        emitted on its own even though it exceeds the budget.
        """
        if not text:
            return []

        budget = self._content_budget(context_prefix)
        segments = self._cascade(text, budget)
        if not segments:
            return [Chunk(index=0, content=text, estimated_tokens=estimate_tokens(text))]

        contents: list[str] = []
        current: list[str] = []
        current_len = 0
        current_structured = False

        for segment in segments:
            seg_structured = has_structural_markers(segment)
            if current:
                new_len = current_len + len(SEGMENT_JOINER) + len(segment)
                new_structured = current_structured or seg_structured
                if token_cost(new_len, new_structured) <= budget:
                    current.append(segment)
                    current_len = new_len
                    current_structured = new_structured
                    continue
                contents.append(SEGMENT_JOINER.join(current))
            current = [segment]
            current_len = len(segment)
            current_structured = seg_structured

        if current:
            contents.append(SEGMENT_JOINER.join(current))

        chunks = []
        for index, content in enumerate(contents):
            if index > 0:
                content = context_prefix + content
            chunks.append(
                Chunk(index=index, content=content, estimated_tokens=estimate_tokens(content))
            )
        logger.debug(
            "Split %d chars of text into %d chunk(s) (budget=%d tokens)",
            len(text), len(chunks), budget,
        )
        return chunks

    def _cascade(self, text: str, budget: int) -> list[str]:
        """Apply the delimiter cascade until every segment fits *budget*."""
        segments = [text.strip()] if text.strip() else []
        for splitter in SPLIT_CASCADE:
            needs_splitting = False
            next_segments: list[str] = []
            for segment in segments:
                if estimate_tokens(segment) > budget:
                    needs_splitting = True
                    next_segments.extend(
                        part.strip() for part in splitter.split(segment) if part.strip()
                    )
                else:
                    next_segments.append(segment)
            segments = next_segments
            if not needs_splitting:
                break
        return segments

    # ------------------------------------------------------------------
    # Structured records
    # ------------------------------------------------------------------

    def split_records(
        self, records: Sequence[Any], context_prefix: str = ""
    ) -> list[Chunk]:
        """Batch *records* into JSON arrays, each prefixed with *context_prefix*.

        Records keep their original order; each batch holds at least one
        record, so an oversized record still gets its own batch. Batches are
        sized by the length of the array text actually sent, so every
        multi-record chunk stays within the budget.
        """
        prefix_len = len(context_prefix)
        batches: list[list[Any]] = []
        current: list[Any] = []
        current_len = 0

        for record in records:
            record_len = _item_length(_serialize(record))
            if current:
                new_len = current_len + len(ITEM_SEPARATOR) + record_len
                batch_cost = token_cost(prefix_len + new_len + ARRAY_OVERHEAD, True)
                if batch_cost <= self.max_tokens_per_chunk:
                    current.append(record)
                    current_len = new_len
                    continue
                batches.append(current)
            current = [record]
            current_len = record_len

        if current:
            batches.append(current)

        chunks = []
        for index, batch in enumerate(batches):
            content = context_prefix + _serialize(batch)
            chunks.append(
                Chunk(index=index, content=content, estimated_tokens=estimate_tokens(content))
            )
        logger.debug(
            "Split %d records into %d batch(es) (budget=%d tokens)",
            len(records), len(chunks), self.max_tokens_per_chunk,
        )
        return chunks

    def _content_budget(self, context_prefix: str) -> int:
        return max(1, self.max_tokens_per_chunk - estimate_tokens(context_prefix))


def _serialize(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _item_length(serialized: str) -> int:
    """Length of a serialized record once nested one level inside an array."""
    return len(serialized) + len(ARRAY_INDENT) * (serialized.count("\n") + 1)

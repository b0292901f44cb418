"""Tests for the ChunkingEngine (free-text and record splitting)."""

import json
import random

import pytest

from src.utils.chunking import ChunkingEngine
from src.utils.text_processing import estimate_tokens

PREFIX = "(continued)\n"


def _sentences(count: int) -> str:
    return " ".join("Sentence number " + str(i) + " is here." for i in range(count))


def _random_text(seed: int, words: int = 600) -> str:
    rng = random.Random(seed)
    vocab = ["alpha", "beta", "gamma", "{delta}", "[eps]", "zeta.", "eta!", "theta?", "iota\n", "kappa\n\n"]
    return " ".join(rng.choice(vocab) for _ in range(words))


def _content_only(chunk, prefix=PREFIX):
    if chunk.index > 0 and chunk.content.startswith(prefix):
        return chunk.content[len(prefix):]
    return chunk.content


# ===================================================================
# Construction
# ===================================================================

class TestChunkingEngineInit:

    def test_rejects_non_positive_budget(self):
        with pytest.raises(ValueError):
            ChunkingEngine(0)

    def test_budget_from_model_ceiling(self):
        assert ChunkingEngine.for_model_ceiling(8000).max_tokens_per_chunk == 5600
        assert ChunkingEngine.for_model_ceiling(4000, ratio=0.5).max_tokens_per_chunk == 2000

    def test_tiny_ceiling_still_has_budget(self):
        assert ChunkingEngine.for_model_ceiling(1, ratio=0.1).max_tokens_per_chunk == 1


# ===================================================================
# Free text
# ===================================================================

class TestSplitText:

    def test_empty_text(self):
        assert ChunkingEngine(100).split_text("", PREFIX) == []

    def test_whitespace_only_text_is_one_chunk(self):
        chunks = ChunkingEngine(100).split_text("   ", PREFIX)
        assert len(chunks) == 1
        assert chunks[0].content == "   "

    def test_short_text_is_single_unprefixed_chunk(self):
        chunks = ChunkingEngine(100).split_text("A short prompt.", PREFIX)
        assert len(chunks) == 1
        assert chunks[0].index == 0
        assert chunks[0].content == "A short prompt."

    def test_chunks_stay_within_budget(self):
        engine = ChunkingEngine(50)
        chunks = engine.split_text(_sentences(80), PREFIX)
        assert len(chunks) > 1
        for chunk in chunks:
            assert estimate_tokens(_content_only(chunk)) <= engine.max_tokens_per_chunk

    def test_indices_are_dense_and_ordered(self):
        chunks = ChunkingEngine(40).split_text(_sentences(60), PREFIX)
        assert [c.index for c in chunks] == list(range(len(chunks)))

    def test_prefix_only_after_first_chunk(self):
        chunks = ChunkingEngine(40).split_text(_sentences(60), PREFIX)
        assert not chunks[0].content.startswith(PREFIX)
        assert all(c.content.startswith(PREFIX) for c in chunks[1:])

    def test_word_order_preserved(self):
        text = _sentences(60)
        chunks = ChunkingEngine(40).split_text(text, PREFIX)
        words = []
        for chunk in chunks:
            words.extend(_content_only(chunk).split())
        assert words == text.split()

    def test_sentence_boundaries_used_when_sufficient(self):
        chunks = ChunkingEngine(30).split_text(_sentences(40), PREFIX)
        for chunk in chunks:
            assert _content_only(chunk).endswith(".")

    def test_falls_back_to_line_boundaries(self):
        lines = ["line" + str(i) + " alpha beta gamma" for i in range(80)]
        chunks = ChunkingEngine(30).split_text("\n".join(lines), PREFIX)
        assert len(chunks) > 1
        for chunk in chunks:
            assert len(_content_only(chunk).split()) % 4 == 0

    def test_oversized_word_gets_own_chunk(self):
        giant = "x" * 1000
        engine = ChunkingEngine(20)
        chunks = engine.split_text("small words here " + giant + " and more words", PREFIX)
        contents = [_content_only(c) for c in chunks]
        assert giant in contents
        for content in contents:
            if content != giant:
                assert estimate_tokens(content) <= engine.max_tokens_per_chunk

    def test_estimated_tokens_reported(self):
        for chunk in ChunkingEngine(40).split_text(_sentences(30), PREFIX):
            assert chunk.estimated_tokens == estimate_tokens(chunk.content)

    @pytest.mark.parametrize("seed", range(8))
    def test_random_text_bounded_and_complete(self, seed):
        text = _random_text(seed)
        engine = ChunkingEngine(25)
        chunks = engine.split_text(text, PREFIX)
        words = []
        for chunk in chunks:
            content = _content_only(chunk)
            assert estimate_tokens(content) <= engine.max_tokens_per_chunk
            words.extend(content.split())
        assert words == text.split()


# ===================================================================
# Structured records
# ===================================================================

class TestSplitRecords:

    def _records(self, count):
        return [
            {"url": "https://example.com/p" + str(i), "clicks": i, "impressions": i * 10}
            for i in range(count)
        ]

    def _decode(self, chunk, prefix):
        assert chunk.content.startswith(prefix)
        return json.loads(chunk.content[len(prefix):])

    def test_empty_records(self):
        assert ChunkingEngine(100).split_records([], "rows:\n") == []

    def test_union_of_batches_equals_input(self):
        records = self._records(2000)
        chunks = ChunkingEngine(500).split_records(records, "rows:\n")
        assert len(chunks) >= 2
        combined = []
        for chunk in chunks:
            combined.extend(self._decode(chunk, "rows:\n"))
        assert combined == records

    def test_every_batch_carries_prefix(self):
        chunks = ChunkingEngine(200).split_records(self._records(100), "Header text\n")
        assert all(c.content.startswith("Header text\n") for c in chunks)

    def test_batches_respect_budget(self):
        prefix = "rows:\n"
        engine = ChunkingEngine(300)
        chunks = engine.split_records(self._records(300), prefix)
        multi_record = [c for c in chunks if len(self._decode(c, prefix)) > 1]
        assert len(multi_record) > 1
        for chunk in chunks:
            assert chunk.estimated_tokens == estimate_tokens(chunk.content)
        for chunk in multi_record:
            assert chunk.estimated_tokens <= engine.max_tokens_per_chunk

    def test_batches_packed_greedily(self):
        prefix = "rows:\n"
        engine = ChunkingEngine(300)
        batches = [self._decode(c, prefix) for c in engine.split_records(self._records(300), prefix)]
        for batch, following in zip(batches, batches[1:]):
            grown = prefix + json.dumps(batch + following[:1], indent=2, ensure_ascii=False)
            assert estimate_tokens(grown) > engine.max_tokens_per_chunk

    @pytest.mark.parametrize("budget", [60, 137, 500, 1999])
    def test_batches_respect_budget_with_nested_records(self, budget):
        records = [
            {"url": "/p" + str(i), "metrics": {"clicks": i, "ctr": i / 100}, "tags": ["a", "b"] * (i % 4)}
            for i in range(200)
        ]
        engine = ChunkingEngine(budget)
        chunks = engine.split_records(records, "GSC rows follow:\n")
        for chunk in chunks:
            if len(self._decode(chunk, "GSC rows follow:\n")) > 1:
                assert estimate_tokens(chunk.content) <= budget

    def test_oversized_record_gets_own_batch(self):
        records = self._records(5)
        records.insert(2, {"url": "https://example.com/huge", "body": "y" * 10000})
        chunks = ChunkingEngine(100).split_records(records, "")
        batches = [json.loads(c.content) for c in chunks]
        assert [records[2]] in batches
        assert [r for batch in batches for r in batch] == records

    def test_small_input_single_batch(self):
        records = self._records(3)
        chunks = ChunkingEngine(5000).split_records(records, "rows:\n")
        assert len(chunks) == 1
        assert self._decode(chunks[0], "rows:\n") == records

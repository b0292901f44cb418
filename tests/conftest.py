"""Shared pytest fixtures for SEO Insights tests."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Ensure project root is on sys.path so 'src' is importable.
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)


class FakeClock:
    """Deterministic clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture()
def fake_clock():
    """Provide a FakeClock for the queue and the cache."""
    return FakeClock()


@pytest.fixture()
def make_queue(fake_clock):
    """Factory for RateLimitedQueue instances driven by the fake clock."""
    from src.utils.rate_limiter import RateLimitedQueue

    def _make(requests_per_minute=60, min_interval=1.0, window_seconds=60.0):
        return RateLimitedQueue(
            requests_per_minute=requests_per_minute,
            min_interval=min_interval,
            window_seconds=window_seconds,
            name="test",
            clock=fake_clock.time,
            sleep=fake_clock.sleep,
        )

    return _make


@pytest.fixture()
def mock_llm_client():
    """Return a mock LLMClient that answers every completion with canned text."""
    client = MagicMock()
    client.model = "gpt-4o-mini"
    client.create_completion = AsyncMock(return_value="Mock LLM response text.")
    client.get_usage_summary = MagicMock(return_value={
        "model": "gpt-4o-mini",
        "total_requests": 0,
        "failed_requests": 0,
        "total_input_tokens": 0,
        "total_output_tokens": 0,
    })
    return client


@pytest.fixture()
def make_gsc_rows():
    """Factory producing synthetic Search Console rows."""

    def _make(count: int, pages: int = 50) -> list[dict]:
        rows = []
        for i in range(count):
            rows.append({
                "query": "seo keyword " + str(i),
                "page": "https://example.com/page-" + str(i % pages),
                "clicks": (i * 7) % 300,
                "impressions": 1000 + (i * 13) % 5000,
                "ctr": round(((i * 7) % 300) / (1000 + (i * 13) % 5000), 4),
                "position": round(1 + (i % 40) * 0.9, 1),
            })
        return rows

    return _make

"""OpenAI chat-completions transport used by the request orchestrator."""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import openai

from src.errors import ApiError, ConfigurationError, RateLimitExceeded

logger = logging.getLogger(__name__)


@dataclass
class UsageStats:
    """Tracks requests and token usage reported by the API."""
    total_requests: int = 0
    failed_requests: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    started_at: float = field(default_factory=time.time)

    def add_usage(self, input_tokens: int, output_tokens: int) -> None:
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
        self.total_requests += 1

    def add_failure(self) -> None:
        self.failed_requests += 1


class LLMClient:
    """Single-shot async client for the remote completion service.

    One call to :meth:`create_completion` is exactly one HTTP request; there
    is no retry, caching, or rate limiting here. Those belong to the
    orchestrator and its queue.

    Usage::

        client = LLMClient(model="gpt-4o-mini")
        text = await client.create_completion(system_prompt, prompt)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        max_tokens: int = 4000,
        temperature: float = 0.7,
        timeout: int = 60,
        client: Optional[Any] = None,
    ):
        self._api_key = api_key or os.getenv("OPENAI_API_KEY", "")
        if not self._api_key:
            raise ConfigurationError(
                "OpenAI API key is required. Set OPENAI_API_KEY in the environment or .env."
            )

        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

        self._client = client or openai.AsyncOpenAI(api_key=self._api_key, timeout=timeout)
        self.usage = UsageStats()

    async def create_completion(self, system_prompt: str, prompt: str) -> str:
        """Send one chat completion and return the assistant message content.

        Raises:
            RateLimitExceeded: the service answered HTTP 429.
            ApiError: any other API, status or connection failure.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except openai.RateLimitError as exc:
            self.usage.add_failure()
            logger.warning("OpenAI rate limit hit: %s", exc)
            raise RateLimitExceeded(str(exc)) from exc
        except openai.APIStatusError as exc:
            self.usage.add_failure()
            logger.error("OpenAI API error (%s): %s", exc.status_code, exc)
            raise ApiError(f"OpenAI API Error: {exc}", status_code=exc.status_code) from exc
        except openai.APIError as exc:
            self.usage.add_failure()
            logger.error("OpenAI request failed: %s", exc)
            raise ApiError(f"OpenAI API Error: {exc}") from exc

        if not response.choices:
            self.usage.add_failure()
            raise ApiError("OpenAI API Error: response contained no choices")

        content = response.choices[0].message.content or ""
        usage = response.usage
        if usage:
            self.usage.add_usage(usage.prompt_tokens, usage.completion_tokens)
            logger.info(
                "OpenAI call: %d in / %d out tokens",
                usage.prompt_tokens, usage.completion_tokens,
            )
        else:
            self.usage.add_usage(0, 0)
        return content.strip()

    def get_usage_summary(self) -> dict[str, Any]:
        """Return a summary of requests and token usage."""
        return {
            "model": self.model,
            "total_requests": self.usage.total_requests,
            "failed_requests": self.usage.failed_requests,
            "total_input_tokens": self.usage.total_input_tokens,
            "total_output_tokens": self.usage.total_output_tokens,
        }

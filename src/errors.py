"""Exception hierarchy for the LLM request orchestrator."""

from typing import Optional


class SEOInsightsError(Exception):
    """Base exception for every error raised by this package."""

    pass


class ConfigurationError(SEOInsightsError):
    """Raised at construction time when required configuration is missing."""

    pass


class ApiError(SEOInsightsError):
    """The completion service returned a non-success response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitExceeded(ApiError):
    """The completion service explicitly refused the request due to throttling."""

    def __init__(self, message: str = "RATE_LIMIT_EXCEEDED"):
        super().__init__(message, status_code=429)


class ParseError(SEOInsightsError):
    """A response expected to be JSON could not be parsed."""

    pass


class AllChunksFailed(SEOInsightsError):
    """Every chunk of a multi-chunk request failed."""

    def __init__(self, errors: Optional[list[str]] = None):
        self.errors = errors or []
        super().__init__(
            f"All chunks failed to process ({len(self.errors)} chunk(s))"
        )


class InsufficientData(SEOInsightsError):
    """Too few data points were supplied to generate a meaningful report."""

    pass

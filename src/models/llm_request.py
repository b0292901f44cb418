"""Value objects passed between the orchestrator components."""

from dataclasses import dataclass, field
from typing import Optional, Union

from src.models.report import ReportKind, ReportType


@dataclass(frozen=True)
class PromptRequest:
    """A single logical completion request, immutable once submitted."""
    system_prompt: str
    user_prompt: str
    use_cache: bool = True
    report: Union[ReportType, ReportKind] = ReportKind.GENERIC

    @property
    def kind(self) -> ReportKind:
        if isinstance(self.report, ReportType):
            return self.report.kind
        return self.report


@dataclass(frozen=True)
class Chunk:
    """A bounded-size fragment of an oversized prompt."""
    index: int
    content: str
    estimated_tokens: int


@dataclass(frozen=True)
class ChunkResult:
    """Outcome of dispatching one chunk; ``failed`` results carry a placeholder."""
    index: int
    content: str
    tokens: int
    failed: bool = False


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: str
    created_at: float


@dataclass
class CompletionOutcome:
    """Detailed result of :meth:`RequestOrchestrator.complete_with_details`."""
    content: str
    chunk_results: list[ChunkResult] = field(default_factory=list)
    from_cache: bool = False
    report_kind: Optional[ReportKind] = None

    @property
    def chunk_count(self) -> int:
        return len(self.chunk_results)

    @property
    def failed_chunks(self) -> list[int]:
        return [r.index for r in self.chunk_results if r.failed]

    @property
    def is_partial(self) -> bool:
        """True when some, but not all, chunks failed."""
        return bool(self.failed_chunks)

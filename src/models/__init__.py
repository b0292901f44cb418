"""Data models shared by the orchestrator and the reporting layer."""

from src.models.report import (
    ReportKind,
    ReportType,
    GSCDataPoint,
    AEOScore,
    LLMSimulation,
)
from src.models.llm_request import (
    PromptRequest,
    Chunk,
    ChunkResult,
    CacheEntry,
    CompletionOutcome,
)

__all__ = [
    "ReportKind",
    "ReportType",
    "GSCDataPoint",
    "AEOScore",
    "LLMSimulation",
    "PromptRequest",
    "Chunk",
    "ChunkResult",
    "CacheEntry",
    "CompletionOutcome",
]

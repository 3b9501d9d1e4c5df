"""Request/response models for the HTTP surface"""

from __future__ import annotations

from typing import Literal

from .analysis import CamelModel
from .decomposition import AnalysisReport, StrategySelection


class AnalyzeRequest(CamelModel):
    """Raw diff text plus optional author context"""

    diff: str
    stated_intent: str | None = None
    repository_context: str | None = None


class SummarizeRequest(CamelModel):
    diff: str
    include_content: bool = True


class SummarizeFileEntry(CamelModel):
    path: str
    status: str
    tier: int
    reason: str
    lines: int
    summarized: bool
    original_tokens: int
    summarized_tokens: int


class SummarizeTotals(CamelModel):
    files: int
    tier1: int
    tier2: int
    excluded: int
    original_tokens: int
    summarized_tokens: int
    savings: int
    savings_percent: int


class SummarizeResponse(CamelModel):
    files: list[SummarizeFileEntry]
    totals: SummarizeTotals
    content: str | None = None


class PlanResponse(CamelModel):
    """Strategy that would be used, without calling the analyzer"""

    selection: StrategySelection
    tier_counts: dict[str, int]


class AnalysisEvent(CamelModel):
    """SSE stream event"""

    type: Literal["progress", "result", "error"]
    stage: str | None = None
    detail: str | None = None
    report: AnalysisReport | None = None
    error: str | None = None

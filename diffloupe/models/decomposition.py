"""Decomposition models: strategy selection, flows, executor results"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from .analysis import (
    CamelModel,
    ChangeScope,
    Confidence,
    DerivedIntent,
    IntentAlignment,
    Risk,
    RiskAssessment,
    RiskSeverity,
)
from .loader import ClassifiedFile

DecompositionStrategy = Literal["direct", "two-pass", "flow-based", "hierarchical"]


class DiffMetrics(CamelModel):
    """Aggregate numbers used to pick a strategy"""

    file_count: int
    total_lines: int  # adds + deletes across the whole diff
    estimated_tokens: int
    tier1_file_count: int


class StrategySelection(CamelModel):
    strategy: DecompositionStrategy
    reason: str
    metrics: DiffMetrics


class FileChunk(BaseModel):
    """A group of files analyzed together"""

    name: str
    files: list[ClassifiedFile]
    estimated_tokens: int


# ========== Flow detection ==========


class DetectedFlow(CamelModel):
    """A named group of files sharing a logical concern"""

    name: str
    description: str
    files: list[str]
    priority: int  # 1 = highest


class FlowDetectionResult(CamelModel):
    flows: list[DetectedFlow]
    uncategorized: list[str]


class FlowCandidate(CamelModel):
    """One flow as proposed by the analyzer, before validation"""

    name: str
    description: str
    files: list[str]
    priority: float


class FlowDetectionResponse(CamelModel):
    flows: list[FlowCandidate]


# ========== Two-pass ==========


class FlaggedFile(CamelModel):
    path: str
    reason: str


class OverviewResponse(CamelModel):
    """Analyzer response for the overview pass"""

    summary: str
    purpose: str
    scope: ChangeScope
    affected_areas: list[str]
    flagged_files: list[FlaggedFile]
    initial_risks: list[Risk]


class OverviewResult(CamelModel):
    summary: str
    flagged_files: list[str]
    initial_risks: list[Risk]
    overview_intent: DerivedIntent


# ========== Flow-based ==========


class SynthesisResponse(CamelModel):
    """Analyzer response combining every flow's findings"""

    summary: str
    purpose: str
    scope: ChangeScope
    affected_areas: list[str]
    suggested_review_order: list[str] | None = None
    overall_risk: RiskSeverity
    risk_summary: str
    cross_flow_concerns: list[str]
    confidence: Confidence


class FlowAnalysisResult(CamelModel):
    flow: DetectedFlow
    intent: DerivedIntent
    risks: RiskAssessment


class FlowSynthesis(CamelModel):
    overall_intent: DerivedIntent
    overall_risks: RiskAssessment
    cross_flow_concerns: list[str] = []


class FlowFileCount(CamelModel):
    name: str
    file_count: int


# ========== Report ==========


class _MetadataBase(CamelModel):
    reason: str = ""
    metrics: DiffMetrics | None = None


class DirectMetadata(_MetadataBase):
    strategy: Literal["direct"] = "direct"
    analyzed_file_count: int
    excluded_file_count: int


class TwoPassMetadata(_MetadataBase):
    strategy: Literal["two-pass"] = "two-pass"
    overview_file_count: int
    flagged_file_count: int
    deep_dive_file_count: int


class FlowBasedMetadata(_MetadataBase):
    strategy: Literal["flow-based"] = "flow-based"
    total_file_count: int
    flow_count: int
    uncategorized_count: int
    flow_file_counts: list[FlowFileCount]


class HierarchicalMetadata(_MetadataBase):
    strategy: Literal["hierarchical"] = "hierarchical"
    total_file_count: int
    flow_count: int
    chunk_count: int
    uncategorized_count: int
    flow_file_counts: list[FlowFileCount]


AnalysisMetadata = Annotated[
    Union[DirectMetadata, TwoPassMetadata, FlowBasedMetadata, HierarchicalMetadata],
    Field(discriminator="strategy"),
]


class StrategyResult(CamelModel):
    """Common output of every executor"""

    intent: DerivedIntent
    risks: RiskAssessment
    metadata: AnalysisMetadata
    cross_flow_concerns: list[str] = []
    flows: list[FlowAnalysisResult] = []


class AnalysisReport(CamelModel):
    """Normalized record handed to the outer layer"""

    intent: DerivedIntent
    risks: RiskAssessment
    alignment: IntentAlignment | None = None
    cross_flow_concerns: list[str] = []
    metadata: AnalysisMetadata

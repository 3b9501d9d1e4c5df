"""Models module - Pydantic data models"""

from .diff import DiffFile, DiffFileStatus, DiffHunk, DiffLine, DiffLineType, ParsedDiff
from .loader import (
    ClassifiedFile,
    DeletedFileSummary,
    DiffTokenEstimate,
    FileTier,
    FileTokenEstimate,
    LoadBudgetResult,
)
from .analysis import (
    ChangeScope,
    DerivedIntent,
    IntentAlignment,
    Risk,
    RiskAssessment,
    RiskSeverity,
)
from .llm import (
    AnalyzerRequest,
    AnalyzerValidationError,
    LLMAPIKeyError,
    LLMGenerationError,
    LLMJSONParseError,
    StructuredResult,
)
from .decomposition import (
    AnalysisReport,
    DecompositionStrategy,
    DetectedFlow,
    DiffMetrics,
    FileChunk,
    FlowAnalysisResult,
    FlowDetectionResult,
    OverviewResult,
    StrategySelection,
)

__all__ = [
    # Diff models
    "DiffFile",
    "DiffFileStatus",
    "DiffHunk",
    "DiffLine",
    "DiffLineType",
    "ParsedDiff",
    # Loader models
    "ClassifiedFile",
    "DeletedFileSummary",
    "DiffTokenEstimate",
    "FileTier",
    "FileTokenEstimate",
    "LoadBudgetResult",
    # Analysis models
    "ChangeScope",
    "DerivedIntent",
    "IntentAlignment",
    "Risk",
    "RiskAssessment",
    "RiskSeverity",
    # LLM boundary
    "AnalyzerRequest",
    "AnalyzerValidationError",
    "LLMAPIKeyError",
    "LLMGenerationError",
    "LLMJSONParseError",
    "StructuredResult",
    # Decomposition models
    "AnalysisReport",
    "DecompositionStrategy",
    "DetectedFlow",
    "DiffMetrics",
    "FileChunk",
    "FlowAnalysisResult",
    "FlowDetectionResult",
    "OverviewResult",
    "StrategySelection",
]

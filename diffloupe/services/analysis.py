"""
Analysis Pipeline - raw diff text in, normalized report out

    parse -> classify -> metrics -> strategy -> executor -> (alignment)

Parsing, classification and strategy selection are synchronous and never
touch the analyzer; only the executors and the alignment step do.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from diffloupe.models.decomposition import AnalysisReport, StrategySelection
from diffloupe.models.diff import ParsedDiff
from diffloupe.models.loader import ClassifiedFile
from diffloupe.prompts.alignment import align_intent
from diffloupe.services.analyzer import Analyzer
from diffloupe.services.decomposition import (
    calculate_diff_metrics,
    run_direct_analysis,
    run_flow_based_analysis,
    run_hierarchical_analysis,
    run_two_pass_analysis,
    select_strategy,
)
from diffloupe.services.decomposition.progress import ProgressCallback, report
from diffloupe.services.diff_loader import classify_diff
from diffloupe.services.diff_parser import parse_diff

logger = logging.getLogger(__name__)

EXECUTORS = {
    "direct": run_direct_analysis,
    "two-pass": run_two_pass_analysis,
    "flow-based": run_flow_based_analysis,
    "hierarchical": run_hierarchical_analysis,
}


class AnalysisPlan(NamedTuple):
    diff: ParsedDiff
    classified: list[ClassifiedFile]
    selection: StrategySelection


def plan_analysis(raw_diff: str) -> AnalysisPlan:
    """Parse, classify and pick a strategy without calling the analyzer"""
    diff = parse_diff(raw_diff)
    classified = classify_diff(diff)
    metrics = calculate_diff_metrics(diff, classified)
    selection = select_strategy(metrics)
    logger.info(
        "Plan: %s (%d files, %d tier-1, %d changed lines, ~%d tokens)",
        selection.strategy,
        metrics.file_count,
        metrics.tier1_file_count,
        metrics.total_lines,
        metrics.estimated_tokens,
    )
    return AnalysisPlan(diff, classified, selection)


async def analyze_diff(
    raw_diff: str,
    analyzer: Analyzer,
    stated_intent: str | None = None,
    repository_context: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> AnalysisReport:
    """Run the full analysis for one diff and return the normalized report"""
    diff, classified, selection = plan_analysis(raw_diff)

    executor = EXECUTORS[selection.strategy]
    result = await executor(diff, classified, analyzer, stated_intent, repository_context, on_progress)

    metadata = result.metadata.model_copy(update={"reason": selection.reason, "metrics": selection.metrics})

    alignment = None
    if stated_intent:
        report(on_progress, "aligning", "Comparing stated intent against the change")
        alignment = await align_intent(
            stated_intent, result.intent, diff, classified, analyzer, repository_context
        )

    return AnalysisReport(
        intent=result.intent,
        risks=result.risks,
        alignment=alignment,
        cross_flow_concerns=result.cross_flow_concerns,
        metadata=metadata,
    )

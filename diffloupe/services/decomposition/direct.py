"""Direct Analysis - small diffs go to the analyzer in one piece"""

from __future__ import annotations

import asyncio

from diffloupe.models.decomposition import DirectMetadata, StrategyResult
from diffloupe.models.diff import ParsedDiff
from diffloupe.models.loader import ClassifiedFile
from diffloupe.prompts.intent import derive_intent
from diffloupe.prompts.risks import assess_risks
from diffloupe.services.analyzer import Analyzer
from diffloupe.services.decomposition.progress import ProgressCallback, report


async def run_direct_analysis(
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    analyzer: Analyzer,
    stated_intent: str | None = None,
    repository_context: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> StrategyResult:
    analyzed = sum(1 for cf in classified if cf.tier <= 2)
    report(on_progress, "analyzing", f"Analyzing {analyzed} files")

    intent, risks = await asyncio.gather(
        derive_intent(diff, classified, analyzer, stated_intent, repository_context),
        assess_risks(diff, classified, analyzer, stated_intent, repository_context),
    )
    return StrategyResult(
        intent=intent,
        risks=risks,
        metadata=DirectMetadata(analyzed_file_count=analyzed, excluded_file_count=len(classified) - analyzed),
    )

"""
Flow-Based Analysis - for large diffs (41-80 files)

    detect flows -> analyze each flow (batches of MAX_CONCURRENT_FLOWS) -> synthesize

Each flow gets its own intent + risk pass over a diff filtered down to its
files. The synthesis call writes the overall narrative; the final risk list
is the deduplicated union of the per-flow risks, not anything the synthesis
call reports.
"""

from __future__ import annotations

import asyncio
import logging

from diffloupe.models.analysis import DerivedIntent, RiskAssessment, dedupe_risks, sort_risks_by_severity
from diffloupe.models.decomposition import (
    AnalysisMetadata,
    DetectedFlow,
    FlowAnalysisResult,
    FlowBasedMetadata,
    FlowFileCount,
    FlowSynthesis,
    StrategyResult,
    SynthesisResponse,
)
from diffloupe.models.diff import ParsedDiff
from diffloupe.models.loader import ClassifiedFile
from diffloupe.prompts.intent import derive_intent
from diffloupe.prompts.risks import assess_risks
from diffloupe.services.analyzer import Analyzer, request_structured
from diffloupe.services.decomposition.flow_detection import detect_flows, get_files_for_flow
from diffloupe.services.decomposition.progress import ProgressCallback, report

logger = logging.getLogger(__name__)

MAX_CONCURRENT_FLOWS = 3
RISKS_SHOWN_PER_FLOW = 5

SYNTHESIS_TEMPERATURE = 0.3
SYNTHESIS_MAX_TOKENS = 4096

FALLBACK_FLOW_NAME = "All Changes"
FALLBACK_FLOW_DESCRIPTION = "All changes in this diff"
NO_ANALYZABLE_FILES_SUMMARY = "No analyzable files in this diff"

SYNTHESIS_SYSTEM_PROMPT = """You are an expert code reviewer synthesizing analysis from multiple code flows.

You've received individual analyses for different logical flows (groups of related files) in a large diff. Your task is to:

1. **Synthesize intent** - Combine the individual flow intents into a coherent overall understanding
2. **Merge risks** - Identify the most important risks across all flows, note cross-flow concerns
3. **Identify patterns** - Look for patterns that span multiple flows (e.g., consistent error handling, shared security concerns)

## Key Principles

- Be CONCISE - this is a summary, not a repetition of all findings
- Focus on the BIG PICTURE - what is this change as a whole trying to accomplish?
- Highlight CROSS-FLOW concerns - risks that span multiple flows are often the most important
- Don't just concatenate - SYNTHESIZE into a coherent narrative

## Severity Calibration

When determining overall risk:
- Use the HIGHEST severity from any flow as the baseline
- Elevate if multiple flows have high-severity risks (compounding concern)
- Cross-flow risks (issues that span boundaries) may warrant higher severity"""


# ========== Per-flow analysis ==========


def filter_diff_for_flow(diff: ParsedDiff, flow: DetectedFlow) -> ParsedDiff:
    paths = set(flow.files)
    return ParsedDiff(files=[file for file in diff.files if file.path in paths])


def filter_classified_for_flow(classified: list[ClassifiedFile], flow: DetectedFlow) -> list[ClassifiedFile]:
    return get_files_for_flow(flow, classified)


def build_flow_context_prefix(flow: DetectedFlow, total_flows: int) -> str:
    return (
        "## Flow Context\n\n"
        f'This analysis is for the "{flow.name}" flow ({len(flow.files)} files, '
        f"priority {flow.priority}/{total_flows}).\n\n"
        f"**Flow description:** {flow.description}\n\n"
        "Focus your analysis on this specific concern. Other flows in this diff will be analyzed separately.\n\n"
    )


def fallback_flow(classified: list[ClassifiedFile]) -> DetectedFlow:
    """Single flow covering every analyzable file, used when detection finds nothing"""
    return DetectedFlow(
        name=FALLBACK_FLOW_NAME,
        description=FALLBACK_FLOW_DESCRIPTION,
        files=[cf.path for cf in classified if cf.tier <= 2],
        priority=1,
    )


def has_analyzable_files(classified: list[ClassifiedFile]) -> bool:
    return any(cf.tier <= 2 for cf in classified)


def no_analyzable_files_result(metadata: AnalysisMetadata) -> StrategyResult:
    """Canned low-risk result for a diff made only of lock, generated or binary files"""
    return StrategyResult(
        intent=DerivedIntent(
            summary=NO_ANALYZABLE_FILES_SUMMARY,
            purpose="Only lock, generated or binary files changed",
            scope="mixed",
            affected_areas=[],
        ),
        risks=RiskAssessment(overall_risk="low", summary=NO_ANALYZABLE_FILES_SUMMARY, risks=[], confidence="high"),
        metadata=metadata,
    )


async def analyze_flow(
    flow: DetectedFlow,
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    total_flows: int,
    analyzer: Analyzer,
    stated_intent: str | None = None,
    repository_context: str | None = None,
) -> FlowAnalysisResult:
    """Intent and risks for one flow, issued concurrently"""
    flow_diff = filter_diff_for_flow(diff, flow)
    flow_classified = filter_classified_for_flow(classified, flow)

    context = build_flow_context_prefix(flow, total_flows)
    if repository_context:
        context += repository_context

    intent, risks = await asyncio.gather(
        derive_intent(flow_diff, flow_classified, analyzer, stated_intent, context),
        assess_risks(flow_diff, flow_classified, analyzer, stated_intent, context),
    )
    return FlowAnalysisResult(flow=flow, intent=intent, risks=risks)


async def analyze_all_flows(
    flows: list[DetectedFlow],
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    analyzer: Analyzer,
    stated_intent: str | None = None,
    repository_context: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[FlowAnalysisResult]:
    """
    Analyze flows in batches of MAX_CONCURRENT_FLOWS.

    Each batch is fully joined before the next starts. Results keep the
    submission order of `flows`.
    """
    results: list[FlowAnalysisResult] = []
    total = len(flows)

    for start in range(0, total, MAX_CONCURRENT_FLOWS):
        batch = flows[start:start + MAX_CONCURRENT_FLOWS]
        for offset, flow in enumerate(batch):
            report(on_progress, "analyzing", f"Flow {start + offset + 1}/{total}: {flow.name}")

        batch_results = await asyncio.gather(
            *(
                analyze_flow(flow, diff, classified, total, analyzer, stated_intent, repository_context)
                for flow in batch
            )
        )
        results.extend(batch_results)

    return results


# ========== Synthesis ==========


def build_synthesis_prompt(flow_results: list[FlowAnalysisResult], stated_intent: str | None = None) -> str:
    sections = [
        "## Flow Analysis Summary",
        "",
        f"Total flows analyzed: {len(flow_results)}",
        f"Total files: {sum(len(fr.flow.files) for fr in flow_results)}",
        "",
    ]

    for fr in flow_results:
        sections.extend(
            [
                f"### Flow: {fr.flow.name} (Priority {fr.flow.priority})",
                f"**Files:** {len(fr.flow.files)}",
                f"**Description:** {fr.flow.description}",
                "",
                "**Intent:**",
                f"- Summary: {fr.intent.summary}",
                f"- Purpose: {fr.intent.purpose}",
                f"- Scope: {fr.intent.scope}",
                f"- Affected Areas: {', '.join(fr.intent.affected_areas)}",
                "",
                "**Risks:**",
                f"- Overall: {fr.risks.overall_risk}",
                f"- Summary: {fr.risks.summary}",
            ]
        )
        risks = fr.risks.risks
        if risks:
            sections.append(f"- Individual risks ({len(risks)}):")
            for risk in risks[:RISKS_SHOWN_PER_FLOW]:
                sections.append(f"  - [{risk.severity}] {risk.category}: {risk.description}")
            if len(risks) > RISKS_SHOWN_PER_FLOW:
                sections.append(f"  - ... and {len(risks) - RISKS_SHOWN_PER_FLOW} more")
        else:
            sections.append("- No significant risks identified")
        sections.append("")

    if stated_intent:
        sections.extend(
            [
                "## Author's Stated Intent",
                "",
                stated_intent,
                "",
                "Consider how well the combined flows achieve this intent.",
                "",
            ]
        )

    sections.append("---")
    sections.append(
        """Synthesize these flow analyses into a unified assessment.

REQUIRED OUTPUT:
- summary: string - 1-2 sentence summary of what the ENTIRE diff accomplishes
- purpose: string - the overall WHY behind all these changes
- scope: "feature" | "bugfix" | "refactor" | "config" | "docs" | "test" | "mixed"
- affectedAreas: string[] - all areas affected (deduplicated and consolidated)
- suggestedReviewOrder: string[] - suggested order to review files (optional)
- overallRisk: "low" | "medium" | "high" | "critical" - highest severity across all flows
- riskSummary: string - actionable summary of risks across all flows
- crossFlowConcerns: string[] - risks or issues that span multiple flows
- confidence: "high" | "medium" | "low"

Focus on synthesis - what does this change mean AS A WHOLE?"""
    )
    return "\n".join(sections)


async def synthesize_flow_results(
    flow_results: list[FlowAnalysisResult],
    analyzer: Analyzer,
    stated_intent: str | None = None,
) -> FlowSynthesis:
    user_prompt = build_synthesis_prompt(flow_results, stated_intent)
    result = await request_structured(
        analyzer,
        SYNTHESIS_SYSTEM_PROMPT,
        user_prompt,
        SynthesisResponse,
        temperature=SYNTHESIS_TEMPERATURE,
        max_tokens=SYNTHESIS_MAX_TOKENS,
    )
    response = result.unwrap()

    risks = sort_risks_by_severity(dedupe_risks([risk for fr in flow_results for risk in fr.risks.risks]))

    return FlowSynthesis(
        overall_intent=DerivedIntent(
            summary=response.summary,
            purpose=response.purpose,
            scope=response.scope,
            affected_areas=response.affected_areas,
            suggested_review_order=response.suggested_review_order,
        ),
        overall_risks=RiskAssessment(
            overall_risk=response.overall_risk,
            summary=response.risk_summary,
            risks=risks,
            confidence=response.confidence,
        ),
        cross_flow_concerns=response.cross_flow_concerns,
    )


# ========== Entry point ==========


async def run_flow_based_analysis(
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    analyzer: Analyzer,
    stated_intent: str | None = None,
    repository_context: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> StrategyResult:
    if not has_analyzable_files(classified):
        logger.info("Nothing above tier 3, skipping flow analysis")
        return no_analyzable_files_result(
            FlowBasedMetadata(total_file_count=0, flow_count=0, uncategorized_count=0, flow_file_counts=[])
        )

    report(on_progress, "detecting", "Identifying logical flows in diff...")
    detection = await detect_flows(diff, classified, analyzer)

    flows, uncategorized = detection.flows, detection.uncategorized
    if not flows:
        logger.info("No flows survived validation, falling back to a single flow")
        flows, uncategorized = [fallback_flow(classified)], []

    flow_results = await analyze_all_flows(
        flows, diff, classified, analyzer, stated_intent, repository_context, on_progress
    )

    report(on_progress, "synthesizing", "Combining flow analyses...")
    synthesis = await synthesize_flow_results(flow_results, analyzer, stated_intent)

    return StrategyResult(
        intent=synthesis.overall_intent,
        risks=synthesis.overall_risks,
        cross_flow_concerns=synthesis.cross_flow_concerns,
        flows=flow_results,
        metadata=FlowBasedMetadata(
            total_file_count=sum(1 for cf in classified if cf.tier <= 2),
            flow_count=len(flows),
            uncategorized_count=len(uncategorized),
            flow_file_counts=[FlowFileCount(name=flow.name, file_count=len(flow.files)) for flow in flows],
        ),
    )

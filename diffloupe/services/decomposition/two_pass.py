"""
Two-Pass Analysis - for medium diffs (16-40 files)

Pass 1 (overview) sees every file's stats but only its first changed lines,
and flags the files that deserve a closer look. Pass 2 (deep dive) sees the
full diff of the flagged files only. The passes are strictly sequential.
"""

from __future__ import annotations

import logging

from diffloupe.models.analysis import (
    DerivedIntent,
    RiskAssessment,
    dedupe_risks,
    sort_risks_by_severity,
)
from diffloupe.models.decomposition import OverviewResponse, OverviewResult, StrategyResult, TwoPassMetadata
from diffloupe.models.diff import DiffFile, ParsedDiff
from diffloupe.models.loader import ClassifiedFile
from diffloupe.services.analyzer import Analyzer, request_structured
from diffloupe.services.decomposition.progress import ProgressCallback, report
from diffloupe.utils.format_diff import format_diff_file

logger = logging.getLogger(__name__)

OVERVIEW_LINES_PER_FILE = 20

OVERVIEW_TEMPERATURE = 0.3
OVERVIEW_MAX_TOKENS = 4096
DEEP_DIVE_TEMPERATURE = 0.4
DEEP_DIVE_MAX_TOKENS = 8192

NO_FLAGGED_FILES_SUMMARY = "No files required detailed review - change appears safe."
NO_RISKS_SUMMARY = "No significant risks identified in detailed review."

OVERVIEW_SYSTEM_PROMPT = """You are an experienced code reviewer doing a quick scan of a diff to identify areas needing detailed review.

Your goal in this OVERVIEW pass is to:
1. Understand the overall intent of the change
2. Identify which files need careful, detailed review
3. Flag any immediately obvious risks

## Key Principles

- This is a QUICK SCAN, not a detailed review
- Flag files that have:
  - Security-sensitive changes (auth, validation, secrets)
  - Complex logic changes
  - API/interface changes that could break things
  - Error handling modifications
  - Database/data layer changes
- Don't flag routine files:
  - Pure test files (unless testing critical paths)
  - Config files with minor changes
  - Formatting/style changes
  - Simple type additions

## Scope Definitions

- **feature**: New functionality
- **bugfix**: Fixing incorrect behavior
- **refactor**: Code restructuring without behavior change
- **config**: Build, tooling, CI/CD changes
- **docs**: Documentation only
- **test**: Test additions/modifications only
- **mixed**: Multiple categories

## Output Quality

- Be selective: flag 20-50% of files, not everything
- Order flagged files by importance
- Keep reasons concise but specific"""

DEEP_DIVE_SYSTEM_PROMPT = """You are an experienced code reviewer doing a DETAILED analysis of specific files that were flagged for careful review.

This is a DEEP-DIVE pass. You've already done a quick overview and now need to:
1. Thoroughly analyze the flagged files
2. Identify all risks in these files
3. Provide detailed, specific findings

## Key Principles

- Every risk MUST cite specific evidence from the diff
- Don't repeat findings already noted in the overview - focus on NEW details
- Be thorough - these files were flagged for a reason

## Risk Categories

- security: Auth, secrets, injection, validation
- breaking-change: API changes, removed exports
- performance: N+1, unbounded operations
- error-handling: Missing catches, unhandled cases
- backwards-compatibility: Migrations, protocol changes
- data-integrity: Race conditions, partial updates
- test-coverage: Removed tests, untested risky paths

## Severity Calibration

- **critical**: Must fix before merge (security vulns, data loss)
- **high**: Likely production issues if not addressed
- **medium**: Should review carefully
- **low**: Worth noting but unlikely to cause problems"""


# ========== Pass 1: Overview ==========


def format_file_for_overview(file: DiffFile, max_lines: int = OVERVIEW_LINES_PER_FILE) -> str:
    """File header with stats, then hunk headers and at most `max_lines` changed lines"""
    added, deleted = file.added_lines, file.deleted_lines
    status = file.status.upper()
    if file.status == "renamed" and file.old_path:
        lines = [f"=== {file.old_path} → {file.path} ({status}) [+{added}/-{deleted}] ==="]
    else:
        lines = [f"=== {file.path} ({status}) [+{added}/-{deleted}] ==="]

    if file.is_binary:
        lines.append("[binary file]")
        return "\n".join(lines)

    shown = 0
    for hunk in file.hunks:
        if shown >= max_lines:
            break
        lines.append(hunk.header)
        for line in hunk.lines:
            if shown >= max_lines:
                lines.append(f"... ({added + deleted - shown} more changed lines)")
                break
            if line.type == "add":
                lines.append(f"+{line.content}")
                shown += 1
            elif line.type == "delete":
                lines.append(f"-{line.content}")
                shown += 1

    return "\n".join(lines)


def build_overview_prompt(
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    stated_intent: str | None = None,
    repository_context: str | None = None,
) -> str:
    relevant = [cf for cf in classified if cf.tier <= 2]
    tier3_count = sum(1 for cf in classified if cf.tier == 3)

    sections = [
        "## Diff Overview",
        f"Total files changed: {len(diff.files)}",
        f"Files for overview: {len(relevant)}",
    ]
    if tier3_count > 0:
        sections.append(f"({tier3_count} files excluded: lock files, generated code, binaries)")
    sections.append("")

    if repository_context:
        sections.append(repository_context)
        sections.append("")

    sections.append("## Files Changed (with stats)")
    for cf in relevant:
        file = cf.file
        sections.append(f"- {file.path} ({file.status}) [+{file.added_lines}/-{file.deleted_lines}]")
    sections.append("")

    sections.append(f"## Diff Preview (first ~{OVERVIEW_LINES_PER_FILE} changed lines per file)")
    sections.append("")
    for cf in relevant:
        sections.append(format_file_for_overview(cf.file))
        sections.append("")

    if stated_intent:
        sections.extend(["## Author's Stated Intent", "", stated_intent, ""])

    sections.append("---")
    sections.append(
        """Analyze this diff OVERVIEW and identify which files need detailed review.

REQUIRED OUTPUT:
- summary: string - 1-2 sentence summary of what this diff does
- purpose: string - why this change is being made
- scope: "feature" | "bugfix" | "refactor" | "config" | "docs" | "test" | "mixed"
- affectedAreas: string[] - high-level areas touched
- flaggedFiles: array of { path: string, reason: string } - files needing detailed review
- initialRisks: array of any immediately obvious risks (can be empty)

Be SELECTIVE with flaggedFiles - flag 20-50% of files, not everything."""
    )
    return "\n".join(sections)


async def run_overview_pass(
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    analyzer: Analyzer,
    stated_intent: str | None = None,
    repository_context: str | None = None,
) -> OverviewResult:
    user_prompt = build_overview_prompt(diff, classified, stated_intent, repository_context)
    result = await request_structured(
        analyzer,
        OVERVIEW_SYSTEM_PROMPT,
        user_prompt,
        OverviewResponse,
        temperature=OVERVIEW_TEMPERATURE,
        max_tokens=OVERVIEW_MAX_TOKENS,
    )
    response = result.unwrap()

    return OverviewResult(
        summary=response.summary,
        flagged_files=[flagged.path for flagged in response.flagged_files],
        initial_risks=response.initial_risks,
        overview_intent=DerivedIntent(
            summary=response.summary,
            purpose=response.purpose,
            scope=response.scope,
            affected_areas=response.affected_areas,
        ),
    )


# ========== Pass 2: Deep dive ==========


def build_deep_dive_prompt(
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    flagged_files: list[str],
    overview_summary: str,
    stated_intent: str | None = None,
    repository_context: str | None = None,
) -> str:
    relevant = [cf for cf in classified if cf.tier <= 2]
    flagged_set = set(flagged_files)
    flagged = [cf for cf in relevant if cf.path in flagged_set]
    not_flagged = [cf for cf in relevant if cf.path not in flagged_set]

    sections = [
        "## Context from Overview Pass",
        "",
        f"Overall change: {overview_summary}",
        f"Files flagged for detailed review: {len(flagged)}",
        f"Files not flagged (already reviewed): {len(not_flagged)}",
        "",
    ]

    if repository_context:
        sections.append(repository_context)
        sections.append("")

    if not_flagged:
        sections.append("## Files NOT Flagged (for reference only)")
        sections.extend(f"- {cf.path} ({cf.file.status})" for cf in not_flagged)
        sections.append("")

    sections.append("## Flagged Files (FULL DIFF - analyze in detail)")
    sections.append("")
    for cf in flagged:
        sections.append(format_diff_file(cf.file))
        sections.append("")

    if stated_intent:
        sections.extend(["## Author's Stated Intent", "", stated_intent, ""])

    sections.append("---")
    sections.append(
        """Analyze these FLAGGED files in detail for risks.

REQUIRED OUTPUT:
- overallRisk: "low" | "medium" | "high" | "critical" - highest severity found
- summary: string - actionable summary of findings
- risks: array of detailed risk objects (can be empty)
- confidence: "high" | "medium" | "low"

Each risk MUST have:
- severity, category, description, evidence
- Be SPECIFIC - cite actual code and line numbers"""
    )
    return "\n".join(sections)


async def run_deep_dive_pass(
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    flagged_files: list[str],
    overview_summary: str,
    analyzer: Analyzer,
    stated_intent: str | None = None,
    repository_context: str | None = None,
) -> RiskAssessment:
    """Full risk assessment of the flagged files; no analyzer call when nothing was flagged"""
    if not flagged_files:
        logger.info("Overview flagged no files, skipping deep dive")
        return RiskAssessment(overall_risk="low", summary=NO_FLAGGED_FILES_SUMMARY, risks=[], confidence="high")

    user_prompt = build_deep_dive_prompt(
        diff, classified, flagged_files, overview_summary, stated_intent, repository_context
    )
    result = await request_structured(
        analyzer,
        DEEP_DIVE_SYSTEM_PROMPT,
        user_prompt,
        RiskAssessment,
        temperature=DEEP_DIVE_TEMPERATURE,
        max_tokens=DEEP_DIVE_MAX_TOKENS,
    )
    return result.unwrap()


# ========== Merge ==========


def merge_results(overview: OverviewResult, deep_dive: RiskAssessment) -> tuple[DerivedIntent, RiskAssessment]:
    """
    Intent comes from the overview, with flagged files as the review order.
    Risks are the deduplicated union of both passes, most severe first.
    """
    intent = overview.overview_intent.model_copy(
        update={"suggested_review_order": list(overview.flagged_files) or None}
    )

    risks = sort_risks_by_severity(dedupe_risks([*overview.initial_risks, *deep_dive.risks]))
    overall_risk = risks[0].severity if risks else "low"

    if not risks:
        summary = NO_RISKS_SUMMARY
    else:
        critical = sum(1 for r in risks if r.severity == "critical")
        high = sum(1 for r in risks if r.severity == "high")
        if critical > 0:
            summary = f"{critical} critical risk(s) found. {deep_dive.summary}"
        elif high > 0:
            summary = f"{high} high-severity risk(s) found. {deep_dive.summary}"
        else:
            summary = deep_dive.summary

    assessment = RiskAssessment(
        overall_risk=overall_risk,
        summary=summary,
        risks=risks,
        confidence=deep_dive.confidence,
    )
    return intent, assessment


async def run_two_pass_analysis(
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    analyzer: Analyzer,
    stated_intent: str | None = None,
    repository_context: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> StrategyResult:
    relevant_count = sum(1 for cf in classified if cf.tier <= 2)

    report(on_progress, "overview", f"Scanning {relevant_count} files")
    overview = await run_overview_pass(diff, classified, analyzer, stated_intent, repository_context)

    flagged_count = len(overview.flagged_files)
    report(on_progress, "deep-dive", f"Reviewing {flagged_count} flagged files")
    deep_dive = await run_deep_dive_pass(
        diff, classified, overview.flagged_files, overview.summary, analyzer, stated_intent, repository_context
    )

    intent, risks = merge_results(overview, deep_dive)
    return StrategyResult(
        intent=intent,
        risks=risks,
        metadata=TwoPassMetadata(
            overview_file_count=relevant_count,
            flagged_file_count=flagged_count,
            deep_dive_file_count=flagged_count,
        ),
    )

"""
Intent Derivation - ask the analyzer what a diff is trying to accomplish

Only tier 1/2 files are shown; the prompt says how many were left out so
the model knows it is looking at a curated view.
"""

from __future__ import annotations

from diffloupe.models.analysis import DerivedIntent
from diffloupe.models.diff import ParsedDiff
from diffloupe.models.llm import AnalyzerValidationError
from diffloupe.models.loader import ClassifiedFile
from diffloupe.services.analyzer import Analyzer, request_structured
from diffloupe.utils.format_diff import format_diff_file

INTENT_TEMPERATURE = 0.3
INTENT_MAX_TOKENS = 4096

SYSTEM_PROMPT = """You are an experienced code reviewer analyzing a diff to understand its intent.

Your goal is to determine:
1. WHAT the change does (summary)
2. WHY it's being made (purpose)
3. What category it falls into (scope)
4. What parts of the codebase are affected

## Key Principles

- **Explain WHY, not just WHAT**: Don't just describe the changes - explain their purpose
- **Be specific and concrete**: "Adds rate limiting to /api/users" is better than "improves API"
- **Consider the reviewer**: What would help someone understand this change quickly?
- **Suggest reading order**: Which files should a reviewer look at first?

## When Stated Intent is Provided

If the author has provided their stated intent, use it as additional context:
- It may clarify ambiguous changes
- It may reveal the "why" behind the change
- But derive intent from the CODE, not just the stated intent
- The stated intent could be incomplete or misleading

## Scope Definitions

- **feature**: New functionality or capability
- **bugfix**: Fixing incorrect behavior
- **refactor**: Code restructuring without behavior change
- **config**: Build, tooling, CI/CD, or environment changes
- **docs**: Documentation updates only
- **test**: Test additions or modifications only
- **mixed**: Combines multiple categories (common in real changes)

## Context Limitations

You are analyzing a diff, not the complete codebase. This means:
- Imports may reference files that exist but aren't shown in the diff
- Functions may be defined in files you can't see
- Types may be declared elsewhere
- New files created in this change may appear as imports but not as full file contents

Focus on understanding the intent from what IS visible in the diff. Don't flag concerns about code you can't see - assume referenced files and symbols exist unless there's clear evidence otherwise."""

TASK_INSTRUCTIONS = """Analyze this diff and provide the intent analysis. Focus on WHY, not just WHAT.

REQUIRED OUTPUT FIELDS (all are mandatory):
- summary: string - 1-2 sentence summary of what the change does
- purpose: string - the WHY behind this change
- scope: "feature" | "bugfix" | "refactor" | "config" | "docs" | "test" | "mixed"
- affectedAreas: string[] - high-level areas of the codebase touched

OPTIONAL FIELDS:
- suggestedReviewOrder: string[] - suggested order to review files"""


def build_intent_prompt(
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
        f"Files included for analysis: {len(relevant)}",
    ]
    if tier3_count > 0:
        sections.append(f"({tier3_count} files excluded: lock files, generated code, binaries)")
    sections.append("")

    if repository_context:
        sections.append(repository_context)
        sections.append("")

    sections.append("## Files Changed")
    sections.extend(f"- {cf.path} ({cf.file.status})" for cf in relevant)
    sections.append("")

    sections.append("## Diff Content")
    sections.append("")
    for cf in relevant:
        sections.append(format_diff_file(cf.file))
        sections.append("")

    if stated_intent:
        sections.extend(
            [
                "## Author's Stated Intent",
                "",
                stated_intent,
                "",
                "Use this as context for understanding the change, but derive intent from the actual code changes.",
                "",
            ]
        )

    sections.append("---")
    sections.append(TASK_INSTRUCTIONS)
    return "\n".join(sections)


def enrich_validation_error(
    error: AnalyzerValidationError, diff: ParsedDiff, classified: list[ClassifiedFile]
) -> AnalyzerValidationError:
    """Attach diff size to a validation failure so truncated replies are easier to diagnose"""
    analyzed = sum(1 for cf in classified if cf.tier <= 2)
    detail = (
        f"{error.detail}\n\nThis usually means the LLM response was missing required fields. "
        f"Check that the diff wasn't too large ({len(diff.files)} files, {analyzed} analyzed)."
    )
    return AnalyzerValidationError(error.schema_name, detail)


async def derive_intent(
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    analyzer: Analyzer,
    stated_intent: str | None = None,
    repository_context: str | None = None,
) -> DerivedIntent:
    """Derive summary, purpose, scope and affected areas for a diff"""
    user_prompt = build_intent_prompt(diff, classified, stated_intent, repository_context)
    result = await request_structured(
        analyzer,
        SYSTEM_PROMPT,
        user_prompt,
        DerivedIntent,
        temperature=INTENT_TEMPERATURE,
        max_tokens=INTENT_MAX_TOKENS,
    )
    try:
        return result.unwrap()
    except AnalyzerValidationError as e:
        raise enrich_validation_error(e, diff, classified) from e

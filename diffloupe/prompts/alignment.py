"""Intent Alignment - compare what the author says against what the diff does"""

from __future__ import annotations

from diffloupe.models.analysis import DerivedIntent, IntentAlignment
from diffloupe.models.diff import ParsedDiff
from diffloupe.models.loader import ClassifiedFile
from diffloupe.services.analyzer import Analyzer, request_structured
from diffloupe.utils.format_diff import format_diff_file

ALIGNMENT_TEMPERATURE = 0.3
ALIGNMENT_MAX_TOKENS = 4096

SYSTEM_PROMPT = """You are comparing what an author claims their code change does (stated intent) against what it actually does (derived intent).

Your goal is to identify:
1. Do the stated and derived intents align?
2. What matches between claimed and actual behavior?
3. What mismatches - where the code does something different than stated?
4. What's missing - stated but not implemented?
5. What's unstated - implemented but not mentioned (scope creep)?

## Alignment Levels

- **aligned**: The code does what the author says, with no significant extra or missing pieces.
  Use this when the stated intent accurately describes the changes.

- **partial**: Some aspects match, but there are notable gaps or additions.
  Use when: core intent is correct but scope differs, or some stated items are missing.

- **misaligned**: The code does something substantially different than claimed.
  Use when: stated intent is misleading, or changes don't match the stated goal.

## Calibration Guidelines

- Be generous with "aligned" - minor wording differences don't matter
- "partial" is common - real changes often include cleanup/related fixes not mentioned
- "misaligned" should be rare - only when there's genuine mismatch of stated vs actual
- Vague stated intent ("misc fixes", "updates") should get medium/low confidence
- If stated intent is just a feature name with no details, focus on whether the feature exists

## Evidence Requirements

For each item in matches/mismatches/missing/unstated, cite specific evidence:
- Good: "Added null check in UserService.ts:45 as stated"
- Good: "Error refactoring not mentioned but present in 3 files"
- Bad: "Some things match"
- Bad: "There might be missing features"

## Context Limitations

You are comparing stated intent against a diff, not the complete codebase. This means:
- New files created in this change may not appear in the diff hunks
- Imports may reference files that exist but aren't shown
- If an import references a file that isn't visible, assume it likely exists

Don't flag "missing implementation" if the code imports from a file you can't see - it's probably implemented there. Focus on alignment issues evident from what IS visible.

## Output Quality

- Keep summary to 1-2 sentences - the key finding
- Order matches/mismatches/missing/unstated by importance
- Empty arrays are fine - not every analysis will have all categories
- Set confidence based on how clear the comparison is"""


def build_alignment_prompt(
    stated_intent: str,
    derived_intent: DerivedIntent,
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    repository_context: str | None = None,
) -> str:
    sections = [
        "## Author's Stated Intent",
        "",
        stated_intent,
        "",
        "## Derived Intent (from diff analysis)",
        "",
        f"**Summary:** {derived_intent.summary}",
        f"**Purpose:** {derived_intent.purpose}",
        f"**Scope:** {derived_intent.scope}",
        f"**Affected Areas:** {', '.join(derived_intent.affected_areas)}",
        "",
    ]

    if repository_context:
        sections.append(repository_context)
        sections.append("")

    sections.append("## Diff Content (for evidence)")
    sections.append("")
    for cf in classified:
        if cf.tier <= 2:
            sections.append(format_diff_file(cf.file))
            sections.append("")

    sections.append("---")
    sections.append("")
    sections.append(
        "Compare the stated intent against the derived intent and the actual diff.\n\n"
        "For each finding, cite specific evidence from the diff.\n\n"
        "If the stated intent is vague, note that in the summary and set confidence accordingly."
    )
    return "\n".join(sections)


async def align_intent(
    stated_intent: str,
    derived_intent: DerivedIntent,
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    analyzer: Analyzer,
    repository_context: str | None = None,
) -> IntentAlignment:
    user_prompt = build_alignment_prompt(stated_intent, derived_intent, diff, classified, repository_context)
    result = await request_structured(
        analyzer,
        SYSTEM_PROMPT,
        user_prompt,
        IntentAlignment,
        temperature=ALIGNMENT_TEMPERATURE,
        max_tokens=ALIGNMENT_MAX_TOKENS,
    )
    return result.unwrap()

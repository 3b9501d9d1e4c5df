"""Risk Assessment - ask the analyzer for concrete, evidence-backed risks"""

from __future__ import annotations

from diffloupe.models.analysis import RiskAssessment
from diffloupe.models.diff import ParsedDiff
from diffloupe.models.llm import AnalyzerValidationError
from diffloupe.models.loader import ClassifiedFile
from diffloupe.prompts.intent import enrich_validation_error
from diffloupe.services.analyzer import Analyzer, request_structured
from diffloupe.utils.format_diff import format_diff_file

RISK_TEMPERATURE = 0.4
RISK_MAX_TOKENS = 4096

SYSTEM_PROMPT = """You are a security-minded senior code reviewer analyzing a diff for potential risks.

Your goal is to identify concrete risks in this change - things that could go wrong in production, security vulnerabilities, breaking changes, or issues that could cause problems for users or the codebase.

## Key Principles

- **Cite specific evidence**: Every risk MUST reference specific code from the diff. "Line 45 removes the null check before calling .toLowerCase()" is good. "Error handling could be better" is useless.

- **Don't cry wolf**: Not every change is risky. If the code looks fine, say so. Flagging non-issues creates alert fatigue and makes real issues harder to spot.

- **Be calibrated on severity**:
  - **critical**: Must fix before merge. Security vulnerabilities, data loss, auth bypass.
    Example: "Removed password hashing - passwords will be stored in plaintext"
  - **high**: Likely to cause production issues if not addressed.
    Example: "Missing null check will throw NPE when optional field is absent"
  - **medium**: Should be reviewed carefully, may need changes.
    Example: "API response format changed - clients may need updates"
  - **low**: Worth noting but unlikely to cause problems.
    Example: "New dependency added - should verify it's actively maintained"

- **Consider the full picture**: Think about:
  - Breaking changes (API signatures, removed exports, changed behavior)
  - Security (auth, input validation, secrets, injection)
  - Error handling (uncaught exceptions, missing error paths)
  - Performance (N+1 queries, unbounded loops, missing pagination)
  - Backwards compatibility (migrations, protocol changes)
  - Test coverage (removed tests, untested paths)

## Risk Categories

Use these categories for consistency:
- security: Auth, secrets, injection, validation
- breaking-change: API changes, removed exports, changed contracts
- performance: N+1, unbounded operations, missing indexes
- error-handling: Missing catches, unhandled cases, error propagation
- backwards-compatibility: Migrations, protocol changes, data format changes
- test-coverage: Removed tests, untested risky paths
- data-integrity: Race conditions, partial updates, validation gaps
- maintainability: Complexity, coupling, undocumented behavior (use sparingly)

## Output Quality

- Order risks by severity (critical first)
- Keep descriptions concise but specific
- If a risk has a clear mitigation, include it
- If you're uncertain, reflect that in confidence level"""

TASK_INSTRUCTIONS = """Analyze this diff for potential risks.

Requirements:
1. For each risk, cite SPECIFIC evidence from the diff (file, line, code snippet)
2. Only flag issues that have concrete evidence - no generic warnings
3. If the change looks safe, it's okay to return an empty risks array
4. Order risks by severity (critical/high first)
5. Set confidence based on how much context you have"""


def build_risk_prompt(
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    stated_intent: str | None = None,
    repository_context: str | None = None,
) -> str:
    relevant = [cf for cf in classified if cf.tier <= 2]
    tier3 = [cf for cf in classified if cf.tier == 3]

    sections = [
        "## Diff Overview",
        f"Total files changed: {len(diff.files)}",
        f"Files included for analysis: {len(relevant)}",
    ]
    if tier3:
        sections.append(f"({len(tier3)} files excluded from analysis: lock files, generated code, binaries)")
        # Matters for test-coverage calibration
        excluded_tests = [cf for cf in tier3 if ".test." in cf.path or ".spec." in cf.path]
        if excluded_tests:
            sections.append(f"Note: {len(excluded_tests)} test file(s) were in excluded category")
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
        sections.extend(["## Author's Stated Intent", "", stated_intent, ""])

    sections.append("---")
    sections.append(TASK_INSTRUCTIONS)
    return "\n".join(sections)


async def assess_risks(
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    analyzer: Analyzer,
    stated_intent: str | None = None,
    repository_context: str | None = None,
) -> RiskAssessment:
    user_prompt = build_risk_prompt(diff, classified, stated_intent, repository_context)
    result = await request_structured(
        analyzer,
        SYSTEM_PROMPT,
        user_prompt,
        RiskAssessment,
        temperature=RISK_TEMPERATURE,
        max_tokens=RISK_MAX_TOKENS,
    )
    try:
        return result.unwrap()
    except AnalyzerValidationError as e:
        raise enrich_validation_error(e, diff, classified) from e

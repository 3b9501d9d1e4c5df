"""
Flow Detection - group a large diff's files into named logical flows

The analyzer proposes the grouping; this module enforces the invariants it
may violate: every claimed path must be a tier 1/2 file of this diff, and
no path may sit in more than one flow.
"""

from __future__ import annotations

import logging
import math

from diffloupe.models.decomposition import DetectedFlow, FlowDetectionResponse, FlowDetectionResult
from diffloupe.models.diff import DiffFile, ParsedDiff
from diffloupe.models.loader import ClassifiedFile
from diffloupe.services.analyzer import Analyzer, request_structured

logger = logging.getLogger(__name__)

HINT_LINES_PER_FILE = 8
MIN_PRIORITY = 1
MAX_PRIORITY = 10

FLOW_DETECTION_TEMPERATURE = 0.3
FLOW_DETECTION_MAX_TOKENS = 4096

FLOW_DETECTION_SYSTEM_PROMPT = """You are an expert code reviewer analyzing a large diff to identify logical "flows" or concerns.

Your task is to GROUP the changed files into logical flows. A flow is a cohesive unit of related changes that serve a common purpose.

## Guidelines

1. **Identify 3-8 flows** - Too few loses granularity, too many fragments the review
2. **Each file belongs to ONE flow** - No overlap. Assign to the PRIMARY concern.
3. **Name flows clearly** - Use names like "Authentication", "Data Layer", "API Routes", "UI Components", "Configuration", "Testing"
4. **Set priority based on risk/importance**:
   - Priority 1: Security, auth, data mutations
   - Priority 2: Core business logic, API changes
   - Priority 3: Supporting code, utilities
   - Priority 4: Tests, config, docs

## Common Flow Patterns

- **Authentication/Security**: Login, auth middleware, tokens, permissions
- **Data Layer**: Database, models, migrations, queries
- **API Layer**: Routes, controllers, handlers, middleware
- **UI Components**: React components, Vue components, templates
- **State Management**: Redux, MobX, stores, actions
- **Configuration**: Build config, env, CI/CD
- **Testing**: Test files, fixtures, mocks
- **Utilities**: Helpers, shared functions, types

## Edge Cases

- **Cross-cutting files** (e.g., types used everywhere): Assign to the flow they MOST support
- **Mixed-purpose files**: Assign to the HIGHER priority flow
- **Very small groups** (1-2 files): Consider merging with related flow or marking as uncategorized

## Output Quality

- Order flows by priority (1 first)
- Descriptions should be 1-2 sentences
- Don't create a flow for just 1 file unless it's critical"""


def get_file_hints(file: DiffFile, max_lines: int = HINT_LINES_PER_FILE) -> list[str]:
    """First `max_lines` changed lines of a file, with their +/- markers"""
    hints = []
    for hunk in file.hunks:
        for line in hunk.lines:
            if len(hints) >= max_lines:
                return hints
            if line.type == "add":
                hints.append(f"+{line.content}")
            elif line.type == "delete":
                hints.append(f"-{line.content}")
    return hints


def build_flow_detection_prompt(diff: ParsedDiff, classified: list[ClassifiedFile]) -> str:
    relevant = [cf for cf in classified if cf.tier <= 2]
    tier1_count = sum(1 for cf in relevant if cf.tier == 1)
    tier2_count = len(relevant) - tier1_count

    sections = [
        "## Diff Overview",
        f"Total files to group: {len(relevant)}",
        f"- Tier 1 (high priority): {tier1_count} files (source code, tests, critical config)",
        f"- Tier 2 (lower priority): {tier2_count} files (docs, other config, types)",
        "",
        "## Files to Group",
        "",
    ]

    for cf in relevant:
        file = cf.file
        added, deleted = file.added_lines, file.deleted_lines
        sections.append(f"### {file.path} ({file.status.upper()}) [+{added}/-{deleted}] [Tier {cf.tier}]")

        if file.is_binary:
            sections.append("[binary file]")
            sections.append("")
            continue

        hints = get_file_hints(file)
        if hints:
            sections.append("```")
            sections.extend(hints)
            if added + deleted > len(hints):
                sections.append(f"... ({added + deleted - len(hints)} more lines)")
            sections.append("```")
        sections.append("")

    sections.append("---")
    sections.append(
        f"""Group these {len(relevant)} files into logical flows.

REQUIREMENTS:
1. Create 3-8 flows (no more, no fewer unless diff is very small)
2. Every file must be assigned to exactly ONE flow
3. Set priority: 1 = most important to review, higher = less critical
4. If a file doesn't fit any flow well, you can leave it out (it will be uncategorized)

OUTPUT FORMAT:
{{
  "flows": [
    {{
      "name": "Flow Name",
      "description": "What this flow accomplishes",
      "files": ["path/to/file1.ts", "path/to/file2.ts"],
      "priority": 1
    }}
  ]
}}"""
    )
    return "\n".join(sections)


def clamp_priority(priority: float) -> int:
    # Half-up rounding; round() would send 2.5 to 2
    rounded = math.floor(priority + 0.5)
    return max(MIN_PRIORITY, min(MAX_PRIORITY, rounded))


def validate_flows(response: FlowDetectionResponse, classified: list[ClassifiedFile]) -> FlowDetectionResult:
    """
    Repair an analyzer grouping in place of rejecting it.

    Unknown and already-claimed paths are dropped, flows left empty are
    dropped, priorities are clamped and flows sorted by priority. Whatever
    no flow claimed becomes uncategorized, in classification order.
    """
    relevant = [cf for cf in classified if cf.tier <= 2]
    candidates = {cf.path for cf in relevant}
    assigned: set[str] = set()
    flows: list[DetectedFlow] = []

    for candidate in response.flows:
        valid_files = []
        for path in candidate.files:
            if path not in candidates or path in assigned:
                logger.debug("Dropping %r from flow %r (unknown or already assigned)", path, candidate.name)
                continue
            assigned.add(path)
            valid_files.append(path)

        if not valid_files:
            logger.debug("Dropping empty flow %r", candidate.name)
            continue

        flows.append(
            DetectedFlow(
                name=candidate.name,
                description=candidate.description,
                files=valid_files,
                priority=clamp_priority(candidate.priority),
            )
        )

    flows.sort(key=lambda flow: flow.priority)
    uncategorized = [cf.path for cf in relevant if cf.path not in assigned]
    return FlowDetectionResult(flows=flows, uncategorized=uncategorized)


async def detect_flows(
    diff: ParsedDiff, classified: list[ClassifiedFile], analyzer: Analyzer
) -> FlowDetectionResult:
    """Ask the analyzer for 3-8 flows and validate the answer"""
    user_prompt = build_flow_detection_prompt(diff, classified)
    result = await request_structured(
        analyzer,
        FLOW_DETECTION_SYSTEM_PROMPT,
        user_prompt,
        FlowDetectionResponse,
        temperature=FLOW_DETECTION_TEMPERATURE,
        max_tokens=FLOW_DETECTION_MAX_TOKENS,
    )
    detection = validate_flows(result.unwrap(), classified)
    logger.info(
        "Detected %d flow(s), %d uncategorized file(s)", len(detection.flows), len(detection.uncategorized)
    )
    return detection


# ========== Helpers ==========


def get_files_for_flow(flow: DetectedFlow, classified: list[ClassifiedFile]) -> list[ClassifiedFile]:
    paths = set(flow.files)
    return [cf for cf in classified if cf.path in paths]


def get_uncategorized_files(uncategorized: list[str], classified: list[ClassifiedFile]) -> list[ClassifiedFile]:
    paths = set(uncategorized)
    return [cf for cf in classified if cf.path in paths]


def estimate_flow_tokens(flow: DetectedFlow, classified: list[ClassifiedFile]) -> int:
    return sum(cf.estimated_tokens for cf in get_files_for_flow(flow, classified))

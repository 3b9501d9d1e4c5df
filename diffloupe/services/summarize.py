"""Token preview of a diff: what would be sent, and what summarization saves"""

from __future__ import annotations

from diffloupe.models.api import SummarizeFileEntry, SummarizeResponse, SummarizeTotals
from diffloupe.models.diff import DiffFile
from diffloupe.models.loader import ClassifiedFile
from diffloupe.services.deleted_file_summary import should_summarize_deleted_file
from diffloupe.services.diff_loader import analyzable_files, classify_diff, count_tiers
from diffloupe.services.diff_parser import parse_diff
from diffloupe.utils.format_diff import format_diff_file
from diffloupe.utils.token_estimate import estimate_diff_tokens


def count_lines(file: DiffFile) -> int:
    """Deleted files report their deleted lines, everything else adds + deletes"""
    if file.status == "deleted":
        return file.deleted_lines
    return file.added_lines + file.deleted_lines


def format_diff_content(classified: list[ClassifiedFile]) -> str:
    """Prompt-ready rendering of every tier 1/2 file"""
    lines = []
    for cf in analyzable_files(classified):
        lines.append(format_diff_file(cf.file))
        lines.append("")
    return "\n".join(lines)


def summarize_diff(raw_diff: str, include_content: bool = True) -> SummarizeResponse:
    classified = classify_diff(parse_diff(raw_diff))
    # Tier 3 files are never sent, so they carry no token cost
    estimates = estimate_diff_tokens([cf.file for cf in analyzable_files(classified)])
    by_path = {entry.path: entry.estimate for entry in estimates.files}

    files = []
    for cf in classified:
        estimate = by_path.get(cf.path)
        files.append(
            SummarizeFileEntry(
                path=cf.path,
                status=cf.file.status,
                tier=cf.tier,
                reason=cf.reason,
                lines=count_lines(cf.file),
                summarized=should_summarize_deleted_file(cf.file),
                original_tokens=estimate.original if estimate else 0,
                summarized_tokens=estimate.with_summarization if estimate else 0,
            )
        )

    tiers = count_tiers(classified)
    totals = estimates.totals
    return SummarizeResponse(
        files=files,
        totals=SummarizeTotals(
            files=len(classified),
            tier1=tiers[1],
            tier2=tiers[2],
            excluded=tiers[3],
            original_tokens=totals.original,
            summarized_tokens=totals.with_summarization,
            savings=totals.savings,
            savings_percent=totals.savings_percent,
        ),
        content=format_diff_content(classified) if include_content else None,
    )

"""
Token Estimation - chars/4 heuristic shared by every budget decision

Crude on purpose: absolute numbers are approximate, but applying the same
rule everywhere keeps classification, budget selection and strategy
selection comparable with each other.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from diffloupe.models.diff import DiffFile, DiffHunk
from diffloupe.models.loader import (
    DiffTokenEstimate,
    FileTokenEntry,
    FileTokenEstimate,
    TokenTotals,
)
from diffloupe.services.deleted_file_summary import (
    format_deleted_file_summary,
    should_summarize_deleted_file,
    summarize_deleted_file,
)

CHARS_PER_TOKEN = 4

# Stripped +/-/space marker plus the newline
LINE_OVERHEAD_CHARS = 2


def estimate_tokens(text: str) -> int:
    """Estimate token count for a string"""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_hunk_tokens(hunks: Iterable[DiffHunk]) -> int:
    """Estimate the prompt cost of a file's hunks, headers included"""
    total_chars = 0
    for hunk in hunks:
        total_chars += len(hunk.header)
        for line in hunk.lines:
            total_chars += len(line.content) + LINE_OVERHEAD_CHARS
    return math.ceil(total_chars / CHARS_PER_TOKEN)


def estimate_file_tokens(file: DiffFile) -> FileTokenEstimate:
    """Estimate tokens for one file, with and without deleted-file summarization"""
    full_content = "\n".join(line.content for hunk in file.hunks for line in hunk.lines)
    original = estimate_tokens(full_content)

    if should_summarize_deleted_file(file):
        summary = summarize_deleted_file(file)
        summarized = estimate_tokens(format_deleted_file_summary(file, summary))
        return FileTokenEstimate(original=original, with_summarization=summarized, summarized=True)

    return FileTokenEstimate(original=original, with_summarization=original, summarized=False)


def estimate_diff_tokens(files: Iterable[DiffFile]) -> DiffTokenEstimate:
    """Per-file estimates plus totals and summarization savings"""
    entries = [FileTokenEntry(path=file.path, estimate=estimate_file_tokens(file)) for file in files]

    original = sum(entry.estimate.original for entry in entries)
    with_summarization = sum(entry.estimate.with_summarization for entry in entries)
    savings = original - with_summarization
    savings_percent = round(savings / original * 100) if original > 0 else 0

    return DiffTokenEstimate(
        files=entries,
        totals=TokenTotals(
            original=original,
            with_summarization=with_summarization,
            savings=savings,
            savings_percent=savings_percent,
        ),
    )

"""Render diff files and hunks as prompt text"""

from __future__ import annotations

from diffloupe.models.diff import DiffFile, DiffHunk
from diffloupe.services.deleted_file_summary import (
    format_deleted_file_summary,
    should_summarize_deleted_file,
    summarize_deleted_file,
)

_PREFIX = {"add": "+", "delete": "-", "context": " "}


def format_hunk(hunk: DiffHunk) -> str:
    """Header line followed by every line in standard +/-/space form"""
    lines = [hunk.header]
    lines.extend(f"{_PREFIX[line.type]}{line.content}" for line in hunk.lines)
    return "\n".join(lines)


def format_file_header(file: DiffFile) -> str:
    status = file.status.upper()
    if file.status == "renamed" and file.old_path:
        return f"=== {file.old_path} → {file.path} ({status}) ==="
    return f"=== {file.path} ({status}) ==="


def format_diff_file(file: DiffFile) -> str:
    """
    Format a single diff file for a prompt.

    Large deleted files are replaced by their header + signature summary.
    """
    if should_summarize_deleted_file(file):
        return format_deleted_file_summary(file, summarize_deleted_file(file))

    lines = [format_file_header(file)]
    if file.is_binary:
        lines.append("[binary file]")
        return "\n".join(lines)

    lines.extend(format_hunk(hunk) for hunk in file.hunks)
    return "\n".join(lines)

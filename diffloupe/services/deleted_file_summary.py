"""
Deleted File Summarization

A large deleted file is mostly noise in a prompt: what matters is that it
went away and what it used to declare. Files with more than
SUMMARY_THRESHOLD_LINES deleted lines are collapsed into their first
HEADER_LINE_COUNT lines plus regex-extracted signatures.
"""

from __future__ import annotations

import re

from diffloupe.models.diff import DiffFile
from diffloupe.models.loader import DeletedFileSummary
from diffloupe.utils.paths import get_extension

SUMMARY_THRESHOLD_LINES = 100
HEADER_LINE_COUNT = 15

SCRIPT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")

_SCRIPT_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+(\w+)", re.M), "class {}"),
    (re.compile(r"^(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s+(\w+)", re.M), "function {}()"),
    (re.compile(r"^export\s+const\s+(\w+)\s*=", re.M), "const {}"),
    (re.compile(r"^(?:export\s+)?interface\s+(\w+)", re.M), "interface {}"),
    (re.compile(r"^(?:export\s+)?type\s+(\w+)\s*=", re.M), "type {}"),
]
_NAMED_EXPORT = re.compile(r"^export\s+\{([^}]+)\}", re.M)
_EXPORT_ALIAS = re.compile(r"\s+as\s+")

_PYTHON_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^class\s+(\w+)", re.M), "class {}"),
    (re.compile(r"^(?:async\s+)?def\s+(\w+)", re.M), "def {}()"),
]

LANGUAGE_HINTS = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".rb": "ruby",
    ".css": "css",
    ".scss": "scss",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".md": "markdown",
}


def should_summarize_deleted_file(file: DiffFile) -> bool:
    """True for deleted files with more than SUMMARY_THRESHOLD_LINES removed lines"""
    if file.status != "deleted":
        return False
    return file.deleted_lines > SUMMARY_THRESHOLD_LINES


def _scan(content: str, patterns: list[tuple[re.Pattern[str], str]]) -> list[str]:
    signatures = []
    for pattern, template in patterns:
        signatures.extend(template.format(match.group(1)) for match in pattern.finditer(content))
    return signatures


def extract_signatures(content: str, ext: str) -> list[str]:
    """
    Pull declaration names out of file content with per-language regexes.

    Groups come out in pattern order, each group in text order. Named
    export blocks keep the original (pre-`as`) binding names.
    Unknown extensions yield an empty list.
    """
    if ext in SCRIPT_EXTENSIONS:
        signatures = _scan(content, _SCRIPT_PATTERNS)
        for match in _NAMED_EXPORT.finditer(content):
            names = [_EXPORT_ALIAS.split(part.strip())[0].strip() for part in match.group(1).split(",")]
            names = [name for name in names if name]
            if names:
                signatures.append(f"export {{ {', '.join(names)} }}")
        return signatures

    if ext == ".py":
        return _scan(content, _PYTHON_PATTERNS)

    return []


def summarize_deleted_file(file: DiffFile) -> DeletedFileSummary:
    deleted = [line.content for hunk in file.hunks for line in hunk.lines if line.type == "delete"]
    return DeletedFileSummary(
        header_lines=deleted[:HEADER_LINE_COUNT],
        signatures=extract_signatures("\n".join(deleted), get_extension(file.path)),
        total_lines=len(deleted),
    )


def format_deleted_file_summary(file: DiffFile, summary: DeletedFileSummary) -> str:
    hint = LANGUAGE_HINTS.get(get_extension(file.path), "")
    lines = [
        f"DELETED FILE: {file.path} ({summary.total_lines} lines)",
        "",
        f"First {len(summary.header_lines)} lines (header/imports):",
        "```" + hint,
        *summary.header_lines,
        "```",
    ]

    if summary.signatures:
        lines.append("")
        lines.append("Extracted signatures:")
        lines.extend(f"- {sig}" for sig in summary.signatures)

    return "\n".join(lines)

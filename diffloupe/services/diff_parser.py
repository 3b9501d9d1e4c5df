"""
Diff Parser Service - Turn raw unified diff text into structured files/hunks/lines
"""

from __future__ import annotations

import re

from diffloupe.models.diff import DiffFile, DiffFileStatus, DiffHunk, DiffLine, ParsedDiff

GIT_DIFF_LINE = re.compile(r"^diff --git a/(.+) b/(.+)$")
HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

# Lines that can only appear in a file header; seeing one inside a hunk
# means the hunk ended without proper termination.
_HEADER_PREFIXES = ("index ", "--- ", "+++ ", "new file", "deleted file")


class DiffParseError(ValueError):
    """Raised for a malformed hunk header or an unusable diff --git line"""


def parse_diff(raw_diff: str) -> ParsedDiff:
    """Parse a raw unified diff string into structured data"""
    if not raw_diff or not raw_diff.strip():
        return ParsedDiff(files=[])

    lines = raw_diff.split("\n")
    files: list[DiffFile] = []

    i = 0
    while i < len(lines):
        if lines[i].startswith("diff --git "):
            file, i = _parse_file(lines, i)
            files.append(file)
        else:
            i += 1

    return ParsedDiff(files=files)


def parse_git_diff_line(line: str) -> tuple[str, str | None]:
    """Extract (path, old_path) from a `diff --git a/x b/y` line.

    old_path is only returned when it differs from path.
    """
    match = GIT_DIFF_LINE.match(line)
    if match:
        old_path, new_path = match.group(1), match.group(2)
        return new_path, old_path if old_path != new_path else None

    # Fallback for paths the regex can't handle (quoted paths etc.)
    content = line[len("diff --git "):]
    parts = content.split(" b/")
    if len(parts) > 1 and parts[0] and parts[1]:
        first, second = parts[0], parts[1]
        old_path = first[2:] if first.startswith("a/") else first
        return second, old_path if old_path != second else None

    if not content.strip():
        raise DiffParseError(f"No path found in diff header: {line!r}")

    # Last resort: take what we can get
    return content, None


def _parse_file(lines: list[str], start: int) -> tuple[DiffFile, int]:
    path, git_old_path = parse_git_diff_line(lines[start])
    i = start + 1

    old_path: str | None = None
    status: DiffFileStatus = "modified"
    is_binary = False
    hunks: list[DiffHunk] = []

    while i < len(lines):
        line = lines[i]
        if not line or line.startswith("diff --git "):
            break

        if line.startswith("new file mode"):
            status = "added"
        elif line.startswith("deleted file mode"):
            status = "deleted"
        elif line.startswith("rename from "):
            old_path = line[len("rename from "):]
            status = "renamed"
        elif line.startswith("rename to ") or line.startswith("similarity index "):
            pass
        elif line.startswith("Binary files ") or line == "GIT binary patch":
            is_binary = True
            i += 1
            while i < len(lines) and not lines[i].startswith("diff --git "):
                i += 1
            break
        elif line.startswith("@@"):
            hunk, i = _parse_hunk(lines, i)
            hunks.append(hunk)
            continue
        # index, ---, +++ and anything else in the header are skipped
        i += 1

    # Rename seen only through differing a/ and b/ paths
    if old_path is None and git_old_path is not None and git_old_path != path:
        old_path = git_old_path
        if status == "modified":
            status = "renamed"

    file = DiffFile(
        path=path,
        old_path=old_path,
        status=status,
        is_binary=is_binary,
        hunks=[] if is_binary else hunks,
    )
    return file, i


def _parse_hunk(lines: list[str], start: int) -> tuple[DiffHunk, int]:
    header = lines[start]
    match = HUNK_HEADER.match(header)
    if not match:
        raise DiffParseError(f"Invalid hunk header: {header}")

    old_start = int(match.group(1))
    old_lines = int(match.group(2)) if match.group(2) is not None else 1
    new_start = int(match.group(3))
    new_lines = int(match.group(4)) if match.group(4) is not None else 1

    hunk_lines: list[DiffLine] = []
    current_old = old_start
    current_new = new_start
    last_index = len(lines) - 1

    i = start + 1
    while i < len(lines):
        line = lines[i]

        if line.startswith("diff --git ") or line.startswith("@@"):
            break

        # "\ No newline at end of file"
        if line.startswith("\\"):
            i += 1
            continue

        # Trailing newline of the whole input, not an empty context line
        if line == "" and i == last_index:
            break

        marker = line[:1]
        content = line[1:]

        if marker == "+":
            hunk_lines.append(DiffLine(type="add", content=content, new_line_number=current_new))
            current_new += 1
        elif marker == "-":
            hunk_lines.append(DiffLine(type="delete", content=content, old_line_number=current_old))
            current_old += 1
        else:
            if marker != " " and line != "" and line.startswith(_HEADER_PREFIXES):
                break
            hunk_lines.append(
                DiffLine(
                    type="context",
                    content=content,
                    old_line_number=current_old,
                    new_line_number=current_new,
                )
            )
            current_old += 1
            current_new += 1

        i += 1

    hunk = DiffHunk(
        old_start=old_start,
        old_lines=old_lines,
        new_start=new_start,
        new_lines=new_lines,
        header=header,
        lines=hunk_lines,
    )
    return hunk, i

"""Diff-related data models"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

DiffFileStatus = Literal["added", "modified", "deleted", "renamed"]
DiffLineType = Literal["context", "add", "delete"]


class DiffLine(BaseModel):
    """A single line inside a hunk"""

    model_config = ConfigDict(frozen=True)

    type: DiffLineType
    content: str  # without the leading +/-/space marker
    old_line_number: int | None = None  # None for added lines
    new_line_number: int | None = None  # None for deleted lines


class DiffHunk(BaseModel):
    """A contiguous block of changes"""

    model_config = ConfigDict(frozen=True)

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    header: str  # raw @@ line, including trailing function context
    lines: list[DiffLine] = []


class DiffFile(BaseModel):
    """One file's changes"""

    model_config = ConfigDict(frozen=True)

    path: str
    old_path: str | None = None  # only set for renames
    status: DiffFileStatus = "modified"
    is_binary: bool = False
    hunks: list[DiffHunk] = []

    def count_lines(self, line_type: DiffLineType) -> int:
        """Count lines of the given type across all hunks"""
        return sum(1 for hunk in self.hunks for line in hunk.lines if line.type == line_type)

    @property
    def added_lines(self) -> int:
        return self.count_lines("add")

    @property
    def deleted_lines(self) -> int:
        return self.count_lines("delete")


class ParsedDiff(BaseModel):
    """The result of parsing a diff, files in original order"""

    model_config = ConfigDict(frozen=True)

    files: list[DiffFile] = []

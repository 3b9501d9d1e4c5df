"""Tests for deleted-file summarization."""

from diffloupe.models.diff import DiffFile, DiffHunk, DiffLine
from diffloupe.services.deleted_file_summary import (
    HEADER_LINE_COUNT,
    extract_signatures,
    format_deleted_file_summary,
    should_summarize_deleted_file,
    summarize_deleted_file,
)


def _deleted_file(path: str, contents: list[str], status: str = "deleted") -> DiffFile:
    hunk = DiffHunk(
        old_start=1,
        old_lines=len(contents),
        new_start=0,
        new_lines=0,
        header=f"@@ -1,{len(contents)} +0,0 @@",
        lines=[DiffLine(type="delete", content=c, old_line_number=i + 1) for i, c in enumerate(contents)],
    )
    return DiffFile(path=path, status=status, hunks=[hunk])


def test_threshold_is_strictly_greater_than_100():
    """Exactly 100 deleted lines stays verbatim, 101 is summarized."""
    assert not should_summarize_deleted_file(_deleted_file("a.py", ["x"] * 100))
    assert should_summarize_deleted_file(_deleted_file("a.py", ["x"] * 101))


def test_only_deleted_status_is_summarized():
    """Large modifications are never summarized."""
    assert not should_summarize_deleted_file(_deleted_file("a.py", ["x"] * 500, status="modified"))


def test_typescript_signatures_in_pattern_order():
    """Each pattern group comes out in text order, groups in pattern order."""
    content = "\n".join(
        [
            "export const baz = 1",
            "export class Foo {",
            "}",
            "export async function bar() {}",
            "interface Qux {}",
            "export type Id = string",
            "export { alpha as beta, gamma }",
        ]
    )
    assert extract_signatures(content, ".ts") == [
        "class Foo",
        "function bar()",
        "const baz",
        "interface Qux",
        "type Id",
        "export { alpha, gamma }",
    ]


def test_python_signatures():
    """Top-level classes and functions, async included."""
    content = "class Store:\n    def method(self):\n        pass\ndef helper():\n    pass\nasync def fetch():\n    pass"
    assert extract_signatures(content, ".py") == ["class Store", "def helper()", "def fetch()"]


def test_unknown_extension_has_no_signatures():
    assert extract_signatures("fn main() {}", ".rs") == []


def test_summary_keeps_header_and_total():
    """The first lines are kept verbatim and the total counts every deletion."""
    contents = ["import os"] + [f"x{n} = {n}" for n in range(119)] + ["def last():"]
    file = _deleted_file("pkg/module.py", contents)
    summary = summarize_deleted_file(file)

    assert summary.total_lines == 121
    assert len(summary.header_lines) == HEADER_LINE_COUNT
    assert summary.header_lines[0] == "import os"
    assert summary.signatures == ["def last()"]

    text = format_deleted_file_summary(file, summary)
    assert text.startswith("DELETED FILE: pkg/module.py (121 lines)")
    assert "```python" in text
    assert "- def last()" in text


def test_trailing_dot_path_has_no_language():
    """A name ending in a dot has no extension, so no hint and no signatures."""
    contents = ["def looks_like_python():"] + [f"v{n} = {n}" for n in range(120)]
    file = _deleted_file("scripts/run.", contents)
    summary = summarize_deleted_file(file)

    assert summary.signatures == []
    text = format_deleted_file_summary(file, summary)
    assert "\n```\ndef looks_like_python():" in text
    assert "```python" not in text


def test_extension_lookup_is_case_insensitive():
    """Upper-case extensions still pick the language."""
    file = _deleted_file("pkg/Legacy.PY", ["def old():"] + ["pass"] * 120)
    summary = summarize_deleted_file(file)

    assert summary.signatures == ["def old()"]
    assert "```python" in format_deleted_file_summary(file, summary)

"""Tests for the token preview."""

from diffloupe.services.summarize import summarize_diff

from conftest import file_diff, join_diff


def test_summarize_reports_tiers_and_tokens(simple_diff):
    result = summarize_diff(simple_diff)

    assert [f.path for f in result.files] == ["src/auth.py", "README.md", "package-lock.json"]
    lock = result.files[2]
    assert lock.tier == 3
    assert lock.reason == "lock file"
    assert lock.original_tokens == 0

    totals = result.totals
    assert (totals.files, totals.tier1, totals.tier2, totals.excluded) == (3, 1, 1, 1)
    assert totals.original_tokens == sum(f.original_tokens for f in result.files)
    assert totals.savings == 0
    assert "=== src/auth.py (MODIFIED) ===" in result.content
    assert "package-lock.json" not in result.content


def test_summarize_large_deletion():
    deleted = [f"value_{n} = compute({n}, 'some padding text here')" for n in range(120)]
    result = summarize_diff(join_diff(file_diff("old/legacy.py", deleted=deleted, status="deleted")))

    entry = result.files[0]
    assert entry.summarized
    assert entry.lines == 120
    assert entry.summarized_tokens < entry.original_tokens
    assert result.totals.savings_percent > 0
    assert "DELETED FILE: old/legacy.py (120 lines)" in result.content


def test_summarize_without_content(simple_diff):
    assert summarize_diff(simple_diff, include_content=False).content is None

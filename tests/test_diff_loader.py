"""Tests for tier classification and budget selection."""

import math

import pytest

from diffloupe.models.diff import DiffFile, DiffHunk, DiffLine, ParsedDiff
from diffloupe.models.loader import ClassifiedFile
from diffloupe.services.diff_loader import (
    classify_diff,
    classify_file,
    count_tiers,
    is_test_file,
    load_for_budget,
)
from diffloupe.utils.paths import get_extension, get_filename, path_sort_key


def _file(path: str, **kwargs) -> DiffFile:
    return DiffFile(path=path, **kwargs)


@pytest.mark.parametrize(
    "path,tier,reason",
    [
        ("src/auth.py", 1, "source code"),
        ("src/utils.test.ts", 1, "test file"),
        ("tests/test_auth.py", 1, "test file"),
        ("package.json", 1, "behavior config"),
        ("services/api/Dockerfile", 1, "behavior config"),
        ("types/index.d.ts", 2, "type definition"),
        ("README.md", 2, "documentation"),
        ("config/settings.yaml", 2, "config file"),
        (".github/workflows/ci.yml", 2, "CI/CD config"),
        ("LICENSE", 2, "other"),
        ("yarn.lock", 3, "lock file"),
        ("frontend/package-lock.json", 3, "lock file"),
        ("dist/app.js", 3, "generated/dist directory"),
        ("web/node_modules/pkg/index.js", 3, "generated/dist directory"),
        ("static/app.min.js", 3, "minified/bundled file"),
        ("assets/main.3f2a9b1c.js", 3, "minified/bundled file"),
    ],
)
def test_classify_file_rules(path, tier, reason):
    """First matching rule decides tier and reason."""
    assert tuple(classify_file(_file(path))) == (tier, reason)


def test_binary_wins_over_extension():
    """Binary files are tier 3 whatever their name."""
    assert classify_file(_file("src/app.py", is_binary=True)) == (3, "binary file")


def test_test_file_detection():
    """Test markers are recognized in names and directories."""
    assert is_test_file("pkg/handler_test.go")
    assert is_test_file("src/__tests__/button.tsx")
    assert is_test_file("test_models.py")
    assert not is_test_file("src/contest.py")


def test_get_extension_edge_cases():
    """No dot and a trailing dot both mean no extension."""
    assert get_extension("Makefile") == ""
    assert get_extension("file.") == ""
    assert get_extension("Archive.TAR.GZ") == ".gz"


def test_get_filename_handles_both_separators():
    """Last path segment wins for forward and back slashes."""
    assert get_filename("src/pkg/mod.py") == "mod.py"
    assert get_filename("src\\win\\App.cs") == "App.cs"
    assert get_filename("README") == "README"


def test_path_collation_matches_locale_order():
    """Punctuation sorts before the dot, lowercase before uppercase."""
    paths = ["src/B.py", "src/a.py", "src/A.py", "src/a-b.py", "src/b.py", "src/a_b.py"]

    assert sorted(paths, key=path_sort_key) == [
        "src/a_b.py",
        "src/a-b.py",
        "src/a.py",
        "src/A.py",
        "src/b.py",
        "src/B.py",
    ]


def test_classify_diff_uses_collation_within_tier():
    """Same-tier files come out in locale order, not code-point order."""
    diff = ParsedDiff(files=[_file(p) for p in ("src/B.py", "src/a.py", "src/A.py", "src/a-b.py", "src/a_b.py")])

    assert [cf.path for cf in classify_diff(diff)] == [
        "src/a_b.py",
        "src/a-b.py",
        "src/a.py",
        "src/A.py",
        "src/B.py",
    ]


def test_classify_diff_orders_by_tier_then_path():
    """Tier 1 first, paths in collation order within a tier."""
    diff = ParsedDiff(
        files=[
            _file("yarn.lock"),
            _file("README.md"),
            _file("src/b.py"),
            _file("src/A.py"),
        ]
    )
    classified = classify_diff(diff)

    assert [cf.path for cf in classified] == ["src/A.py", "src/b.py", "README.md", "yarn.lock"]
    assert count_tiers(classified) == {1: 2, 2: 1, 3: 1}


def test_classify_diff_estimates_tokens():
    """Token estimate counts the hunk header and every line."""
    hunk = DiffHunk(
        old_start=1,
        old_lines=0,
        new_start=1,
        new_lines=1,
        header="@@ -1,0 +1,1 @@",
        lines=[DiffLine(type="add", content="abc", new_line_number=1)],
    )
    classified = classify_diff(ParsedDiff(files=[_file("a.py", hunks=[hunk])]))

    # 15 header chars + 3 content + 2 overhead = 20 chars -> 5 tokens
    assert classified[0].estimated_tokens == 5


def _classified(path: str, tokens: int, tier: int = 1) -> ClassifiedFile:
    return ClassifiedFile(file=_file(path), tier=tier, reason="source code", estimated_tokens=tokens)


def test_load_for_budget_skips_oversized_and_continues():
    """A file that does not fit is skipped but smaller later files still go in."""
    classified = [_classified("a.py", 60), _classified("b.py", 50), _classified("c.py", 30)]
    result = load_for_budget(classified, 100)

    assert [cf.path for cf in result.included] == ["a.py", "c.py"]
    assert [cf.path for cf in result.excluded] == ["b.py"]
    assert result.total_tokens == 90


def test_load_for_budget_zero_includes_nothing():
    """Zero budget excludes everything, even free files."""
    classified = [_classified("a.py", 0), _classified("b.py", 10)]
    result = load_for_budget(classified, 0)

    assert result.included == []
    assert len(result.excluded) == 2
    assert result.total_tokens == 0


def test_load_for_budget_exact_fit():
    """The budget is inclusive."""
    result = load_for_budget([_classified("a.py", 100)], 100)
    assert len(result.included) == 1


def test_load_for_budget_unbounded_includes_everything():
    """An infinite budget takes every file in order."""
    classified = [_classified("a.py", 10_000), _classified("b.py", 0), _classified("yarn.lock", 500, tier=3)]
    result = load_for_budget(classified, math.inf)

    assert [cf.path for cf in result.included] == ["a.py", "b.py", "yarn.lock"]
    assert result.excluded == []
    assert result.total_tokens == 10_500

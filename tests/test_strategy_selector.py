"""Tests for strategy selection."""

import pytest

from diffloupe.models.decomposition import DiffMetrics
from diffloupe.services.decomposition.strategy_selector import calculate_diff_metrics, select_strategy
from diffloupe.services.diff_loader import classify_diff
from diffloupe.services.diff_parser import parse_diff


def _metrics(files: int, tokens: int) -> DiffMetrics:
    return DiffMetrics(file_count=files, total_lines=0, estimated_tokens=tokens, tier1_file_count=files)


@pytest.mark.parametrize(
    "files,tokens,strategy",
    [
        (1, 100, "direct"),
        (15, 1_000_000, "direct"),
        (200, 8000, "direct"),
        (16, 8001, "two-pass"),
        (40, 50_000, "two-pass"),
        (41, 50_000, "flow-based"),
        (80, 50_000, "flow-based"),
        (81, 50_000, "hierarchical"),
    ],
)
def test_thresholds_are_inclusive(files, tokens, strategy):
    """Each boundary value belongs to the smaller strategy."""
    assert select_strategy(_metrics(files, tokens)).strategy == strategy


def test_reasons_name_the_deciding_rule():
    """Reasons explain which threshold applied."""
    assert select_strategy(_metrics(15, 99_999)).reason == "Small diff (15 files ≤ 15)"
    assert select_strategy(_metrics(30, 8000)).reason == "Low token count (8000 ≤ 8000)"
    assert select_strategy(_metrics(20, 9000)).reason == "Medium diff (20 files, 16-40 range)"
    assert select_strategy(_metrics(50, 9000)).reason == "Large diff (50 files, 41-80 range)"
    assert select_strategy(_metrics(90, 9000)).reason == "Huge diff (90 files > 80)"


def test_selection_carries_metrics():
    metrics = _metrics(3, 10)
    assert select_strategy(metrics).metrics == metrics


def test_calculate_diff_metrics(simple_diff):
    """Changed lines count every tier, file counts come from classification."""
    diff = parse_diff(simple_diff)
    metrics = calculate_diff_metrics(diff, classify_diff(diff))

    assert metrics.file_count == 3
    assert metrics.tier1_file_count == 1
    assert metrics.total_lines == 5
    assert metrics.estimated_tokens > 0

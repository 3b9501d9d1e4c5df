"""
Strategy Selector - map diff size to a decomposition strategy

    files <= 15 or tokens <= 8000  -> direct
    files <= 40                    -> two-pass
    files <= 80                    -> flow-based
    otherwise                      -> hierarchical
"""

from __future__ import annotations

import logging

from diffloupe.models.decomposition import DiffMetrics, StrategySelection
from diffloupe.models.diff import ParsedDiff
from diffloupe.models.loader import ClassifiedFile

logger = logging.getLogger(__name__)

SMALL_FILE_THRESHOLD = 15
SMALL_TOKEN_THRESHOLD = 8000
MEDIUM_FILE_THRESHOLD = 40
LARGE_FILE_THRESHOLD = 80


def count_changed_lines(diff: ParsedDiff) -> int:
    """Add + delete lines across every file, regardless of tier"""
    return sum(file.added_lines + file.deleted_lines for file in diff.files)


def calculate_diff_metrics(diff: ParsedDiff, classified: list[ClassifiedFile]) -> DiffMetrics:
    return DiffMetrics(
        file_count=len(classified),
        total_lines=count_changed_lines(diff),
        estimated_tokens=sum(cf.estimated_tokens for cf in classified),
        tier1_file_count=sum(1 for cf in classified if cf.tier == 1),
    )


def select_strategy(metrics: DiffMetrics) -> StrategySelection:
    """Pick a strategy; thresholds are inclusive and checked in order"""
    file_count = metrics.file_count
    tokens = metrics.estimated_tokens

    if file_count <= SMALL_FILE_THRESHOLD or tokens <= SMALL_TOKEN_THRESHOLD:
        strategy = "direct"
        if file_count <= SMALL_FILE_THRESHOLD:
            reason = f"Small diff ({file_count} files ≤ {SMALL_FILE_THRESHOLD})"
        else:
            reason = f"Low token count ({tokens} ≤ {SMALL_TOKEN_THRESHOLD})"
    elif file_count <= MEDIUM_FILE_THRESHOLD:
        strategy = "two-pass"
        reason = f"Medium diff ({file_count} files, {SMALL_FILE_THRESHOLD + 1}-{MEDIUM_FILE_THRESHOLD} range)"
    elif file_count <= LARGE_FILE_THRESHOLD:
        strategy = "flow-based"
        reason = f"Large diff ({file_count} files, {MEDIUM_FILE_THRESHOLD + 1}-{LARGE_FILE_THRESHOLD} range)"
    else:
        strategy = "hierarchical"
        reason = f"Huge diff ({file_count} files > {LARGE_FILE_THRESHOLD})"

    logger.info("Selected %s strategy: %s", strategy, reason)
    return StrategySelection(strategy=strategy, reason=reason, metrics=metrics)

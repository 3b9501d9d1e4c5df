"""Decomposition - strategy selection and per-strategy executors for large diffs"""

from .strategy_selector import calculate_diff_metrics, select_strategy
from .flow_detection import (
    build_flow_detection_prompt,
    detect_flows,
    estimate_flow_tokens,
    get_files_for_flow,
    get_uncategorized_files,
)
from .direct import run_direct_analysis
from .two_pass import (
    build_deep_dive_prompt,
    build_overview_prompt,
    merge_results,
    run_deep_dive_pass,
    run_overview_pass,
    run_two_pass_analysis,
)
from .flow_analysis import (
    analyze_all_flows,
    analyze_flow,
    build_synthesis_prompt,
    filter_classified_for_flow,
    filter_diff_for_flow,
    run_flow_based_analysis,
    synthesize_flow_results,
)
from .hierarchical import chunk_flow, run_hierarchical_analysis

__all__ = [
    # Strategy selection
    "calculate_diff_metrics",
    "select_strategy",
    # Flow detection
    "build_flow_detection_prompt",
    "detect_flows",
    "estimate_flow_tokens",
    "get_files_for_flow",
    "get_uncategorized_files",
    # Direct
    "run_direct_analysis",
    # Two-pass
    "build_deep_dive_prompt",
    "build_overview_prompt",
    "merge_results",
    "run_deep_dive_pass",
    "run_overview_pass",
    "run_two_pass_analysis",
    # Flow-based
    "analyze_all_flows",
    "analyze_flow",
    "build_synthesis_prompt",
    "filter_classified_for_flow",
    "filter_diff_for_flow",
    "run_flow_based_analysis",
    "synthesize_flow_results",
    # Hierarchical
    "chunk_flow",
    "run_hierarchical_analysis",
]

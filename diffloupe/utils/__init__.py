"""Utils module - Token estimation and prompt formatting helpers"""

from .token_estimate import (
    estimate_diff_tokens,
    estimate_file_tokens,
    estimate_hunk_tokens,
    estimate_tokens,
)
from .format_diff import format_diff_file, format_hunk

__all__ = [
    "estimate_diff_tokens",
    "estimate_file_tokens",
    "estimate_hunk_tokens",
    "estimate_tokens",
    "format_diff_file",
    "format_hunk",
]

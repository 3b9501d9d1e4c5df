"""Path helpers shared by classification, summarization and ordering"""

from __future__ import annotations

from pyuca import Collator

# Unicode Collation Algorithm, root order: punctuation before letters,
# lowercase before uppercase on otherwise equal paths
_COLLATOR = Collator()


def get_extension(path: str) -> str:
    """Lowercased extension including the dot; "" for no dot or a trailing dot"""
    dot = path.rfind(".")
    if dot == -1 or dot == len(path) - 1:
        return ""
    return path[dot:].lower()


def get_filename(path: str) -> str:
    return path[max(path.rfind("/"), path.rfind("\\")) + 1:]


def path_sort_key(path: str) -> tuple[tuple[int, ...], str]:
    """Locale-aware collation key; the raw path breaks exact collation ties"""
    return _COLLATOR.sort_key(path), path

"""Folder-name collation.

Folder headings in the digest mix Japanese and Latin names, so they are ordered
with the Unicode Collation Algorithm (DUCET, via ``pyuca``): Latin sorts before
kana, kana before kanji, and case or hiragana/katakana differences only break
ties. Plain code-point order is kept as an explicit, deterministic fallback for
deployments that want byte-stable ordering.
"""

from __future__ import annotations

import functools
from enum import Enum
from typing import TYPE_CHECKING, Any

from pyuca import Collator

if TYPE_CHECKING:
    from collections.abc import Iterable


class CollationStrategy(str, Enum):
    """Available folder ordering strategies."""

    UNICODE = "unicode"
    CODEPOINT = "codepoint"


@functools.lru_cache(maxsize=1)
def _unicode_collator() -> Collator:
    # Loading the DUCET table is slow; build it once per process.
    return Collator()


def folder_sort_key(name: str, strategy: CollationStrategy = CollationStrategy.UNICODE) -> Any:
    """Return the sort key for a folder name under ``strategy``."""
    if strategy is CollationStrategy.CODEPOINT:
        return name
    # The raw string breaks ties between names that collate equal.
    return (_unicode_collator().sort_key(name), name)


def compare_folder_names(
    left: str,
    right: str,
    strategy: CollationStrategy = CollationStrategy.UNICODE,
) -> int:
    """Three-way comparison of two folder names (-1, 0 or 1)."""
    left_key = folder_sort_key(left, strategy)
    right_key = folder_sort_key(right, strategy)
    if left_key < right_key:
        return -1
    if left_key > right_key:
        return 1
    return 0


def sort_folder_names(
    names: Iterable[str],
    strategy: CollationStrategy = CollationStrategy.UNICODE,
) -> list[str]:
    """Sort folder names according to ``strategy``."""
    return sorted(names, key=lambda name: folder_sort_key(name, strategy))


__all__ = [
    "CollationStrategy",
    "compare_folder_names",
    "folder_sort_key",
    "sort_folder_names",
]

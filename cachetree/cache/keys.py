"""Namespace key helpers shared by every node of a cache tree.

A node's namespace prefix always ends with the tree's separator, so the full
key of an item is simply ``prefix + local_key``.
"""

from __future__ import annotations

from typing import Any, Optional

DEFAULT_SEPARATOR = "/"


def normalize_key(key: Any, separator: str = DEFAULT_SEPARATOR) -> str:
    """Return `key` terminated by `separator`.

    Non-string input normalizes to the bare separator. Applying the function
    twice yields the same result as applying it once.
    """
    if not isinstance(key, str):
        return separator
    if not key or not key.endswith(separator):
        return key + separator
    return key


def compose_key(
    parent_key: Optional[str],
    local_key: Any = "",
    separator: str = DEFAULT_SEPARATOR,
) -> str:
    """Join a parent prefix and a child key into the child's prefix."""
    if parent_key is None:
        parent_key = separator
    return parent_key + normalize_key(local_key, separator)

"""Cache tree components: items, key helpers, nodes and sweeps."""

from .keys import DEFAULT_SEPARATOR, compose_key, normalize_key
from .item import Item
from .node import CacheNode
from .sweep import DEFAULT_BACKUP_MAX_AGE, DEFAULT_CLEANUP_MAX_AGE

__all__ = [
    "CacheNode",
    "DEFAULT_BACKUP_MAX_AGE",
    "DEFAULT_CLEANUP_MAX_AGE",
    "DEFAULT_SEPARATOR",
    "Item",
    "compose_key",
    "normalize_key",
]

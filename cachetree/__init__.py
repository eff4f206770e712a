"""
cachetree package.

A hierarchical write-back memory cache. Values live in memory and reach a
backing store only through user-supplied async hooks; nested subcaches share
a key namespace and inherit their parent's hooks.
"""

from .__version__ import __version__
from .cache import CacheNode, Item, compose_key, normalize_key
from .config import CacheOptions, EnvSettings, MaintenanceConfig
from .events import CacheEvent, EventEmitter
from .maintenance import CacheMaintainer

__all__ = [
    "__version__",
    "CacheEvent",
    "CacheMaintainer",
    "CacheNode",
    "CacheOptions",
    "EnvSettings",
    "EventEmitter",
    "Item",
    "MaintenanceConfig",
    "compose_key",
    "normalize_key",
]

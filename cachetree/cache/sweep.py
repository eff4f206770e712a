"""
Tree sweeps: interval backup and age-based eviction.

Both sweeps walk a snapshot of a node's keys, dispatch every eligible save
without awaiting it individually, and join all of them (child sweeps
included) before the node emits its completion event. A child's whole sweep
counts as a single outcome in its parent's list.

Hook failures never escape a sweep: :func:`settle` turns a raised exception
into the outcome value, so an outcome list mixes saver results and
exception instances.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from ..events import CacheEvent
from .item import Item

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_MAX_AGE = 120.0
DEFAULT_CLEANUP_MAX_AGE = 300.0


async def call_hook(hook: Callable[..., Any], *args: Any) -> Any:
    """Call a store hook, awaiting its result when it is awaitable.

    Every hook goes through here, so plain functions and coroutine functions
    are equally accepted as loader, saver, checker or deleter.
    """
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def settle(hook: Callable[..., Any], *args: Any, phase: str) -> Any:
    """Run `hook(*args)` and return its result or the exception it raised.

    Cancellation is not converted.
    """
    try:
        return await call_hook(hook, *args)
    except Exception as exc:
        logger.warning(
            f"cache.{phase}.failed",
            extra={"key": args[0] if args else None, "error": str(exc)},
        )
        return exc


class SweepMixin:
    """Backup and cleanup operations for :class:`~cachetree.cache.node.CacheNode`.

    The host class provides ``_entries``, ``cache_key``, ``saver`` and
    ``emit``.
    """

    _entries: Dict[str, Any]
    cache_key: str
    saver: Optional[Callable[..., Any]]

    async def backup(
        self, max_age: float = DEFAULT_BACKUP_MAX_AGE
    ) -> Optional[List[Any]]:
        """
        Save dirty items not persisted within `max_age` seconds.

        Recurses into subcaches. Items are left dirty after a successful
        save, so a later backup re-saves them once they are older than
        `max_age` again.

        Returns
        -------
        list or None
            Outcomes of the dispatched saves and child sweeps, or None when
            this node has no saver.
        """
        saver = self.saver
        if saver is None:
            return None

        now = time.time()
        entries = self._entries
        pending = []

        for key in list(entries):
            entry = entries.get(key)
            if entry is None:
                continue
            if isinstance(entry, Item):
                if entry.dirty and now - entry.last_save > max_age:
                    pending.append(
                        settle(
                            saver,
                            self.cache_key + entry.key,
                            entry.data,
                            phase="backup",
                        )
                    )
            else:
                pending.append(entry.backup(max_age))

        outcomes = list(await asyncio.gather(*pending))
        logger.debug(
            "cache.backup.done",
            extra={"cache_key": self.cache_key, "outcomes": len(outcomes)},
        )
        self.emit(CacheEvent.BACKUP, self, outcomes)
        return outcomes

    async def cleanup(
        self, max_age: float = DEFAULT_CLEANUP_MAX_AGE
    ) -> Optional[List[Any]]:
        """
        Evict items not accessed within `max_age` seconds.

        Each stale item leaves ``entries`` before its save is dispatched, so
        a concurrent ``get``/``cache``/``fetch`` never sees a half-evicted
        entry. Dirty stale items are saved; clean ones are dropped. Without
        a saver this falls back to :meth:`clean_no_save`.
        """
        saver = self.saver
        if saver is None:
            self.clean_no_save(max_age)
            return None

        now = time.time()
        entries = self._entries
        pending = []

        for key in list(entries):
            entry = entries.get(key)
            if entry is None:
                continue
            if isinstance(entry, Item):
                if now - entry.last_access > max_age:
                    del entries[key]
                    if entry.dirty:
                        pending.append(
                            settle(
                                saver,
                                self.cache_key + entry.key,
                                entry.data,
                                phase="cleanup",
                            )
                        )
            else:
                pending.append(entry.cleanup(max_age))

        outcomes = list(await asyncio.gather(*pending))
        logger.debug(
            "cache.cleanup.done",
            extra={"cache_key": self.cache_key, "outcomes": len(outcomes)},
        )
        self.emit(CacheEvent.CLEANUP, self, outcomes)
        return outcomes

    def clean_no_save(self, max_age: float) -> None:
        """Evict stale items from this subtree without persisting them.

        Dirty items are dropped as well; nothing is saved and no event is
        emitted.
        """
        now = time.time()
        entries = self._entries
        evicted = 0

        for key in list(entries):
            entry = entries.get(key)
            if entry is None:
                continue
            if isinstance(entry, Item):
                if now - entry.last_access > max_age:
                    del entries[key]
                    evicted += 1
            else:
                entry.clean_no_save(max_age)

        if evicted:
            logger.debug(
                "cache.clean_no_save",
                extra={"cache_key": self.cache_key, "evicted": evicted},
            )

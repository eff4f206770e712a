"""
Cache tree node.

A :class:`CacheNode` keeps values in memory and reaches the backing store only
through optional hooks (loader, saver, checker, deleter), which may be plain
or coroutine functions. Nodes nest: :meth:`CacheNode.subcache` creates a
child whose namespace prefix extends the parent's and whose hooks start as a
copy of the parent's.

Example:
    root = CacheNode(loader=load, saver=save)
    users = root.subcache("users")
    await users.store("alice", {"age": 31})   # saver("/users/alice", ...)
    await root.backup(60)                      # sweeps root and users
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Generic, Mapping, Optional, TypeVar, Union

from ..config.models import (
    CacheOptions,
    Checker,
    Deleter,
    Loader,
    Reviver,
    Saver,
)
from ..events import CacheEvent, EventEmitter
from .item import Item
from .keys import compose_key, normalize_key
from .sweep import SweepMixin, call_hook, settle

logger = logging.getLogger(__name__)

T = TypeVar("T")

Entry = Union[Item[Any], "CacheNode[Any]"]


class CacheNode(SweepMixin, EventEmitter, Generic[T]):
    """
    One level of a write-back cache tree.

    Setting a hook property on a node affects that node only; use
    :meth:`settings` to push changes down to existing subcaches.

    Parameters
    ----------
    opts : CacheOptions or dict, optional
        Initial options. Keyword arguments may be given instead.
    """

    def __init__(
        self,
        opts: Optional[Union[CacheOptions, Mapping[str, Any]]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__()
        if opts is not None and kwargs:
            raise TypeError("pass options either as `opts` or as keywords, not both")
        options = CacheOptions.coerce(opts if opts is not None else kwargs)

        self._separator = options.separator
        self._cache_key = normalize_key(
            options.cache_key if options.cache_key is not None else "",
            self._separator,
        )
        self._local_key: Optional[str] = None

        self._loader: Optional[Loader] = options.loader
        self._saver: Optional[Saver] = options.saver
        self._checker: Optional[Checker] = options.checker
        self._deleter: Optional[Deleter] = options.deleter
        self._reviver: Optional[Reviver] = options.reviver

        self._entries: Dict[str, Entry] = {}

    # ---------------- properties ----------------
    @property
    def cache_key(self) -> str:
        return self._cache_key

    @cache_key.setter
    def cache_key(self, value: str) -> None:
        self._cache_key = normalize_key(value, self._separator)

    @property
    def separator(self) -> str:
        """Namespace separator, fixed when the tree root is built."""
        return self._separator

    @property
    def local_key(self) -> Optional[str]:
        """Normalized key this node was created under, None for a root."""
        return self._local_key

    @property
    def entries(self) -> Mapping[str, Entry]:
        """Read-only view of the items and subcaches held by this node."""
        return MappingProxyType(self._entries)

    @property
    def loader(self) -> Optional[Loader]:
        return self._loader

    @loader.setter
    def loader(self, value: Optional[Loader]) -> None:
        self._loader = value

    @property
    def saver(self) -> Optional[Saver]:
        return self._saver

    @saver.setter
    def saver(self, value: Optional[Saver]) -> None:
        self._saver = value

    @property
    def checker(self) -> Optional[Checker]:
        return self._checker

    @checker.setter
    def checker(self, value: Optional[Checker]) -> None:
        self._checker = value

    @property
    def deleter(self) -> Optional[Deleter]:
        return self._deleter

    @deleter.setter
    def deleter(self, value: Optional[Deleter]) -> None:
        self._deleter = value

    @property
    def reviver(self) -> Optional[Reviver]:
        return self._reviver

    @reviver.setter
    def reviver(self, value: Optional[Reviver]) -> None:
        self._reviver = value

    # ---------------- configuration ----------------
    def settings(
        self,
        opts: Union[CacheOptions, Mapping[str, Any]],
        propagate: bool = True,
    ) -> None:
        """
        Overwrite the hooks present in `opts` and optionally the cache key.

        Parameters
        ----------
        opts : CacheOptions or dict
            Only explicitly given fields are applied. ``separator`` is
            ignored; it can only be chosen when the root is built.
        propagate : bool
            Apply the same hooks to every descendant subcache. When this
            node's key changes, each subcache is re-keyed under the new
            prefix joined with its own local key.

        Raises
        ------
        ValueError
            If re-keying would put two entries of one node under the same
            key. Nothing is changed in that case.
        """
        options = CacheOptions.coerce(opts)
        hooks = options.present_hooks()

        new_key = self._cache_key
        if options.cache_key is not None:
            new_key = normalize_key(options.cache_key, self._separator)
        key_changed = new_key != self._cache_key
        rekey = key_changed and propagate
        if rekey:
            self._check_rekey(new_key)

        for name, value in hooks.items():
            setattr(self, f"_{name}", value)
        self._cache_key = new_key

        if not propagate:
            return

        if rekey:
            self._entries = self._rekeyed_entries(new_key)

        for key, child in list(self._entries.items()):
            if not isinstance(child, CacheNode):
                continue
            child_opts: Dict[str, Any] = dict(hooks)
            if rekey:
                child_opts["cache_key"] = key
            child.settings(child_opts, propagate=True)

    def _rekeyed_entries(self, prefix: str) -> Dict[str, Entry]:
        """Return entries with every subcache moved under `prefix`."""
        moved: Dict[str, Entry] = {}
        for key, entry in self._entries.items():
            if isinstance(entry, CacheNode):
                key = compose_key(prefix, entry.local_key or key, self._separator)
            if key in moved:
                raise ValueError(
                    f"re-keying under {prefix!r} maps two entries to {key!r}"
                )
            moved[key] = entry
        return moved

    def _check_rekey(self, prefix: str) -> None:
        """Validate re-keying this subtree under `prefix` without mutating it."""
        for key, child in self._rekeyed_entries(prefix).items():
            if isinstance(child, CacheNode) and key != child.cache_key:
                child._check_rekey(key)

    def subcache(
        self, subkey: str, reviver: Optional[Reviver] = None
    ) -> "CacheNode[Any]":
        """
        Return the subcache for `subkey`, creating it if needed.

        A new subcache copies this node's current hooks, uses the given
        `reviver`, and is stored under its composed key. Emits ``subcreate``
        with ``(self, composed_key)`` on creation only.
        """
        key = compose_key(self._cache_key, subkey, self._separator)

        existing = self._entries.get(key)
        if isinstance(existing, CacheNode):
            return existing

        child: CacheNode[Any] = CacheNode(
            CacheOptions(
                cache_key=key,
                loader=self._loader,
                saver=self._saver,
                checker=self._checker,
                deleter=self._deleter,
                reviver=reviver,
                separator=self._separator,
            )
        )
        child._local_key = normalize_key(subkey, self._separator)
        self._entries[key] = child

        logger.debug("cache.subcache.created", extra={"cache_key": key})
        self.emit(CacheEvent.SUBCREATE, self, key)
        return child

    # ---------------- memory operations ----------------
    def get(self, key: str) -> Optional[T]:
        """Return the cached value for `key` without touching the backing store."""
        entry = self._entries.get(key)
        if isinstance(entry, Item):
            entry.touch()
            return entry.data
        return None

    def has(self, key: str) -> bool:
        """Whether `key` is held locally (item or subcache)."""
        return key in self._entries

    def cache(self, key: str, value: T) -> None:
        """Cache `value` as dirty without saving it.

        Useful with interval backups: the value is persisted by a later
        :meth:`backup` or :meth:`cleanup`.
        """
        current = self._entries.get(key)
        if isinstance(current, Item):
            current.update(value)
        else:
            self._entries[key] = Item(key, value)

    def free(self, key: str) -> None:
        """Drop `key` from memory without deleting it from the backing store."""
        self._entries.pop(key, None)

    # ---------------- backing store operations ----------------
    async def fetch(self, key: str) -> Optional[T]:
        """
        Return the value for `key`, loading it on a miss.

        A loaded value is revived (if a reviver is set) and cached clean.
        Returns None when the loader is missing, reports "not found" (None)
        or fails; a failure additionally emits ``error`` with
        ``("fetch", key)``.
        """
        entry = self._entries.get(key)
        if entry is not None:
            if isinstance(entry, Item):
                entry.touch()
                return entry.data
            return None

        loader = self._loader
        if loader is None:
            return None

        try:
            reviver = self._reviver
            data = await call_hook(loader, self._cache_key + key)
            if data is None:
                return None
            value = reviver(data) if reviver is not None else data
        except Exception as exc:
            logger.warning(
                "cache.fetch.failed",
                extra={"key": self._cache_key + key, "error": str(exc)},
            )
            self.emit(CacheEvent.ERROR, "fetch", key)
            return None

        self._entries[key] = Item(key, value, dirty=False)
        return value

    async def store(self, key: str, value: T) -> Optional[Exception]:
        """
        Cache `value` and save it to the backing store.

        The local item is marked saved before the saver runs. Returns None on
        success (or when there is no saver) and the raised exception on
        failure; never raises.
        """
        item = Item(key, value)
        self._entries[key] = item
        item.mark_saved()

        saver = self._saver
        if saver is None:
            return None

        outcome = await settle(saver, self._cache_key + key, value, phase="store")
        return outcome if isinstance(outcome, Exception) else None

    async def delete(self, key: str) -> Any:
        """
        Remove `key` from memory and from the backing store.

        The local entry (item or subcache) is dropped first. Returns the
        deleter's result, the exception it raised, or None without a deleter.
        """
        self._entries.pop(key, None)

        deleter = self._deleter
        if deleter is None:
            return None
        return await settle(deleter, self._cache_key + key, phase="delete")

    async def exists(self, key: str) -> bool:
        """Whether `key` is cached locally or, failing that, per the checker."""
        if key in self._entries:
            return True
        checker = self._checker
        if checker is not None:
            return await call_hook(checker, self._cache_key + key)
        return False

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CacheNode(cache_key={self._cache_key!r}, entries={len(self._entries)})"

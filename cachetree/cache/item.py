"""Single cached value with dirty and age bookkeeping."""

from __future__ import annotations

import time
from typing import Generic, TypeVar

T = TypeVar("T")


class Item(Generic[T]):
    """
    A cached value plus the timestamps used by the sweeps.

    Attributes
    ----------
    key : str
        Local (non-namespaced) key of the item.
    data : T
        Cached payload.
    last_access : float
        Time of the last read or write (seconds since the epoch).
    last_save : float
        Time of the last known persistence, ``0`` when never persisted.
    dirty : bool
        Whether the in-memory value may differ from the backing store.
    """

    __slots__ = ("_key", "data", "last_access", "last_save", "dirty")

    def __init__(self, key: str, data: T, dirty: bool = True) -> None:
        self._key = key
        self.data = data
        self.last_access = time.time()
        self.dirty = dirty
        self.last_save = 0.0 if dirty else self.last_access

    @property
    def key(self) -> str:
        return self._key

    def touch(self) -> None:
        """Refresh last_access (called on cache hit)."""
        self.last_access = time.time()

    def update(self, data: T) -> None:
        """Replace the payload; the item becomes dirty."""
        self.data = data
        self.last_access = time.time()
        self.dirty = True

    def mark_saved(self, when: float = 0) -> None:
        """Mark the payload as persisted at `when` (defaults to now)."""
        self.last_save = when or time.time()
        self.dirty = False

    def __repr__(self) -> str:
        return f"Item(key={self._key!r}, dirty={self.dirty})"

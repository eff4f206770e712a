"""Typed observer registry used by cache nodes.

Listeners are plain callables registered per :class:`CacheEvent`. Emission is
synchronous: every listener registered at the time of the call runs, in
registration order, before ``emit`` returns. Past events are not retained.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Union

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class CacheEvent(str, Enum):
    """Events emitted by cache nodes."""

    SUBCREATE = "subcreate"  # (node, composed_key)
    ERROR = "error"  # (phase, key)
    BACKUP = "backup"  # (node, outcomes)
    CLEANUP = "cleanup"  # (node, outcomes)


EventName = Union[CacheEvent, str]


class EventEmitter:
    """
    Minimal event emitter keyed by :class:`CacheEvent`.

    String names are accepted anywhere an event is expected and are coerced
    to the enum, so ``on("backup", ...)`` and ``on(CacheEvent.BACKUP, ...)``
    register the same listener list. Unknown names raise ``ValueError``.
    """

    def __init__(self) -> None:
        self._listeners: Dict[CacheEvent, List[Listener]] = {}

    def on(self, event: EventName, listener: Listener) -> Listener:
        """Register `listener` for `event` and return it."""
        self._listeners.setdefault(CacheEvent(event), []).append(listener)
        return listener

    def once(self, event: EventName, listener: Listener) -> Listener:
        """Register `listener` to run for the next `event` only.

        Returns the wrapper actually registered, which can be passed to
        :meth:`off` to cancel it before it fires.
        """
        name = CacheEvent(event)

        def _wrapper(*args: Any) -> Any:
            self.off(name, _wrapper)
            return listener(*args)

        return self.on(name, _wrapper)

    def off(self, event: EventName, listener: Listener) -> bool:
        """Remove `listener`; return False if it was not registered."""
        listeners = self._listeners.get(CacheEvent(event), [])
        try:
            listeners.remove(listener)
        except ValueError:
            return False
        return True

    def emit(self, event: EventName, *args: Any) -> bool:
        """Call every listener of `event`; return True if any were called."""
        name = CacheEvent(event)
        listeners = list(self._listeners.get(name, ()))
        if not listeners:
            return False
        logger.debug(
            "events.emit",
            extra={"event": name.value, "listeners": len(listeners)},
        )
        for listener in listeners:
            listener(*args)
        return True

    def listener_count(self, event: EventName) -> int:
        return len(self._listeners.get(CacheEvent(event), ()))

    def remove_all_listeners(self, event: EventName | None = None) -> None:
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(CacheEvent(event), None)

"""Periodic maintenance for a cache tree.

:class:`CacheMaintainer` drives :meth:`CacheNode.backup` and
:meth:`CacheNode.cleanup` from two background asyncio tasks. Sweep errors are
logged and the loop keeps running; only :meth:`CacheMaintainer.stop` ends it,
and only between sweeps.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from .cache.node import CacheNode
from .config.models import MaintenanceConfig

logger = logging.getLogger(__name__)


class CacheMaintainer:
    """
    Run interval backup and cleanup sweeps over a cache tree.

    Parameters
    ----------
    root : CacheNode
        Node whose subtree is swept.
    config : MaintenanceConfig, optional
        Sweep schedule, uses defaults if None.
    """

    def __init__(
        self, root: CacheNode[Any], config: Optional[MaintenanceConfig] = None
    ) -> None:
        self.root = root
        self.config = config or MaintenanceConfig()
        self._tasks: List["asyncio.Task[None]"] = []
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Start the sweep loops. Idempotent."""
        if self._tasks:
            logger.debug("maintenance.start no-op: already running")
            return
        cfg = self.config
        self._stopping = asyncio.Event()
        self._tasks = [
            asyncio.create_task(
                self._loop("backup", cfg.backup_interval_seconds, self._backup)
            ),
            asyncio.create_task(
                self._loop("cleanup", cfg.cleanup_interval_seconds, self._cleanup)
            ),
        ]
        logger.info(
            "maintenance.started",
            extra={
                "cache_key": self.root.cache_key,
                "backup_interval": cfg.backup_interval_seconds,
                "cleanup_interval": cfg.cleanup_interval_seconds,
            },
        )

    async def stop(self, flush: bool = False) -> None:
        """
        Stop the sweep loops. Idempotent.

        A sweep already in progress runs to completion first, so items it
        has evicted are still saved.

        Parameters
        ----------
        flush : bool
            After stopping, back up every dirty item regardless of age.
        """
        tasks, self._tasks = self._tasks, []
        self._stopping.set()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(
                "maintenance.stopped", extra={"cache_key": self.root.cache_key}
            )
        if flush:
            await self.root.backup(0)

    async def run_once(self) -> None:
        """Run one backup sweep followed by one cleanup sweep."""
        await self._backup()
        await self._cleanup()

    async def _backup(self) -> Optional[List[Any]]:
        return await self.root.backup(self.config.backup_max_age_seconds)

    async def _cleanup(self) -> Optional[List[Any]]:
        return await self.root.cleanup(self.config.cleanup_max_age_seconds)

    async def _loop(
        self,
        name: str,
        interval: float,
        sweep: Callable[[], Awaitable[Any]],
    ) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
            else:
                return
            try:
                await sweep()
            except Exception:
                logger.exception(
                    f"maintenance.{name}.failed",
                    extra={"cache_key": self.root.cache_key},
                )

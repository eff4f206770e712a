"""Config models and loader.

This module defines the Pydantic models used to configure cache nodes and
the maintenance loop. JSON parsing prefers `orjson` when available and falls
back to the standard library's `json` module otherwise.
"""

from __future__ import annotations

import json as _json
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

try:
    import orjson as _orjson_mod  # type: ignore[assignment]
except ImportError:  # pragma: no cover - optional dependency
    _orjson_mod = None  # type: ignore[assignment]
    _loads_orjson: Optional[Callable[[bytes], Any]] = None
else:

    def _loads_orjson(buf: bytes) -> Any:
        loader = getattr(_orjson_mod, "loads")  # type: ignore[assignment]
        return loader(buf)


from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..cache.keys import DEFAULT_SEPARATOR

Loader = Callable[[str], Awaitable[Any]]
Saver = Callable[[str, Any], Awaitable[Any]]
Checker = Callable[[str], Awaitable[bool]]
Deleter = Callable[[str], Awaitable[bool]]
Reviver = Callable[[Any], Any]

HOOK_FIELDS = ("loader", "saver", "checker", "deleter", "reviver")


class CacheOptions(BaseModel):
    """Options for constructing or reconfiguring a cache node.

    Unknown keys are rejected. Only the fields explicitly given count as
    "present" (see ``model_fields_set``); passing ``saver=None`` therefore
    disables the saver, while omitting ``saver`` leaves the current one in
    place.

    Attributes
    ----------
    cache_key: Optional[str]
        Namespace prefix of the node. Normalized to end with `separator`.
    loader, saver, checker, deleter: Optional[Callable]
        Hooks into the backing store, plain or coroutine functions.
    reviver: Optional[Callable]
        Transform applied to values freshly returned by the loader.
    separator: str
        Namespace separator. Only honoured when a root node is built.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True, frozen=True, extra="forbid"
    )

    cache_key: Optional[str] = Field(None, description="Namespace prefix")
    loader: Optional[Loader] = None
    saver: Optional[Saver] = None
    checker: Optional[Checker] = None
    deleter: Optional[Deleter] = None
    reviver: Optional[Reviver] = None
    separator: str = Field(DEFAULT_SEPARATOR, min_length=1)

    def present_hooks(self) -> dict[str, Any]:
        """Return the hook fields that were explicitly set."""
        return {
            name: getattr(self, name)
            for name in HOOK_FIELDS
            if name in self.model_fields_set
        }

    @classmethod
    def coerce(cls, opts: "CacheOptions | dict[str, Any] | None") -> "CacheOptions":
        """Accept an options model, a plain mapping, or None."""
        if opts is None:
            return cls()
        if isinstance(opts, CacheOptions):
            return opts
        return cls.model_validate(opts)


class MaintenanceConfig(BaseModel):
    """Schedule for the periodic backup and cleanup sweeps.

    Attributes
    ----------
    backup_interval_seconds: float
        Delay between two backup sweeps.
    backup_max_age_seconds: float
        Dirty items not saved within this many seconds are backed up.
    cleanup_interval_seconds: float
        Delay between two cleanup sweeps.
    cleanup_max_age_seconds: float
        Items not accessed within this many seconds are evicted.
    """

    backup_interval_seconds: float = Field(60.0, gt=0)
    backup_max_age_seconds: float = Field(120.0, ge=0)
    cleanup_interval_seconds: float = Field(300.0, gt=0)
    cleanup_max_age_seconds: float = Field(300.0, ge=0)

    @staticmethod
    def load(path: Path) -> "MaintenanceConfig":
        """Load a maintenance schedule from a JSON file."""
        raw = path.read_bytes()
        if _loads_orjson is not None:
            data = _loads_orjson(raw)
        else:
            data = _json.loads(raw.decode("utf-8"))
        return MaintenanceConfig.model_validate(data)


class EnvSettings(BaseSettings):
    """Environment-driven settings and .env support.

    Every field can be set through a ``CACHETREE_``-prefixed environment
    variable, e.g. ``CACHETREE_CLEANUP_MAX_AGE_SECONDS=600``.
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CACHETREE_")

    log_level: str = Field("INFO")

    backup_interval_seconds: float = Field(60.0, gt=0)
    backup_max_age_seconds: float = Field(120.0, ge=0)
    cleanup_interval_seconds: float = Field(300.0, gt=0)
    cleanup_max_age_seconds: float = Field(300.0, ge=0)

    def to_maintenance_config(self) -> MaintenanceConfig:
        return MaintenanceConfig(
            backup_interval_seconds=self.backup_interval_seconds,
            backup_max_age_seconds=self.backup_max_age_seconds,
            cleanup_interval_seconds=self.cleanup_interval_seconds,
            cleanup_max_age_seconds=self.cleanup_max_age_seconds,
        )

"""Pytest configuration for test suite.

Ensures the project root is on ``sys.path`` so ``import cachetree`` resolves
to the local sources regardless of the working directory pytest chooses.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict

import pytest


def _ensure_project_root_on_syspath() -> None:
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        # Prepend to prefer local sources over site-packages
        sys.path.insert(0, project_root_str)


_ensure_project_root_on_syspath()


class MemoryStore:
    """Dict-backed store exposing the four cache hooks as coroutines."""

    def __init__(self, initial: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = dict(initial or {})
        self.loads: list[str] = []
        self.saves: list[tuple[str, Any]] = []
        self.deletes: list[str] = []

    async def load(self, key: str) -> Any:
        self.loads.append(key)
        return self.data.get(key)

    async def save(self, key: str, value: Any) -> None:
        self.saves.append((key, value))
        self.data[key] = value

    async def check(self, key: str) -> bool:
        return key in self.data

    async def delete(self, key: str) -> bool:
        self.deletes.append(key)
        return self.data.pop(key, None) is not None

    def hooks(self) -> Dict[str, Any]:
        return {
            "loader": self.load,
            "saver": self.save,
            "checker": self.check,
            "deleter": self.delete,
        }


@pytest.fixture
def store() -> MemoryStore:
    """Fresh in-memory backing store for each test."""
    return MemoryStore()

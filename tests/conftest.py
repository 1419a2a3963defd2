"""
Shared fakes: an in-memory workspace and a fixed clock.
"""

from datetime import datetime, timezone
from typing import Optional

import pytest

from failsafe.models import FileStat
from failsafe.workspace import Workspace, glob_match

FIXED_NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


class InMemoryWorkspace(Workspace):
    """Files map path -> mtime (epoch seconds)."""

    def __init__(self, files: Optional[dict[str, float]] = None, fail: Optional[Exception] = None):
        self.files = dict(files or {})
        self.fail = fail
        self.exists_calls: list[str] = []

    async def exists(self, path: str) -> bool:
        self.exists_calls.append(path)
        if self.fail:
            raise self.fail
        return path in self.files

    async def stat(self, path: str) -> FileStat:
        if self.fail:
            raise self.fail
        if path not in self.files:
            raise FileNotFoundError(path)
        return FileStat(mtime=self.files[path], size=0)

    async def list_files(self, glob="**/*", exclude_glob="**/node_modules/**") -> list[str]:
        if self.fail:
            raise self.fail
        return sorted(
            p for p in self.files
            if glob_match(p, glob) and not (exclude_glob and glob_match(p, exclude_glob))
        )


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def empty_workspace():
    return InMemoryWorkspace()


def minutes_ago(minutes: float) -> float:
    return FIXED_NOW.timestamp() - minutes * 60

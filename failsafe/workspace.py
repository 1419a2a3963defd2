"""
Workspace — Filesystem Ground Truth

The validators never touch the disk directly. They ask a Workspace,
which hosts can replace (a remote checkout, an editor's virtual
filesystem, an in-memory fake in tests).

LocalWorkspace is the shipped implementation. Relative paths resolve
against its root; absolute paths are used as given.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import aiofiles.os

from failsafe.config import settings
from failsafe.models import FileStat

logger = logging.getLogger(__name__)

DEFAULT_GLOB = "**/*"
DEFAULT_EXCLUDE = "**/node_modules/**"

# Never walked, whatever the exclude glob says
VCS_DIRS = frozenset({".git", ".hg", ".svn"})


def glob_match(rel_path: str, pattern: str) -> bool:
    """
    fnmatch with a leading "**/" that may also match zero directories,
    so "**/*.ts" matches both "a.ts" and "src/a.ts".
    """
    if fnmatch.fnmatch(rel_path, pattern):
        return True
    if pattern.startswith("**/"):
        return glob_match(rel_path, pattern[3:])
    return False


class Workspace(ABC):
    """Read-only view of the files an AI response talks about."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    async def stat(self, path: str) -> FileStat:
        ...

    @abstractmethod
    async def list_files(
        self, glob: str = DEFAULT_GLOB, exclude_glob: Optional[str] = DEFAULT_EXCLUDE,
    ) -> list[str]:
        """
        Return workspace-relative posix paths of matching files.

        The list may be incomplete (see `truncated`), so a path missing
        from it is not proof that the file is absent.
        """
        ...

    @property
    def truncated(self) -> bool:
        """True when the last list_files call stopped before the walk finished."""
        return False


class LocalWorkspace(Workspace):
    """Workspace backed by the local disk through aiofiles.os."""

    def __init__(self, root: Optional[str] = None, max_files: Optional[int] = None):
        self.root = Path(root or settings.WORKSPACE_ROOT).resolve()
        self.max_files = settings.MAX_WORKSPACE_FILES if max_files is None else max_files
        self._truncated = False

    @property
    def truncated(self) -> bool:
        return self._truncated

    def resolve(self, path: str) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.root / candidate

    async def exists(self, path: str) -> bool:
        try:
            await aiofiles.os.stat(str(self.resolve(path)))
        except (FileNotFoundError, NotADirectoryError):
            return False
        return True

    async def stat(self, path: str) -> FileStat:
        st = await aiofiles.os.stat(str(self.resolve(path)))
        return FileStat(mtime=st.st_mtime, size=st.st_size)

    async def list_files(
        self, glob: str = DEFAULT_GLOB, exclude_glob: Optional[str] = DEFAULT_EXCLUDE,
    ) -> list[str]:
        found: list[str] = []
        pending = [self.root]
        self._truncated = False

        while pending and not self._truncated:
            directory = pending.pop()
            try:
                entries = await aiofiles.os.scandir(str(directory))
            except (PermissionError, FileNotFoundError) as e:
                logger.warning(
                    "Skipping unreadable directory %s: %s", directory, e,
                    extra={"file_path": str(directory), "error": str(e)},
                )
                continue

            with entries:
                for entry in entries:
                    rel = Path(entry.path).relative_to(self.root).as_posix()
                    if entry.is_dir(follow_symlinks=False):
                        if entry.name in VCS_DIRS:
                            continue
                        if exclude_glob and glob_match(rel + "/", exclude_glob):
                            continue
                        pending.append(Path(entry.path))
                    elif entry.is_file():
                        if exclude_glob and glob_match(rel, exclude_glob):
                            continue
                        if glob_match(rel, glob):
                            found.append(rel)
                            if len(found) >= self.max_files:
                                self._truncated = True
                                logger.warning(
                                    "Workspace listing capped at %d files", self.max_files,
                                )
                                break

        return sorted(found)


def relative_posix(path: str) -> str:
    """Normalize a path mentioned in prose for comparison with list_files output."""
    normalized = os.path.normpath(path.strip()).replace(os.sep, "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/") if normalized != "/" else normalized

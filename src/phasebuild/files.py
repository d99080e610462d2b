"""Filesystem access used by file targets.

The orchestrator never reads or writes target contents itself. It only asks
whether a path exists, when it was modified and how to mark it as built.
The remaining methods are offered to build actions.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Protocol, Union

StrPath = Union[str, "os.PathLike[str]"]


class FileSystem(Protocol):
    async def exists(self, path: StrPath) -> bool: ...

    async def mtime(self, path: StrPath) -> float: ...

    async def touch(self, path: StrPath) -> None: ...

    async def load_string(self, path: StrPath) -> str: ...

    async def write(self, path: StrPath, content: str) -> int: ...

    async def overwrite(self, path: StrPath, content: str) -> int: ...


def safe_mtime(path: Path) -> float:
    """Time of last modification in milliseconds since epoch, -1 if missing."""
    try:
        return path.stat().st_mtime_ns / 1_000_000
    except FileNotFoundError:
        return -1


def _touch(path: Path) -> None:
    if path.exists():
        os.utime(path, None)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("", encoding="utf-8")


def _write_text(path: Path, content: str, mode: str = "wb") -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8")
    # "xb" fails atomically with FileExistsError when the path exists
    with open(path, mode) as f:
        f.write(data)
    return len(data)


class LocalFiles:
    """Local disk implementation of :class:`FileSystem`.

    Blocking calls run in a worker thread; callers still await them one at a
    time, so at most one filesystem operation is in flight per build.
    """

    def __init__(self, root: StrPath | None = None):
        self.root = Path(root) if root is not None else None

    def resolve(self, path: StrPath) -> Path:
        p = Path(path)
        if self.root is not None and not p.is_absolute():
            return self.root / p
        return p

    async def exists(self, path: StrPath) -> bool:
        return await asyncio.to_thread(self.resolve(path).exists)

    async def mtime(self, path: StrPath) -> float:
        return await asyncio.to_thread(safe_mtime, self.resolve(path))

    async def touch(self, path: StrPath) -> None:
        await asyncio.to_thread(_touch, self.resolve(path))

    async def load_string(self, path: StrPath) -> str:
        p = self.resolve(path)
        if not await asyncio.to_thread(p.exists):
            raise FileNotFoundError(f"File not found: {p}")
        return await asyncio.to_thread(p.read_text, encoding="utf-8")

    async def write(self, path: StrPath, content: str) -> int:
        p = self.resolve(path)
        try:
            return await asyncio.to_thread(_write_text, p, content, "xb")
        except FileExistsError as e:
            raise FileExistsError(f"File exists, use overwrite instead: {p}") from e

    async def overwrite(self, path: StrPath, content: str) -> int:
        return await asyncio.to_thread(_write_text, self.resolve(path), content)

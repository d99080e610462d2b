from __future__ import annotations

import pytest

from phasebuild import BuildContext, TargetGraph


class MemoryFiles:
    """In-memory FileSystem with a clock that advances on every write."""

    def __init__(self):
        self.contents: dict[str, str] = {}
        self.mtimes: dict[str, float] = {}
        self.clock = 1000.0
        self.touched: list[str] = []

    def tick(self) -> float:
        self.clock += 1
        return self.clock

    def add(self, path: str, content: str = "", mtime: float | None = None) -> None:
        self.contents[path] = content
        self.mtimes[path] = self.tick() if mtime is None else mtime

    async def exists(self, path) -> bool:
        return str(path) in self.contents

    async def mtime(self, path) -> float:
        return self.mtimes.get(str(path), -1)

    async def touch(self, path) -> None:
        path = str(path)
        self.contents.setdefault(path, "")
        self.mtimes[path] = self.tick()
        self.touched.append(path)

    async def load_string(self, path) -> str:
        if str(path) not in self.contents:
            raise FileNotFoundError(path)
        return self.contents[str(path)]

    async def write(self, path, content: str) -> int:
        if str(path) in self.contents:
            raise FileExistsError(path)
        return await self.overwrite(path, content)

    async def overwrite(self, path, content: str) -> int:
        self.add(str(path), content)
        return len(content.encode("utf-8"))


class Recorder:
    """Build action that remembers which targets it was called for."""

    def __init__(self):
        self.calls: list[str] = []

    def __call__(self, info):
        self.calls.append(info.path)


@pytest.fixture
def files() -> MemoryFiles:
    return MemoryFiles()


@pytest.fixture
def graph(files) -> TargetGraph:
    return TargetGraph(files)


@pytest.fixture
def ctx(files) -> BuildContext:
    return BuildContext(files=files)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Remove handlers a test left on the shared package logger."""
    import logging

    from phasebuild.logging import PACKAGE_LOGGER

    logger = logging.getLogger(PACKAGE_LOGGER)
    level, handlers = logger.level, list(logger.handlers)
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)

from __future__ import annotations

import enum
import inspect
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, NamedTuple, Optional, Union

from .errors import DuplicateRuleError
from .files import FileSystem

if TYPE_CHECKING:
    from .traversal import VisitState


# Commands have no artifact on disk, so they are older than everything
OLDEST_MTIME = float("-inf")


@dataclass(frozen=True)
class TargetInfo:
    """Read-only metadata handed to a build action."""

    path: str
    depends_on_commands: tuple[str, ...] = ()
    depends_on_files: tuple[str, ...] = ()


ActionResult = Optional[str]
BuildAction = Callable[[TargetInfo], Union[ActionResult, Awaitable[ActionResult]]]


@dataclass(frozen=True)
class BuildRule:
    action: BuildAction
    depends_on_commands: tuple[str, ...] = ()
    depends_on_files: tuple[str, ...] = ()

    async def call(self, info: TargetInfo) -> ActionResult:
        result = self.action(info)
        if inspect.isawaitable(result):
            result = await result
        return result


class TargetKind(enum.Enum):
    FILE = "file"
    COMMAND = "command"


class TargetKey(NamedTuple):
    kind: TargetKind
    path: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.path}"


@dataclass(eq=False)
class Target:
    """One buildable unit of a target graph.

    Compared by identity; within one graph a target is unique per
    :class:`TargetKey`.
    """

    path: str
    files: FileSystem = field(repr=False)
    depends_on: list[Target] = field(default_factory=list, repr=False)
    build_rule: BuildRule | None = field(default=None, repr=False)

    kind: TargetKind = field(init=False, default=TargetKind.FILE, repr=False)

    @property
    def key(self) -> TargetKey:
        return TargetKey(self.kind, self.path)

    def is_virtual(self) -> bool:
        raise NotImplementedError

    async def exists(self) -> bool:
        raise NotImplementedError

    async def mtime(self) -> float:
        raise NotImplementedError

    async def is_newer_than(self, reference_mtime: float) -> bool:
        raise NotImplementedError

    def set_build_rule(self, rule: BuildRule) -> None:
        if self.build_rule is not None:
            raise DuplicateRuleError(f"Build rule for {self.key} is already defined")
        self.build_rule = rule

    def add_dependencies(self, targets: list[Target]) -> None:
        for t in targets:
            if not any(t is d for d in self.depends_on):
                self.depends_on.append(t)

    def info(self) -> TargetInfo:
        rule = self.build_rule
        if rule is None:
            return TargetInfo(path=self.path)
        return TargetInfo(
            path=self.path,
            depends_on_commands=rule.depends_on_commands,
            depends_on_files=rule.depends_on_files,
        )

    async def needs_rebuild(self, state: VisitState) -> bool:
        if not await self.exists():
            return True
        if any(dep in state.stale for dep in self.depends_on):
            return True
        if self.is_virtual():
            return False
        own_mtime = await self.mtime()
        for dep in self.depends_on:
            if not dep.is_virtual() and await dep.is_newer_than(own_mtime):
                return True
        return False

    def __str__(self) -> str:
        return str(self.key)


@dataclass(eq=False)
class FileTarget(Target):
    kind: TargetKind = field(init=False, default=TargetKind.FILE, repr=False)

    def is_virtual(self) -> bool:
        return False

    async def exists(self) -> bool:
        return await self.files.exists(self.path)

    async def mtime(self) -> float:
        return await self.files.mtime(self.path)

    async def is_newer_than(self, reference_mtime: float) -> bool:
        return await self.mtime() > reference_mtime


@dataclass(eq=False)
class CommandTarget(Target):
    kind: TargetKind = field(init=False, default=TargetKind.COMMAND, repr=False)

    def is_virtual(self) -> bool:
        return True

    async def exists(self) -> bool:
        return len(self.depends_on) != 0

    async def mtime(self) -> float:
        return OLDEST_MTIME

    async def is_newer_than(self, reference_mtime: float) -> bool:
        return False


def new_target(key: TargetKey, files: FileSystem) -> Target:
    if key.kind is TargetKind.COMMAND:
        return CommandTarget(path=key.path, files=files)
    return FileTarget(path=key.path, files=files)

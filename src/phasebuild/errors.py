"""Exceptions raised while declaring or running a build.

Every error aborts the current call. Nothing here is retried; the caller
decides whether to log and exit or to propagate further.
"""

from __future__ import annotations

from typing import Any


class PhaseBuildError(Exception):
    """Base class of all build orchestration errors."""


class InvalidRuleDefinitionError(PhaseBuildError, ValueError):
    pass


class DuplicateRuleError(PhaseBuildError):
    pass


class UndefinedTargetError(PhaseBuildError):
    pass


class CyclicDependencyError(PhaseBuildError):
    """A target or phase depends on itself, directly or transitively."""

    def __init__(self, node: Any, message: str | None = None):
        self.node = node
        super().__init__(message or f"{node} is part of a dependency cycle")


class UnknownPhaseError(PhaseBuildError, KeyError):
    def __init__(self, name: str, message: str | None = None):
        self.name = name
        super().__init__(message or f"Unknown phase: {name!r}")

    def __str__(self) -> str:
        # KeyError would otherwise quote the whole message
        return str(self.args[0])


class DuplicatePhaseSetupError(PhaseBuildError):
    pass


class InvalidPhaseDefinitionError(PhaseBuildError, ValueError):
    pass


class ConfigError(PhaseBuildError):
    """Raised by the CLI for unreadable config files or buildfiles."""

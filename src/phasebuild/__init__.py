"""Incremental build orchestrator.

Targets (files and virtual commands) form a dependency graph per phase;
phases are ordered through depends_on_phases and wrapped by pre and post
phases. Only stale targets are rebuilt, one action at a time, in dependency
order.
"""

from .core import BuildContext, RuleSpec, rule  # re-export for convenience
from .errors import (
    CyclicDependencyError,
    DuplicatePhaseSetupError,
    DuplicateRuleError,
    InvalidPhaseDefinitionError,
    InvalidRuleDefinitionError,
    PhaseBuildError,
    UndefinedTargetError,
    UnknownPhaseError,
)
from .files import FileSystem, LocalFiles
from .graph import BuildStep, TargetGraph
from .phases import Phase, PhaseRegistry, PhaseStep
from .targets import BuildRule, CommandTarget, FileTarget, Target, TargetInfo, TargetKind

__all__ = [
    "BuildContext",
    "BuildRule",
    "BuildStep",
    "CommandTarget",
    "CyclicDependencyError",
    "DuplicatePhaseSetupError",
    "DuplicateRuleError",
    "FileSystem",
    "FileTarget",
    "InvalidPhaseDefinitionError",
    "InvalidRuleDefinitionError",
    "LocalFiles",
    "Phase",
    "PhaseBuildError",
    "PhaseRegistry",
    "PhaseStep",
    "RuleSpec",
    "Target",
    "TargetGraph",
    "TargetInfo",
    "TargetKind",
    "UndefinedTargetError",
    "UnknownPhaseError",
    "rule",
]

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Callable

from .errors import DuplicatePhaseSetupError
from .files import FileSystem, LocalFiles
from .graph import BuildStep
from .logging import get_logger
from .phases import Phase, PhaseRegistry
from .targets import BuildAction, Target

PREDEFINED_PHASES = {"default_phase": "", "phases": [{"name": ""}]}


@dataclass
class RuleSpec:
    """Rule declared on a function with :func:`rule`, minus the action itself."""

    command: str | None = None
    file: str | None = None
    depends_on_commands: list[str] = field(default_factory=list)
    depends_on_files: list[str] = field(default_factory=list)
    phase: str | None = None

    def definition(self, action: BuildAction) -> dict:
        rule_def: dict = {
            "depends_on_commands": list(self.depends_on_commands),
            "depends_on_files": list(self.depends_on_files),
            "action": action,
        }
        if self.command is not None:
            rule_def["command"] = self.command
        if self.file is not None:
            rule_def["file"] = self.file
        return rule_def


def rule(
    *,
    command: str | None = None,
    file: str | None = None,
    depends_on_commands: list[str] | None = None,
    depends_on_files: list[str] | None = None,
    phase: str | None = None,
):
    """Decorator to declare a build rule on a function.

    The wrapped function receives a :class:`~phasebuild.targets.TargetInfo`
    and may be a coroutine function. The rule is only registered once the
    function is passed to :meth:`BuildContext.register`; ``phase`` defaults
    to the default phase of that context.
    """

    def deco(fn: Callable):
        spec = RuleSpec(
            command=command,
            file=file,
            depends_on_commands=list(depends_on_commands or []),
            depends_on_files=list(depends_on_files or []),
            phase=phase,
        )
        setattr(fn, "_rule_spec", spec)
        return fn

    return deco


class BuildContext:
    """Entry point holding the phases of one build.

    Until :meth:`define_phases` is called there is a single default phase
    named ``""``.
    """

    def __init__(self, files: FileSystem | None = None):
        self.files = files if files is not None else LocalFiles()
        self._predefined = PhaseRegistry(PREDEFINED_PHASES, self.files)
        self._registry = self._predefined
        self.logger = get_logger("context")

    @property
    def phases(self) -> dict[str, Phase]:
        return self._registry.phases

    @property
    def default_phase(self) -> Phase:
        return self._registry.default_phase

    @property
    def registry(self) -> PhaseRegistry:
        return self._registry

    def phase(self, name: str) -> Phase:
        return self._registry.phase(name)

    def define_phases(self, definition: Mapping) -> PhaseRegistry:
        if self._registry is not self._predefined:
            raise DuplicatePhaseSetupError("Phases can only be defined once")
        registry = PhaseRegistry(definition, self.files)
        dropped = len(self._predefined.default_phase.graph)
        if dropped:
            self.logger.warning(
                "Dropping %d targets added before phases were defined", dropped
            )
        self._registry = registry
        return registry

    def add_build(self, rule_def: Mapping) -> Target:
        return self.default_phase.add_build(rule_def)

    def register(self, fn: Callable) -> Target:
        """Add the rule declared with :func:`rule` on ``fn``."""
        spec = getattr(fn, "_rule_spec", None)
        if not isinstance(spec, RuleSpec):
            raise TypeError(f"{fn!r} is not decorated with @rule")
        phase = self.phase(spec.phase) if spec.phase is not None else self.default_phase
        return phase.add_build(spec.definition(fn))

    def _select(self, phase: str | None) -> Phase:
        return self.default_phase if phase is None else self.phase(phase)

    async def build_steps(self, phase: str | None = None) -> list[BuildStep]:
        return await self._select(phase).build_steps()

    async def build(self, phase: str | None = None) -> list[BuildStep]:
        return await self._select(phase).build()

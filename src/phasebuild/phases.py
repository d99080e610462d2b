"""Named phases, each wrapping one target graph.

A phase runs after the phases it depends on. When it runs, its optional pre
phase runs right before it and its optional post phase right after it, both
expanded the same way.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .errors import CyclicDependencyError, InvalidPhaseDefinitionError, UnknownPhaseError
from .files import FileSystem
from .graph import BuildStep, TargetGraph
from .logging import get_logger
from .traversal import VisitState, depth_first_order
from .utils import type_name

PHASE_KEYS = {"name", "depends_on_phases", "pre_phase", "post_phase"}


@dataclass(frozen=True)
class PhaseStep:
    phase: Phase
    skip: bool = False
    level: int = 0

    def __str__(self) -> str:
        return f"[{self.level}] {'skip' if self.skip else 'build'} {self.phase}"


class Phase:
    def __init__(self, name: str, files: FileSystem):
        self.name = name
        self.graph = TargetGraph(files, name=name)
        self.depends_on: list[Phase] = []
        self.pre: Phase | None = None
        self.post: Phase | None = None
        self.logger = get_logger("phase")

    def __repr__(self) -> str:
        return f"Phase({self.name!r})"

    def __str__(self) -> str:
        return f"phase:{self.name}"

    def set_dependencies(self, phases: list[Phase]) -> None:
        self.depends_on = []
        for p in phases:
            if not any(p is d for d in self.depends_on):
                self.depends_on.append(p)

    def set_pre_post(self, pre: Phase | None, post: Phase | None) -> Phase:
        self.pre = pre
        self.post = post
        return self

    def add_build(self, rule_def: Mapping):
        return self.graph.add_build(rule_def)

    def plan_steps(self) -> list[PhaseStep]:
        """Order this phase after everything it depends on.

        A phase reachable along several paths is listed once, at its first
        position; later references to it are skipped silently.
        """
        state: VisitState[Phase] = depth_first_order([self], lambda p: p.depends_on)
        return [PhaseStep(phase=p, level=state.levels[p]) for p in state.order]

    def expand_pre_self_post(self) -> list[Phase]:
        expanded: list[Phase] = []
        in_stack: set[Phase] = set()

        def expand(phase: Phase) -> None:
            if phase in in_stack:
                raise CyclicDependencyError(
                    phase, f"{phase} is used as its own pre or post phase"
                )
            in_stack.add(phase)
            if phase.pre is not None:
                expand(phase.pre)
            expanded.append(phase)
            if phase.post is not None:
                expand(phase.post)
            in_stack.discard(phase)

        expand(self)
        return expanded

    async def build_steps(self) -> list[BuildStep]:
        steps: list[BuildStep] = []
        offset = 0
        for plan_step in self.plan_steps():
            if plan_step.skip:
                continue
            for phase in plan_step.phase.expand_pre_self_post():
                graph_steps = [
                    BuildStep(s.target, s.rebuild, s.level + offset)
                    for s in await phase.graph.build_steps()
                ]
                if graph_steps:
                    # post-order may end on a leaf, so the deepest step sets the next offset
                    offset = max(s.level for s in graph_steps) + 1
                steps += graph_steps
        return steps

    async def build(self) -> list[BuildStep]:
        executed: list[BuildStep] = []
        for plan_step in self.plan_steps():
            self.logger.info(
                "Phase ::%s:: %s", plan_step.phase.name, "skip" if plan_step.skip else "build"
            )
            if plan_step.skip:
                continue
            for phase in plan_step.phase.expand_pre_self_post():
                executed += await phase.graph.build()
        return executed


class PhaseRegistry:
    """Every phase of one build, created once from a phase definition.

    The definition is checked completely on construction: names, references
    and cycles. No phase can be added afterwards.
    """

    def __init__(self, definition: Mapping, files: FileSystem):
        if not isinstance(definition, Mapping):
            raise InvalidPhaseDefinitionError(
                f"Expect phase definition of type dict instead of {type_name(definition)}"
            )
        default_name = definition.get("default_phase")
        if not isinstance(default_name, str):
            raise InvalidPhaseDefinitionError(
                f"Expect default_phase of type str instead of {type_name(default_name)}"
            )
        entries = definition.get("phases")
        if not isinstance(entries, (list, tuple)):
            raise InvalidPhaseDefinitionError(
                f"Expect phases of type list instead of {type_name(entries)}"
            )

        phases: dict[str, Phase] = {}
        for i, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                raise InvalidPhaseDefinitionError(
                    f"Expect phases[{i}] of type dict instead of {type_name(entry)}"
                )
            unknown = set(entry) - PHASE_KEYS
            if unknown:
                raise InvalidPhaseDefinitionError(
                    f"Unknown keys in phases[{i}]: {', '.join(sorted(map(str, unknown)))}"
                )
            name = entry.get("name")
            if not isinstance(name, str):
                raise InvalidPhaseDefinitionError(
                    f"Expect phases[{i}].name of type str instead of {type_name(name)}"
                )
            if name in phases:
                raise InvalidPhaseDefinitionError(
                    f"Expect phases[{i}].name = {name!r} to be unique"
                )
            phases[name] = Phase(name, files)
        self.phases = phases

        if default_name not in phases:
            raise UnknownPhaseError(
                default_name, f"default_phase = {default_name!r} is not a defined phase"
            )
        self.default_phase = phases[default_name]

        for i, entry in enumerate(entries):
            depends_on = entry.get("depends_on_phases") or []
            if not isinstance(depends_on, (list, tuple)):
                raise InvalidPhaseDefinitionError(
                    f"Expect phases[{i}].depends_on_phases of type list "
                    f"instead of {type_name(depends_on)}"
                )
            phase = phases[entry["name"]]
            phase.set_pre_post(
                self._reference(entry.get("pre_phase"), i, "pre_phase"),
                self._reference(entry.get("post_phase"), i, "post_phase"),
            ).set_dependencies(
                [
                    self._reference(name, i, f"depends_on_phases[{j}]", required=True)
                    for j, name in enumerate(depends_on)
                ]
            )

        self.validate()

    def _reference(
        self, name: Any, i: int, attr: str, required: bool = False
    ) -> Phase | None:
        if name is None and not required:
            return None
        if not isinstance(name, str):
            raise InvalidPhaseDefinitionError(
                f"Expect phases[{i}].{attr} of type str instead of {type_name(name)}"
            )
        if name not in self.phases:
            raise UnknownPhaseError(
                name, f"phases[{i}].{attr} = {name!r} does not reference a defined phase"
            )
        return self.phases[name]

    def validate(self) -> None:
        self.plan_steps()
        for phase in self.phases.values():
            phase.expand_pre_self_post()

    def plan_steps(self) -> list[PhaseStep]:
        """Order every phase of the registry after the phases it depends on."""
        state: VisitState[Phase] = depth_first_order(
            list(self.phases.values()), lambda p: p.depends_on
        )
        return [PhaseStep(phase=p, level=state.levels[p]) for p in state.order]

    def phase(self, name: str) -> Phase:
        if name not in self.phases:
            raise UnknownPhaseError(name)
        return self.phases[name]

    def __contains__(self, name: object) -> bool:
        return name in self.phases

    def __iter__(self):
        return iter(self.phases.values())

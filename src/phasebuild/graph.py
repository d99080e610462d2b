from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Iterator

from .errors import InvalidRuleDefinitionError, UndefinedTargetError
from .files import FileSystem
from .logging import graph_logger
from .targets import BuildRule, Target, TargetKey, TargetKind, new_target
from .traversal import VisitState, depth_first_order
from .utils import type_name

RULE_KEYS = {"command", "file", "depends_on_commands", "depends_on_files", "action"}


@dataclass(frozen=True)
class BuildStep:
    target: Target
    rebuild: bool
    level: int = 0

    def __str__(self) -> str:
        return f"[{self.level}] {'build' if self.rebuild else 'skip'} {self.target}"


def _string_list(rule_def: Mapping, name: str) -> tuple[str, ...]:
    paths = rule_def.get(name)
    if paths is None:
        return ()
    if not isinstance(paths, (list, tuple)):
        raise InvalidRuleDefinitionError(
            f"Expect {name} of type list instead of {type_name(paths)}"
        )
    for i, p in enumerate(paths):
        if not isinstance(p, str):
            raise InvalidRuleDefinitionError(
                f"Expect {name}[{i}] of type str instead of {type_name(p)}"
            )
    return tuple(paths)


def parse_rule(rule_def: Mapping) -> tuple[TargetKey, BuildRule]:
    """Check the shape of a rule definition and split it into target key and rule."""
    if not isinstance(rule_def, Mapping):
        raise InvalidRuleDefinitionError(
            f"Expect rule definition of type dict instead of {type_name(rule_def)}"
        )
    unknown = set(rule_def) - RULE_KEYS
    if unknown:
        raise InvalidRuleDefinitionError(
            f"Unknown rule definition keys: {', '.join(sorted(map(str, unknown)))}"
        )
    has_command, has_file = "command" in rule_def, "file" in rule_def
    if has_command == has_file:
        raise InvalidRuleDefinitionError(
            "Expect exactly one of 'command' or 'file' in rule definition"
        )
    kind = TargetKind.COMMAND if has_command else TargetKind.FILE
    path = rule_def[kind.value]
    if not isinstance(path, str) or not path:
        raise InvalidRuleDefinitionError(
            f"Expect {kind.value} to be a non-empty str instead of {path!r}"
        )
    action = rule_def.get("action")
    if not callable(action):
        raise InvalidRuleDefinitionError(
            f"Expect action to be callable instead of {type_name(action)}"
        )
    rule = BuildRule(
        action=action,
        depends_on_commands=_string_list(rule_def, "depends_on_commands"),
        depends_on_files=_string_list(rule_def, "depends_on_files"),
    )
    return TargetKey(kind, path), rule


class TargetGraph:
    """All targets of one scope, keyed by kind and path.

    Targets are created the first time they are named, either as the target
    of a rule or as one of its dependencies.
    """

    def __init__(self, files: FileSystem, name: str = ""):
        self.files = files
        self.name = name
        self.targets: dict[TargetKey, Target] = {}
        self.validated = False
        self.logger = graph_logger(name)

    def __len__(self) -> int:
        return len(self.targets)

    def __iter__(self) -> Iterator[Target]:
        return iter(self.targets.values())

    def target(self, path: str, kind: TargetKind = TargetKind.FILE) -> Target:
        key = TargetKey(kind, path)
        if key not in self.targets:
            raise KeyError(f"Unknown target: {key}")
        return self.targets[key]

    def _ensure_target(self, key: TargetKey) -> Target:
        target = self.targets.get(key)
        if target is None:
            target = new_target(key, self.files)
            self.targets[key] = target
        return target

    def add_build(self, rule_def: Mapping) -> Target:
        key, rule = parse_rule(rule_def)
        target = self._ensure_target(key)
        # a duplicate raises here, before any dependency node is created
        target.set_build_rule(rule)
        deps = [
            self._ensure_target(TargetKey(TargetKind.COMMAND, p))
            for p in rule.depends_on_commands
        ]
        deps += [
            self._ensure_target(TargetKey(TargetKind.FILE, p))
            for p in rule.depends_on_files
        ]
        target.add_dependencies(deps)
        self.validated = False
        self.logger.debug("Rule added: %s (%d dependencies)", key, len(deps))
        return target

    async def validate(self) -> None:
        if self.validated:
            return
        for target in self:
            if target.build_rule is not None:
                continue
            if target.is_virtual():
                if target.depends_on:
                    continue
            elif await target.exists():
                continue
            raise UndefinedTargetError(f"Undefined build rule for {target}")
        self.validated = True
        self.logger.debug("Validated %d targets", len(self.targets))

    async def build_steps(self) -> list[BuildStep]:
        await self.validate()
        state: VisitState[Target] = depth_first_order(
            list(self), lambda t: t.depends_on
        )
        # post-order: every dependency is already judged when its dependent is
        for target in state.order:
            rebuild = await target.needs_rebuild(state)
            if rebuild:
                state.stale.add(target)
            state.steps.append(
                BuildStep(target=target, rebuild=rebuild, level=state.levels[target])
            )
        return state.steps

    async def build(self) -> list[BuildStep]:
        """Run the actions of all stale targets in dependency order.

        Returns the steps whose action ran. An exception raised by an action
        propagates unchanged and leaves the remaining steps unbuilt.
        """
        executed: list[BuildStep] = []
        for step in await self.build_steps():
            target = step.target
            rule = target.build_rule
            if not step.rebuild or rule is None:
                self.logger.debug("Skip: %s", target)
                continue
            self.logger.info("Build: %s", target)
            result = await rule.call(target.info())
            if result is not None:
                self.logger.debug("Action result for %s: %s", target, result)
            if not target.is_virtual():
                await self.files.touch(target.path)
            executed.append(step)
        return executed

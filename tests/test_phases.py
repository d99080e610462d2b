from __future__ import annotations

import pytest

from phasebuild import (
    CyclicDependencyError,
    InvalidPhaseDefinitionError,
    Phase,
    PhaseRegistry,
    UnknownPhaseError,
)


def _names(plan):
    return [(s.phase.name, s.skip) for s in plan]


def test_depends_on_phase_is_planned_first(files):
    registry = PhaseRegistry(
        {
            "default_phase": "build",
            "phases": [{"name": "clean"}, {"name": "build", "depends_on_phases": ["clean"]}],
        },
        files,
    )

    assert registry.default_phase.name == "build"
    assert _names(registry.default_phase.plan_steps()) == [("clean", False), ("build", False)]
    assert _names(registry.phase("clean").plan_steps()) == [("clean", False)]


def test_shared_phase_is_listed_once(files):
    registry = PhaseRegistry(
        {
            "default_phase": "release",
            "phases": [
                {"name": "fetch"},
                {"name": "compile", "depends_on_phases": ["fetch"]},
                {"name": "docs", "depends_on_phases": ["fetch"]},
                {"name": "release", "depends_on_phases": ["compile", "docs", "fetch"]},
            ],
        },
        files,
    )

    plan = registry.default_phase.plan_steps()
    assert [s.phase.name for s in plan] == ["fetch", "compile", "docs", "release"]
    assert [s.level for s in plan] == [0, 1, 1, 2]
    assert [s.phase.name for s in registry.plan_steps()] == ["fetch", "compile", "docs", "release"]


def test_phase_cycle_is_detected_on_construction(files):
    with pytest.raises(CyclicDependencyError):
        PhaseRegistry(
            {
                "default_phase": "a",
                "phases": [
                    {"name": "a", "depends_on_phases": ["b"]},
                    {"name": "b", "depends_on_phases": ["c"]},
                    {"name": "c", "depends_on_phases": ["a"]},
                ],
            },
            files,
        )


@pytest.mark.parametrize(
    "phases",
    [
        [{"name": "a", "pre_phase": "a"}],
        [{"name": "a", "post_phase": "a"}],
        [{"name": "a", "pre_phase": "b"}, {"name": "b", "post_phase": "a"}],
    ],
)
def test_pre_post_cycle_is_detected_on_construction(files, phases):
    with pytest.raises(CyclicDependencyError):
        PhaseRegistry({"default_phase": "a", "phases": phases}, files)


def test_expand_detects_cycles_independently(files):
    a, b = Phase("a", files), Phase("b", files)
    a.set_pre_post(None, b)
    b.set_pre_post(a, None)

    assert _names(a.plan_steps()) == [("a", False)]
    with pytest.raises(CyclicDependencyError) as exc_info:
        a.expand_pre_self_post()
    assert exc_info.value.node is a


def test_pre_and_post_are_expanded_recursively(files):
    registry = PhaseRegistry(
        {
            "default_phase": "main",
            "phases": [
                {"name": "setup"},
                {"name": "warmup", "pre_phase": "setup"},
                {"name": "report"},
                {"name": "teardown", "pre_phase": "report"},
                {"name": "main", "pre_phase": "warmup", "post_phase": "teardown"},
            ],
        },
        files,
    )

    expanded = registry.default_phase.expand_pre_self_post()
    assert [p.name for p in expanded] == ["setup", "warmup", "main", "report", "teardown"]


@pytest.mark.parametrize(
    "definition, error",
    [
        ({"default_phase": "missing", "phases": [{"name": "a"}]}, UnknownPhaseError),
        ({"default_phase": "a", "phases": [{"name": "a", "depends_on_phases": ["x"]}]}, UnknownPhaseError),
        ({"default_phase": "a", "phases": [{"name": "a", "pre_phase": "x"}]}, UnknownPhaseError),
        ({"default_phase": "a", "phases": [{"name": "a", "post_phase": "x"}]}, UnknownPhaseError),
        ({"default_phase": "a", "phases": [{"name": "a"}, {"name": "a"}]}, InvalidPhaseDefinitionError),
        ({"default_phase": 1, "phases": [{"name": "a"}]}, InvalidPhaseDefinitionError),
        ({"default_phase": "a", "phases": "a"}, InvalidPhaseDefinitionError),
        ({"default_phase": "a", "phases": [{"name": None}]}, InvalidPhaseDefinitionError),
        ({"default_phase": "a", "phases": [{"name": "a", "depends_on_phases": "b"}]}, InvalidPhaseDefinitionError),
        ({"default_phase": "a", "phases": [{"name": "a", "depends_on_phases": [None]}]}, InvalidPhaseDefinitionError),
        ({"default_phase": "a", "phases": [{"name": "a", "dependsOnPhases": []}]}, InvalidPhaseDefinitionError),
        (None, InvalidPhaseDefinitionError),
    ],
)
def test_invalid_phase_definitions(files, definition, error):
    with pytest.raises(error):
        PhaseRegistry(definition, files)


def test_unknown_phase_lookup(files):
    registry = PhaseRegistry({"default_phase": "a", "phases": [{"name": "a"}]}, files)

    with pytest.raises(UnknownPhaseError) as exc_info:
        registry.phase("b")
    assert isinstance(exc_info.value, KeyError)
    assert exc_info.value.name == "b"
    assert "a" in registry and "b" not in registry


def _ordered_registry(files, log):
    registry = PhaseRegistry(
        {
            "default_phase": "build",
            "phases": [
                {"name": "pre-clean"},
                {"name": "post-clean"},
                {"name": "clean", "pre_phase": "pre-clean", "post_phase": "post-clean"},
                {"name": "build", "depends_on_phases": ["clean"]},
            ],
        },
        files,
    )
    for phase in registry:
        phase.add_build({"command": phase.name, "action": lambda info: log.append(info.path)})
    return registry


@pytest.mark.asyncio
async def test_build_runs_pre_self_post_in_plan_order(files):
    log = []
    registry = _ordered_registry(files, log)

    executed = await registry.default_phase.build()
    assert log == ["pre-clean", "clean", "post-clean", "build"]
    assert len(executed) == 4


@pytest.mark.asyncio
async def test_build_steps_concatenate_expanded_phases(files):
    log = []
    registry = _ordered_registry(files, log)
    registry.phase("clean").add_build(
        {"command": "wipe", "depends_on_commands": ["clean"], "action": log.append}
    )

    steps = await registry.default_phase.build_steps()
    assert [str(s.target) for s in steps] == [
        "command:pre-clean",
        "command:clean",
        "command:wipe",
        "command:post-clean",
        "command:build",
    ]
    assert [s.level for s in steps] == [0, 1, 2, 3, 4]
    assert log == []


@pytest.mark.asyncio
async def test_phase_graphs_are_independent(files):
    log = []
    registry = _ordered_registry(files, log)

    await registry.phase("pre-clean").build()
    assert log == ["pre-clean"]


@pytest.mark.asyncio
async def test_next_phase_starts_above_the_deepest_level(files, recorder):
    registry = PhaseRegistry(
        {
            "default_phase": "b",
            "phases": [{"name": "a"}, {"name": "b", "depends_on_phases": ["a"]}],
        },
        files,
    )
    a = registry.phase("a")
    a.add_build({"command": "x", "action": recorder})
    a.add_build({"command": "y", "depends_on_commands": ["x"], "action": recorder})
    # z is the last step of a but sits at level 0
    a.add_build({"command": "z", "action": recorder})
    registry.phase("b").add_build({"command": "w", "action": recorder})

    steps = await registry.default_phase.build_steps()
    levels = {s.target.path: s.level for s in steps}
    assert [s.target.path for s in steps] == ["x", "y", "z", "w"]
    assert levels == {"x": 0, "y": 1, "z": 0, "w": 2}
    assert levels["w"] > max(levels[p] for p in ("x", "y", "z"))

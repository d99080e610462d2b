"""Depth-first topological ordering shared by target graphs and phases."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Hashable, Iterable, Iterator, TypeVar

from .errors import CyclicDependencyError

N = TypeVar("N", bound=Hashable)


@dataclass
class VisitState(Generic[N]):
    """Bookkeeping of one traversal. Owned by a single build_steps/plan_steps call."""

    in_stack: set[N] = field(default_factory=set)
    visited: set[N] = field(default_factory=set)
    stale: set[N] = field(default_factory=set)
    order: list[N] = field(default_factory=list)
    levels: dict[N, int] = field(default_factory=dict)
    steps: list[Any] = field(default_factory=list)


def depth_first_order(
    roots: Iterable[N],
    dependencies_of: Callable[[N], Iterable[N]],
    state: VisitState[N] | None = None,
) -> VisitState[N]:
    """Append every node reachable from ``roots`` to ``state.order`` in post-order.

    Dependencies always precede their dependents and each node is listed once.
    A node met again while still on the stack raises CyclicDependencyError.
    ``state.levels`` receives 0 for leaves and 1 + max(dependency level) otherwise.

    Uses an explicit stack, so chain depth is not bounded by the recursion limit.
    """
    if state is None:
        state = VisitState()

    for root in roots:
        if root in state.visited:
            continue
        # (node, remaining dependencies, level so far)
        stack: list[tuple[N, Iterator[N], int]] = [(root, iter(dependencies_of(root)), 0)]
        state.in_stack.add(root)
        while stack:
            node, deps, level = stack[-1]
            pushed = False
            for dep in deps:
                if dep in state.visited:
                    level = max(level, state.levels[dep] + 1)
                    continue
                if dep in state.in_stack:
                    raise CyclicDependencyError(dep)
                stack[-1] = (node, deps, level)
                state.in_stack.add(dep)
                stack.append((dep, iter(dependencies_of(dep)), 0))
                pushed = True
                break
            if pushed:
                continue
            stack.pop()
            state.levels[node] = level
            state.order.append(node)
            state.in_stack.discard(node)
            state.visited.add(node)
            if stack:
                parent, parent_deps, parent_level = stack[-1]
                stack[-1] = (parent, parent_deps, max(parent_level, level + 1))
    return state

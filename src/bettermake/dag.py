# dag.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Set, Tuple, Union

from .resolver import AliasResolver
from .errors import DependencyCycleError, ToolchainConflictError
from .registry import TaskRegistry


@dataclass(frozen=True)
class JoinGroup:
    """Sibling tasks of a parallel alias: dispatched together, joined before moving on."""
    alias: str
    tasks: Tuple[str, ...]


Stage = Union[str, JoinGroup]


@dataclass
class ExecutionPlan:
    """
    Resolved plan for one requested task.

    `stages` run strictly in order. A plain string is one task; a JoinGroup
    is a set of tasks with no ordering constraint among themselves.
    """
    target: str
    stages: List[Stage] = field(default_factory=list)

    @property
    def order(self) -> List[str]:
        out: List[str] = []
        for stage in self.stages:
            if isinstance(stage, JoinGroup):
                out.extend(stage.tasks)
            else:
                out.append(stage)
        return out

    def __len__(self) -> int:
        return len(self.order)


class GraphBuilder:
    """
    Expands a requested task into its full execution order.

    Post-order DFS: dependencies first, then the task. `visiting` is the
    current DFS path (cycle detection), `visited` holds tasks already
    emitted (diamonds collapse to a single run).
    """

    def __init__(self, registry: TaskRegistry, resolver: AliasResolver | None = None):
        self.registry = registry
        self.resolver = resolver or AliasResolver(registry)

    def expand(self, name: str) -> List[str]:
        return self.plan(name).order

    def plan(self, name: str) -> ExecutionPlan:
        self.registry.lookup(name)
        self.resolver.check_all()

        plan = ExecutionPlan(target=name)
        self._visit(name, [], set(), plan.stages)
        self._check_group_toolchains(plan)
        return plan

    # ------------------------------------------------------------------

    @staticmethod
    def _enter(name: str, visiting: List[str]) -> None:
        if name in visiting:
            raise DependencyCycleError([*visiting[visiting.index(name):], name])
        visiting.append(name)

    def _visit(self, name: str, visiting: List[str], visited: Set[str], stages: List[Stage]) -> None:
        task = self.registry.lookup(name)

        if task.is_alias:
            self._enter(name, visiting)
            targets = self.resolver.resolve(name)
            if task.parallel and len(targets) > 1:
                self._visit_group(name, targets, visiting, visited, stages)
            else:
                for t in targets:
                    self._visit(t, visiting, visited, stages)
            visiting.pop()
            return

        if name in visited:
            return

        self._enter(name, visiting)
        for dep in task.dependencies:
            self._visit(dep, visiting, visited, stages)
        visiting.pop()

        visited.add(name)
        stages.append(name)

    def _visit_group(
        self,
        alias: str,
        targets: Tuple[str, ...],
        visiting: List[str],
        visited: Set[str],
        stages: List[Stage],
    ) -> None:
        # Dependencies of every member go first. A member reached through a
        # sibling's dependencies is emitted there and leaves the group.
        for t in targets:
            if t in visited:
                continue
            self._enter(t, visiting)
            for dep in self.registry.lookup(t).dependencies:
                self._visit(dep, visiting, visited, stages)
            visiting.pop()

        members = tuple(t for t in targets if t not in visited)
        visited.update(members)
        if len(members) > 1:
            stages.append(JoinGroup(alias=alias, tasks=members))
        elif members:
            stages.append(members[0])

    def _check_group_toolchains(self, plan: ExecutionPlan) -> None:
        for stage in plan.stages:
            if not isinstance(stage, JoinGroup):
                continue
            toolchains = {}
            for t in stage.tasks:
                tc = self.registry.lookup(t).toolchain
                if tc is not None:
                    toolchains[t] = tc
            if len(set(toolchains.values())) > 1:
                raise ToolchainConflictError(stage.alias, toolchains)

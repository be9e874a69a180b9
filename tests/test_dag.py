from __future__ import annotations

import pytest

from bettermake.dag import GraphBuilder, JoinGroup
from bettermake.errors import (
    CyclicAliasError,
    DependencyCycleError,
    ToolchainConflictError,
    UnknownTaskError,
)
from bettermake.model import Task

from conftest import registry_of, runnable


def _assert_topological(registry, order):
    assert len(order) == len(set(order))
    position = {name: i for i, name in enumerate(order)}
    for name in order:
        for dep in registry.lookup(name).dependencies:
            for concrete in GraphBuilder(registry).resolver.resolve(dep):
                assert position[concrete] < position[name]


def test_example_build_test_lint() -> None:
    registry = registry_of(
        runnable("build"),
        runnable("test", "build"),
        runnable("lint", "build"),
        Task(name="all", alias=("test", "lint")),
    )
    order = GraphBuilder(registry).expand("all")

    assert order[0] == "build"
    assert sorted(order[1:]) == ["lint", "test"]
    _assert_topological(registry, order)


def test_diamond_runs_shared_dependency_once() -> None:
    registry = registry_of(
        runnable("D"),
        runnable("B", "D"),
        runnable("C", "D"),
        runnable("A", "B", "C"),
    )
    order = GraphBuilder(registry).expand("A")

    assert order == ["D", "B", "C", "A"]


def test_deep_transitive_dependencies_all_present() -> None:
    registry = registry_of(
        runnable("a"),
        runnable("b", "a"),
        runnable("c", "b"),
        runnable("d", "c", "a"),
        runnable("e", "d", "b"),
    )
    order = GraphBuilder(registry).expand("e")

    assert set(order) == {"a", "b", "c", "d", "e"}
    _assert_topological(registry, order)


def test_dependency_on_alias_expands_its_targets_in_order() -> None:
    registry = registry_of(
        runnable("fuzz_intv"),
        runnable("fuzz_set"),
        Task(name="fuzz", alias=("fuzz_intv", "fuzz_set")),
        runnable("report", "fuzz"),
    )
    assert GraphBuilder(registry).expand("report") == ["fuzz_intv", "fuzz_set", "report"]


def test_dependency_cycle_reports_path() -> None:
    registry = registry_of(
        runnable("a", "b"),
        runnable("b", "c"),
        runnable("c", "a"),
    )
    with pytest.raises(DependencyCycleError) as exc:
        GraphBuilder(registry).expand("a")
    assert list(exc.value.path) == ["a", "b", "c", "a"]


def test_self_dependency_is_a_cycle() -> None:
    registry = registry_of(runnable("a", "a"))
    with pytest.raises(DependencyCycleError):
        GraphBuilder(registry).expand("a")


def test_cycle_through_alias_is_detected() -> None:
    registry = registry_of(
        runnable("a", "all"),
        Task(name="all", alias=("a",)),
    )
    with pytest.raises(DependencyCycleError) as exc:
        GraphBuilder(registry).expand("a")
    assert list(exc.value.path) == ["a", "all", "a"]


def test_alias_cycle_fails_before_expansion() -> None:
    registry = registry_of(
        runnable("build"),
        Task(name="x", alias=("y",)),
        Task(name="y", alias=("x",)),
    )
    with pytest.raises(CyclicAliasError):
        GraphBuilder(registry).expand("build")


def test_unknown_requested_task() -> None:
    with pytest.raises(UnknownTaskError):
        GraphBuilder(registry_of(runnable("build"))).plan("deploy")


def test_parallel_alias_becomes_join_group_after_shared_deps() -> None:
    registry = registry_of(
        runnable("build"),
        runnable("test", "build"),
        runnable("lint", "build"),
        Task(name="all", alias=("test", "lint"), parallel=True),
    )
    plan = GraphBuilder(registry).plan("all")

    assert plan.stages == ["build", JoinGroup(alias="all", tasks=("test", "lint"))]
    assert plan.order == ["build", "test", "lint"]
    assert len(plan) == 3


def test_group_member_depending_on_sibling_leaves_group() -> None:
    registry = registry_of(
        runnable("a"),
        runnable("b", "a"),
        runnable("c"),
        Task(name="grp", alias=("a", "b", "c"), parallel=True),
    )
    plan = GraphBuilder(registry).plan("grp")

    assert plan.stages == ["a", JoinGroup(alias="grp", tasks=("b", "c"))]


def test_group_with_single_remaining_member_is_plain_stage() -> None:
    registry = registry_of(
        runnable("a"),
        runnable("b", "a"),
        Task(name="grp", alias=("a", "b"), parallel=True),
    )
    assert GraphBuilder(registry).plan("grp").stages == ["a", "b"]


def test_conflicting_toolchains_in_group_are_rejected() -> None:
    registry = registry_of(
        runnable("cov", toolchain="nightly"),
        runnable("test", toolchain="stable"),
        runnable("doc"),
        Task(name="all", alias=("cov", "test", "doc"), parallel=True),
    )
    with pytest.raises(ToolchainConflictError) as exc:
        GraphBuilder(registry).plan("all")
    assert exc.value.toolchains == {"cov": "nightly", "test": "stable"}


def test_same_toolchain_in_group_is_fine() -> None:
    registry = registry_of(
        runnable("cov", toolchain="nightly"),
        runnable("fuzz", toolchain="nightly"),
        runnable("doc"),
        Task(name="all", alias=("cov", "fuzz", "doc"), parallel=True),
    )
    assert len(GraphBuilder(registry).plan("all").stages) == 1


def test_sequential_alias_allows_mixed_toolchains() -> None:
    registry = registry_of(
        runnable("cov", toolchain="nightly"),
        runnable("test", toolchain="stable"),
        Task(name="all", alias=("cov", "test")),
    )
    assert GraphBuilder(registry).expand("all") == ["cov", "test"]

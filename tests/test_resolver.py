from __future__ import annotations

import pytest

from bettermake.resolver import AliasResolver
from bettermake.errors import CyclicAliasError
from bettermake.model import Task

from conftest import registry_of, runnable


def test_runnable_task_resolves_to_itself() -> None:
    resolver = AliasResolver(registry_of(runnable("build")))
    assert resolver.resolve("build") == ("build",)


def test_alias_chain_is_followed() -> None:
    registry = registry_of(
        runnable("workflow-step"),
        Task(name="workflow", alias=("workflow-step",)),
        Task(name="default", alias=("workflow",)),
    )
    assert AliasResolver(registry).resolve("default") == ("workflow-step",)


def test_multi_target_alias_keeps_order_and_dedups() -> None:
    registry = registry_of(
        runnable("a"),
        runnable("b"),
        runnable("c"),
        Task(name="ab", alias=("a", "b")),
        Task(name="all", alias=("ab", "c", "a")),
    )
    assert AliasResolver(registry).resolve("all") == ("a", "b", "c")


def test_two_aliases_pointing_at_each_other() -> None:
    registry = registry_of(Task(name="a", alias=("b",)), Task(name="b", alias=("a",)))

    with pytest.raises(CyclicAliasError) as exc:
        AliasResolver(registry).resolve("a")
    assert list(exc.value.path) == ["a", "b", "a"]


def test_shared_alias_target_is_not_a_cycle() -> None:
    registry = registry_of(
        runnable("x"),
        Task(name="shared", alias=("x",)),
        Task(name="left", alias=("shared",)),
        Task(name="top", alias=("left", "shared")),
    )
    assert AliasResolver(registry).resolve("top") == ("x",)


def test_check_all_finds_cycle_in_unrequested_alias() -> None:
    registry = registry_of(
        runnable("build"),
        Task(name="loop", alias=("loop",)),
    )
    with pytest.raises(CyclicAliasError):
        AliasResolver(registry).check_all()

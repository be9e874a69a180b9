# src/bettermake/dsl.py
from __future__ import annotations

from typing import Dict, List, Optional

from .model import Task, ToolRequirement


# ---------------------------------------------------------------------
# Functional helpers
# ---------------------------------------------------------------------

def task(
    name: str,
    command: str,
    *args: str,
    needs: Optional[List[str]] = None,
    toolchain: Optional[str] = None,
    install: Optional[str | ToolRequirement] = None,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    description: Optional[str] = None,
) -> Task:
    """A runnable task: task("clippy", "cargo", "clippy", "--all-features")."""
    if isinstance(install, str):
        install = ToolRequirement(crate=install)

    t = Task(
        name=name,
        dependencies=tuple(needs or ()),
        command=command,
        args=tuple(args),
        toolchain=toolchain,
        install_crate=install,
        env={k: str(v) for k, v in (env or {}).items()},
        cwd=cwd,
        description=description,
    )
    t.validate()
    return t


def alias(name: str, *targets: str, parallel: bool = False, description: Optional[str] = None) -> Task:
    """A task that stands for one or more other tasks."""
    t = Task(name=name, alias=tuple(targets), parallel=parallel, description=description)
    t.validate()
    return t


def group(name: str, *deps: str, description: Optional[str] = None) -> Task:
    """Dependencies-only task; stored as an alias of its dependencies."""
    return alias(name, *deps, description=description)


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class TaskBuilder:
    def __init__(self, name: str):
        self.name = name
        self._needs: list[str] = []
        self._command: Optional[str] = None
        self._args: list[str] = []
        self._toolchain: Optional[str] = None
        self._install: Optional[ToolRequirement] = None
        self._env: dict[str, str] = {}
        self._cwd: Optional[str] = None
        self._description: Optional[str] = None

    def depends_on(self, *task_names: str):
        self._needs.extend(task_names)
        return self

    def run(self, command: str, *args: str):
        self._command = command
        self._args = list(args)
        return self

    def with_toolchain(self, toolchain: str):
        self._toolchain = toolchain
        return self

    def requires_tool(self, crate: str, *, binary: str | None = None, test_args: tuple[str, ...] | None = None):
        self._install = ToolRequirement(crate=crate, binary=binary, test_args=test_args)
        return self

    def with_env(self, **env):
        # values end up in a subprocess environment
        self._env.update({k: str(v) for k, v in env.items()})
        return self

    def in_dir(self, cwd: str):
        self._cwd = cwd
        return self

    def describe(self, text: str):
        self._description = text
        return self

    def build(self) -> Task:
        t = Task(
            name=self.name,
            dependencies=tuple(self._needs),
            command=self._command,
            args=tuple(self._args),
            toolchain=self._toolchain,
            install_crate=self._install,
            env=self._env,
            cwd=self._cwd,
            description=self._description,
        )
        t.validate()
        return t


def build(name: str) -> TaskBuilder:
    """Convenience: build('doc').run('cargo', 'doc').build()"""
    return TaskBuilder(name)


# ---------------------------------------------------------------------
# Task file helper
# ---------------------------------------------------------------------

def taskset(*tasks: Task) -> List[Task]:
    """
    Task file helper. Named so it does not collide with the `tasks()`
    hook the loader looks for:

        from bettermake import taskset, task, alias

        def tasks():
            return taskset(
                task("test", "cargo", "test"),
                alias("default", "test"),
            )
    """
    return list(tasks)

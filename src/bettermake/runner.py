# runner.py
from __future__ import annotations

import logging
import os
import subprocess
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Set

from .config import EngineSettings
from .dag import ExecutionPlan, GraphBuilder, JoinGroup
from .errors import PROVISIONING_ERRORS, BetterMakeError, TaskExecutionError
from .model import Task
from .provision import Provisioner, ToolchainScope
from .registry import TaskRegistry
from .ui.console import Console, get_console

logger = logging.getLogger(__name__)

# (argv, env, cwd) -> exit status
CommandRunner = Callable[[Sequence[str], Mapping[str, str], Optional[str]], int]

COMMAND_NOT_EXECUTABLE = 126
COMMAND_NOT_FOUND = 127


def _run_command(argv: Sequence[str], env: Mapping[str, str], cwd: Optional[str]) -> int:
    """Run one external command, output streamed to the terminal."""
    proc = subprocess.run(list(argv), env=dict(env), cwd=cwd, check=False)
    return proc.returncode


class TaskState(str, Enum):
    PENDING = "pending"
    TOOLCHAIN_SELECTING = "toolchain-selecting"
    PROVISIONING = "provisioning"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass
class ExecutionContext:
    """Mutable state of one run. Owned by the Scheduler, never shared between runs."""
    toolchain: ToolchainScope = field(default_factory=ToolchainScope)
    executed: Set[str] = field(default_factory=set)
    states: Dict[str, TaskState] = field(default_factory=dict)
    failure: Optional[BetterMakeError] = None

    def fail(self, name: str, error: BetterMakeError) -> None:
        self.states[name] = TaskState.FAILED
        self.executed.add(name)
        if self.failure is None:
            self.failure = error


@dataclass
class RunResult:
    states: Dict[str, TaskState]
    failure: Optional[BetterMakeError] = None
    installed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failure is None

    def raise_for_failure(self) -> None:
        if self.failure is not None:
            raise self.failure


class Scheduler:
    """
    Runs an ExecutionPlan stage by stage.

    - single tasks run on the calling (controlling) thread
    - JoinGroup members are provisioned serially, then dispatched to a pool
      bounded by settings.jobs and fully joined before the next stage
    - the first failure stops all further launches; started siblings drain
    """

    def __init__(
        self,
        registry: TaskRegistry,
        settings: EngineSettings | None = None,
        *,
        provisioner: Provisioner | None = None,
        console: Console | None = None,
        run_command: CommandRunner = _run_command,
        root: str | Path = ".",
    ):
        self.registry = registry
        self.settings = settings or EngineSettings()
        self.provisioner = provisioner or Provisioner(self.settings)
        self.console = console or get_console()
        self.run_command = run_command
        self.root = Path(root).resolve()

    def run(self, plan: ExecutionPlan) -> RunResult:
        ctx = ExecutionContext()
        for name in plan.order:
            ctx.states[name] = TaskState.PENDING

        for stage in plan.stages:
            if ctx.failure is not None:
                break
            if isinstance(stage, JoinGroup):
                self._run_group(stage, ctx)
            else:
                self._run_one(stage, ctx)

        return RunResult(states=ctx.states, failure=ctx.failure, installed=list(self.provisioner.installed))

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run_one(self, name: str, ctx: ExecutionContext) -> None:
        if name in ctx.executed:
            return
        task = self.registry.lookup(name)
        try:
            with self._task_scope(task, ctx) as env:
                ctx.states[name] = TaskState.RUNNING
                self.console.print_task_start(name, self._argv(task), ctx.toolchain.active)
                code = self._invoke(task, env)
        except PROVISIONING_ERRORS as e:
            self._provision_failed(name, e, ctx)
            return
        self._finish(task, code, ctx)

    def _run_group(self, group: JoinGroup, ctx: ExecutionContext) -> None:
        # Toolchain checks and installs happen here, on the controlling
        # thread; workers only get a finished environment.
        envs: Dict[str, Dict[str, str]] = {}
        toolchains: Dict[str, Optional[str]] = {}
        for name in group.tasks:
            if name in ctx.executed:
                continue
            task = self.registry.lookup(name)
            try:
                with self._task_scope(task, ctx) as env:
                    envs[name] = env
                    toolchains[name] = ctx.toolchain.active
            except PROVISIONING_ERRORS as e:
                self._provision_failed(name, e, ctx)
                return
            # provisioned, waiting for a worker
            ctx.states[name] = TaskState.PENDING

        pending = list(envs)
        in_flight: Dict[Future, str] = {}
        jobs = max(1, self.settings.jobs)
        logger.debug("dispatching group %s (%d tasks, jobs=%d)", group.alias, len(pending), jobs)

        with ThreadPoolExecutor(max_workers=jobs) as pool:
            while pending or in_flight:
                while pending and ctx.failure is None and len(in_flight) < jobs:
                    name = pending.pop(0)
                    task = self.registry.lookup(name)
                    ctx.states[name] = TaskState.RUNNING
                    self.console.print_task_start(name, self._argv(task), toolchains[name])
                    fut = pool.submit(self._invoke, task, envs[name])
                    in_flight[fut] = name

                if not in_flight:
                    break

                # wait for one completion, then loop to launch more
                fut = next(as_completed(list(in_flight)))
                name = in_flight.pop(fut)
                self._finish(self.registry.lookup(name), fut.result(), ctx)

    # ------------------------------------------------------------------
    # Per-task steps
    # ------------------------------------------------------------------

    @contextmanager
    def _task_scope(self, task: Task, ctx: ExecutionContext) -> Iterator[Dict[str, str]]:
        """Pending -> ToolchainSelecting -> (Provisioning) -> ready to run."""
        ctx.states[task.name] = TaskState.TOOLCHAIN_SELECTING
        if task.toolchain is not None:
            self.provisioner.select_toolchain(task.toolchain)

        with ctx.toolchain.use(task.toolchain) as active:
            if task.install_crate is not None:
                ctx.states[task.name] = TaskState.PROVISIONING
                if self.provisioner.ensure_tool(task.install_crate):
                    self.console.print_tool_installed(task.name, task.install_crate.crate)
            yield self._environment(task, active)

    def _environment(self, task: Task, toolchain: Optional[str]) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(self.settings.env)
        env.update(task.env)
        env.update(self.provisioner.env_overlay(toolchain))
        return env

    @staticmethod
    def _argv(task: Task) -> List[str]:
        return [task.command or "", *task.args]

    def _invoke(self, task: Task, env: Mapping[str, str]) -> int:
        cwd = str((self.root / task.cwd).resolve()) if task.cwd else str(self.root)
        try:
            return self.run_command(self._argv(task), env, cwd)
        except (FileNotFoundError, NotADirectoryError) as e:
            logger.debug("task %s could not start: %s", task.name, e)
            return COMMAND_NOT_FOUND
        except OSError as e:
            # PermissionError and friends: found but could not be executed
            logger.debug("task %s could not start: %s", task.name, e)
            return COMMAND_NOT_EXECUTABLE

    def _finish(self, task: Task, code: int, ctx: ExecutionContext) -> None:
        if code == 0:
            ctx.states[task.name] = TaskState.SUCCEEDED
            ctx.executed.add(task.name)
            self.console.print_success(task.name)
            return

        err = TaskExecutionError(task.name, code)
        hint = None
        if code == COMMAND_NOT_FOUND:
            hint = f"'{task.command}' may not be installed or on PATH"
        elif code == COMMAND_NOT_EXECUTABLE:
            hint = f"'{task.command}' exists but could not be executed (check permissions)"
        self.console.print_failure(task.name, str(err), exit_code=code, hint=hint)
        ctx.fail(task.name, err)

    def _provision_failed(self, name: str, error: BetterMakeError, ctx: ExecutionContext) -> None:
        self.console.print_failure(name, str(error))
        ctx.fail(name, error)


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_task(
    registry: TaskRegistry,
    name: str,
    settings: EngineSettings | None = None,
    **scheduler_kwargs,
) -> Dict[str, TaskState]:
    """
    Plan and run `name`. Configuration errors raise before anything runs;
    the first task or provisioning failure is raised after the run stops.
    """
    plan = GraphBuilder(registry).plan(name)
    result = Scheduler(registry, settings, **scheduler_kwargs).run(plan)
    result.raise_for_failure()
    return result.states

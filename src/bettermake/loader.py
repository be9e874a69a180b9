# loader.py
from __future__ import annotations

import runpy
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .config import EngineSettings, string_map
from .errors import ConfigError
from .model import Task, ToolRequirement
from .registry import TaskRegistry

DEFAULT_TASK_FILES = ("Makefile.toml", "bettermake.toml")

TASK_FIELDS = {
    "description",
    "dependencies",
    "alias",
    "command",
    "args",
    "toolchain",
    "install_crate",
    "env",
    "cwd",
    "parallel",
}


@dataclass
class TaskFile:
    """A loaded task file: its registry plus the settings from `[config]`/`[env]`."""
    path: Optional[Path]
    registry: TaskRegistry
    settings: EngineSettings

    @property
    def root(self) -> Path:
        return self.path.parent if self.path is not None else Path(".").resolve()


# ----------------------------------------------------------------------
# Entry point
# ----------------------------------------------------------------------

def load_tasks(path: str | Path) -> TaskFile:
    """
    Load a task file.

    `.toml` files use the `[tasks.<name>]` layout. `.py` files must define
    either:
      - tasks() -> List[Task]
      - TASKS = [Task, ...]
    and may define CONFIG / ENV dicts mirroring the `[config]` / `[env]` tables.
    """
    file_path = Path(path).expanduser().resolve()
    if not file_path.exists():
        raise ConfigError(f"Task file not found: {file_path}")

    if file_path.suffix == ".toml":
        try:
            with file_path.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"{file_path.name}: {e}") from e
        return parse_tasks(data, path=file_path)

    if file_path.suffix == ".py":
        return _load_python(file_path)

    raise ConfigError(f"Task file must be .toml or .py, got: {file_path.name}")


def parse_tasks(data: Mapping[str, Any], *, path: Optional[Path] = None) -> TaskFile:
    """Build a TaskFile from an already-parsed TOML document."""
    tasks_table = data.get("tasks", {})
    if not isinstance(tasks_table, Mapping):
        raise ConfigError("[tasks] must be a table of task tables")

    tasks: List[Task] = []
    for name, table in tasks_table.items():
        if not isinstance(table, Mapping):
            raise ConfigError(f"[tasks.{name}] must be a table")
        tasks.append(task_from_table(name, table))

    config = data.get("config", {})
    env = data.get("env", {})
    if not isinstance(config, Mapping) or not isinstance(env, Mapping):
        raise ConfigError("[config] and [env] must be tables")

    return TaskFile(
        path=path,
        registry=TaskRegistry.from_tasks(tasks),
        settings=EngineSettings.from_mapping(config, env),
    )


# ----------------------------------------------------------------------
# Per-task normalization
# ----------------------------------------------------------------------

def task_from_table(name: str, table: Mapping[str, Any]) -> Task:
    unknown = sorted(set(table) - TASK_FIELDS)
    if unknown:
        raise ConfigError(f"[tasks.{name}] has unsupported fields: {unknown}")

    dependencies = _names(table.get("dependencies", []), name, "dependencies")
    alias: Optional[Tuple[str, ...]] = None
    if "alias" in table:
        alias = _names(table["alias"], name, "alias")

    command = table.get("command")
    if command is not None and not isinstance(command, str):
        raise ConfigError(f"[tasks.{name}] command must be a string")

    # A task with only dependencies is a named group of them.
    if command is None and alias is None and dependencies:
        alias, dependencies = dependencies, ()

    return Task(
        name=name,
        dependencies=dependencies,
        alias=alias,
        command=command,
        args=_strings(table.get("args", []), name, "args"),
        toolchain=_optional_str(table, name, "toolchain"),
        install_crate=_tool(table.get("install_crate"), name),
        description=_optional_str(table, name, "description"),
        env=string_map(table.get("env", {}), f"tasks.{name}.env"),
        cwd=_optional_str(table, name, "cwd"),
        parallel=_bool(table.get("parallel", False), name, "parallel"),
    )


def _strings(value: Any, task: str, key: str) -> Tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"[tasks.{task}] {key} must be a list of strings")
    return tuple(value)


def _names(value: Any, task: str, key: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return _strings(value, task, key)


def _optional_str(table: Mapping[str, Any], task: str, key: str) -> Optional[str]:
    value = table.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigError(f"[tasks.{task}] {key} must be a string")
    return value


def _bool(value: Any, task: str, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"[tasks.{task}] {key} must be true or false")
    return value


def _tool(value: Any, task: str) -> Optional[ToolRequirement]:
    """`install_crate = "x"` or `install_crate = { crate_name, binary, test_arg }`."""
    if value is None:
        return None
    if isinstance(value, str):
        return ToolRequirement(crate=value)
    if not isinstance(value, Mapping) or not isinstance(value.get("crate_name"), str):
        raise ConfigError(f"[tasks.{task}] install_crate must be a string or a table with crate_name")

    binary = value.get("binary")
    if binary is not None and not isinstance(binary, str):
        raise ConfigError(f"[tasks.{task}] install_crate.binary must be a string")

    test_args = value.get("test_arg")
    if test_args is not None:
        test_args = _names(test_args, task, "install_crate.test_arg")

    return ToolRequirement(crate=value["crate_name"], binary=binary, test_args=test_args)


# ----------------------------------------------------------------------
# Python task files
# ----------------------------------------------------------------------

def _load_python(file_path: Path) -> TaskFile:
    module_name = f"bettermake_tasks_{file_path.stem}"
    globals_dict: Dict[str, Any] = runpy.run_path(str(file_path), run_name=module_name)

    tasks = None
    if "tasks" in globals_dict and callable(globals_dict["tasks"]):
        tasks = globals_dict["tasks"]()
    elif "TASKS" in globals_dict:
        tasks = globals_dict["TASKS"]

    if not isinstance(tasks, list) or not all(isinstance(t, Task) for t in tasks):
        raise ConfigError(
            "Task file must return/define a List[Task]. "
            "Define tasks() -> List[Task] or TASKS = [Task, ...]."
        )

    config = globals_dict.get("CONFIG", {})
    env = globals_dict.get("ENV", {})
    if not isinstance(config, Mapping) or not isinstance(env, Mapping):
        raise ConfigError("CONFIG and ENV must be dicts")

    return TaskFile(
        path=file_path,
        registry=TaskRegistry.from_tasks(tasks),
        settings=EngineSettings.from_mapping(config, env),
    )

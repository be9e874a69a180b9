"""Engine settings read from the `[config]` table of a task file."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ConfigError

DEFAULT_TASK = "default"
DEFAULT_TOOLCHAIN_ENV = "RUSTUP_TOOLCHAIN"
DEFAULT_TOOLCHAIN_PROBE: Tuple[str, ...] = ("rustup", "run", "{toolchain}", "rustc", "--version")
DEFAULT_INSTALL_COMMAND: Tuple[str, ...] = ("cargo", "install", "{crate}")


@dataclass(frozen=True)
class EngineSettings:
    """
    Knobs for one invocation.

    Precedence (highest first): CLI option, BETTERMAKE_* environment
    variable, `[config]` table, defaults below.
    """

    default_task: str = DEFAULT_TASK
    jobs: int = 1
    allow_install: bool = False
    toolchain_env: str = DEFAULT_TOOLCHAIN_ENV
    toolchain_probe: Tuple[str, ...] = DEFAULT_TOOLCHAIN_PROBE
    install_command: Tuple[str, ...] = DEFAULT_INSTALL_COMMAND
    env: Dict[str, str] = field(default_factory=dict, hash=False)

    @classmethod
    def from_mapping(
        cls,
        config: Mapping[str, Any] | None,
        env: Mapping[str, Any] | None = None,
    ) -> EngineSettings:
        """Build settings from the `[config]` and `[env]` tables. Unknown keys are ignored."""
        config = dict(config or {})
        values: Dict[str, Any] = {}

        if "default_task" in config:
            values["default_task"] = _expect(config, "default_task", str)
        if "jobs" in config:
            values["jobs"] = _positive(_expect(config, "jobs", int), "jobs")
        if "allow_install" in config:
            values["allow_install"] = _expect(config, "allow_install", bool)
        if "toolchain_env" in config:
            values["toolchain_env"] = _expect(config, "toolchain_env", str)
        if "toolchain_probe" in config:
            values["toolchain_probe"] = _string_tuple(config["toolchain_probe"], "toolchain_probe")
        if "install_command" in config:
            values["install_command"] = _string_tuple(config["install_command"], "install_command")

        if env:
            values["env"] = string_map(env, "env")

        return cls(**values)

    def override(self, **changes: Optional[Any]) -> EngineSettings:
        """Apply CLI/environment overrides, skipping those left unset (None)."""
        known = {f.name for f in fields(self)}
        updates = {k: v for k, v in changes.items() if v is not None and k in known}
        if "jobs" in updates:
            updates["jobs"] = _positive(updates["jobs"], "jobs")
        return replace(self, **updates)


def _expect(config: Mapping[str, Any], key: str, kind: type) -> Any:
    value = config[key]
    # bool is an int subclass; don't let `jobs = true` through
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ConfigError(f"[config] {key} must be {kind.__name__}, got {value!r}")
    return value


def _positive(value: int, key: str) -> int:
    if value < 1:
        raise ConfigError(f"{key} must be at least 1, got {value}")
    return value


def _string_tuple(value: Any, key: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        raise ConfigError(f"[config] {key} must be a list of strings, not a single string")
    if not isinstance(value, (list, tuple)) or not value or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"[config] {key} must be a non-empty list of strings, got {value!r}")
    return tuple(value)


def string_map(value: Mapping[str, Any], where: str) -> Dict[str, str]:
    if not isinstance(value, Mapping):
        raise ConfigError(f"[{where}] must be a table")
    out: Dict[str, str] = {}
    for k, v in value.items():
        if isinstance(v, bool):
            v = "true" if v else "false"
        if not isinstance(v, (str, int, float)):
            raise ConfigError(f"[{where}] {k} must be a string or number, got {v!r}")
        out[str(k)] = str(v)
    return out

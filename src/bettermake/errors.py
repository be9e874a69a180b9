# errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


class BetterMakeError(Exception):
    """Base class for every error bettermake raises on purpose."""


# ----------------------------------------------------------------------
# Configuration-time errors (raised before any process is spawned)
# ----------------------------------------------------------------------

class ConfigError(BetterMakeError):
    """The task file could not be read or has the wrong shape."""


@dataclass
class UnknownTaskError(BetterMakeError):
    name: str
    referrer: str | None = None

    def __str__(self) -> str:
        if self.referrer:
            return f"Task '{self.referrer}' references unknown task '{self.name}'"
        return f"Unknown task: '{self.name}'"


@dataclass
class DuplicateTaskError(BetterMakeError):
    name: str

    def __str__(self) -> str:
        return f"Task '{self.name}' is already defined"


@dataclass
class InvalidTaskError(BetterMakeError):
    name: str
    reason: str

    def __str__(self) -> str:
        return f"Task '{self.name}' is invalid: {self.reason}"


@dataclass
class CyclicAliasError(BetterMakeError):
    path: Sequence[str]

    def __str__(self) -> str:
        return "Alias cycle: " + " -> ".join(self.path)


@dataclass
class DependencyCycleError(BetterMakeError):
    path: Sequence[str]

    def __str__(self) -> str:
        return "Dependency cycle: " + " -> ".join(self.path)


@dataclass
class ToolchainConflictError(BetterMakeError):
    group: str
    toolchains: dict[str, str]

    def __str__(self) -> str:
        pairs = ", ".join(f"{t}={tc}" for t, tc in sorted(self.toolchains.items()))
        return f"Parallel group '{self.group}' mixes toolchains: {pairs}"


# ----------------------------------------------------------------------
# Provisioning-time errors
# ----------------------------------------------------------------------

@dataclass
class ToolchainUnavailableError(BetterMakeError):
    toolchain: str
    reason: str

    def __str__(self) -> str:
        return f"Toolchain '{self.toolchain}' is not available: {self.reason}"


@dataclass
class ToolMissingError(BetterMakeError):
    tool: str
    reason: str

    def __str__(self) -> str:
        return f"Required tool '{self.tool}' is missing: {self.reason}"


# ----------------------------------------------------------------------
# Runtime errors
# ----------------------------------------------------------------------

@dataclass
class TaskExecutionError(BetterMakeError):
    name: str
    exit_status: int

    def __str__(self) -> str:
        return f"Task '{self.name}' failed (exit={self.exit_status})"

    @property
    def exit_code(self) -> int:
        """Shell-style exit code for the CLI (signals map to 128 + N)."""
        if self.exit_status < 0:
            return 128 + (-self.exit_status)
        if 0 < self.exit_status < 256:
            return self.exit_status
        return 1


CONFIGURATION_ERRORS = (
    ConfigError,
    UnknownTaskError,
    DuplicateTaskError,
    InvalidTaskError,
    CyclicAliasError,
    DependencyCycleError,
    ToolchainConflictError,
)

PROVISIONING_ERRORS = (ToolchainUnavailableError, ToolMissingError)

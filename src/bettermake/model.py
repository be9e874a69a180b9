# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .errors import InvalidTaskError


@dataclass(frozen=True)
class ToolRequirement:
    """An external tool a task needs on PATH before it runs."""
    crate: str
    binary: Optional[str] = None
    test_args: Optional[Tuple[str, ...]] = None

    @property
    def executable(self) -> str:
        return self.binary or self.crate


@dataclass(frozen=True)
class Task:
    """
    A named unit of work.

    Either a runnable task (`command` set) or a pure alias (`alias` set).
    Dependencies-only definitions from task files are stored as aliases of
    their dependencies, so every registered task is one or the other.
    """
    name: str
    dependencies: Tuple[str, ...] = ()
    alias: Optional[Tuple[str, ...]] = None
    command: Optional[str] = None
    args: Tuple[str, ...] = ()
    toolchain: Optional[str] = None
    install_crate: Optional[ToolRequirement] = None

    description: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict, hash=False)
    cwd: Optional[str] = None
    # alias only: run the targets as one join group
    parallel: bool = False

    @property
    def is_alias(self) -> bool:
        return self.alias is not None

    def validate(self) -> None:
        if self.alias is not None and self.command is not None:
            raise InvalidTaskError(self.name, "both 'alias' and 'command' are set")
        if self.alias is None and self.command is None:
            raise InvalidTaskError(self.name, "neither 'alias' nor 'command' is set")

        if self.alias is not None:
            if not self.alias:
                raise InvalidTaskError(self.name, "'alias' has no targets")
            if self.dependencies:
                raise InvalidTaskError(self.name, "an alias cannot declare 'dependencies'")
            if self.args or self.toolchain or self.install_crate or self.env or self.cwd:
                raise InvalidTaskError(
                    self.name,
                    "an alias cannot set 'args', 'toolchain', 'install_crate', 'env' or 'cwd'",
                )
        elif self.parallel:
            raise InvalidTaskError(self.name, "'parallel' is only valid on an alias")

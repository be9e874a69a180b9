# registry.py
from __future__ import annotations

from typing import Dict, Iterable, Iterator, List

from .errors import DuplicateTaskError, InvalidTaskError, UnknownTaskError
from .model import Task


class TaskRegistry:
    """
    The set of named task definitions for one invocation.

    Populated once at load time; lookups never mutate it.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, Task] = {}

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> "TaskRegistry":
        registry = cls()
        for t in tasks:
            registry.define(t.name, t)
        registry.validate_references()
        return registry

    def define(self, name: str, definition: Task) -> None:
        if name in self._tasks:
            raise DuplicateTaskError(name)
        if definition.name != name:
            raise InvalidTaskError(name, f"definition is named '{definition.name}'")
        definition.validate()
        self._tasks[name] = definition

    def lookup(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise UnknownTaskError(name) from None

    def names(self) -> List[str]:
        return sorted(self._tasks)

    def validate_references(self) -> None:
        """Every dependency and alias target must name a registered task."""
        for t in self._tasks.values():
            for ref in (*t.dependencies, *(t.alias or ())):
                if ref not in self._tasks:
                    raise UnknownTaskError(ref, referrer=t.name)

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

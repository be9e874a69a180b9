# resolver.py
from __future__ import annotations

from typing import Dict, List, Tuple

from .errors import CyclicAliasError
from .registry import TaskRegistry


class AliasResolver:
    """Turns alias names into the concrete (runnable) tasks they stand for."""

    def __init__(self, registry: TaskRegistry):
        self.registry = registry
        self._cache: Dict[str, Tuple[str, ...]] = {}

    def resolve(self, name: str) -> Tuple[str, ...]:
        """
        Ordered concrete task names that `name` denotes.

        Chains are followed depth-first in target order; a name reached
        twice through different targets is kept at its first position.
        A runnable task resolves to itself.
        """
        if name not in self._cache:
            out: List[str] = []
            self._walk(name, [], out)
            self._cache[name] = tuple(out)
        return self._cache[name]

    def check_all(self) -> None:
        """Resolve every alias so cycles surface before graph expansion."""
        for t in self.registry:
            if t.is_alias:
                self.resolve(t.name)

    def _walk(self, name: str, path: List[str], out: List[str]) -> None:
        if name in path:
            raise CyclicAliasError([*path[path.index(name):], name])

        task = self.registry.lookup(name)
        if not task.is_alias:
            if name not in out:
                out.append(name)
            return

        path.append(name)
        for target in task.alias or ():
            self._walk(target, path, out)
        path.pop()

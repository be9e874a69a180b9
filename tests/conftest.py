"""Shared test fixtures."""

from __future__ import annotations

import threading
from typing import Dict, List, Mapping, Optional, Sequence

import pytest

from bettermake.config import EngineSettings
from bettermake.model import Task
from bettermake.provision import Provisioner
from bettermake.registry import TaskRegistry
from bettermake.ui.console import Console


def runnable(name: str, *deps: str, **kwargs) -> Task:
    """A task whose argv is ["tool", name], so fakes can tell tasks apart."""
    return Task(name=name, dependencies=tuple(deps), command="tool", args=(name,), **kwargs)


def registry_of(*tasks: Task) -> TaskRegistry:
    return TaskRegistry.from_tasks(tasks)


class RecordingRunner:
    """Stands in for subprocess: records each call and returns a scripted exit status."""

    def __init__(self, codes: Optional[Dict[str, int]] = None):
        self.codes = codes or {}
        self.calls: List[str] = []
        self.envs: Dict[str, Dict[str, str]] = {}
        self.cwds: Dict[str, Optional[str]] = {}
        self._lock = threading.Lock()

    def __call__(self, argv: Sequence[str], env: Mapping[str, str], cwd: Optional[str]) -> int:
        name = argv[1]
        with self._lock:
            self.calls.append(name)
            self.envs[name] = dict(env)
            self.cwds[name] = cwd
        return self.codes.get(name, 0)


class FakeTools:
    """Fake PATH + probe/installer for the Provisioner."""

    def __init__(self, present=(), toolchains=("stable",), install_ok=True):
        self.present = set(present)
        self.toolchains = set(toolchains)
        self.install_ok = install_ok
        self.installs: List[List[str]] = []
        self.probes: List[List[str]] = []

    def which(self, exe: str) -> Optional[str]:
        return f"/usr/bin/{exe}" if exe in self.present else None

    def probe(self, argv: Sequence[str]) -> int:
        self.probes.append(list(argv))
        if argv[0] == "rustup":
            return 0 if argv[2] in self.toolchains else 1
        return 0 if argv[0] in self.present else 1

    def install(self, argv: Sequence[str]) -> int:
        self.installs.append(list(argv))
        if not self.install_ok:
            return 101
        self.present.add(argv[-1])
        return 0

    def provisioner(self, settings: EngineSettings) -> Provisioner:
        return Provisioner(settings, probe=self.probe, installer=self.install, which=self.which)


@pytest.fixture()
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture()
def tools() -> FakeTools:
    return FakeTools()


@pytest.fixture()
def console() -> Console:
    return Console(debug=False)

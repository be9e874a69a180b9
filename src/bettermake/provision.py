# provision.py
from __future__ import annotations

import logging
import shutil
import subprocess
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Set

from .config import EngineSettings
from .errors import ToolchainUnavailableError, ToolMissingError
from .model import ToolRequirement

logger = logging.getLogger(__name__)

TOOL_HINTS = {
    "cargo": "Install Rust via rustup (https://rustup.rs) or fix PATH.",
    "rustup": "Install rustup (https://rustup.rs) or fix PATH.",
}

# argv -> exit status; raises FileNotFoundError if argv[0] is not installed
CommandProbe = Callable[[Sequence[str]], int]


def _probe(argv: Sequence[str]) -> int:
    """Run a check command quietly and return its exit status."""
    proc = subprocess.run(list(argv), capture_output=True, text=True, check=False)
    return proc.returncode


def _install(argv: Sequence[str]) -> int:
    """Run an install command with output streamed to the terminal."""
    return subprocess.run(list(argv), check=False).returncode


class ToolchainScope:
    """
    The toolchain active for the task currently being run.

    Owned by one run and only changed from the controlling thread; `use()`
    always restores the previous value, so nothing leaks to sibling tasks.
    """

    def __init__(self, base: Optional[str] = None):
        self.active = base

    @contextmanager
    def use(self, toolchain: Optional[str]) -> Iterator[Optional[str]]:
        previous = self.active
        if toolchain is not None:
            self.active = toolchain
        try:
            yield self.active
        finally:
            self.active = previous


class Provisioner:
    """
    Makes sure a task's toolchain and tools exist before it runs.

    Both checks are memoized for the lifetime of the provisioner (one run),
    so a tool that is already present is never reinstalled.
    """

    def __init__(
        self,
        settings: EngineSettings,
        *,
        probe: CommandProbe = _probe,
        installer: CommandProbe = _install,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.settings = settings
        self._probe = probe
        self._installer = installer
        self._which = which
        self._toolchains: Set[str] = set()
        self._tools: Set[str] = set()
        self.installed: List[str] = []

    # ---- toolchains ----

    def select_toolchain(self, toolchain: str) -> None:
        if toolchain in self._toolchains:
            return

        argv = [a.format(toolchain=toolchain) for a in self.settings.toolchain_probe]
        logger.debug("probing toolchain %s: %s", toolchain, argv)
        try:
            code = self._probe(argv)
        except FileNotFoundError:
            hint = TOOL_HINTS.get(argv[0], f"Install {argv[0]} or fix PATH.")
            raise ToolchainUnavailableError(toolchain, f"'{argv[0]}' not found. {hint}") from None
        if code != 0:
            raise ToolchainUnavailableError(toolchain, f"probe {' '.join(argv)!r} exited with {code}")

        self._toolchains.add(toolchain)

    def env_overlay(self, toolchain: Optional[str]) -> Dict[str, str]:
        """Environment entries that activate `toolchain` for one invocation."""
        if toolchain is None:
            return {}
        return {self.settings.toolchain_env: toolchain}

    # ---- tools ----

    def tool_present(self, req: ToolRequirement) -> bool:
        exe = req.executable
        if self._which(exe) is None:
            return False
        if req.test_args is None:
            return True
        try:
            return self._probe([exe, *req.test_args]) == 0
        except FileNotFoundError:
            return False

    def ensure_tool(self, req: ToolRequirement) -> bool:
        """
        Make sure `req` is available.

        Returns True if it had to be installed by this call, False if it
        was already there. Raises ToolMissingError otherwise.
        """
        if req.crate in self._tools:
            return False

        if self.tool_present(req):
            logger.debug("tool %s already present", req.executable)
            self._tools.add(req.crate)
            return False

        if not self.settings.allow_install:
            raise ToolMissingError(
                req.crate,
                f"'{req.executable}' not found on PATH and installation is disabled (pass --install)",
            )

        argv = [a.format(crate=req.crate) for a in self.settings.install_command]
        logger.debug("installing %s: %s", req.crate, argv)
        try:
            code = self._installer(argv)
        except FileNotFoundError:
            hint = TOOL_HINTS.get(argv[0], f"Install {argv[0]} or fix PATH.")
            raise ToolMissingError(req.crate, f"installer '{argv[0]}' not found. {hint}") from None
        if code != 0:
            raise ToolMissingError(req.crate, f"install command failed (exit={code})")
        if not self.tool_present(req):
            raise ToolMissingError(req.crate, f"'{req.executable}' still not usable after install")

        self._tools.add(req.crate)
        self.installed.append(req.crate)
        return True

"""Console output formatting utilities for bettermake."""

from __future__ import annotations

import shlex
import sys
from typing import Mapping, Optional, Sequence

from ..dag import ExecutionPlan, JoinGroup


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_run_started(self, task_file: str, target: str, task_count: int) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Task file: {task_file}")
        print(f"Target: {target}")
        print(f"Tasks: {task_count}")
        print()

    def print_plan(self, plan: ExecutionPlan) -> None:
        """Print the resolved stages, one per line."""
        for idx, stage in enumerate(plan.stages, start=1):
            if isinstance(stage, JoinGroup):
                print(f"  {idx}. [parallel: {stage.alias}] {', '.join(stage.tasks)}")
            else:
                print(f"  {idx}. {stage}")

    def print_task_start(self, name: str, argv: Sequence[str], toolchain: Optional[str] = None) -> None:
        """Print task start message."""
        print(f"\nTASK STARTED: {name}")
        if toolchain:
            print(f"TOOLCHAIN: {toolchain}")
        print(f"COMMAND: {shlex.join(argv)}")

    def print_tool_installed(self, name: str, tool: str) -> None:
        """Note a tool installed on behalf of a task."""
        print(f"[{name}] installed {tool}")

    def print_success(self, name: str) -> None:
        """Print success message."""
        print(f"TASK SUCCEEDED: {name}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Task name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
        """
        print(f"TASK FAILED: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if hint:
            print(f"Hint: {hint}")
        if self.debug:
            print(f"Error details: {reason}")
        else:
            # Show first line of error for non-debug mode
            error_line = reason.split('\n')[0] if reason else "Unknown error"
            print(f"Error: {error_line}")

    def print_results(self, states: Mapping[str, str]) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for name, state in states.items():
            print(f"  {name}: {str(state).upper()}")

    def print_task_list(self, rows: Sequence[tuple[str, str]]) -> None:
        """Print task names with their descriptions, aligned in two columns."""
        width = max((len(name) for name, _ in rows), default=0)
        for name, summary in rows:
            print(f"  {name.ljust(width)}  {summary}".rstrip())

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console

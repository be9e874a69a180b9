# cli.py
from __future__ import annotations

import logging
import shlex
import sys
from pathlib import Path

import click

from bettermake.dag import GraphBuilder
from bettermake.errors import CONFIGURATION_ERRORS, PROVISIONING_ERRORS, TaskExecutionError
from bettermake.loader import DEFAULT_TASK_FILES, TaskFile, load_tasks
from bettermake.runner import Scheduler
from bettermake.ui.console import Console, get_console, set_console

EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def find_task_files() -> list[Path]:
    """
    Find candidate task files in the current directory.

    Returns:
        The first default TOML file present, or every *_tasks.py file
    """
    current_dir = Path(".")
    for name in DEFAULT_TASK_FILES:
        candidate = current_dir / name
        if candidate.exists():
            return [candidate]
    return sorted(current_dir.glob("*_tasks.py"))


def discover_task_file(file_arg: str | None) -> Path:
    """
    Discover the task file from argument or default.

    Raises:
        SystemExit: If no task file (or more than one) can be found
    """
    console = get_console()

    if file_arg:
        path = Path(file_arg)
        if not path.exists():
            console.print_error(
                "Task file not found",
                f"Could not find task file: {file_arg}",
                suggestion="Create a Makefile.toml or pass a different path:\n  bettermake run --file my_tasks.py",
            )
            sys.exit(EXIT_CONFIG_ERROR)
        return path

    files = find_task_files()
    if len(files) == 0:
        console.print_error(
            "No task file found",
            "Could not find any task files.",
            details=["Looked for:", *(f"  {n}" for n in DEFAULT_TASK_FILES), "  *_tasks.py"],
            suggestion="Create a Makefile.toml, or specify a task file explicitly:\n  bettermake run --file my_tasks.py",
        )
        sys.exit(EXIT_CONFIG_ERROR)

    if len(files) > 1:
        console.print_error(
            "Multiple task files found",
            "Found multiple task files. Please specify which one to use:",
            details=[str(f) for f in files],
            suggestion="Specify a task file explicitly:\n  bettermake run --file ci_tasks.py",
        )
        sys.exit(EXIT_CONFIG_ERROR)

    return files[0]


def _load(file_arg: str | None) -> tuple[Path, TaskFile]:
    path = discover_task_file(file_arg)
    return path, load_tasks(path)


def _config_error(exc: Exception) -> None:
    get_console().print_error("Invalid task configuration", str(exc))
    sys.exit(EXIT_CONFIG_ERROR)


file_option = click.option(
    "--file",
    "file_arg",
    default=None,
    envvar="BETTERMAKE_FILE",
    help="Task file path (defaults to Makefile.toml / bettermake.toml / *_tasks.py)",
)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """bettermake: dependency-aware task runner for Makefile.toml task files."""
    console = Console(debug=debug)
    set_console(console)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("task_name", required=False)
@file_option
@click.option("--jobs", "-j", default=None, type=click.IntRange(min=1), envvar="BETTERMAKE_JOBS",
              help="Max tasks run at once inside a parallel group")
@click.option("--install/--no-install", default=None, envvar="BETTERMAKE_INSTALL",
              help="Allow installing missing tools (install_crate)")
@click.option("--toolchain-env", default=None, envvar="BETTERMAKE_TOOLCHAIN_ENV",
              help="Environment variable that selects the toolchain")
@click.pass_context
def run(ctx, task_name, file_arg, jobs, install, toolchain_env):
    """Run TASK_NAME (default: the file's default_task, or 'default')."""
    console = get_console()

    try:
        path, loaded = _load(file_arg)
        settings = loaded.settings.override(jobs=jobs, allow_install=install, toolchain_env=toolchain_env)
        target = task_name or settings.default_task
        console.print_debug(
            f"settings: jobs={settings.jobs} allow_install={settings.allow_install} "
            f"toolchain_env={settings.toolchain_env}"
        )

        plan = GraphBuilder(loaded.registry).plan(target)
        console.print_run_started(task_file=path.name, target=target, task_count=len(plan))

        scheduler = Scheduler(loaded.registry, settings, console=console, root=loaded.root)
        result = scheduler.run(plan)
        console.print_results(result.states)
        result.raise_for_failure()

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except TaskExecutionError as e:
        # details were already printed as the task failed
        sys.exit(e.exit_code)
    except CONFIGURATION_ERRORS as e:
        _config_error(e)
    except PROVISIONING_ERRORS as e:
        console.print_error("Provisioning failed", str(e))
        sys.exit(1)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@click.argument("task_name", required=False)
@file_option
def plan(task_name, file_arg):
    """Print the execution plan for TASK_NAME without running anything."""
    console = get_console()
    try:
        _path, loaded = _load(file_arg)
        target = task_name or loaded.settings.default_task
        execution_plan = GraphBuilder(loaded.registry).plan(target)
    except CONFIGURATION_ERRORS as e:
        _config_error(e)
        return
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    console.print_info(f"Plan for '{target}':")
    console.print_plan(execution_plan)


@cli.command(name="list")
@file_option
def list_tasks(file_arg):
    """List the tasks defined in the task file."""
    console = get_console()
    try:
        _path, loaded = _load(file_arg)
    except CONFIGURATION_ERRORS as e:
        _config_error(e)
        return
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    rows = []
    for name in loaded.registry.names():
        t = loaded.registry.lookup(name)
        if t.description:
            summary = t.description
        elif t.is_alias:
            summary = "alias of " + ", ".join(t.alias or ())
        else:
            summary = shlex.join([t.command or "", *t.args])
        rows.append((name, summary))
    console.print_task_list(rows)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

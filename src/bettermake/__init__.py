from .dsl import task, alias, group, taskset, TaskBuilder, build
from .runner import run_task, Scheduler
from .dag import GraphBuilder
from .loader import load_tasks
from .model import Task, ToolRequirement

__all__ = [
    "task", "alias", "group", "taskset", "TaskBuilder", "build",
    "run_task", "Scheduler", "GraphBuilder", "load_tasks", "Task", "ToolRequirement",
]

from .parser import eligible_tasks, find_task, parse_task, parse_tasks
from .source import ChannelTaskSource, ProviderTaskSource, StaticTaskSource, TaskSource
from .types import ExecutionOutcome, LogEvent, ProgressSnapshot, Task

__all__ = [
    "Task",
    "ProgressSnapshot",
    "ExecutionOutcome",
    "LogEvent",
    "parse_task",
    "parse_tasks",
    "find_task",
    "eligible_tasks",
    "TaskSource",
    "StaticTaskSource",
    "ProviderTaskSource",
    "ChannelTaskSource",
]

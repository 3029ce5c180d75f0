"""Task planning: command vocabulary, plan state machine, planner and executor."""

from anemone.planning.commands import Command, COMMAND_DESCRIPTIONS, enforce_balance_rule, is_balance_query
from anemone.planning.task_plan import InvalidTaskTransitionError, Task, TaskPlan, TaskStatus
from anemone.planning.task_planner import LLMTaskPlanner
from anemone.planning.task_executor import TaskExecutor

__all__ = [
    "Command",
    "COMMAND_DESCRIPTIONS",
    "enforce_balance_rule",
    "is_balance_query",
    "InvalidTaskTransitionError",
    "Task",
    "TaskPlan",
    "TaskStatus",
    "LLMTaskPlanner",
    "TaskExecutor",
]

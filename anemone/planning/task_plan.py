"""Task plan: the ordered checklist of work built for one inbound message.

A plan is created by the planner, drained by the executor and discarded once
its completion event is published. Only its markdown transcript outlives it.
"""

import random
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from anemone.exceptions_unified import InvalidTaskTransitionError, TaskError
from anemone.interfaces.command_selector import CommandSelectionResult

RESULT_PREVIEW_CHARS = 100


class TaskStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES: FrozenSet[TaskStatus] = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})

_ALLOWED_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING}),
    TaskStatus.RUNNING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}

_STATUS_GLYPHS = {
    TaskStatus.PENDING: "⏳",
    TaskStatus.RUNNING: "🔄",
    TaskStatus.COMPLETED: "✅",
    TaskStatus.FAILED: "❌",
}


@dataclass
class Task:
    """One unit of work, optionally bound to a command token."""
    id: str
    description: str
    command: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    result: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _transition(self, target: TaskStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTaskTransitionError(
                f"Task {self.id} cannot move from {self.status.value} to {target.value}",
                details={"task_id": self.id, "from": self.status.value, "to": target.value},
            )
        self.status = target

    def start(self) -> None:
        self._transition(TaskStatus.RUNNING)
        self.started_at = datetime.now(timezone.utc)

    def complete(self, result: str) -> None:
        self._transition(TaskStatus.COMPLETED)
        self.result = result
        self.ended_at = datetime.now(timezone.utc)

    def fail(self, error: str) -> None:
        self._transition(TaskStatus.FAILED)
        self.result = error
        self.ended_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "id": self.id,
            "description": self.description,
            "status": self.status.value,
            "command": self.command,
            "result": self.result,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "endedAt": self.ended_at.isoformat() if self.ended_at else None,
        }


def _generate_plan_id() -> str:
    alphabet = string.digits + string.ascii_lowercase
    suffix = "".join(random.choice(alphabet) for _ in range(9))
    return f"plan-{int(time.time() * 1000)}-{suffix}"


class TaskPlan:
    """Ordered, mutable list of tasks owned by one orchestration run.

    Tasks can only be appended while every task is still pending; once
    execution starts the plan's shape is frozen and only task status and
    result fields change.
    """

    def __init__(self, user_id: str, user_message: str, plan_id: Optional[str] = None):
        self.plan_id = plan_id or _generate_plan_id()
        self.user_id = user_id
        self.user_message = user_message
        self.created_at = datetime.now(timezone.utc)
        # How the commands were chosen; set by the planner.
        self.selection: Optional[CommandSelectionResult] = None
        self._tasks: List[Task] = []
        self._current_index: Optional[int] = None

    # ── Construction ─────────────────────────────────────────────────────

    def add_task(self, description: str, command: Optional[str] = None) -> Task:
        if any(task.status is not TaskStatus.PENDING for task in self._tasks):
            raise TaskError(
                f"Plan {self.plan_id} is already executing; tasks can no longer be added",
                details={"plan_id": self.plan_id},
            )
        task = Task(id=f"task-{len(self._tasks) + 1}", description=description, command=command)
        self._tasks.append(task)
        return task

    # ── Execution ────────────────────────────────────────────────────────

    def get_next_task(self) -> Optional[Task]:
        """First pending task in insertion order; it becomes the current task."""
        for index, task in enumerate(self._tasks):
            if task.status is TaskStatus.PENDING:
                self._current_index = index
                return task
        return None

    def _current(self) -> Task:
        if self._current_index is None:
            raise TaskError(f"Plan {self.plan_id} has no current task")
        return self._tasks[self._current_index]

    def start_current_task(self) -> Task:
        task = self._current()
        task.start()
        return task

    def complete_current_task(self, result: str) -> Task:
        task = self._current()
        task.complete(result)
        return task

    def fail_current_task(self, error: str) -> Task:
        task = self._current()
        task.fail(error)
        return task

    def is_completed(self) -> bool:
        return all(task.is_terminal for task in self._tasks)

    # ── Views ────────────────────────────────────────────────────────────

    @property
    def tasks(self) -> Tuple[Task, ...]:
        return tuple(self._tasks)

    @property
    def commands(self) -> List[str]:
        return [task.command for task in self._tasks if task.command]

    def to_markdown(self) -> str:
        lines = [
            f"## Task checklist [Plan ID: {self.plan_id}]",
            "",
            f'* User message: "{self.user_message}"',
            f"* Created: {self.created_at.isoformat()}",
            "",
        ]
        for number, task in enumerate(self._tasks, start=1):
            checkbox = "[x]" if task.status is TaskStatus.COMPLETED else "[ ]"
            lines.append(f"{number}. {checkbox} {_STATUS_GLYPHS[task.status]} {task.description}")
            if task.command:
                lines.append(f"   - Command: `{task.command}`")
            if task.result:
                preview = task.result[:RESULT_PREVIEW_CHARS]
                if len(task.result) > RESULT_PREVIEW_CHARS:
                    preview += "..."
                lines.append(f"   - Result: {preview}")
            if task.started_at:
                lines.append(f"   - Started: {task.started_at.isoformat()}")
            if task.ended_at:
                lines.append(f"   - Ended: {task.ended_at.isoformat()}")
            lines.append("")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> Dict[str, object]:
        return {
            "planId": self.plan_id,
            "userId": self.user_id,
            "userMessage": self.user_message,
            "createdAt": self.created_at.isoformat(),
            "tasks": [task.to_dict() for task in self._tasks],
        }

"""Sequential task executor.

Drains a plan strictly in insertion order: one task at a time, each task
reaching a terminal state before the next one starts. A failing task is
recorded and the loop moves on.
"""

import logging
from typing import List, Protocol

from anemone.enhanced_logging import track_performance
from anemone.interfaces.event_bus import AgentEventType, IEventBus
from anemone.planning.task_plan import Task, TaskPlan

logger = logging.getLogger(__name__)

EXECUTION_FAILED_PREFIX = "execution failed: "


class ICommandExecutor(Protocol):
    async def execute_command(self, command: str, user_id: str) -> str:
        ...


def no_command_result(task: Task) -> str:
    return f'Task "{task.description}" completed, no command needed'


class TaskExecutor:
    """Runs each task's command through the dispatcher and records the outcome.

    Publishes TASK_PLAN_STARTED before the first task, TASK_STARTED and
    TASK_COMPLETED/TASK_FAILED per task, and TASK_PLAN_UPDATED after every
    task. Plan completion is announced by the caller, not here.
    """

    def __init__(self, command_executor: ICommandExecutor, event_bus: IEventBus):
        self.command_executor = command_executor
        self.event_bus = event_bus

    @track_performance(operation="executor.execute_plan")
    async def execute_plan(self, plan: TaskPlan) -> str:
        logger.info("Executing plan %s (%d tasks)", plan.plan_id, len(plan.tasks))
        logger.debug("%s", plan.to_markdown())
        self._publish_plan(AgentEventType.TASK_PLAN_STARTED, plan)

        results: List[str] = []
        task = plan.get_next_task()
        while task is not None:
            results.append(await self._execute_task(task, plan))
            self._publish_plan(AgentEventType.TASK_PLAN_UPDATED, plan)
            task = plan.get_next_task()

        logger.info("Plan %s finished", plan.plan_id)
        return "\n\n".join(results)

    async def _execute_task(self, task: Task, plan: TaskPlan) -> str:
        plan.start_current_task()
        self.event_bus.publish(AgentEventType.TASK_STARTED, {
            "taskId": task.id,
            "planId": plan.plan_id,
            "description": task.description,
            "command": task.command,
        })

        try:
            if task.command:
                result = await self.command_executor.execute_command(task.command, plan.user_id)
                logger.debug("Command %s -> %.100s", task.command, result)
            else:
                result = no_command_result(task)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.warning("Task %s (%s) failed: %s", task.id, task.command, error)
            plan.fail_current_task(error)
            self.event_bus.publish(AgentEventType.TASK_FAILED, {
                "taskId": task.id,
                "planId": plan.plan_id,
                "description": task.description,
                "error": error,
            })
            return f"{EXECUTION_FAILED_PREFIX}{error}"

        plan.complete_current_task(result)
        self.event_bus.publish(AgentEventType.TASK_COMPLETED, {
            "taskId": task.id,
            "planId": plan.plan_id,
            "description": task.description,
            "result": result,
        })
        return result

    def _publish_plan(self, event_type: AgentEventType, plan: TaskPlan) -> None:
        self.event_bus.publish(event_type, {
            "planId": plan.plan_id,
            "userId": plan.user_id,
            "message": plan.user_message,
            "markdown": plan.to_markdown(),
        })

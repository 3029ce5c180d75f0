"""LLM task planner: turns one user message into a task plan."""

import logging
from typing import Dict, List, Optional

from anemone.enhanced_logging import track_performance
from anemone.exceptions_unified import ConfigurationError
from anemone.interfaces.command_selector import CommandSelectionResult, ICommandSelector
from anemone.planning.commands import Command, describe_command, enforce_balance_rule
from anemone.planning.task_plan import TaskPlan

logger = logging.getLogger(__name__)

INTERPRET_TASK = "Interpret the user's intent and decide which operations to run"
INTEGRATE_TASK = "Integrate the collected information and prepare the reply"
FINAL_REPLY_TASK = "Produce the final reply to the user"


class LLMTaskPlanner:
    """Builds a plan of bookkeeping tasks around the selected commands.

    Every plan has the same shape: interpret, one task per command, integrate,
    reply. Command selection never fails the plan; any selector error (or a
    missing selector) degrades to ``none``. Balance questions always carry both
    the role read and a wallet token read.
    """

    def __init__(self, selector: Optional[ICommandSelector] = None):
        self.selector = selector

    @track_performance(operation="planner.create_plan")
    async def create_plan(
        self,
        user_id: str,
        message: str,
        recent_history: Optional[List[Dict[str, str]]] = None,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
    ) -> TaskPlan:
        selection = await self._select_commands(message, recent_history or [], api_key, api_url)
        commands = enforce_balance_rule(message, selection.commands or [Command.NONE.value])
        return self.build_plan(user_id, message, commands, selection)

    def build_plan(
        self,
        user_id: str,
        message: str,
        commands: List[str],
        selection: Optional[CommandSelectionResult] = None,
    ) -> TaskPlan:
        plan = TaskPlan(user_id, message)
        plan.selection = selection
        plan.add_task(INTERPRET_TASK)
        for command in commands:
            plan.add_task(f"Fetch {describe_command(command)}", command)
        plan.add_task(INTEGRATE_TASK)
        plan.add_task(FINAL_REPLY_TASK)
        logger.info("Plan %s commands: %s", plan.plan_id, commands)
        return plan

    async def _select_commands(
        self,
        message: str,
        recent_history: List[Dict[str, str]],
        api_key: Optional[str],
        api_url: Optional[str],
    ) -> CommandSelectionResult:
        if self.selector is None:
            logger.info("No command selector configured; using %s", Command.NONE.value)
            return CommandSelectionResult(commands=[Command.NONE.value], source="default")
        try:
            selection = await self.selector.select(
                message, recent_history, api_key=api_key, api_url=api_url
            )
        except ConfigurationError as e:
            logger.info("Command selection unavailable (%s); using %s", e, Command.NONE.value)
            return CommandSelectionResult(commands=[Command.NONE.value], source="unavailable")
        except Exception:
            logger.exception("Command selection failed; using %s", Command.NONE.value)
            return CommandSelectionResult(commands=[Command.NONE.value], source="failed")

        if selection.discarded:
            logger.debug("Selector discarded %s", selection.discarded)
        return selection

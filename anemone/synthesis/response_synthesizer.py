"""Response synthesizer: folds command results back into a chat reply."""

import logging
from typing import Dict, List, Optional

from anemone.enhanced_logging import track_performance
from anemone.exceptions_unified import ConfigurationError
from anemone.interfaces.completion_provider import ICompletionProvider
from anemone.planning.commands import Command
from anemone.planning.prompts import AgentPrompt
from anemone.planning.task_plan import TaskPlan
from anemone.synthesis.fabrication_guard import FabricationGuard

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_DISCLAIMER = (
    "⚠️ Low confidence: I could not compose a verified answer. "
    "Here is the raw data I fetched:"
)
NO_ANSWER_DISCLAIMER = (
    "⚠️ Low confidence: I could not compose an answer right now. Please try again."
)


class ResponseSynthesizer:
    """Produces the final reply for an executed plan.

    - A degraded reply prepared during selection is returned as is, unless
      data commands ran anyway (then the data wins).
    - Otherwise the provider formats the results; an empty or failed
      completion degrades to a low-confidence disclaimer with the raw data.
    - A reply stating numbers when no data was fetched is coerced.
    """

    def __init__(
        self,
        provider: Optional[ICompletionProvider] = None,
        guard: Optional[FabricationGuard] = None,
    ):
        self.provider = provider
        self.guard = guard or FabricationGuard()

    @track_performance(operation="synthesizer.synthesize")
    async def synthesize(
        self,
        plan: TaskPlan,
        command_results: str,
        recent_history: Optional[List[Dict[str, str]]] = None,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
    ) -> str:
        data_results = self._data_results(plan)
        selection = plan.selection
        if selection is not None and selection.degraded_reply and not data_results:
            return selection.degraded_reply

        reply = await self._complete(
            recent_history or [],
            AgentPrompt.get_result_formatting_prompt(command_results, plan.user_message),
            api_key,
            api_url,
        )
        if not reply:
            return self.degraded_reply(data_results)

        if not data_results and self.guard.has_numeric_claim(reply):
            logger.warning(
                "Reply for plan %s states %s without fetched data; coercing",
                plan.plan_id, self.guard.find_numeric_claims(reply),
            )
            return self.guard.coerced_reply
        return reply

    async def _complete(
        self,
        history: List[Dict[str, str]],
        prompt: str,
        api_key: Optional[str],
        api_url: Optional[str],
    ) -> Optional[str]:
        if self.provider is None:
            return None
        try:
            text = await self.provider.generate_chat_response(
                history, prompt, api_key=api_key, api_url=api_url
            )
        except ConfigurationError as e:
            logger.info("Reply synthesis unavailable: %s", e)
            return None
        except Exception:
            logger.exception("Completion provider failed during reply synthesis")
            return None
        if not text or not text.strip():
            logger.warning("Completion provider returned an empty reply")
            return None
        return text.strip()

    @staticmethod
    def _data_results(plan: TaskPlan) -> List[str]:
        return [
            task.result for task in plan.tasks
            if task.command and task.command != Command.NONE.value and task.result
        ]

    @staticmethod
    def degraded_reply(data_results: List[str]) -> str:
        if not data_results:
            return NO_ANSWER_DISCLAIMER
        return "\n\n".join([LOW_CONFIDENCE_DISCLAIMER] + data_results)

"""Planning service: owns one orchestration run per inbound chat message.

Listens for MESSAGE_RECEIVED, claims the message through the bus admission
registry, then runs plan -> execute -> synthesize and announces the result
with TASK_PLAN_COMPLETED before releasing the message.
"""

import asyncio
import logging
from typing import Any, Coroutine, Dict, List, Optional

from anemone.interfaces.event_bus import AgentEvent, AgentEventType, IEventBus
from anemone.interfaces.memory_store import IMessageStore
from anemone.planning.task_executor import TaskExecutor
from anemone.planning.task_planner import LLMTaskPlanner
from anemone.synthesis.response_synthesizer import NO_ANSWER_DISCLAIMER, ResponseSynthesizer

logger = logging.getLogger(__name__)

PROCESSOR_NAME = "PlanningService"


class PlanningService:
    """Event-driven driver of the planner, the executor and the synthesizer."""

    def __init__(
        self,
        event_bus: IEventBus,
        planner: LLMTaskPlanner,
        executor: TaskExecutor,
        synthesizer: ResponseSynthesizer,
        message_store: Optional[IMessageStore] = None,
        history_rounds: int = 3,
        processor_name: str = PROCESSOR_NAME,
    ):
        self.event_bus = event_bus
        self.planner = planner
        self.executor = executor
        self.synthesizer = synthesizer
        self.message_store = message_store
        self.history_rounds = history_rounds
        self.processor_name = processor_name
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self.event_bus.subscribe(AgentEventType.MESSAGE_RECEIVED, self.handle_message_received)
        self._started = True
        logger.info("%s listening for inbound messages", self.processor_name)

    def stop(self) -> None:
        if not self._started:
            return
        self.event_bus.unsubscribe(AgentEventType.MESSAGE_RECEIVED, self.handle_message_received)
        self._started = False

    def handle_message_received(self, event: AgentEvent) -> Optional[Coroutine[Any, Any, Dict[str, Any]]]:
        """Claims the message synchronously and hands back the run for the bus to schedule.

        Admission happens before ``publish`` returns so a caller waiting on
        the same message always finds a processing record.
        """
        data = event.data
        user_id = data.get("userId")
        message = data.get("message")
        message_id = data.get("messageId")
        if not user_id or not message or not message_id:
            logger.warning("Ignoring MESSAGE_RECEIVED without userId/message/messageId: %s", sorted(data))
            return None

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; not claiming message %s for user %s", message_id, user_id)
            return None

        if not self.event_bus.start_message_processing(message_id, user_id, self.processor_name):
            return None

        return self.process_message(
            user_id=user_id,
            message=message,
            message_id=message_id,
            api_key=data.get("apiKey"),
            api_url=data.get("apiUrl"),
            conversation_round=data.get("conversationRound"),
        )

    async def process_message(
        self,
        user_id: str,
        message: str,
        message_id: str,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        conversation_round: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Runs one admitted message to completion. Never raises."""
        payload: Dict[str, Any] = {
            "planId": None,
            "userId": user_id,
            "messageId": message_id,
            "message": message,
            "conversationRound": conversation_round,
            "markdown": "",
            "results": {"commandResults": "", "finalResponse": NO_ANSWER_DISCLAIMER},
        }
        try:
            history = self._recent_history(user_id, message_id)
            plan = await self.planner.create_plan(
                user_id, message, history, api_key=api_key, api_url=api_url
            )
            payload["planId"] = plan.plan_id

            command_results = await self.executor.execute_plan(plan)
            final_response = await self.synthesizer.synthesize(
                plan, command_results, history, api_key=api_key, api_url=api_url
            )
            payload["markdown"] = plan.to_markdown()
            payload["results"] = {
                "commandResults": command_results,
                "finalResponse": final_response,
            }
        except Exception as e:
            logger.exception("Orchestration failed for message %s (user %s)", message_id, user_id)
            payload["error"] = str(e) or type(e).__name__

        try:
            self.event_bus.publish(AgentEventType.TASK_PLAN_COMPLETED, payload)
        finally:
            self.event_bus.complete_message_processing(message_id, user_id, self.processor_name)
        return payload

    def _recent_history(self, user_id: str, message_id: str) -> List[Dict[str, str]]:
        if self.message_store is None or self.history_rounds <= 0:
            return []
        try:
            rows = self.message_store.get_messages_by_rounds(user_id, self.history_rounds)
        except Exception:
            logger.exception("Could not load history for user %s", user_id)
            return []

        history = []
        for row in rows:
            metadata = row.get("metadata") or {}
            if metadata.get("messageId") == message_id and row.get("role") == "user":
                continue
            history.append({"role": row["role"], "content": row["content"]})
        return history

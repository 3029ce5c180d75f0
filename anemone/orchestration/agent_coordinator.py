"""Agent coordinator: the chat entry point and the owner of persisted replies."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from anemone.dispatch.command_dispatcher import stringify_integers
from anemone.exceptions_unified import ValidationError
from anemone.interfaces.chain_client import IChainClient
from anemone.interfaces.event_bus import AgentEvent, AgentEventType, IEventBus
from anemone.interfaces.memory_store import IMessageStore, IProfileRepository, IWalletRepository

logger = logging.getLogger(__name__)

PENDING_REPLY = (
    "I'm still working on that. The answer will appear in the chat history shortly."
)
MISSING_REPLY = "I could not produce a reply for that message. Please try again."


class AgentCoordinator:
    """Turns a chat request into a MESSAGE_RECEIVED event and waits for the answer.

    The coordinator does not plan anything itself. It persists the user
    message, announces it, then blocks on the bus until the planning run
    completes or the wait times out. Final replies are saved when
    TASK_PLAN_COMPLETED is published, so a late reply still reaches the
    history after the waiter has given up.
    """

    def __init__(
        self,
        event_bus: IEventBus,
        message_store: IMessageStore,
        profile_repository: IProfileRepository,
        wallet_repository: IWalletRepository,
        chain_client: Optional[IChainClient] = None,
        wait_timeout_ms: int = 60000,
    ):
        self.event_bus = event_bus
        self.message_store = message_store
        self.profile_repository = profile_repository
        self.wallet_repository = wallet_repository
        self.chain_client = chain_client
        self.wait_timeout_ms = wait_timeout_ms
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self.event_bus.subscribe(AgentEventType.TASK_PLAN_COMPLETED, self.handle_plan_completed)
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self.event_bus.unsubscribe(AgentEventType.TASK_PLAN_COMPLETED, self.handle_plan_completed)
        self._started = False

    # ── Chat ─────────────────────────────────────────────────────────────

    async def process_chat(
        self,
        message: str,
        user_id: str,
        role_id: Optional[str] = None,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not message or not message.strip():
            raise ValidationError("Message must not be empty", details={"field": "message"})
        if not user_id:
            raise ValidationError("userId is required", details={"field": "userId"})

        message_id = uuid.uuid4().hex
        timestamp = datetime.now(timezone.utc).isoformat()
        conversation_round = self.message_store.get_next_conversation_round(user_id)
        self.message_store.save_message(
            user_id,
            "user",
            message,
            timestamp=timestamp,
            metadata={"messageId": message_id, "roleId": role_id},
            conversation_round=conversation_round,
        )

        self.event_bus.publish(AgentEventType.MESSAGE_RECEIVED, {
            "userId": user_id,
            "roleId": role_id,
            "message": message,
            "messageId": message_id,
            "timestamp": timestamp,
            "conversationRound": conversation_round,
            "apiKey": api_key,
            "apiUrl": api_url,
        })

        completed = await self.event_bus.wait_for_processing_completed(
            message_id, user_id, self.wait_timeout_ms
        )
        if not completed:
            logger.info("No reply for message %s within %dms", message_id, self.wait_timeout_ms)
            return {"messageId": message_id, "response": PENDING_REPLY, "pending": True}

        reply = self._find_reply(user_id, message_id)
        if reply is None:
            logger.warning("Processing of message %s completed without a stored reply", message_id)
            return {"messageId": message_id, "response": MISSING_REPLY, "pending": False}
        return {
            "messageId": message_id,
            "response": reply["content"],
            "planId": (reply.get("metadata") or {}).get("planId"),
            "pending": False,
        }

    def handle_plan_completed(self, event: AgentEvent) -> None:
        data = event.data
        user_id = data.get("userId")
        final_response = (data.get("results") or {}).get("finalResponse")
        if not user_id or not final_response:
            logger.warning("TASK_PLAN_COMPLETED without userId or finalResponse; nothing saved")
            return
        self.message_store.save_message(
            user_id,
            "assistant",
            final_response,
            metadata={"messageId": data.get("messageId"), "planId": data.get("planId")},
            conversation_round=data.get("conversationRound"),
        )
        logger.debug("Saved reply for message %s", data.get("messageId"))

    def _find_reply(self, user_id: str, message_id: str) -> Optional[Dict[str, Any]]:
        return self.message_store.find_message(user_id, message_id, "assistant")

    def get_chat_history(
        self, user_id: str, limit: int = 20, before_timestamp: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Newest ``limit`` messages (older than ``before_timestamp`` if given), oldest first."""
        rows = self.message_store.get_recent_messages(
            user_id, limit=limit, before_timestamp=before_timestamp
        )
        return list(reversed(rows))

    # ── Profile / wallet / role ──────────────────────────────────────────

    def init_profile(self, role_id: str, package_id: str) -> Dict[str, Any]:
        if not role_id or not package_id:
            raise ValidationError("roleId and packageId are required")
        self.profile_repository.init_profile(role_id, package_id)
        profile = self.profile_repository.get_profile() or {}
        self.event_bus.publish(AgentEventType.PROFILE_UPDATED, {
            "roleId": role_id,
            "packageId": package_id,
        })
        return profile

    def get_profile(self) -> Optional[Dict[str, Any]]:
        return self.profile_repository.get_profile()

    def get_wallet(self) -> Optional[Dict[str, Any]]:
        return self.wallet_repository.get_wallet()

    async def get_role_on_chain_data(self) -> Optional[Dict[str, Any]]:
        profile = self.profile_repository.get_profile()
        if not profile or not profile.get("role_id"):
            raise ValidationError("Profile is not initialised")
        if self.chain_client is None:
            return None
        role = await self.chain_client.get_role_data(profile["role_id"])
        return stringify_integers(role) if role is not None else None

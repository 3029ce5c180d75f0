"""Interface for the orchestration event bus.

Decouples the planner, executor, coordinator and audit log by letting them
communicate through published events rather than direct calls. The bus also
owns message-processing admission: at most one orchestration run may own a
given inbound message at a time.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol


class AgentEventType(Enum):
    """Event types published during one chat orchestration run."""
    # Inbound
    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"
    # Plan lifecycle
    TASK_PLAN_STARTED = "TASK_PLAN_STARTED"
    TASK_PLAN_UPDATED = "TASK_PLAN_UPDATED"
    TASK_PLAN_COMPLETED = "TASK_PLAN_COMPLETED"
    # Single task lifecycle
    TASK_STARTED = "TASK_STARTED"
    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_FAILED = "TASK_FAILED"
    # Processing admission
    MESSAGE_PROCESSING_STARTED = "MESSAGE_PROCESSING_STARTED"
    MESSAGE_PROCESSING_COMPLETED = "MESSAGE_PROCESSING_COMPLETED"
    # Collaborator side effects
    PROFILE_UPDATED = "PROFILE_UPDATED"
    BLOCKCHAIN_DATA_FETCHED = "BLOCKCHAIN_DATA_FETCHED"


@dataclass(frozen=True)
class AgentEvent:
    """A published event as seen by handlers."""
    type: AgentEventType
    data: Dict[str, Any]
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


# A handler may be a plain function or a coroutine function; coroutine
# results are scheduled on the running loop.
EventHandler = Callable[[AgentEvent], Any]


@dataclass
class ProcessingStatus:
    """Admission record for one inbound message, keyed by (user_id, message_id)."""
    message_id: str
    user_id: str
    processor: str
    start_time: datetime
    completed: bool = False
    completed_time: Optional[datetime] = None


class IEventBus(Protocol):
    """Publish/subscribe bus with processing admission and completion wait.

    The in-process implementation is ``anemone.event_bus.InMemoryEventBus``.
    A multi-instance deployment needs an implementation backed by a shared
    key-value store with pub/sub; callers depend only on this protocol.
    """

    def subscribe(self, event_type: AgentEventType, handler: EventHandler) -> None:
        """Register a handler. Handlers run in registration order."""
        ...

    def unsubscribe(self, event_type: AgentEventType, handler: EventHandler) -> None:
        """Remove a handler; removing an unknown handler is a no-op."""
        ...

    def publish(self, event_type: AgentEventType, data: Dict[str, Any]) -> AgentEvent:
        """Invoke every handler for the type; handler failures are logged and swallowed."""
        ...

    def start_message_processing(self, message_id: str, user_id: str, processor: str) -> bool:
        """Claim a message. Returns False if another run already owns it."""
        ...

    def complete_message_processing(self, message_id: str, user_id: str, processor: str) -> None:
        """Release a claim; only the owning processor may complete it."""
        ...

    async def wait_for_processing_completed(
        self,
        message_id: str,
        user_id: str,
        timeout_ms: int = 60000,
    ) -> bool:
        """Wait until the claim is completed. False on timeout or unknown message."""
        ...

    def get_message_processing_status(self, message_id: str, user_id: str) -> Optional[ProcessingStatus]:
        ...

"""In-memory event bus satisfying the IEventBus protocol.

Used for intra-process pub/sub between the coordinator, the planning
service, the executor and the audit log. Besides pub/sub it keeps the
message-processing registry that admits exactly one orchestration run per
inbound message, and the wait primitive the chat caller blocks on.

Handlers are invoked synchronously, in registration order, outside of any
lock, so a handler may publish again. Coroutine handlers are scheduled on
the running loop and not awaited by ``publish``.
"""

import asyncio
import dataclasses
import inspect
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional, Set, Tuple

from anemone.interfaces.event_bus import (
    AgentEvent,
    AgentEventType,
    EventHandler,
    ProcessingStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 30 * 60

_Key = Tuple[str, str]


class InMemoryEventBus:
    """Single-process event bus with processing admission.

    Satisfies ``anemone.interfaces.IEventBus`` via structural subtyping.
    Construct one per application (or per test); it is never a module global.
    """

    def __init__(self, retention_seconds: float = DEFAULT_RETENTION_SECONDS) -> None:
        self._handlers: Dict[AgentEventType, List[EventHandler]] = {}
        self._handlers_lock = threading.Lock()
        self._processing: Dict[_Key, ProcessingStatus] = {}
        self._processing_lock = threading.Lock()
        self._retention_seconds = retention_seconds
        self._pending_tasks: Set[asyncio.Task] = set()

    # ── Pub/sub ──────────────────────────────────────────────────────────

    def subscribe(self, event_type: AgentEventType, handler: EventHandler) -> None:
        with self._handlers_lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: AgentEventType, handler: EventHandler) -> None:
        with self._handlers_lock:
            handlers = self._handlers.get(event_type)
            if not handlers:
                return
            self._handlers[event_type] = [h for h in handlers if h != handler]

    def handler_count(self, event_type: AgentEventType) -> int:
        with self._handlers_lock:
            return len(self._handlers.get(event_type, []))

    def publish(self, event_type: AgentEventType, data: Dict[str, Any]) -> AgentEvent:
        event = AgentEvent(type=event_type, data=data)
        with self._handlers_lock:
            handlers = list(self._handlers.get(event_type, []))

        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    self._schedule_async_handler(result, event_type)
            except Exception:
                logger.exception("Event handler failed for %s", event_type.value)
        return event

    def _schedule_async_handler(self, awaitable: Awaitable[Any], event_type: AgentEventType) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop; dropping async handler for %s", event_type.value
            )
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = loop.create_task(awaitable)
        self._pending_tasks.add(task)
        task.add_done_callback(lambda t: self._on_handler_task_done(t, event_type))

    def _on_handler_task_done(self, task: asyncio.Task, event_type: AgentEventType) -> None:
        self._pending_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Async event handler failed for %s", event_type.value, exc_info=exc
            )

    async def drain(self) -> None:
        """Wait for every scheduled coroutine handler, including ones they schedule."""
        while self._pending_tasks:
            await asyncio.gather(*list(self._pending_tasks), return_exceptions=True)

    # ── Processing admission ─────────────────────────────────────────────

    def start_message_processing(self, message_id: str, user_id: str, processor: str) -> bool:
        key = (user_id, message_id)
        with self._processing_lock:
            existing = self._processing.get(key)
            if existing is not None and not existing.completed:
                logger.info(
                    "Message %s for user %s already being processed by %s; rejecting %s",
                    message_id, user_id, existing.processor, processor,
                )
                return False
            status = ProcessingStatus(
                message_id=message_id,
                user_id=user_id,
                processor=processor,
                start_time=datetime.now(timezone.utc),
            )
            self._processing[key] = status

        self.publish(AgentEventType.MESSAGE_PROCESSING_STARTED, {
            "messageId": message_id,
            "userId": user_id,
            "processor": processor,
            "timestamp": status.start_time.isoformat(),
        })
        logger.debug("Processor %s admitted for message %s", processor, message_id)
        return True

    def complete_message_processing(self, message_id: str, user_id: str, processor: str) -> None:
        key = (user_id, message_id)
        with self._processing_lock:
            status = self._processing.get(key)
            if status is None:
                logger.warning("No processing record for message %s (user %s)", message_id, user_id)
                return
            if status.processor != processor:
                logger.warning(
                    "Processor %s cannot complete message %s owned by %s",
                    processor, message_id, status.processor,
                )
                return
            status.completed = True
            status.completed_time = datetime.now(timezone.utc)
            payload = {
                "messageId": message_id,
                "userId": user_id,
                "processor": processor,
                "startTime": status.start_time.isoformat(),
                "completedTime": status.completed_time.isoformat(),
                "processingTime": int(
                    (status.completed_time - status.start_time).total_seconds() * 1000
                ),
            }

        self.publish(AgentEventType.MESSAGE_PROCESSING_COMPLETED, payload)
        self._cleanup_old_status()

    def _cleanup_old_status(self) -> None:
        now = datetime.now(timezone.utc)
        with self._processing_lock:
            stale = [
                key for key, status in self._processing.items()
                if (now - status.start_time).total_seconds() > self._retention_seconds
            ]
            for key in stale:
                del self._processing[key]
        if stale:
            logger.debug("Removed %d stale processing records", len(stale))

    def get_message_processing_status(self, message_id: str, user_id: str) -> Optional[ProcessingStatus]:
        with self._processing_lock:
            status = self._processing.get((user_id, message_id))
            return dataclasses.replace(status) if status is not None else None

    # ── Completion wait ──────────────────────────────────────────────────

    async def wait_for_processing_completed(
        self,
        message_id: str,
        user_id: str,
        timeout_ms: int = 60000,
    ) -> bool:
        loop = asyncio.get_running_loop()
        loop_thread = threading.get_ident()
        future: asyncio.Future = loop.create_future()
        timer: Optional[asyncio.TimerHandle] = None

        def teardown() -> None:
            if timer is not None:
                timer.cancel()
            self.unsubscribe(AgentEventType.MESSAGE_PROCESSING_COMPLETED, on_completed)

        def settle(result: bool) -> None:
            # Exactly one of completion/timeout gets past this check.
            if future.done():
                return
            teardown()
            future.set_result(result)

        def on_completed(event: AgentEvent) -> None:
            if event.data.get("messageId") != message_id or event.data.get("userId") != user_id:
                return
            if threading.get_ident() == loop_thread:
                settle(True)
            else:
                loop.call_soon_threadsafe(settle, True)

        with self._processing_lock:
            status = self._processing.get((user_id, message_id))
            if status is None:
                logger.debug("Nothing to wait for: message %s (user %s)", message_id, user_id)
                return False
            if status.completed:
                return True
            # Subscribed under the registry lock so a completion cannot slip
            # between the status check and the subscription.
            self.subscribe(AgentEventType.MESSAGE_PROCESSING_COMPLETED, on_completed)

        timer = loop.call_later(max(timeout_ms, 0) / 1000.0, settle, False)
        try:
            completed = await future
        except asyncio.CancelledError:
            teardown()
            raise
        if not completed:
            logger.info("Timed out after %dms waiting for message %s", timeout_ms, message_id)
        return completed

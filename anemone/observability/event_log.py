"""Orchestration audit log: every bus event to JSONL plus an in-memory ring buffer."""

import json
import logging
from collections import deque
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from anemone.interfaces.event_bus import AgentEvent, AgentEventType, IEventBus

logger = logging.getLogger(__name__)

REDACTED_KEYS = frozenset({"apiKey", "api_key", "privateKey", "private_key"})


def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: ("***" if key in REDACTED_KEYS and value else value)
        for key, value in data.items()
    }


class EventLogHandler:
    """Structured event recorder attached to an event bus."""

    def __init__(self, path: Optional[str] = None, buffer_size: int = 1000):
        self._path = path
        self._buffer: deque = deque(maxlen=buffer_size)
        self._bus: Optional[IEventBus] = None
        if self._path:
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

    def attach(self, event_bus: IEventBus) -> None:
        if self._bus is not None:
            return
        for event_type in AgentEventType:
            event_bus.subscribe(event_type, self.handle_event)
        self._bus = event_bus

    def detach(self) -> None:
        if self._bus is None:
            return
        for event_type in AgentEventType:
            self._bus.unsubscribe(event_type, self.handle_event)
        self._bus = None

    def handle_event(self, event: AgentEvent) -> Dict[str, Any]:
        return self.log_event(event.type.value, _redact(event.data), timestamp=event.timestamp)

    def log_event(
        self,
        event_type: str,
        data: Optional[Dict[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
        }
        if data:
            entry["data"] = data

        self._buffer.append(entry)

        if self._path:
            try:
                with open(self._path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
            except OSError:
                logger.exception("Failed to write event to %s", self._path)

        return entry

    def get_recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get recent events from the ring buffer."""
        if limit <= 0:
            return []
        return list(self._buffer)[-limit:]

    def get_summary(self, hours: float = 1.0) -> Dict[str, int]:
        """Count events by type within a time window."""
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        counts: Dict[str, int] = {}
        for entry in self._buffer:
            try:
                ts = datetime.fromisoformat(entry["timestamp"])
            except (KeyError, ValueError):
                continue
            if ts.tzinfo is None:
                ts = ts.replace(tzinfo=timezone.utc)
            if ts >= cutoff:
                et = entry.get("event_type", "unknown")
                counts[et] = counts.get(et, 0) + 1
        return counts

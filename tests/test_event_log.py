"""Tests for EventLogHandler (anemone/observability/event_log.py)."""

import json
import os
import tempfile

import pytest

from anemone.interfaces.event_bus import AgentEventType


@pytest.fixture
def event_log():
    """Create an EventLogHandler writing to a temp file."""
    from anemone.observability import EventLogHandler

    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "agent_events.jsonl")
        yield EventLogHandler(path=path, buffer_size=100)


def test_log_event_returns_entry(event_log):
    entry = event_log.log_event("TASK_STARTED", {"taskId": "task-1"})

    assert entry["event_type"] == "TASK_STARTED"
    assert entry["data"] == {"taskId": "task-1"}
    assert "timestamp" in entry


def test_log_event_no_data_key_when_empty(event_log):
    assert "data" not in event_log.log_event("ping")


def test_attached_log_records_bus_events(bus, event_log):
    event_log.attach(bus)

    bus.publish(AgentEventType.TASK_STARTED, {"taskId": "task-1"})
    bus.publish(AgentEventType.TASK_COMPLETED, {"taskId": "task-1", "result": "ok"})

    recent = event_log.get_recent()
    assert [e["event_type"] for e in recent] == ["TASK_STARTED", "TASK_COMPLETED"]
    assert recent[1]["data"]["result"] == "ok"


def test_secrets_are_redacted(bus, event_log):
    event_log.attach(bus)
    bus.publish(AgentEventType.MESSAGE_RECEIVED, {"userId": "u", "apiKey": "sk-secret", "apiUrl": None})

    entry = event_log.get_recent(1)[0]
    assert entry["data"]["apiKey"] == "***"
    assert entry["data"]["apiUrl"] is None
    with open(event_log._path, encoding="utf-8") as f:
        assert "sk-secret" not in f.read()


def test_events_written_as_jsonl(event_log):
    event_log.log_event("a", {"message": "你好"})
    event_log.log_event("b")

    with open(event_log._path, encoding="utf-8") as f:
        lines = [json.loads(line) for line in f]

    assert [line["event_type"] for line in lines] == ["a", "b"]
    assert lines[0]["data"]["message"] == "你好"


def test_detach_stops_recording(bus, event_log):
    event_log.attach(bus)
    event_log.detach()
    bus.publish(AgentEventType.TASK_STARTED, {})
    assert event_log.get_recent() == []
    assert bus.handler_count(AgentEventType.TASK_STARTED) == 0


def test_attach_twice_subscribes_once(bus, event_log):
    event_log.attach(bus)
    event_log.attach(bus)
    assert bus.handler_count(AgentEventType.TASK_FAILED) == 1


def test_ring_buffer_eviction():
    from anemone.observability import EventLogHandler

    handler = EventLogHandler(buffer_size=3)
    for name in "abcd":
        handler.log_event(name)

    assert [e["event_type"] for e in handler.get_recent(limit=10)] == ["b", "c", "d"]
    assert handler.get_recent(limit=0) == []


def test_summary_counts_recent_events(event_log):
    event_log.log_event("TASK_STARTED")
    event_log.log_event("TASK_STARTED")
    event_log.log_event("TASK_FAILED")
    event_log.log_event("OLD", timestamp="2000-01-01T00:00:00+00:00")

    assert event_log.get_summary(hours=1) == {"TASK_STARTED": 2, "TASK_FAILED": 1}


def test_payload_with_timestamp_is_recorded(bus, event_log):
    event_log.attach(bus)
    bus.publish(AgentEventType.MESSAGE_RECEIVED, {
        "userId": "u",
        "message": "hi",
        "messageId": "m-1",
        "timestamp": "2026-01-01T00:00:00+00:00",
        "apiKey": "sk-secret",
    })
    bus.start_message_processing("m-1", "u", "PlanningService")

    recent = event_log.get_recent()
    assert [e["event_type"] for e in recent] == ["MESSAGE_RECEIVED", "MESSAGE_PROCESSING_STARTED"]
    assert recent[0]["data"]["timestamp"] == "2026-01-01T00:00:00+00:00"
    assert recent[0]["data"]["apiKey"] == "***"
    with open(event_log._path, encoding="utf-8") as f:
        assert "sk-secret" not in f.read()

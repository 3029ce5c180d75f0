"""Shared fixtures. Every test gets its own bus; nothing is module-global."""

import pytest


@pytest.fixture
def bus():
    from anemone.event_bus import InMemoryEventBus
    return InMemoryEventBus()


@pytest.fixture
def recorded(bus):
    """Collect every published event, in order."""
    from anemone.interfaces.event_bus import AgentEventType

    events = []

    def record(event):
        events.append(event)

    for event_type in AgentEventType:
        bus.subscribe(event_type, record)
    return events

"""Orchestration audit trail."""

from anemone.observability.event_log import EventLogHandler

__all__ = ["EventLogHandler"]

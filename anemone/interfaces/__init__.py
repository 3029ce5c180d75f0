"""Anemone interface contracts (Protocol-based dependency injection)."""

from anemone.interfaces.event_bus import (
    AgentEvent,
    AgentEventType,
    EventHandler,
    IEventBus,
    ProcessingStatus,
)
from anemone.interfaces.completion_provider import ICompletionProvider
from anemone.interfaces.chain_client import IChainClient, ITokenClient
from anemone.interfaces.memory_store import IMessageStore, IProfileRepository, IWalletRepository
from anemone.interfaces.command_selector import CommandSelectionResult, ICommandSelector

__all__ = [
    "AgentEvent",
    "AgentEventType",
    "EventHandler",
    "IEventBus",
    "ProcessingStatus",
    "ICompletionProvider",
    "IChainClient",
    "ITokenClient",
    "IMessageStore",
    "IProfileRepository",
    "IWalletRepository",
    "CommandSelectionResult",
    "ICommandSelector",
]

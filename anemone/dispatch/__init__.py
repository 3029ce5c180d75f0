"""Command dispatch."""

from anemone.dispatch.command_dispatcher import NO_COMMAND_RESULT, CommandDispatcher, stringify_integers

__all__ = ["CommandDispatcher", "NO_COMMAND_RESULT", "stringify_integers"]

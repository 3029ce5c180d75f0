"""Interface for command selection.

A selector turns a user message (plus recent conversation) into the list of
command tokens the planner materializes as tasks. Swapping the selector
never touches the executor or the dispatcher.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol


@dataclass
class CommandSelectionResult:
    """Commands chosen for one message.

    ``degraded_reply`` is set when selection gave up and already produced the
    text to send back (e.g. an unverified free-text answer); the synthesizer
    returns it instead of composing a new reply.
    """
    commands: List[str]
    reasoning: str = ""
    source: str = ""
    discarded: List[str] = field(default_factory=list)
    attempts: int = 1
    coerced: bool = False
    degraded_reply: Optional[str] = None


class ICommandSelector(Protocol):
    """Chooses command tokens for a message.

    Implementations may raise; the planner treats any failure as ``{none}``.
    """

    async def select(
        self,
        message: str,
        recent_history: List[Dict[str, str]],
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
    ) -> CommandSelectionResult:
        ...

"""Actionability retry policy for free-text command selection.

A free-text completion is actionable when it carries at least one command
marker. The policy decides whether to re-prompt after a non-actionable
attempt and which prompt the next attempt uses.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from anemone.planning.prompts import AgentPrompt

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3

UNVERIFIED_DATA_WARNING = (
    "⚠️ Unverified data: I could not fetch any data for this answer, "
    "so treat the following as unconfirmed."
)


class RetryReason(str, Enum):
    """Why an attempt was not accepted."""

    NO_COMMAND_MARKER = "no_command_marker"  # Text without any marker
    EMPTY_COMPLETION = "empty_completion"  # Provider returned nothing
    PROVIDER_ERROR = "provider_error"  # Provider raised


@dataclass(frozen=True)
class RetryDecision:
    should_retry: bool
    reason: RetryReason
    attempt: int  # Attempt that just completed (1-indexed)
    message: str = ""


@dataclass
class ActionabilityRetryPolicy:
    """Re-prompt until a marker appears, at most ``max_attempts`` calls in total."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def decide(self, attempt: int, reason: RetryReason) -> RetryDecision:
        if attempt < self.max_attempts:
            return RetryDecision(
                should_retry=True,
                reason=reason,
                attempt=attempt,
                message=f"Retrying (attempt {attempt}/{self.max_attempts}): {reason.value}",
            )
        logger.warning("Actionability retries exhausted after %d attempts", attempt)
        return RetryDecision(
            should_retry=False,
            reason=reason,
            attempt=attempt,
            message="Max attempts exhausted",
        )

    @staticmethod
    def prompt_for(attempt: int, message: str) -> str:
        """The first attempt sends the message as is; later ones add the command reminder."""
        if attempt <= 1:
            return message
        return AgentPrompt.get_retry_prompt(message)

    @staticmethod
    def degrade(completion: str) -> str:
        return f"{UNVERIFIED_DATA_WARNING}\n\n{completion}"

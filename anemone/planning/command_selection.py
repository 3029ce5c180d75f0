"""Command selectors: structured tool call, free-text markers and keyword heuristics.

The structured selector is the default. The marker selector is the
compatibility path for providers that only answer in prose; it re-prompts
until the answer carries a command marker. The keyword selector is
deterministic and needs no provider at all.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from anemone.exceptions_unified import ConfigurationError, LLMProviderError
from anemone.interfaces.command_selector import CommandSelectionResult
from anemone.interfaces.completion_provider import ICompletionProvider
from anemone.planning.commands import COMMAND_TOKENS, Command
from anemone.planning.markers import (
    extract_command_markers,
    extract_tool_lines,
    has_command_marker,
    parse_free_text_selection,
    split_known,
)
from anemone.planning.prompts import AgentPrompt
from anemone.synthesis.fabrication_guard import FabricationGuard
from anemone.synthesis.retry_policy import ActionabilityRetryPolicy, RetryReason

logger = logging.getLogger(__name__)

SELECT_COMMANDS_TOOL = "select_commands"

NO_COMPLETION_FALLBACK = "I could not work out an answer to that right now."

__all__ = [
    "SELECT_COMMANDS_TOOL",
    "SelectCommandsArguments",
    "select_commands_tool_schema",
    "StructuredCommandSelector",
    "MarkerCommandSelector",
    "KeywordCommandSelector",
    "extract_command_markers",
    "extract_tool_lines",
    "has_command_marker",
    "parse_free_text_selection",
]


def _history_messages(recent_history: List[Dict[str, str]]) -> List[Dict[str, str]]:
    return [
        {"role": m.get("role", "user"), "content": m.get("content", "")}
        for m in recent_history
    ]


# ============================================================================
# Structured selection
# ============================================================================

class SelectCommandsArguments(BaseModel):
    """Arguments of the ``select_commands`` function call."""
    commands: List[str] = Field(default_factory=list)
    reasoning: str = ""


def select_commands_tool_schema() -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": SELECT_COMMANDS_TOOL,
            "description": "Select the data commands needed to answer the user.",
            "parameters": {
                "type": "object",
                "properties": {
                    "reasoning": {
                        "type": "string",
                        "description": "One sentence on what the user wants.",
                    },
                    "commands": {
                        "type": "array",
                        "items": {"type": "string", "enum": COMMAND_TOKENS},
                        "description": "Commands to run, in order.",
                    },
                },
                "required": ["commands"],
            },
        },
    }


class StructuredCommandSelector:
    """Selects commands through a ``select_commands`` function call.

    A provider that answers in prose instead is parsed with the marker
    scanner.
    """

    def __init__(self, provider: ICompletionProvider):
        self.provider = provider

    async def select(
        self,
        message: str,
        recent_history: List[Dict[str, str]],
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
    ) -> CommandSelectionResult:
        messages = [{"role": "system", "content": AgentPrompt.get_structured_selection_prompt()}]
        messages.extend(_history_messages(recent_history))
        messages.append({"role": "user", "content": message})

        reply = await self.provider.generate_tool_call(
            messages, select_commands_tool_schema(), api_key=api_key, api_url=api_url
        )
        arguments = reply.get("arguments")
        if arguments is None:
            commands, source = parse_free_text_selection(reply.get("content"))
            logger.info("Provider answered without a tool call; parsed %s from %s", commands, source)
            return CommandSelectionResult(
                commands=commands, reasoning=reply.get("content") or "", source=f"structured:{source}"
            )

        try:
            parsed = SelectCommandsArguments.model_validate(arguments)
        except PydanticValidationError as e:
            raise LLMProviderError(
                f"Malformed {SELECT_COMMANDS_TOOL} arguments",
                details={"arguments": arguments, "errors": e.errors()},
            ) from e

        known, unknown = split_known(parsed.commands)
        if unknown:
            logger.warning("Discarding unknown commands from tool call: %s", unknown)
        return CommandSelectionResult(
            commands=known,
            reasoning=parsed.reasoning,
            source="structured",
            discarded=unknown,
        )


# ============================================================================
# Free-text selection with actionability retry
# ============================================================================

class MarkerCommandSelector:
    """Selects commands from a prose answer carrying ``$execute:<token>`` markers.

    Re-prompts (with the retry prompt) until a marker appears. When attempts
    run out, the last non-empty answer becomes an unverified degraded reply,
    unless it states numbers, in which case it is coerced to ``none``.
    """

    def __init__(
        self,
        provider: ICompletionProvider,
        retry_policy: Optional[ActionabilityRetryPolicy] = None,
        guard: Optional[FabricationGuard] = None,
    ):
        self.provider = provider
        self.retry_policy = retry_policy or ActionabilityRetryPolicy()
        self.guard = guard or FabricationGuard()

    async def select(
        self,
        message: str,
        recent_history: List[Dict[str, str]],
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
    ) -> CommandSelectionResult:
        history = _history_messages(recent_history)
        system_prompt = AgentPrompt.get_system_prompt()
        last_text: Optional[str] = None
        attempt = 0

        while True:
            attempt += 1
            prompt = self.retry_policy.prompt_for(attempt, message)
            text, reason = await self._attempt(history, prompt, system_prompt, api_key, api_url)
            if text:
                last_text = text
            if reason is None:
                commands, source = parse_free_text_selection(text)
                return CommandSelectionResult(
                    commands=commands, reasoning=text or "", source=f"marker:{source}", attempts=attempt
                )
            decision = self.retry_policy.decide(attempt, reason)
            logger.info("Free-text selection attempt %d not actionable: %s", attempt, decision.message)
            if not decision.should_retry:
                break

        return self._exhausted(last_text, attempt)

    async def _attempt(
        self,
        history: List[Dict[str, str]],
        prompt: str,
        system_prompt: str,
        api_key: Optional[str],
        api_url: Optional[str],
    ) -> Tuple[Optional[str], Optional[RetryReason]]:
        try:
            text = await self.provider.generate_chat_response(
                history, prompt, system_prompt=system_prompt, api_key=api_key, api_url=api_url
            )
        except ConfigurationError:
            raise
        except Exception as e:
            logger.warning("Completion provider failed during selection: %s", e)
            return None, RetryReason.PROVIDER_ERROR
        if not text or not text.strip():
            return None, RetryReason.EMPTY_COMPLETION
        if not has_command_marker(text) and not extract_tool_lines(text):
            return text, RetryReason.NO_COMMAND_MARKER
        return text, None

    def _exhausted(self, last_text: Optional[str], attempts: int) -> CommandSelectionResult:
        if last_text and self.guard.is_violation(last_text):
            logger.warning(
                "Unfetched numeric claims in free-text answer %s; coercing to %s",
                self.guard.find_numeric_claims(last_text), Command.NONE.value,
            )
            return CommandSelectionResult(
                commands=[Command.NONE.value],
                reasoning=last_text,
                source="marker:coerced",
                attempts=attempts,
                coerced=True,
                degraded_reply=self.guard.coerced_reply,
            )
        return CommandSelectionResult(
            commands=[Command.NONE.value],
            reasoning=last_text or "",
            source="marker:exhausted",
            attempts=attempts,
            degraded_reply=self.retry_policy.degrade(last_text or NO_COMPLETION_FALLBACK),
        )


# ============================================================================
# Keyword selection
# ============================================================================

# Keyword groups in the order their commands are emitted.
_KEYWORD_RULES: List[Tuple[Tuple[str, ...], Tuple[Command, ...]]] = [
    (("余额", "balance", "代币", "token", "持有", "币"), (Command.GET_TOKENS, Command.GET_TOKENS_SUMMARY)),
    (("角色", "role", "健康", "health"), (Command.QUERY_ROLE_DATA,)),
    (("技能", "skill"), (Command.QUERY_SKILL_DETAILS,)),
    (("钱包", "wallet", "地址", "address"), (Command.GET_WALLET,)),
    (("profile", "配置"), (Command.GET_PROFILE,)),
]


class KeywordCommandSelector:
    """Deterministic keyword matcher. Never calls a provider."""

    async def select(
        self,
        message: str,
        recent_history: List[Dict[str, str]],
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
    ) -> CommandSelectionResult:
        return CommandSelectionResult(commands=self.analyze(message), source="keyword")

    @staticmethod
    def analyze(message: str) -> List[str]:
        lowered = (message or "").lower()
        commands: List[str] = []
        for keywords, selected in _KEYWORD_RULES:
            if any(keyword in lowered for keyword in keywords):
                commands.extend(command.value for command in selected)
        return commands or [Command.NONE.value]

"""Tests for the command selectors (anemone/planning/command_selection.py)."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from anemone.exceptions_unified import ConfigurationError, LLMProviderError
from anemone.planning.command_selection import (
    SELECT_COMMANDS_TOOL,
    KeywordCommandSelector,
    MarkerCommandSelector,
    StructuredCommandSelector,
    select_commands_tool_schema,
)
from anemone.synthesis.retry_policy import UNVERIFIED_DATA_WARNING, ActionabilityRetryPolicy


def _provider(tool_replies=None, chat_replies=None):
    provider = MagicMock()
    provider.generate_tool_call = AsyncMock(side_effect=tool_replies)
    provider.generate_chat_response = AsyncMock(side_effect=chat_replies)
    return provider


# --- Structured ---

def test_tool_schema_enumerates_every_command():
    schema = select_commands_tool_schema()
    assert schema["function"]["name"] == SELECT_COMMANDS_TOOL
    enum = schema["function"]["parameters"]["properties"]["commands"]["items"]["enum"]
    assert set(enum) == {
        "queryRoleData", "querySkillDetails", "getProfile", "getWallet",
        "getTokens", "getTokensSummary", "none",
    }


async def test_structured_selection_from_tool_call():
    provider = _provider(tool_replies=[{
        "arguments": {"commands": ["queryRoleData", "getTokensSummary"], "reasoning": "balance"},
        "content": None,
    }])
    selector = StructuredCommandSelector(provider)

    result = await selector.select(
        "你的balance还有多少sui",
        [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
        api_key="sk-request",
    )

    assert result.commands == ["queryRoleData", "getTokensSummary"]
    assert result.reasoning == "balance"
    assert result.source == "structured"
    messages, tool = provider.generate_tool_call.await_args.args
    assert messages[0]["role"] == "system"
    assert [m["content"] for m in messages[1:]] == ["hi", "hello", "你的balance还有多少sui"]
    assert tool["function"]["name"] == SELECT_COMMANDS_TOOL
    assert provider.generate_tool_call.await_args.kwargs["api_key"] == "sk-request"


async def test_structured_selection_discards_unknown_tokens():
    provider = _provider(tool_replies=[{
        "arguments": {"commands": ["getWallet", "drainWallet"]},
        "content": None,
    }])
    result = await StructuredCommandSelector(provider).select("wallet?", [])
    assert result.commands == ["getWallet"]
    assert result.discarded == ["drainWallet"]


async def test_structured_selection_falls_back_to_markers_in_prose():
    provider = _provider(tool_replies=[{
        "arguments": None,
        "content": "Sure. $execute:querySkillDetails",
    }])
    result = await StructuredCommandSelector(provider).select("skills?", [])
    assert result.commands == ["querySkillDetails"]
    assert result.source == "structured:execute_markers"


async def test_structured_selection_rejects_malformed_arguments():
    provider = _provider(tool_replies=[{"arguments": {"commands": "getWallet"}, "content": None}])
    with pytest.raises(LLMProviderError):
        await StructuredCommandSelector(provider).select("wallet?", [])


# --- Marker selection with actionability retry ---

async def test_marker_selection_first_attempt():
    provider = _provider(chat_replies=["Checking. $execute:queryRoleData"])
    result = await MarkerCommandSelector(provider).select("health?", [])

    assert result.commands == ["queryRoleData"]
    assert result.attempts == 1
    assert result.degraded_reply is None
    assert provider.generate_chat_response.await_args.args[1] == "health?"


async def test_marker_selection_retries_until_marker():
    provider = _provider(chat_replies=["", "I think you are fine.", "$execute:none"])
    result = await MarkerCommandSelector(provider).select("how are you", [])

    assert result.commands == ["none"]
    assert result.attempts == 3
    assert provider.generate_chat_response.await_count == 3
    second_prompt = provider.generate_chat_response.await_args_list[1].args[1]
    assert second_prompt != "how are you"
    assert "how are you" in second_prompt


async def test_marker_selection_provider_error_counts_as_attempt():
    provider = _provider(chat_replies=[RuntimeError("502"), "ok $execute:getWallet"])
    result = await MarkerCommandSelector(provider).select("wallet", [])
    assert result.commands == ["getWallet"]
    assert result.attempts == 2


async def test_marker_selection_exhausted_returns_unverified_reply():
    provider = _provider(chat_replies=["Hello!", "Hi again", "Nice to meet you"])
    selector = MarkerCommandSelector(provider, ActionabilityRetryPolicy(max_attempts=3))

    result = await selector.select("hello", [])

    assert result.commands == ["none"]
    assert result.attempts == 3
    assert not result.coerced
    assert result.degraded_reply.startswith(UNVERIFIED_DATA_WARNING)
    assert result.degraded_reply.endswith("Nice to meet you")
    assert provider.generate_chat_response.await_count == 3


async def test_marker_selection_exhausted_with_numeric_claim_is_coerced():
    provider = _provider(chat_replies=["Your balance is 120 SUI."])
    selector = MarkerCommandSelector(provider, ActionabilityRetryPolicy(max_attempts=1))

    result = await selector.select("balance?", [])

    assert result.coerced
    assert result.commands == ["none"]
    assert "120" not in result.degraded_reply
    assert result.degraded_reply == selector.guard.coerced_reply


async def test_marker_selection_exhausted_with_empty_completions():
    provider = _provider(chat_replies=[None, "  "])
    selector = MarkerCommandSelector(provider, ActionabilityRetryPolicy(max_attempts=2))
    result = await selector.select("hello", [])
    assert result.degraded_reply.startswith(UNVERIFIED_DATA_WARNING)


async def test_marker_selection_propagates_missing_configuration():
    provider = _provider(chat_replies=[ConfigurationError("no key")])
    with pytest.raises(ConfigurationError):
        await MarkerCommandSelector(provider).select("hello", [])


# --- Keyword ---

@pytest.mark.parametrize("message,expected", [
    ("你的balance还有多少sui", ["getTokens", "getTokensSummary"]),
    ("what is my role health", ["queryRoleData"]),
    ("list my skills and wallet address", ["querySkillDetails", "getWallet"]),
    ("show 配置", ["getProfile"]),
    ("good morning", ["none"]),
])
async def test_keyword_selection(message, expected):
    result = await KeywordCommandSelector().select(message, [])
    assert result.commands == expected
    assert result.source == "keyword"

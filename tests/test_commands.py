"""Tests for the command vocabulary, the balance rule and marker scanning."""

import pytest

from anemone.planning.commands import (
    Command,
    describe_command,
    enforce_balance_rule,
    is_balance_query,
    parse_command,
)
from anemone.planning.markers import (
    extract_command_markers,
    extract_tool_lines,
    has_command_marker,
    parse_free_text_selection,
)


# --- Vocabulary ---

@pytest.mark.parametrize("raw,expected", [
    ("queryRoleData", Command.QUERY_ROLE_DATA),
    ("QUERYROLEDATA", Command.QUERY_ROLE_DATA),
    (" getTokens ", Command.GET_TOKENS),
    ("None", Command.NONE),
    ("transferAll", None),
    ("", None),
])
def test_parse_command(raw, expected):
    assert parse_command(raw) is expected


def test_describe_command():
    assert describe_command("getTokensSummary") == "token balance summary"
    assert describe_command("mystery") == "mystery"


# --- Balance rule ---

@pytest.mark.parametrize("message", [
    "你的balance还有多少sui",
    "What's my BALANCE?",
    "我的余额是多少",
    "which tokens do I hold",
    "看看代币",
])
def test_is_balance_query(message):
    assert is_balance_query(message)


def test_non_balance_message_untouched():
    assert enforce_balance_rule("hello there", ["none"]) == ["none"]
    assert enforce_balance_rule("show my skills", ["querySkillDetails"]) == ["querySkillDetails"]


def test_balance_rule_adds_missing_wallet_half():
    assert enforce_balance_rule("balance?", ["queryRoleData"]) == ["queryRoleData", "getTokensSummary"]


def test_balance_rule_adds_missing_role_half():
    assert enforce_balance_rule("balance?", ["getTokens"]) == ["getTokens", "queryRoleData"]


def test_balance_rule_replaces_lone_none():
    assert enforce_balance_rule("你的balance还有多少sui", ["none"]) == ["queryRoleData", "getTokensSummary"]


def test_balance_rule_keeps_complete_selection_and_duplicates():
    commands = ["queryRoleData", "getTokensSummary", "getTokensSummary"]
    assert enforce_balance_rule("balance", commands) == commands


# --- Markers ---

def test_execute_markers_in_prose():
    text = "Let me check. $execute:queryRoleData and then $execute: getTokensSummary, thanks"
    assert extract_command_markers(text) == ["queryRoleData", "getTokensSummary"]


def test_execute_markers_ignore_case_and_unknown_tokens():
    text = "$EXECUTE:NONE $execute:withdrawEverything $execute:getwallet"
    assert extract_command_markers(text) == ["none", "getWallet"]


def test_has_command_marker():
    assert has_command_marker("ok $execute:none")
    assert not has_command_marker("your balance is 10 SUI")
    assert not has_command_marker(None)


def test_tool_lines_after_header():
    text = "Reasoning: the user wants the balance.\nTools to use:\n$queryRoleData\n$getTokens\n$bogus\n"
    assert extract_tool_lines(text) == ["queryRoleData", "getTokens"]


def test_tool_lines_require_header():
    assert extract_tool_lines("$queryRoleData\n$getTokens") == []


def test_free_text_selection_prefers_tool_lines():
    text = "Tools to use:\n$getProfile\nalso $execute:getWallet"
    assert parse_free_text_selection(text) == (["getProfile"], "tool_lines")
    assert parse_free_text_selection("run $execute:getWallet") == (["getWallet"], "execute_markers")

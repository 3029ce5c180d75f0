"""Tests for LLMTaskPlanner (anemone/planning/task_planner.py)."""

from unittest.mock import AsyncMock, MagicMock

from anemone.exceptions_unified import ConfigurationError
from anemone.interfaces.command_selector import CommandSelectionResult
from anemone.planning.command_selection import KeywordCommandSelector
from anemone.planning.task_planner import (
    FINAL_REPLY_TASK,
    INTEGRATE_TASK,
    INTERPRET_TASK,
    LLMTaskPlanner,
)


def _selector(commands=None, error=None):
    selector = MagicMock()
    if error is not None:
        selector.select = AsyncMock(side_effect=error)
    else:
        selector.select = AsyncMock(return_value=CommandSelectionResult(commands=commands, source="test"))
    return selector


async def test_plan_shape_wraps_commands_in_bookkeeping_tasks():
    planner = LLMTaskPlanner(_selector(["getWallet", "querySkillDetails"]))

    plan = await planner.create_plan("user-1", "wallet and skills please")

    descriptions = [t.description for t in plan.tasks]
    assert descriptions == [
        INTERPRET_TASK,
        "Fetch wallet information",
        "Fetch skill details",
        INTEGRATE_TASK,
        FINAL_REPLY_TASK,
    ]
    assert [t.command for t in plan.tasks] == [None, "getWallet", "querySkillDetails", None, None]
    assert plan.user_id == "user-1"
    assert plan.selection.source == "test"


async def test_history_and_credentials_reach_selector():
    selector = _selector(["none"])
    history = [{"role": "user", "content": "earlier"}]

    await LLMTaskPlanner(selector).create_plan("u", "hi", history, api_key="k", api_url="http://llm")

    args, kwargs = selector.select.await_args
    assert args == ("hi", history)
    assert kwargs == {"api_key": "k", "api_url": "http://llm"}


async def test_selector_failure_defaults_to_none():
    plan = await LLMTaskPlanner(_selector(error=RuntimeError("llm down"))).create_plan("u", "hello")
    assert plan.commands == ["none"]
    assert plan.selection.source == "failed"


async def test_missing_configuration_defaults_to_none():
    plan = await LLMTaskPlanner(_selector(error=ConfigurationError("no key"))).create_plan("u", "hello")
    assert plan.commands == ["none"]
    assert plan.selection.source == "unavailable"


async def test_no_selector_defaults_to_none():
    plan = await LLMTaskPlanner().create_plan("u", "hello")
    assert plan.commands == ["none"]
    assert len(plan.tasks) == 4


async def test_empty_selection_becomes_none():
    plan = await LLMTaskPlanner(_selector([])).create_plan("u", "hello")
    assert plan.commands == ["none"]


async def test_balance_message_gets_both_halves_when_classifier_omits_one():
    plan = await LLMTaskPlanner(_selector(["queryRoleData"])).create_plan("u", "你的balance还有多少sui")
    assert plan.commands == ["queryRoleData", "getTokensSummary"]


async def test_balance_message_survives_classifier_failure():
    plan = await LLMTaskPlanner(_selector(error=RuntimeError("boom"))).create_plan("u", "我的余额")
    assert plan.commands == ["queryRoleData", "getTokensSummary"]


async def test_duplicate_commands_each_get_a_task():
    plan = await LLMTaskPlanner(_selector(["getWallet", "getWallet"])).create_plan("u", "wallet")
    assert plan.commands == ["getWallet", "getWallet"]
    assert len(plan.tasks) == 5


async def test_keyword_selector_scenario():
    plan = await LLMTaskPlanner(KeywordCommandSelector()).create_plan("u", "你的balance还有多少sui")
    assert plan.commands == ["getTokens", "getTokensSummary", "queryRoleData"]

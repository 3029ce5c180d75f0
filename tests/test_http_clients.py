"""Tests for the outbound HTTP collaborators, driven through httpx.MockTransport."""

import json

import httpx
import pytest
from tenacity import wait_none

from anemone.chain import SUI_COIN_TYPE, BlockberryTokenClient, SuiChainClient
from anemone.exceptions_unified import (
    ChainClientError,
    ConfigurationError,
    LLMProviderError,
    LLMTimeoutError,
    TokenServiceError,
    ValidationError,
)
from anemone.llm import OpenAICompatibleProvider


class Recorder:
    """MockTransport handler returning scripted responses (or raising)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def body(self, index=-1):
        return json.loads(self.requests[index].content)


def _completion(message):
    return httpx.Response(200, json={"choices": [{"message": message}]})


def _provider(recorder, **kwargs):
    return OpenAICompatibleProvider(
        api_key="sk-test",
        api_url="https://llm.example/v1/",
        model="test-model",
        retry_wait=wait_none(),
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )


# --- Completion provider ---

async def test_chat_response_request_shape():
    recorder = Recorder(_completion({"role": "assistant", "content": "hi there"}))

    text = await _provider(recorder).generate_chat_response(
        [{"role": "USER", "content": "earlier"}], "hello", system_prompt="be brief"
    )

    assert text == "hi there"
    request = recorder.requests[0]
    assert str(request.url) == "https://llm.example/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    body = recorder.body()
    assert body["model"] == "test-model"
    assert body["messages"] == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "earlier"},
        {"role": "user", "content": "hello"},
    ]


async def test_per_call_credentials_override_configuration():
    recorder = Recorder(_completion({"content": "ok"}))
    await _provider(recorder).generate_chat_response([], "hi", api_key="sk-user", api_url="http://other/v1")
    assert recorder.requests[0].headers["Authorization"] == "Bearer sk-user"
    assert str(recorder.requests[0].url) == "http://other/v1/chat/completions"


async def test_empty_content_is_none():
    recorder = Recorder(_completion({"content": ""}))
    assert await _provider(recorder).generate_chat_response([], "hi") is None


async def test_missing_key_is_configuration_error():
    provider = OpenAICompatibleProvider(api_key=None, transport=httpx.MockTransport(Recorder()))
    assert not provider.is_configured()
    assert provider.is_configured("sk-user")
    with pytest.raises(ConfigurationError):
        await provider.generate_chat_response([], "hi")


async def test_transport_errors_are_retried():
    recorder = Recorder(httpx.ConnectError("refused"), _completion({"content": "recovered"}))
    assert await _provider(recorder).generate_chat_response([], "hi") == "recovered"
    assert len(recorder.requests) == 2


async def test_retries_exhausted_raise_provider_error():
    recorder = Recorder(httpx.ConnectError("refused"))
    with pytest.raises(LLMProviderError):
        await _provider(recorder, max_attempts=2).generate_chat_response([], "hi")
    assert len(recorder.requests) == 2


async def test_timeout_maps_to_timeout_error():
    recorder = Recorder(httpx.ReadTimeout("slow"))
    with pytest.raises(LLMTimeoutError):
        await _provider(recorder, max_attempts=1).generate_chat_response([], "hi")


async def test_http_error_status():
    recorder = Recorder(httpx.Response(429, text="rate limited"))
    with pytest.raises(LLMProviderError) as info:
        await _provider(recorder).generate_chat_response([], "hi")
    assert info.value.details["status_code"] == 429
    assert len(recorder.requests) == 1


async def test_tool_call_arguments_parsed():
    tool = {"type": "function", "function": {"name": "select_commands", "parameters": {}}}
    recorder = Recorder(_completion({
        "content": None,
        "tool_calls": [{
            "type": "function",
            "function": {"name": "select_commands", "arguments": '{"commands": ["getWallet"]}'},
        }],
    }))

    reply = await _provider(recorder).generate_tool_call([{"role": "user", "content": "x"}], tool)

    assert reply == {"arguments": {"commands": ["getWallet"]}, "content": None}
    body = recorder.body()
    assert body["tools"] == [tool]
    assert body["tool_choice"] == {"type": "function", "function": {"name": "select_commands"}}


async def test_tool_call_absent_returns_content():
    tool = {"type": "function", "function": {"name": "select_commands"}}
    recorder = Recorder(_completion({"content": "$execute:none"}))
    reply = await _provider(recorder).generate_tool_call([], tool)
    assert reply == {"arguments": None, "content": "$execute:none"}


async def test_tool_call_invalid_json():
    tool = {"type": "function", "function": {"name": "select_commands"}}
    recorder = Recorder(_completion({
        "tool_calls": [{"function": {"name": "select_commands", "arguments": "{nope"}}],
    }))
    with pytest.raises(LLMProviderError):
        await _provider(recorder).generate_tool_call([], tool)


# --- Sui chain client ---

def _sui(recorder):
    return SuiChainClient(
        rpc_url="https://rpc.example", retry_wait=wait_none(), transport=httpx.MockTransport(recorder)
    )


def _object(fields, data_type="moveObject"):
    return httpx.Response(200, json={
        "jsonrpc": "2.0", "id": 1,
        "result": {"data": {"content": {"dataType": data_type, "fields": fields}}},
    })


async def test_role_data_parsed_with_big_integers():
    huge = str(2 ** 200)
    recorder = Recorder(_object({
        "id": {"id": "0xrole"},
        "balance": {"type": "0x2::balance::Balance", "fields": {"value": huge}},
        "health": "80",
        "is_active": True,
        "skills": {"type": "vec_set", "fields": {"contents": ["0xs1", "0xs2"]}},
    }))

    role = await _sui(recorder).get_role_data("0xrole")

    assert role["id"] == "0xrole"
    assert role["balance"] == 2 ** 200
    assert role["health"] == 80
    assert role["skills"] == ["0xs1", "0xs2"]
    body = recorder.body()
    assert body["method"] == "sui_getObject"
    assert body["params"][0] == "0xrole"
    assert body["params"][1]["showContent"] is True


async def test_skill_details_parsed():
    recorder = Recorder(_object({"id": {"id": "0xs1"}, "name": "fish", "fee": "15"}))
    skill = await _sui(recorder).get_skill_details("0xs1")
    assert skill == {"id": "0xs1", "name": "fish", "fee": 15}


async def test_missing_object_is_none():
    recorder = Recorder(httpx.Response(200, json={
        "jsonrpc": "2.0", "id": 1, "result": {"error": {"code": "notExists"}},
    }))
    assert await _sui(recorder).get_role_data("0xgone") is None


async def test_package_object_is_none():
    recorder = Recorder(_object({}, data_type="package"))
    assert await _sui(recorder).get_role_data("0xpkg") is None


async def test_rpc_error_raises():
    recorder = Recorder(httpx.Response(200, json={
        "jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "invalid params"},
    }))
    with pytest.raises(ChainClientError, match="invalid params"):
        await _sui(recorder).get_role_data("bad")


async def test_rpc_unreachable_raises():
    recorder = Recorder(httpx.ConnectError("down"))
    with pytest.raises(ChainClientError):
        await _sui(recorder).get_role_data("0xrole")
    assert len(recorder.requests) == 3


# --- Blockberry ---

BALANCES = [
    {"coinType": SUI_COIN_TYPE, "coinSymbol": "SUI", "balance": 12.5, "balanceUsd": 40.0},
    {"coinType": "0xabc::usdc::USDC", "coinSymbol": "USDC", "balance": 10, "balanceUsd": 10.0},
    {"coinType": "0xdef::meme::MEME", "coinSymbol": "MEME", "balance": 1000, "balanceUsd": None},
]


def _blockberry(recorder):
    return BlockberryTokenClient(
        api_key="bb-key",
        base_url="https://bb.example/",
        retry_wait=wait_none(),
        transport=httpx.MockTransport(recorder),
    )


async def test_tokens_request():
    recorder = Recorder(httpx.Response(200, json=BALANCES))

    tokens = await _blockberry(recorder).get_tokens("0xwallet")

    assert tokens == BALANCES
    request = recorder.requests[0]
    assert str(request.url) == "https://bb.example/sui/v1/accounts/0xwallet/balance"
    assert request.headers["x-api-key"] == "bb-key"


async def test_tokens_summary():
    recorder = Recorder(httpx.Response(200, json=BALANCES))
    summary = await _blockberry(recorder).get_tokens_summary("0xwallet")
    assert summary == {
        "totalUsdValue": 50.0,
        "suiBalance": 12.5,
        "suiUsdValue": 40.0,
        "tokensCount": 3,
    }


async def test_invalid_address_rejected_without_request():
    recorder = Recorder(httpx.Response(200, json=[]))
    with pytest.raises(ValidationError):
        await _blockberry(recorder).get_tokens("wallet")
    assert recorder.requests == []


async def test_blockberry_error_status():
    recorder = Recorder(httpx.Response(401, text="bad key"))
    with pytest.raises(TokenServiceError):
        await _blockberry(recorder).get_tokens("0xwallet")

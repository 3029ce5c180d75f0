"""OpenAI-compatible chat completion provider.

Talks to any ``/chat/completions`` endpoint over httpx. Transport errors are
retried with exponential backoff; HTTP error statuses are not.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from anemone.exceptions_unified import ConfigurationError, LLMProviderError, LLMTimeoutError

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider:
    """Satisfies ``anemone.interfaces.ICompletionProvider``.

    ``api_key``/``api_url`` passed to a call override the configured ones for
    that call only.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o",
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout: float = 60.0,
        max_attempts: int = 3,
        retry_wait: Any = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)
        self._transport = transport

    def is_configured(self, api_key: Optional[str] = None) -> bool:
        return bool(api_key or self.api_key)

    async def generate_chat_response(
        self,
        history: List[Dict[str, str]],
        new_message: str,
        system_prompt: Optional[str] = None,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
    ) -> Optional[str]:
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        for msg in history:
            messages.append({
                "role": str(msg.get("role", "user")).lower(),
                "content": msg.get("content", ""),
            })
        messages.append({"role": "user", "content": new_message})

        data = await self._chat_completion({"messages": messages}, api_key, api_url)
        message = self._first_message(data)
        return message.get("content") or None

    async def generate_tool_call(
        self,
        messages: List[Dict[str, str]],
        tool: Dict[str, Any],
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        name = tool["function"]["name"]
        payload = {
            "messages": messages,
            "tools": [tool],
            "tool_choice": {"type": "function", "function": {"name": name}},
        }
        data = await self._chat_completion(payload, api_key, api_url)
        message = self._first_message(data)

        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            if function.get("name") != name:
                continue
            raw = function.get("arguments") or "{}"
            try:
                arguments = json.loads(raw) if isinstance(raw, str) else raw
            except json.JSONDecodeError as e:
                raise LLMProviderError(
                    f"Tool call {name} returned invalid JSON arguments",
                    details={"arguments": raw},
                ) from e
            return {"arguments": arguments, "content": message.get("content")}

        return {"arguments": None, "content": message.get("content")}

    # ── HTTP ─────────────────────────────────────────────────────────────

    async def _chat_completion(
        self,
        payload: Dict[str, Any],
        api_key: Optional[str],
        api_url: Optional[str],
    ) -> Dict[str, Any]:
        key = api_key or self.api_key
        if not key:
            raise ConfigurationError("No completion provider API key configured")
        base_url = (api_url or self.api_url).rstrip("/")
        body = {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            **payload,
        }

        @retry(stop=stop_after_attempt(self.max_attempts), wait=self.retry_wait,
               retry=retry_if_exception_type(httpx.TransportError), reraise=True)
        async def _call() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                return await client.post(
                    f"{base_url}/chat/completions",
                    headers={"Authorization": f"Bearer {key}", "Content-Type": "application/json"},
                    json=body,
                )

        try:
            response = await _call()
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(f"Completion provider timed out: {e}") from e
        except httpx.TransportError as e:
            raise LLMProviderError(f"Completion provider unreachable: {e}") from e

        if response.status_code != 200:
            raise LLMProviderError(
                f"Completion provider error: {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )
        try:
            return response.json()
        except ValueError as e:
            raise LLMProviderError("Completion provider returned invalid JSON") from e

    @staticmethod
    def _first_message(data: Dict[str, Any]) -> Dict[str, Any]:
        choices = data.get("choices") or []
        if not choices:
            logger.warning("Completion response has no choices")
            return {}
        return choices[0].get("message") or {}

"""Sui JSON-RPC client for the agent's role and skill objects.

Only reads object fields via ``sui_getObject``. u64 fields arrive as JSON
strings and are returned as Python ints, which keep full precision.
"""

import itertools
import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from anemone.exceptions_unified import ChainClientError

logger = logging.getLogger(__name__)

ROLE_INT_FIELDS = ("health", "last_epoch", "inactive_epochs", "balance")
SKILL_INT_FIELDS = ("fee",)


def _to_int(value: Any) -> Any:
    """u64/u128/u256 values: plain strings, ints or ``Balance`` structs."""
    if isinstance(value, dict):
        inner = value.get("fields", value)
        value = inner.get("value", value)
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.lstrip("-").isdigit():
        return int(value)
    return value


def _uid(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("id", value)
    return value


def _id_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, dict):
        inner = value.get("fields", value)
        value = inner.get("contents", [])
    return [str(_uid(item)) for item in value]


class SuiChainClient:
    """Satisfies ``anemone.interfaces.IChainClient``."""

    def __init__(
        self,
        rpc_url: str = "https://fullnode.devnet.sui.io:443",
        timeout: float = 30.0,
        max_attempts: int = 3,
        retry_wait: Any = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=8)
        self._transport = transport
        self._ids = itertools.count(1)

    async def get_role_data(self, role_id: str) -> Optional[Dict[str, Any]]:
        fields = await self._get_object_fields(role_id)
        if fields is None:
            return None
        role = dict(fields)
        role["id"] = _uid(fields.get("id", role_id))
        for key in ROLE_INT_FIELDS:
            if key in role:
                role[key] = _to_int(role[key])
        role["skills"] = _id_list(fields.get("skills"))
        return role

    async def get_skill_details(self, skill_id: str) -> Optional[Dict[str, Any]]:
        fields = await self._get_object_fields(skill_id)
        if fields is None:
            return None
        skill = dict(fields)
        skill["id"] = _uid(fields.get("id", skill_id))
        for key in SKILL_INT_FIELDS:
            if key in skill:
                skill[key] = _to_int(skill[key])
        return skill

    async def _get_object_fields(self, object_id: str) -> Optional[Dict[str, Any]]:
        result = await self._rpc("sui_getObject", [object_id, {"showContent": True, "showType": True}])
        if result.get("error"):
            logger.info("Object %s not readable: %s", object_id, result["error"])
            return None
        content = (result.get("data") or {}).get("content") or {}
        if content.get("dataType") != "moveObject":
            logger.info("Object %s has no Move content", object_id)
            return None
        return content.get("fields") or {}

    async def _rpc(self, method: str, params: List[Any]) -> Dict[str, Any]:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

        @retry(stop=stop_after_attempt(self.max_attempts), wait=self.retry_wait,
               retry=retry_if_exception_type(httpx.TransportError), reraise=True)
        async def _call() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                return await client.post(self.rpc_url, json=body)

        try:
            response = await _call()
        except httpx.TransportError as e:
            raise ChainClientError(f"Sui RPC unreachable: {e}", details={"method": method}) from e

        if response.status_code != 200:
            raise ChainClientError(
                f"Sui RPC error: {response.status_code}",
                details={"method": method, "status_code": response.status_code},
            )
        payload = response.json()
        if "error" in payload:
            raise ChainClientError(
                f"Sui RPC {method} failed: {payload['error'].get('message', payload['error'])}",
                details={"method": method},
            )
        return payload.get("result") or {}

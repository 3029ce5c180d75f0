"""Blockberry REST client for wallet token balances."""

import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from anemone.exceptions_unified import TokenServiceError, ValidationError

logger = logging.getLogger(__name__)

SUI_COIN_TYPE = "0x2::sui::SUI"


class BlockberryTokenClient:
    """Satisfies ``anemone.interfaces.ITokenClient``.

    Each balance entry carries ``coinType``, ``coinName``, ``coinSymbol``,
    ``balance``, ``balanceUsd``, ``decimals`` and ``coinPrice``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.blockberry.one",
        timeout: float = 30.0,
        max_attempts: int = 3,
        retry_wait: Any = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or ""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=8)
        self._transport = transport
        if not self.api_key:
            logger.warning("Blockberry API key not set; balance requests will likely be rejected")

    async def get_tokens(self, address: str) -> List[Dict[str, Any]]:
        if not address or not address.startswith("0x"):
            raise ValidationError(f"Invalid Sui address: {address!r}")

        @retry(stop=stop_after_attempt(self.max_attempts), wait=self.retry_wait,
               retry=retry_if_exception_type(httpx.TransportError), reraise=True)
        async def _call() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                return await client.get(
                    f"{self.base_url}/sui/v1/accounts/{address}/balance",
                    headers={"accept": "*/*", "x-api-key": self.api_key},
                )

        try:
            response = await _call()
        except httpx.TransportError as e:
            raise TokenServiceError(f"Blockberry API unreachable: {e}") from e

        if response.status_code != 200:
            raise TokenServiceError(
                f"Blockberry API error: {response.status_code} - {response.text[:200]}",
                details={"status_code": response.status_code},
            )
        return list(response.json() or [])

    async def get_tokens_summary(self, address: str) -> Dict[str, Any]:
        balances = await self.get_tokens(address)
        total_usd = 0.0
        sui_balance: Any = 0
        sui_usd = 0.0
        for token in balances:
            if token.get("balanceUsd"):
                total_usd += token["balanceUsd"]
            if token.get("coinType") == SUI_COIN_TYPE:
                sui_balance = token.get("balance", 0)
                sui_usd = token.get("balanceUsd") or 0
        return {
            "totalUsdValue": total_usd,
            "suiBalance": sui_balance,
            "suiUsdValue": sui_usd,
            "tokensCount": len(balances),
        }

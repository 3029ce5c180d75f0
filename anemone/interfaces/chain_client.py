"""Interfaces for on-chain reads: Sui role/skill objects and token balances."""

from typing import Any, Dict, List, Optional, Protocol


class IChainClient(Protocol):
    """Reads the agent's role object and its skill objects.

    Integer fields (``balance``, ``health``, ``last_epoch``, ``inactive_epochs``)
    are returned as Python ints of arbitrary size.
    """

    async def get_role_data(self, role_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def get_skill_details(self, skill_id: str) -> Optional[Dict[str, Any]]:
        ...


class ITokenClient(Protocol):
    """Wallet token balances keyed by a ``0x`` address."""

    async def get_tokens(self, address: str) -> List[Dict[str, Any]]:
        ...

    async def get_tokens_summary(self, address: str) -> Dict[str, Any]:
        """Aggregate as ``{totalUsdValue, suiBalance, suiUsdValue, tokensCount}``."""
        ...

"""On-chain data clients."""

from anemone.chain.blockberry import BlockberryTokenClient, SUI_COIN_TYPE
from anemone.chain.sui_client import SuiChainClient

__all__ = ["BlockberryTokenClient", "SUI_COIN_TYPE", "SuiChainClient"]

"""Interfaces for persisted conversation messages, agent profile and wallet.

The orchestration core reads history through ``IMessageStore`` and never
depends on a storage format. Implementations are synchronous; the SQLite
versions live in ``anemone.persistence.sqlite_store``.
"""

from typing import Any, Dict, List, Optional, Protocol


class IMessageStore(Protocol):
    """Conversation message persistence."""

    def save_message(
        self,
        user_id: str,
        role: str,
        content: str,
        timestamp: Optional[str] = None,
        message_type: str = "text",
        metadata: Optional[Dict[str, Any]] = None,
        conversation_round: Optional[int] = None,
    ) -> int:
        """Store one message and return its row id."""
        ...

    def find_message(self, user_id: str, message_id: str, role: str) -> Optional[Dict[str, Any]]:
        """Newest message of ``role`` whose metadata carries ``messageId == message_id``."""
        ...

    def get_recent_messages(
        self,
        user_id: str,
        limit: int = 5,
        before_timestamp: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Newest first."""
        ...

    def get_conversation_history(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Oldest first."""
        ...

    def get_messages_by_rounds(self, user_id: str, rounds: int = 3) -> List[Dict[str, Any]]:
        """Messages of the last ``rounds`` conversation rounds, oldest first."""
        ...

    def get_next_conversation_round(self, user_id: str) -> int:
        ...


class IProfileRepository(Protocol):
    """The agent's single profile record (role id + package id)."""

    def init_profile(self, role_id: str, package_id: str) -> int:
        ...

    def get_profile(self) -> Optional[Dict[str, Any]]:
        ...


class IWalletRepository(Protocol):
    """The agent's wallet address. Key custody is out of scope."""

    def get_wallet(self) -> Optional[Dict[str, Any]]:
        ...

    def save_wallet_address(self, address: str) -> int:
        ...

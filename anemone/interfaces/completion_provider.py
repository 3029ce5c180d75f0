"""Interface for the chat completion provider.

The provider is treated as unreliable: ``generate_chat_response`` may return
``None`` or an empty string, and every call site supplies its own fallback.
"""

from typing import Any, Dict, List, Optional, Protocol


class ICompletionProvider(Protocol):
    """OpenAI-compatible chat completion boundary."""

    async def generate_chat_response(
        self,
        history: List[Dict[str, str]],
        new_message: str,
        system_prompt: Optional[str] = None,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
    ) -> Optional[str]:
        """Return the assistant text for ``new_message`` or None on an empty reply.

        Args:
            history: Prior turns as ``{"role": ..., "content": ...}`` dicts
            new_message: The user turn to answer
            system_prompt: Optional system message placed before the history
            api_key: Per-request credential overriding the configured one
            api_url: Per-request base URL overriding the configured one
        """
        ...

    async def generate_tool_call(
        self,
        messages: List[Dict[str, str]],
        tool: Dict[str, Any],
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Ask for a single function call.

        Returns ``{"arguments": dict | None, "content": str | None}``. When the
        provider answered in free text instead of calling the tool,
        ``arguments`` is None and ``content`` holds the text.
        """
        ...

    def is_configured(self, api_key: Optional[str] = None) -> bool:
        """True when a credential is available for a call."""
        ...

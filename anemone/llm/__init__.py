"""Completion provider clients."""

from anemone.llm.openai_connector import OpenAICompatibleProvider

__all__ = ["OpenAICompatibleProvider"]

"""Anemone agent backend: chat-driven orchestration over Sui role and wallet data.

A user's message is planned into a short list of data-fetch commands, executed
strictly in order, and folded back into a natural-language reply.
"""

__version__ = "0.3.0"

"""HTTP surface."""

from anemone.api.agent_api import create_app

__all__ = ["create_app"]

"""Model provider clients."""

from installpilot.models.openai_client import OpenAIClient

__all__ = ["OpenAIClient"]

"""LLM provider abstraction for the oracles."""

from .adapters import AnthropicAdapter, OpenRouterAdapter
from .protocols import LLMProvider

__all__ = [
    "LLMProvider",
    "OpenRouterAdapter",
    "AnthropicAdapter",
]

"""LLM module wrapping the hosted chat model used by the AI assistant."""

from .chat_bridge import ChatBridge

__all__ = ["ChatBridge"]

"""LLM adapter layer - abstracts over LLM providers."""

from flashcard_api.adapters.llm.base import AbstractLLMClient, ChatMessage
from flashcard_api.adapters.llm.factory import create_llm_client
from flashcard_api.adapters.llm.openai_client import OpenAIClient

__all__ = [
    "AbstractLLMClient",
    "ChatMessage",
    "OpenAIClient",
    "create_llm_client",
]

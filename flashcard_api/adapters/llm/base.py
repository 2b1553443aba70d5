from abc import ABC, abstractmethod
from typing import TypedDict


class ChatMessage(TypedDict):
    role: str
    content: str


class AbstractLLMClient(ABC):
    """Interface for LLM clients that produce plain-text chat completions."""

    model: str

    @abstractmethod
    async def complete_chat(
        self,
        messages: list[ChatMessage],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Run a chat completion and return the first choice's content.

        Args:
            messages: Ordered conversation turns (system first).
            max_tokens: Maximum completion length.
            temperature: Sampling temperature.

        Returns:
            str: Non-empty text produced by the model.

        Raises:
            UpstreamStatusError: Provider answered with a non-success status.
            EmptyResponseError: Provider returned no usable content.
            UpstreamTransportError: Network failure, timeout or unreadable response.
        """
        ...

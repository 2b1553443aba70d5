"""OpenAI LLM client adapter."""

from typing import Any

from openai import APIStatusError, AsyncOpenAI

from flashcard_api.adapters.llm.base import AbstractLLMClient, ChatMessage
from flashcard_api.core.errors import (
    UPSTREAM_FAILURE_MESSAGE,
    EmptyResponseError,
    UpstreamStatusError,
    UpstreamTransportError,
)


class OpenAIClient(AbstractLLMClient):
    """Client for calling OpenAI chat completions.

    Uses the official OpenAI Python SDK with async support. SDK retries are
    disabled: a failed call is reported once and never repeated. The SDK
    client is built on first use, so a missing key fails the call rather than
    the construction.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 45.0,
    ) -> None:
        """Initialize OpenAI async client.

        Args:
            api_key: OpenAI API key for authentication. None falls back to the
                SDK's own OPENAI_API_KEY lookup.
            model: Model name (e.g., "gpt-4o-mini").
            base_url: Optional custom base URL for OpenAI API.
            timeout_seconds: Timeout for requests in seconds.
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self._client: AsyncOpenAI | None = None

    @property
    def client(self) -> AsyncOpenAI:
        """SDK client, created on first access.

        Raises:
            openai.OpenAIError: If the SDK rejects the configuration (e.g. no key).
        """
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                max_retries=0,
            )
        return self._client

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
            str: Message content of the first choice.

        Raises:
            UpstreamStatusError: API answered with a non-2xx status.
            EmptyResponseError: No choices, or the first choice has no content.
            UpstreamTransportError: Any other failure while calling the API.
        """
        request_params: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            response = await self.client.chat.completions.create(**request_params)
        except APIStatusError as exc:
            raise UpstreamStatusError(
                code="llm_upstream_status",
                message=UPSTREAM_FAILURE_MESSAGE,
                details={"http_status": exc.status_code, "model": self.model},
            ) from exc
        except Exception as exc:
            raise UpstreamTransportError(
                code="llm_transport_error",
                message=UPSTREAM_FAILURE_MESSAGE,
                details={
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "model": self.model,
                },
            ) from exc

        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None)

        if not isinstance(content, str) or not content:
            raise EmptyResponseError(
                code="llm_empty_response",
                message=UPSTREAM_FAILURE_MESSAGE,
                details={"model": self.model},
            )

        return content

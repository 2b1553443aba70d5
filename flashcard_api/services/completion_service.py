"""Completion gateway wrapping the upstream LLM call.

This service builds the flashcard translation prompt, invokes the configured
LLM client and normalizes every failure into one caller-visible error. The
reason for a failure (status code, empty content, transport exception) is
logged here and never reaches the client.
"""

import logging
import time

from flashcard_api.adapters.llm.base import AbstractLLMClient, ChatMessage
from flashcard_api.core.errors import (
    UPSTREAM_FAILURE_MESSAGE,
    LLMAppError,
    UpstreamTransportError,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Task: Translate between Mexican Spanish and English for flashcard study. "
    "For Spanish input, provide the English meaning. For English input, provide "
    "the most common Mexican Spanish translation. "
    "Tone: Use everyday, conversational Mexican Spanish words and phrases that "
    "are commonly used in daily life. Avoid formal, literary, or regional "
    "variants from other Spanish-speaking countries. "
    "Rules: - Keep responses brief and direct - ideal for quick flashcard review "
    "- Do not repeat the original term in your response "
    "- Use only the most common Mexican Spanish words "
    "- Provide single, clear translations without explanations"
)


def build_messages(message: str) -> list[ChatMessage]:
    """Build the conversation sent upstream.

    Args:
        message: User text, passed through verbatim.

    Returns:
        System instruction followed by a single user turn.
    """
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": message},
    ]


class CompletionGateway:
    """Turn a flashcard query into a model answer."""

    def __init__(
        self,
        llm: AbstractLLMClient,
        *,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> None:
        self._llm = llm
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def complete(self, message: str) -> str:
        """Ask the upstream model about message.

        Args:
            message: Non-empty user text.

        Returns:
            The upstream's answer, unmodified.

        Raises:
            LLMAppError: For any upstream failure; always carries the same
                client-facing message.
        """
        start = time.perf_counter()
        try:
            content = await self._llm.complete_chat(
                build_messages(message),
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except LLMAppError as exc:
            logger.error(
                "llm.request_failed",
                extra={
                    "error_code": exc.code,
                    "details": exc.details,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            raise
        except Exception as exc:
            logger.exception(
                "llm.unexpected_error",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise UpstreamTransportError(
                code="llm_unexpected_error",
                message=UPSTREAM_FAILURE_MESSAGE,
                details={"error_type": type(exc).__name__, "error_msg": str(exc)},
            ) from exc

        logger.info(
            "chat.completed",
            extra={
                "model": getattr(self._llm, "model", None),
                "message_chars": len(message),
                "response_chars": len(content),
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return content

"""Factory pattern for creating LLM client instances."""

import logging

from flashcard_api.adapters.llm.base import AbstractLLMClient
from flashcard_api.adapters.llm.openai_client import OpenAIClient
from flashcard_api.core.config import LLMSettings, settings
from flashcard_api.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def create_llm_client(llm_settings: LLMSettings | None = None) -> AbstractLLMClient:
    """Factory function to instantiate LLM clients based on provider.

    Reads configuration from flashcard_api.core.config.settings unless explicit
    settings are passed. A missing API key does not fail here: the first
    upstream call fails instead and surfaces as an upstream failure.

    Returns:
        AbstractLLMClient: Configured LLM client instance.

    Raises:
        ValidationAppError: If the provider is not supported.
    """
    cfg = llm_settings or settings.llm
    provider = cfg.provider.lower()

    if provider == "openai":
        if not cfg.api_key:
            logger.warning(
                "llm.api_key_not_configured",
                extra={"provider": provider, "model": cfg.model},
            )
        return OpenAIClient(
            api_key=cfg.api_key or None,
            model=cfg.model,
            base_url=cfg.base_url,
            timeout_seconds=cfg.timeout_seconds,
        )

    raise ValidationAppError(
        code="llm_unknown_provider",
        message=(
            f"Unknown LLM provider: '{provider}'. Supported providers: openai"
        ),
    )

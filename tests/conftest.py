"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It selects the testing environment and seeds the secrets before any module
that reads settings is imported.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["TESTING"] = "true"

os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("LLM_MODEL", "gpt-4o-mini")
os.environ.setdefault("LLM_API_KEY", "test-openai-key")
os.environ.setdefault("APP_BETA_API_KEY", "test-api-key-123")

from typing import Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from flashcard_api.adapters.llm.openai_client import OpenAIClient
from flashcard_api.api.routes.chat import get_completion_gateway
from flashcard_api.core.app_factory import create_app
from flashcard_api.core.rate_limit import reset_rate_limiter
from flashcard_api.services.completion_service import CompletionGateway

VALID_API_KEY = "test-api-key-123"


def make_completion(content: str | None) -> MagicMock:
    """Build an SDK-shaped chat completion with a single choice."""
    completion = MagicMock()
    completion.choices = [MagicMock(message=MagicMock(content=content))]
    return completion


@pytest.fixture(autouse=True)
def _fresh_rate_limiter() -> Iterator[None]:
    reset_rate_limiter()
    yield
    reset_rate_limiter()


@pytest.fixture
def app() -> FastAPI:
    return create_app()


@pytest.fixture
def openai_client() -> OpenAIClient:
    return OpenAIClient(api_key="test-openai-key", model="gpt-4o-mini")


@pytest.fixture
def upstream_create(openai_client: OpenAIClient) -> Iterator[AsyncMock]:
    """Patch the SDK call; configure return_value / side_effect per test."""
    with patch.object(
        openai_client.client.chat.completions,
        "create",
        new_callable=AsyncMock,
    ) as mock_create:
        yield mock_create


@pytest.fixture
def client(app: FastAPI, openai_client: OpenAIClient, upstream_create: AsyncMock) -> TestClient:
    """Test client whose gateway talks to the patched OpenAI client."""
    gateway = CompletionGateway(llm=openai_client, max_tokens=500, temperature=0.7)
    app.dependency_overrides[get_completion_gateway] = lambda: gateway
    return TestClient(app)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"authorization": f"Bearer {VALID_API_KEY}"}

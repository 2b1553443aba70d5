from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from flashcard_api.adapters.llm.factory import create_llm_client
from flashcard_api.core.auth import verify_bearer_token
from flashcard_api.core.config import settings
from flashcard_api.core.rate_limit import enforce_rate_limit
from flashcard_api.core.request_validation import enforce_post_method, read_chat_request
from flashcard_api.schemas.chat import ChatResponse, ErrorResponse, RateLimitErrorResponse
from flashcard_api.services.completion_service import CompletionGateway

router = APIRouter(tags=["Chat"])

CHAT_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@lru_cache(maxsize=1)
def get_completion_gateway() -> CompletionGateway:
    """Build the process-wide completion gateway on first use."""
    return CompletionGateway(
        llm=create_llm_client(),
        max_tokens=settings.llm.max_tokens,
        temperature=settings.llm.temperature,
    )


# Order matters: each check short-circuits the ones after it.
# enforce_rate_limit stores request.state.client_key, which the auth logs read.
@router.api_route(
    "/api/chat",
    methods=CHAT_METHODS,
    response_model=ChatResponse,
    dependencies=[
        Depends(enforce_post_method),
        Depends(enforce_rate_limit),
        Depends(verify_bearer_token),
    ],
    responses={
        400: {"model": ErrorResponse, "description": "Message is required"},
        401: {"model": ErrorResponse, "description": "Missing or invalid API key"},
        405: {"model": ErrorResponse, "description": "Method not allowed"},
        429: {"model": RateLimitErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Upstream model failure"},
    },
)
async def chat(
    request: Request,
    gateway: Annotated[CompletionGateway, Depends(get_completion_gateway)],
) -> ChatResponse:
    """Translate a word or phrase for flashcard review.

    Accepts ``{"message": "..."}`` with ``Authorization: Bearer <key>`` and
    returns the model's answer unmodified.

    Raises:
        ValidationAppError: 400 if the message is missing or empty.
        LLMAppError: 500 if the upstream call fails for any reason.
    """
    chat_request = await read_chat_request(request)
    answer = await gateway.complete(chat_request.message)
    return ChatResponse(response=answer)

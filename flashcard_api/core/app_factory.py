from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from fastapi import FastAPI

from flashcard_api.api.routes import chat_router, health_router
from flashcard_api.core.config import settings
from flashcard_api.core.exception_handlers import setup_exception_handlers
from flashcard_api.core.logging import configure_logging
from flashcard_api.core.middleware import request_id_middleware
from flashcard_api.core.openapi import TAGS_METADATA, apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Flashcard Chat API",
        description=(
            "Translates words and phrases between Mexican Spanish and English "
            "for flashcard study by proxying to an LLM. Requires a Bearer API key "
            "and applies a per-IP fixed-window rate limit."
        ),
        version="0.1.0",
        openapi_tags=TAGS_METADATA,
        debug=settings.app.debug,
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(chat_router)
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags)
    apply_openapi_customizations(app)

    return app

"""FastAPI application factory and lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from verity_server.config import VerityServerSettings
from verity_server.ollama import OllamaClient
from verity_server.routers import chat, conversations, health, models, tools
from verity_server.tools import BuiltinToolDispatcher, enabled_tool_definitions

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create shared collaborators at startup and release them at shutdown.

    The Ollama client and tool dispatcher are shared by all turns; each turn
    owns its own ledger and cancellation token.
    """
    settings: VerityServerSettings = app.state.settings
    app.state.ollama_client = OllamaClient(host=settings.ollama_host)
    app.state.tool_dispatcher = BuiltinToolDispatcher(settings)
    app.state.active_turns = {}

    enabled = [definition.name for definition in enabled_tool_definitions(settings)]
    logger.info(f"Enabled tools: {', '.join(enabled) if enabled else 'none'}")

    if await app.state.ollama_client.check_connection():
        logger.info("Successfully connected to Ollama")
    else:
        logger.warning("Could not connect to Ollama - check if server is running")

    yield

    for token in app.state.active_turns.values():
        token.cancel("shutdown")
    await app.state.tool_dispatcher.close()
    logger.info("Tool dispatcher closed")


def create_app(settings: VerityServerSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, settings are
                  loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from verity_server.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="verity-server",
        description="Headless FastAPI server for truthful tool-calling conversations via Ollama",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(models.router)
    app.include_router(conversations.router)
    app.include_router(chat.router)
    app.include_router(tools.router)

    return app

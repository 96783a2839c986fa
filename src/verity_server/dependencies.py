"""Dependency injection providers for FastAPI endpoints."""

from functools import lru_cache

from fastapi import HTTPException, Request

from verity_server.config import VerityServerSettings
from verity_server.conversations import ConversationManager
from verity_server.ollama import OllamaClient
from verity_server.protocol import CancellationToken
from verity_server.tools import BuiltinToolDispatcher


@lru_cache
def get_settings() -> VerityServerSettings:
    """Get the cached application settings (loaded from VERITY_ env vars)."""
    return VerityServerSettings()


def get_ollama_client(request: Request) -> OllamaClient:
    """Get the Ollama client created at startup.

    Raises:
        HTTPException: 503 if the client is not initialized
    """
    if not hasattr(request.app.state, "ollama_client"):
        raise HTTPException(status_code=503, detail="Ollama client not initialized")
    return request.app.state.ollama_client


def get_tool_dispatcher(request: Request) -> BuiltinToolDispatcher:
    """Get the tool dispatcher created at startup.

    Raises:
        HTTPException: 503 if the dispatcher is not initialized
    """
    if not hasattr(request.app.state, "tool_dispatcher"):
        raise HTTPException(status_code=503, detail="Tool dispatcher not initialized")
    return request.app.state.tool_dispatcher


def get_conversation_manager(request: Request) -> ConversationManager:
    """Get a ConversationManager for the configured conversations directory."""
    # Settings come from app.state so tests can use isolated directories
    settings: VerityServerSettings = request.app.state.settings
    return ConversationManager(conversations_dir=settings.resolved_conversations_dir)


def get_active_turns(request: Request) -> dict[str, CancellationToken]:
    """Get the conversation_id -> cancellation token map of running turns."""
    return request.app.state.active_turns

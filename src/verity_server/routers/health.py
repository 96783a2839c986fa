"""Health check endpoint router."""

import logging

from fastapi import APIRouter, Request

from verity_server.models.health import HealthResponse
from verity_server.ollama import OllamaClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Report service status and Ollama connectivity."""
    ollama_connected = None
    ollama_host = None
    if hasattr(request.app.state, "ollama_client"):
        ollama_client: OllamaClient = request.app.state.ollama_client
        ollama_host = ollama_client.host
        ollama_connected = await ollama_client.check_connection()

    return HealthResponse(
        status="ok",
        version=request.app.version,
        ollama_connected=ollama_connected,
        ollama_host=ollama_host,
    )

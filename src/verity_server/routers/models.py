"""Models router for listing installed Ollama models."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from verity_server.dependencies import get_ollama_client
from verity_server.models.models import ModelDetail, ModelListResponse
from verity_server.ollama import OllamaClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["models"])


@router.get("/models", response_model=ModelListResponse)
async def list_models(
    ollama_client: OllamaClient = Depends(get_ollama_client),
) -> ModelListResponse:
    """List completion-capable models installed in Ollama.

    Raises:
        HTTPException: 502 if the Ollama API request fails
    """
    try:
        model_infos = await ollama_client.list_models()
    except Exception as e:
        logger.error(f"Failed to list models: {e}")
        raise HTTPException(
            status_code=502,
            detail={
                "error": {
                    "code": "ollama_error",
                    "message": f"Failed to communicate with Ollama: {e}",
                    "details": {},
                }
            },
        )

    return ModelListResponse(
        models=[
            ModelDetail(
                name=info.name,
                size_mb=info.size_mb,
                family=info.family,
                parameter_size=info.parameter_size,
                capabilities=info.capabilities,
                context_length=info.context_length,
            )
            for info in model_infos
        ]
    )

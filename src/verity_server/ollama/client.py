"""Async Ollama client wrapper.

This module wraps ollama.AsyncClient. The client is created once at startup
and shared by all turns; it holds no per-conversation state.
"""

import logging
from typing import Any, AsyncIterator

import ollama

from verity_server.ollama.types import ModelInfo

logger = logging.getLogger(__name__)


def _to_dict(chunk: Any) -> dict[str, Any]:
    if hasattr(chunk, "model_dump"):
        return chunk.model_dump()
    if isinstance(chunk, dict):
        return chunk
    return vars(chunk)


class OllamaClient:
    """Async client for the Ollama API.

    Attributes:
        host: The Ollama server URL (e.g., "http://localhost:11434")
    """

    def __init__(self, host: str) -> None:
        self.host = host
        self._client = ollama.AsyncClient(host=host)
        logger.info(f"OllamaClient initialized with host: {host}")

    async def check_connection(self) -> bool:
        """Return True if the Ollama server answers a model listing."""
        try:
            await self._client.list()
            return True
        except Exception as e:
            logger.warning(f"Ollama connection check failed: {e}")
            return False

    async def list_models(self) -> list[ModelInfo]:
        """List installed models that support text completion.

        Raises:
            Exception: If the Ollama API request fails
        """
        response = await self._client.list()
        entries = response.models if hasattr(response, "models") else response.get("models", [])

        models: list[ModelInfo] = []
        for entry in entries:
            name = getattr(entry, "model", None) or (
                entry.get("model") or entry.get("name") if isinstance(entry, dict) else None
            )
            if not name:
                continue
            try:
                show_response = await self._client.show(name)
            except ollama.ResponseError as e:
                logger.warning(f"Failed to get details for model {name}: {e}")
                continue

            info = ModelInfo.from_ollama(entry, show_response)
            if info.supports_completion:
                models.append(info)
            else:
                logger.debug(f"Skipped non-completion model: {name}")

        logger.info(f"Listed {len(models)} completion-capable models")
        return models

    async def chat_stream(
        self,
        model: str,
        messages: list[dict[str, Any]],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream chat response chunks from Ollama.

        Args:
            model: The model name to use
            messages: Messages in Ollama format: [{"role": ..., "content": ...}]
            options: Model parameters (temperature, num_predict, ...)

        Yields:
            dict: Chunks with ``message.content`` deltas; the last one has
                  ``done=True`` and token counts

        Raises:
            Exception: If the Ollama API request fails
        """
        logger.debug(f"Starting chat stream with model {model}, {len(messages)} messages")
        async for chunk in await self._client.chat(
            model=model,
            messages=messages,
            stream=True,
            options=options,
        ):
            yield _to_dict(chunk)
        logger.debug("Chat stream completed")

"""Ollama client wrapper.

All Ollama interactions are async and chat uses streaming.
"""

from verity_server.ollama.client import OllamaClient
from verity_server.ollama.types import ModelInfo

__all__ = ["OllamaClient", "ModelInfo"]

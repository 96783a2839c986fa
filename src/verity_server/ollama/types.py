"""Type definitions for Ollama integration."""

from dataclasses import dataclass, field
from typing import Any

DEFAULT_CONTEXT_LENGTH = 2048


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from either an ollama response object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


@dataclass
class ModelInfo:
    """Information about an installed Ollama model.

    Attributes:
        name: Full model name (e.g., "llama3.2:latest")
        size_mb: Model size in megabytes
        family: Model family (e.g., "llama")
        parameter_size: Human-readable parameter count (e.g., "3.2B")
        capabilities: Model capabilities (e.g., ["completion", "tools"])
        context_length: Maximum context window size in tokens
    """

    name: str
    size_mb: float = 0.0
    family: str = "unknown"
    parameter_size: str = "unknown"
    capabilities: list[str] = field(default_factory=lambda: ["completion"])
    context_length: int = DEFAULT_CONTEXT_LENGTH

    @property
    def supports_completion(self) -> bool:
        return "completion" in self.capabilities

    @staticmethod
    def from_ollama(list_model: Any, show_response: Any = None) -> "ModelInfo":
        """Build a ModelInfo from a list entry and an optional show response."""
        name = _get(list_model, "model") or _get(list_model, "name") or "unknown"
        size = _get(list_model, "size", 0) or 0
        size_mb = round(int(size) / (1024 * 1024), 1) if int(size) > 0 else 0.0

        details = _get(show_response, "details") or _get(list_model, "details") or {}
        family = _get(details, "family") or "unknown"
        capabilities = list(_get(show_response, "capabilities") or ["completion"])

        context_length = DEFAULT_CONTEXT_LENGTH
        modelinfo = _get(show_response, "modelinfo") or {}
        if isinstance(modelinfo, dict):
            for key in (f"{family}.context_length", "context_length"):
                if key in modelinfo:
                    context_length = int(modelinfo[key])
                    break

        return ModelInfo(
            name=name,
            size_mb=size_mb,
            family=family,
            parameter_size=_get(details, "parameter_size") or "unknown",
            capabilities=capabilities,
            context_length=context_length,
        )

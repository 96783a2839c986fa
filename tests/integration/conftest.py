"""Pytest configuration for integration tests.

Provides integration-test-specific fixtures that mock Ollama and help
script model output for API endpoint tests.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from verity_server.ollama import ModelInfo


@pytest.fixture(autouse=True)
def mock_ollama_client():
    """Mock OllamaClient for all integration tests.

    This fixture patches the OllamaClient class before the app is created,
    ensuring the lifespan uses our mock instead of creating a real client.
    """
    with patch("verity_server.app.OllamaClient") as mock_client_class:
        mock_instance = AsyncMock()
        mock_instance.host = "http://localhost:11434"
        mock_instance.check_connection.return_value = True
        mock_instance.list_models.return_value = [
            ModelInfo(
                name="llama3.2:latest",
                size_mb=4445.3,
                family="llama",
                parameter_size="3.2B",
                capabilities=["completion"],
                context_length=8192,
            ),
        ]

        mock_client_class.return_value = mock_instance

        yield mock_instance


def _scripted_stream(*rounds: str, chunk_size: int = 8):
    """Build a chat_stream replacement that answers each round with the next text.

    Each round's text is streamed in chunks of chunk_size characters,
    followed by a done chunk. The messages of every call are recorded on
    the returned function's ``calls`` attribute.
    """
    remaining = list(rounds)
    calls: list[dict] = []

    async def chat_stream(model, messages, options=None):
        calls.append({"model": model, "messages": messages, "options": options})
        text = remaining.pop(0) if remaining else ""
        for start in range(0, len(text), chunk_size):
            yield {
                "model": model,
                "message": {"role": "assistant", "content": text[start : start + chunk_size]},
                "done": False,
            }
        yield {"model": model, "message": {"role": "assistant", "content": ""}, "done": True}

    chat_stream.calls = calls
    return chat_stream


@pytest.fixture
def script_model(mock_ollama_client):
    """Install scripted model rounds on the mocked Ollama client.

    Usage: ``stream = script_model('{"type": ...}', "plain text")``; the
    returned stream function records each request in ``stream.calls``.
    """

    def install(*rounds: str, chunk_size: int = 8):
        stream = _scripted_stream(*rounds, chunk_size=chunk_size)
        mock_ollama_client.chat_stream = stream
        return stream

    return install


@pytest.fixture
def parse_sse():
    """Return a parser splitting an SSE body into (event, data) pairs."""

    def parse(text: str) -> list[tuple[str, dict]]:
        events = []
        for block in text.replace("\r\n", "\n").strip().split("\n\n"):
            event_type = None
            data = None
            for line in block.split("\n"):
                if line.startswith("event:"):
                    event_type = line[len("event:") :].strip()
                elif line.startswith("data:"):
                    data = json.loads(line[len("data:") :].strip())
            if event_type is not None:
                events.append((event_type, data))
        return events

    return parse


@pytest_asyncio.fixture
async def conversation_id(async_client):
    """Create an empty conversation and return its id."""
    response = await async_client.post("/api/v1/conversations", json={"model": "llama3.2:latest"})
    assert response.status_code == 201
    return response.json()["conversation_id"]

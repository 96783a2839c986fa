"""Unit tests for the OllamaClient wrapper."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from verity_server.ollama import ModelInfo, OllamaClient


@pytest.fixture
def mock_ollama_async_client():
    """Create a mock ollama.AsyncClient."""
    with patch("verity_server.ollama.client.ollama.AsyncClient") as mock_class:
        mock_instance = AsyncMock()
        mock_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def ollama_client(mock_ollama_async_client):
    """Create an OllamaClient with mocked AsyncClient."""
    return OllamaClient(host="http://localhost:11434")


@pytest.mark.asyncio
async def test_check_connection_success(ollama_client, mock_ollama_async_client):
    mock_ollama_async_client.list.return_value = {"models": []}

    assert await ollama_client.check_connection() is True
    mock_ollama_async_client.list.assert_called_once()


@pytest.mark.asyncio
async def test_check_connection_failure(ollama_client, mock_ollama_async_client):
    mock_ollama_async_client.list.side_effect = Exception("Connection refused")

    assert await ollama_client.check_connection() is False


@pytest.mark.asyncio
async def test_list_models_filters_non_completion(ollama_client, mock_ollama_async_client):
    mock_ollama_async_client.list.return_value = {
        "models": [
            {"model": "llama3:8b", "size": 4661211136},
            {"model": "nomic-embed-text:latest", "size": 274302450},
        ]
    }
    show_responses = {
        "llama3:8b": {
            "capabilities": ["completion", "tools"],
            "details": {"family": "llama", "parameter_size": "8.0B"},
            "modelinfo": {"llama.context_length": 8192},
        },
        "nomic-embed-text:latest": {
            "capabilities": ["embedding"],
            "details": {"family": "nomic-bert"},
        },
    }
    mock_ollama_async_client.show.side_effect = lambda name: show_responses[name]

    models = await ollama_client.list_models()

    assert len(models) == 1
    model = models[0]
    assert model.name == "llama3:8b"
    assert model.family == "llama"
    assert model.parameter_size == "8.0B"
    assert model.context_length == 8192
    assert model.size_mb == 4445.3


@pytest.mark.asyncio
async def test_chat_stream_yields_dicts(ollama_client, mock_ollama_async_client):
    chunk_object = MagicMock()
    chunk_object.model_dump.return_value = {"message": {"content": "Hi"}, "done": False}
    chunks = [chunk_object, {"message": {"content": ""}, "done": True}]

    async def stream():
        for chunk in chunks:
            yield chunk

    mock_ollama_async_client.chat.return_value = stream()

    received = [
        chunk
        async for chunk in ollama_client.chat_stream(
            model="llama3:8b",
            messages=[{"role": "user", "content": "Hello"}],
            options={"temperature": 0.3, "num_predict": 128},
        )
    ]

    assert received == [{"message": {"content": "Hi"}, "done": False}, {"message": {"content": ""}, "done": True}]
    kwargs = mock_ollama_async_client.chat.call_args.kwargs
    assert kwargs["stream"] is True
    assert kwargs["options"] == {"temperature": 0.3, "num_predict": 128}


def test_model_info_defaults():
    info = ModelInfo.from_ollama({"model": "tiny:latest"})

    assert info.name == "tiny:latest"
    assert info.size_mb == 0.0
    assert info.supports_completion is True

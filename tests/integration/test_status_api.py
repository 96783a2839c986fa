"""Integration tests for health and model listing endpoints."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    response = await async_client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == "0.1.0"
    assert data["ollama_connected"] is True
    assert data["ollama_host"] == "http://localhost:11434"


@pytest.mark.asyncio
async def test_health_reports_disconnected_ollama(async_client: AsyncClient, mock_ollama_client):
    mock_ollama_client.check_connection.return_value = False

    response = await async_client.get("/api/v1/health")

    assert response.json()["ollama_connected"] is False


@pytest.mark.asyncio
async def test_list_models(async_client: AsyncClient):
    response = await async_client.get("/api/v1/models")

    assert response.status_code == 200
    models = response.json()["models"]
    assert [m["name"] for m in models] == ["llama3.2:latest"]


@pytest.mark.asyncio
async def test_list_models_ollama_failure(async_client: AsyncClient, mock_ollama_client):
    mock_ollama_client.list_models.side_effect = Exception("Connection refused")

    response = await async_client.get("/api/v1/models")

    assert response.status_code == 502
    assert response.json()["detail"]["error"]["code"] == "ollama_error"

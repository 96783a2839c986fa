"""Integration tests for tool listing and direct execution."""

from pathlib import Path

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_list_enabled_tools(async_client: AsyncClient):
    response = await async_client.get("/api/v1/tools")

    assert response.status_code == 200
    tools = {tool["name"]: tool for tool in response.json()["tools"]}
    assert set(tools) == {"read_file", "write_file", "list_dir"}
    assert tools["write_file"]["risk"] == "write"
    assert "content" in tools["write_file"]["parameters"]["properties"]


@pytest.mark.asyncio
async def test_list_all_tools(async_client: AsyncClient):
    response = await async_client.get("/api/v1/tools", params={"include_disabled": True})

    names = {tool["name"] for tool in response.json()["tools"]}
    assert {"web_search", "fetch_url", "run_command", "notes_write"} <= names


@pytest.mark.asyncio
async def test_execute_enabled_tool(async_client: AsyncClient, test_settings):
    response = await async_client.post(
        "/api/v1/tools/execute",
        json={"name": "write_file", "arguments": {"path": "hello.txt", "content": "hi"}},
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "content": "Wrote 2 bytes to hello.txt", "error": None}
    written = (Path(test_settings.filesystem_root) / "hello.txt").read_text(encoding="utf-8")
    assert written == "hi"


@pytest.mark.asyncio
async def test_execute_disabled_tool(async_client: AsyncClient):
    response = await async_client.post(
        "/api/v1/tools/execute", json={"name": "run_command", "arguments": {"command": "ls"}}
    )

    assert response.status_code == 200
    assert response.json()["ok"] is False
    assert response.json()["error"] == "Tool not found: run_command"

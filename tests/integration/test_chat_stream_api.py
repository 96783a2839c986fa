"""Integration tests for the streaming chat and cancel endpoints."""

import json
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient
from sse_starlette.sse import EventSourceResponse

from verity_server.conversations import ConversationManager
from verity_server.models.chat import ChatRequest
from verity_server.protocol import CancellationToken
from verity_server.routers.chat import chat_streaming


def tool_request(name: str, **arguments) -> str:
    return json.dumps({"type": "tool_request", "tool_name": name, "arguments": arguments})


def final_answer(content: str) -> str:
    return json.dumps({"type": "final_answer", "content": content})


async def start_stream_without_sending(app, conversation_id: str) -> EventSourceResponse:
    """Call the streaming endpoint directly, leaving its body unsent."""
    request = MagicMock()
    request.app = app
    settings = app.state.settings
    return await chat_streaming(
        conversation_id,
        ChatRequest(message="Hi"),
        request,
        manager=ConversationManager(conversations_dir=settings.resolved_conversations_dir),
        ollama_client=app.state.ollama_client,
        dispatcher=app.state.tool_dispatcher,
        active_turns=app.state.active_turns,
    )


class TestChatStreaming:
    """Tests for POST /api/v1/chat/{conversation_id}/stream."""

    @pytest.mark.asyncio
    async def test_stream_final_answer(
        self, async_client: AsyncClient, conversation_id, script_model, parse_sse
    ):
        answer = final_answer("Hello there!")
        script_model(answer, chunk_size=10)

        response = await async_client.post(
            f"/api/v1/chat/{conversation_id}/stream", json={"message": "Hi"}
        )

        assert response.status_code == 200
        events = parse_sse(response.text)
        types = [event_type for event_type, _ in events]
        assert types[-3:] == ["message_saved", "final", "done"]

        deltas = [data["content"] for event_type, data in events if event_type == "content_delta"]
        assert "".join(deltas) == answer

        final = dict(events)["final"]
        assert final["content"] == "Hello there!"
        assert final["round"] == 1
        assert dict(events)["done"] == {"conversation_id": conversation_id, "state": "done"}

    @pytest.mark.asyncio
    async def test_stream_tool_round(
        self, async_client: AsyncClient, conversation_id, script_model, parse_sse
    ):
        script_model(
            tool_request("list_dir", path="."),
            final_answer("The workspace is empty."),
        )

        response = await async_client.post(
            f"/api/v1/chat/{conversation_id}/stream", json={"message": "What files do I have?"}
        )

        events = parse_sse(response.text)
        non_delta = [event_type for event_type, _ in events if event_type != "content_delta"]
        assert non_delta == [
            "tool_start",
            "tool_result",
            "message_saved",
            "message_saved",
            "message_saved",
            "final",
            "done",
        ]
        by_type = dict(events)
        assert by_type["tool_start"]["tool_name"] == "list_dir"
        assert by_type["tool_start"]["arguments"] == {"path": "."}
        assert by_type["tool_result"] == {"tool_name": "list_dir", "ok": True, "content": "(empty)", "round": 1}
        assert by_type["final"]["round"] == 2

    @pytest.mark.asyncio
    async def test_stream_model_error(
        self, async_client: AsyncClient, test_app, conversation_id, mock_ollama_client, parse_sse
    ):
        async def broken_stream(model, messages, options=None):
            yield {"message": {"content": "Partial"}, "done": False}
            raise ConnectionError("Ollama is down")

        mock_ollama_client.chat_stream = broken_stream

        response = await async_client.post(
            f"/api/v1/chat/{conversation_id}/stream", json={"message": "Hi"}
        )

        events = parse_sse(response.text)
        types = [event_type for event_type, _ in events]
        assert types == ["content_delta", "message_saved", "error", "done"]
        error = dict(events)["error"]
        assert error["code"] == "ollama_error"
        assert "Ollama is down" in error["message"]
        assert dict(events)["done"]["state"] == "failed"
        assert conversation_id not in test_app.state.active_turns

        stored = (await async_client.get(f"/api/v1/conversations/{conversation_id}")).json()
        assert [m["content"] for m in stored["messages"]] == ["Hi", "Partial"]

    @pytest.mark.asyncio
    async def test_stream_unknown_conversation(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/chat/nope/stream", json={"message": "Hi"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unsent_stream_does_not_hold_conversation(
        self, async_client: AsyncClient, test_app, conversation_id, script_model
    ):
        script_model(final_answer("Hello again"))

        response = await start_stream_without_sending(test_app, conversation_id)

        assert isinstance(response, EventSourceResponse)
        assert conversation_id not in test_app.state.active_turns
        followup = await async_client.post(f"/api/v1/chat/{conversation_id}", json={"message": "Again"})
        assert followup.status_code == 200
        assert followup.json()["message"]["content"] == "Hello again"

    @pytest.mark.asyncio
    async def test_stream_refuses_when_another_turn_started_first(
        self, async_client: AsyncClient, test_app, conversation_id, script_model
    ):
        stream = script_model(final_answer("never"))
        response = await start_stream_without_sending(test_app, conversation_id)
        other = CancellationToken()
        test_app.state.active_turns[conversation_id] = other

        items = [item async for item in response.body_iterator]

        assert [item["event"] for item in items] == ["error", "done"]
        assert json.loads(items[0]["data"])["code"] == "turn_in_progress"
        assert json.loads(items[1]["data"])["state"] == "failed"
        assert test_app.state.active_turns[conversation_id] is other
        assert stream.calls == []


class TestCancel:
    """Tests for POST /api/v1/chat/{conversation_id}/cancel."""

    @pytest.mark.asyncio
    async def test_cancel_without_active_turn(self, async_client: AsyncClient, conversation_id):
        response = await async_client.post(f"/api/v1/chat/{conversation_id}/cancel")

        assert response.status_code == 200
        assert response.json() == {"conversation_id": conversation_id, "canceled": False}

    @pytest.mark.asyncio
    async def test_cancel_active_turn(self, async_client: AsyncClient, test_app, conversation_id):
        token = CancellationToken()
        test_app.state.active_turns[conversation_id] = token

        response = await async_client.post(f"/api/v1/chat/{conversation_id}/cancel")

        assert response.json()["canceled"] is True
        assert token.cancelled is True
        assert token.reason == "user"

    @pytest.mark.asyncio
    async def test_cancel_during_stream(
        self, async_client: AsyncClient, test_app, conversation_id, mock_ollama_client, parse_sse
    ):
        async def stream_until_cancelled(model, messages, options=None):
            yield {"message": {"content": "Once upon"}, "done": False}
            test_app.state.active_turns[conversation_id].cancel("user")
            yield {"message": {"content": " a time"}, "done": False}
            yield {"message": {"content": ""}, "done": True}

        mock_ollama_client.chat_stream = stream_until_cancelled

        response = await async_client.post(
            f"/api/v1/chat/{conversation_id}/stream", json={"message": "Tell a story"}
        )

        events = parse_sse(response.text)
        types = [event_type for event_type, _ in events]
        assert types == ["content_delta", "message_saved", "canceled", "done"]
        assert dict(events)["canceled"]["partial_content"] == "Once upon"
        assert dict(events)["done"]["state"] == "aborted"

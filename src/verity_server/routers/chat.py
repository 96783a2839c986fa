"""Chat API endpoints.

Each request runs one conversational turn through the TurnOrchestrator.
Messages produced by the turn (tool rounds included) are persisted as they
are committed, so a later failure never loses completed rounds.
"""

import logging
from dataclasses import dataclass

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from verity_server.config import VerityServerSettings
from verity_server.conversations import Conversation, ConversationManager, StoredMessage
from verity_server.dependencies import (
    get_active_turns,
    get_conversation_manager,
    get_ollama_client,
    get_tool_dispatcher,
)
from verity_server.models.chat import (
    CanceledEvent,
    CancelResponse,
    ChatRequest,
    ChatResponse,
    ContentDeltaEvent,
    DoneEvent,
    ErrorEvent,
    FinalEvent,
    MessageResponse,
    MessageSavedEvent,
    ToolExecution,
    ToolResultEvent,
    ToolStartEvent,
)
from verity_server.ollama import OllamaClient
from verity_server.protocol import (
    CancellationToken,
    Turn,
    TurnConfig,
    TurnEvent,
    TurnOrchestrator,
    TurnState,
)
from verity_server.routers.conversations import conversation_not_found
from verity_server.tools import BuiltinToolDispatcher, enabled_tool_definitions
from verity_server.tools.dispatcher import describe_arguments

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


def build_turn_config(settings: VerityServerSettings, model: str) -> TurnConfig:
    """Snapshot the generation settings for one turn."""
    return TurnConfig(
        model=model,
        system_prompt=settings.system_prompt,
        temperature=settings.temperature,
        tool_temperature=settings.tool_temperature,
        strict_tool_mode=settings.strict_tool_mode,
        max_messages_in_prompt=settings.max_messages_in_prompt,
        max_output_tokens=settings.max_output_tokens,
        max_tool_rounds=settings.max_tool_rounds,
        extra_claim_patterns=tuple(settings.extra_claim_patterns),
    )


@dataclass
class _PreparedTurn:
    conversation: Conversation
    turn: Turn
    token: CancellationToken


def _prepare_turn(
    conversation_id: str,
    request_body: ChatRequest,
    settings: VerityServerSettings,
    manager: ConversationManager,
    ollama_client: OllamaClient,
    dispatcher: BuiltinToolDispatcher,
    active_turns: dict[str, CancellationToken],
) -> _PreparedTurn:
    """Load the conversation, append the user message and create the turn.

    The caller registers the token in active_turns when it starts driving
    the turn and removes it when the turn ends.

    Raises:
        HTTPException: 404 unknown conversation, 409 turn already running,
                       400 nothing to respond to
    """
    try:
        conversation = manager.get(conversation_id)
    except FileNotFoundError:
        raise conversation_not_found(conversation_id)

    if conversation_id in active_turns:
        raise HTTPException(
            status_code=409,
            detail={
                "error": {
                    "code": "turn_in_progress",
                    "message": f"A turn is already running for conversation {conversation_id}",
                    "details": {"conversation_id": conversation_id},
                }
            },
        )

    if request_body.message is not None:
        conversation.add_message("user", request_body.message)
        manager.save(conversation)
        logger.info(f"Added user message to conversation {conversation_id}")

    history = conversation.protocol_messages()
    if not history:
        raise HTTPException(
            status_code=400,
            detail={
                "error": {
                    "code": "empty_history",
                    "message": "Conversation has no messages to process",
                    "details": {},
                }
            },
        )

    orchestrator = TurnOrchestrator(
        chat_client=ollama_client,
        dispatcher=dispatcher,
        config=build_turn_config(settings, conversation.metadata.model),
    )
    token = CancellationToken(deadline_seconds=settings.turn_deadline_seconds)
    turn = orchestrator.start_turn(history, enabled_tool_definitions(settings), token)
    return _PreparedTurn(conversation=conversation, turn=turn, token=token)


def _message_response(message: StoredMessage) -> MessageResponse:
    return MessageResponse(
        role=message.role,
        content=message.content,
        message_id=message.message_id,
        timestamp=message.timestamp,
    )


def _tools_executed(turn: Turn) -> list[ToolExecution]:
    return [
        ToolExecution(
            name=entry.name,
            arguments=describe_arguments(entry.arguments),
            status=entry.status,
            summary=entry.result_summary,
            started_at=entry.started_at,
            finished_at=entry.finished_at,
        )
        for entry in turn.ledger.invoked_tools
    ]


def _error_code(event: TurnEvent | None) -> str:
    return "tool_error" if event is not None and event.tool_name else "ollama_error"


def _persist(manager: ConversationManager, conversation: Conversation, event: TurnEvent) -> StoredMessage:
    stored = conversation.add_protocol_message(event.message)
    manager.save(conversation)
    logger.debug(f"Saved {stored.role} message {stored.message_id}")
    return stored


@router.post("/{conversation_id}", response_model=ChatResponse)
async def chat_non_streaming(
    conversation_id: str,
    request_body: ChatRequest,
    request: Request,
    manager: ConversationManager = Depends(get_conversation_manager),
    ollama_client: OllamaClient = Depends(get_ollama_client),
    dispatcher: BuiltinToolDispatcher = Depends(get_tool_dispatcher),
    active_turns: dict[str, CancellationToken] = Depends(get_active_turns),
) -> ChatResponse:
    """Run a full turn and return the final answer.

    Raises:
        HTTPException: 404/409/400 as in turn preparation, 502 if the turn failed
    """
    prepared = _prepare_turn(
        conversation_id,
        request_body,
        request.app.state.settings,
        manager,
        ollama_client,
        dispatcher,
        active_turns,
    )
    turn = prepared.turn
    final_message: StoredMessage | None = None
    last_saved: StoredMessage | None = None
    error_event: TurnEvent | None = None
    active_turns[conversation_id] = prepared.token
    try:
        async for event in turn.events():
            if event.type == "message":
                last_saved = _persist(manager, prepared.conversation, event)
                continue
            if event.type == "final":
                # A committed final answer immediately precedes the final event
                if last_saved is not None and last_saved.role == "assistant":
                    final_message = last_saved
            elif event.type == "error":
                error_event = event
            last_saved = None
    finally:
        active_turns.pop(conversation_id, None)

    if turn.state == TurnState.FAILED:
        raise HTTPException(
            status_code=502,
            detail={
                "error": {
                    "code": _error_code(error_event),
                    "message": turn.error or "Turn failed",
                    "details": {"conversation_id": conversation_id},
                }
            },
        )

    return ChatResponse(
        conversation_id=conversation_id,
        state=turn.state.value,
        message=_message_response(final_message) if final_message else None,
        corrected=turn.corrected,
        round_limit_reached=turn.round_limit_reached,
        tools_executed=_tools_executed(turn),
        error=turn.error,
    )


def _sse(event_type: str, payload) -> dict[str, str]:
    return {"event": event_type, "data": payload.model_dump_json()}


@router.post("/{conversation_id}/stream")
async def chat_streaming(
    conversation_id: str,
    request_body: ChatRequest,
    request: Request,
    manager: ConversationManager = Depends(get_conversation_manager),
    ollama_client: OllamaClient = Depends(get_ollama_client),
    dispatcher: BuiltinToolDispatcher = Depends(get_tool_dispatcher),
    active_turns: dict[str, CancellationToken] = Depends(get_active_turns),
) -> EventSourceResponse:
    """Run a turn and stream its events via Server-Sent Events (SSE).

    SSE Events:
        - content_delta: Each text chunk from the model
        - tool_start / tool_result: A tool round
        - message_saved: A message was appended to the conversation
        - final: The (possibly corrected) final answer
        - canceled: The turn was canceled
        - error: The turn failed
        - done: Stream is complete
    """
    prepared = _prepare_turn(
        conversation_id,
        request_body,
        request.app.state.settings,
        manager,
        ollama_client,
        dispatcher,
        active_turns,
    )
    turn = prepared.turn

    async def event_generator():
        # The conversation is held only while the body is being sent.
        if conversation_id in active_turns:
            yield _sse(
                "error",
                ErrorEvent(
                    code="turn_in_progress",
                    message=f"A turn is already running for conversation {conversation_id}",
                    details={"conversation_id": conversation_id},
                ),
            )
            yield _sse("done", DoneEvent(conversation_id=conversation_id, state=TurnState.FAILED.value))
            return
        active_turns[conversation_id] = prepared.token
        try:
            async for event in turn.events():
                if event.type == "content_delta" and await request.is_disconnected():
                    logger.warning(f"Client disconnected during turn for {conversation_id}")
                    prepared.token.cancel("disconnect")

                if event.type == "content_delta":
                    yield _sse("content_delta", ContentDeltaEvent(content=event.content, round=event.round))
                elif event.type == "tool_start":
                    yield _sse(
                        "tool_start",
                        ToolStartEvent(
                            tool_name=event.tool_name,
                            arguments=describe_arguments(event.arguments or {}),
                            round=event.round,
                        ),
                    )
                elif event.type == "tool_result":
                    yield _sse(
                        "tool_result",
                        ToolResultEvent(
                            tool_name=event.tool_name,
                            ok=bool(event.ok),
                            content=event.content,
                            round=event.round,
                        ),
                    )
                elif event.type == "message":
                    stored = _persist(manager, prepared.conversation, event)
                    yield _sse("message_saved", MessageSavedEvent(message=_message_response(stored)))
                elif event.type == "final":
                    yield _sse(
                        "final",
                        FinalEvent(
                            content=event.content,
                            corrected=event.corrected,
                            round_limit_reached=event.round_limit_reached,
                            round=event.round,
                        ),
                    )
                elif event.type == "canceled":
                    yield _sse("canceled", CanceledEvent(partial_content=event.content, round=event.round))
                elif event.type == "error":
                    yield _sse(
                        "error",
                        ErrorEvent(
                            code=_error_code(event),
                            message=event.error or "Turn failed",
                            details={"conversation_id": conversation_id, "round": event.round},
                        ),
                    )
        except OSError as e:
            logger.error(f"Failed to save conversation {conversation_id}: {e}")
            yield _sse(
                "error",
                ErrorEvent(
                    code="conversation_save_error",
                    message=f"Failed to save conversation: {e}",
                    details={"conversation_id": conversation_id},
                ),
            )
        finally:
            active_turns.pop(conversation_id, None)

        yield _sse("done", DoneEvent(conversation_id=conversation_id, state=turn.state.value))

    return EventSourceResponse(event_generator())


@router.post("/{conversation_id}/cancel", response_model=CancelResponse)
async def cancel_turn(
    conversation_id: str,
    active_turns: dict[str, CancellationToken] = Depends(get_active_turns),
) -> CancelResponse:
    """Cancel the running turn of a conversation, if any."""
    token = active_turns.get(conversation_id)
    if token is None:
        return CancelResponse(conversation_id=conversation_id, canceled=False)
    token.cancel("user")
    logger.info(f"Cancellation requested for conversation {conversation_id}")
    return CancelResponse(conversation_id=conversation_id, canceled=True)

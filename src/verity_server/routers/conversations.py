"""Conversation CRUD endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from verity_server.conversations import Conversation, ConversationManager
from verity_server.dependencies import get_conversation_manager
from verity_server.models.chat import MessageResponse
from verity_server.models.conversations import (
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationSummaryResponse,
    CreateConversationRequest,
    UpdateConversationRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


def conversation_not_found(conversation_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={
            "error": {
                "code": "conversation_not_found",
                "message": f"Conversation {conversation_id} not found",
                "details": {"conversation_id": conversation_id},
            }
        },
    )


def _summary(conversation: Conversation) -> ConversationSummaryResponse:
    metadata = conversation.metadata
    return ConversationSummaryResponse(
        conversation_id=metadata.conversation_id,
        title=metadata.title,
        model=metadata.model,
        created_at=metadata.created_at,
        updated_at=metadata.updated_at,
        message_count=metadata.message_count,
        preview=conversation.get_preview(),
    )


def _detail(conversation: Conversation) -> ConversationDetailResponse:
    return ConversationDetailResponse(
        **_summary(conversation).model_dump(),
        messages=[
            MessageResponse(
                role=message.role,
                content=message.content,
                message_id=message.message_id,
                timestamp=message.timestamp,
            )
            for message in conversation.messages
        ],
    )


@router.post("", response_model=ConversationDetailResponse, status_code=201)
async def create_conversation(
    request_body: CreateConversationRequest,
    request: Request,
    manager: ConversationManager = Depends(get_conversation_manager),
) -> ConversationDetailResponse:
    """Create an empty conversation."""
    model = request_body.model or request.app.state.settings.default_model
    conversation = manager.create(model=model, title=request_body.title)
    return _detail(conversation)


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    manager: ConversationManager = Depends(get_conversation_manager),
) -> ConversationListResponse:
    """List conversations, most recently updated first."""
    return ConversationListResponse(
        conversations=[_summary(c) for c in manager.list_conversations()]
    )


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: str,
    manager: ConversationManager = Depends(get_conversation_manager),
) -> ConversationDetailResponse:
    try:
        return _detail(manager.get(conversation_id))
    except FileNotFoundError:
        raise conversation_not_found(conversation_id)


@router.patch("/{conversation_id}", response_model=ConversationSummaryResponse)
async def rename_conversation(
    conversation_id: str,
    request_body: UpdateConversationRequest,
    manager: ConversationManager = Depends(get_conversation_manager),
) -> ConversationSummaryResponse:
    try:
        return _summary(manager.rename(conversation_id, request_body.title))
    except FileNotFoundError:
        raise conversation_not_found(conversation_id)


@router.delete("/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str,
    manager: ConversationManager = Depends(get_conversation_manager),
) -> Response:
    try:
        manager.delete(conversation_id)
    except FileNotFoundError:
        raise conversation_not_found(conversation_id)
    return Response(status_code=204)

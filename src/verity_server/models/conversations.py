"""Pydantic models for conversation endpoints."""

from pydantic import BaseModel, Field

from verity_server.models.chat import MessageResponse


class CreateConversationRequest(BaseModel):
    model: str | None = Field(default=None, description="Model name; defaults to the server default")
    title: str | None = None


class UpdateConversationRequest(BaseModel):
    title: str = Field(min_length=1)


class ConversationSummaryResponse(BaseModel):
    conversation_id: str
    title: str
    model: str
    created_at: int
    updated_at: int
    message_count: int
    preview: str = ""


class ConversationListResponse(BaseModel):
    conversations: list[ConversationSummaryResponse]


class ConversationDetailResponse(ConversationSummaryResponse):
    messages: list[MessageResponse] = Field(default_factory=list)

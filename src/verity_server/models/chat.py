"""Pydantic models for chat API requests, responses and SSE events."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Request body for chat endpoints."""

    message: str | None = Field(
        default=None,
        description="The user message to send. If null, re-runs the turn on the existing history.",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"message": "Save a summary of our discussion to notes/summary.md"},
                {"message": None},
            ]
        }
    )


class ToolExecution(BaseModel):
    """A tool invoked during a turn."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    status: str = Field(description="success or error")
    summary: str = ""
    started_at: float
    finished_at: float


class MessageResponse(BaseModel):
    """A message in a chat response."""

    role: str
    content: str
    message_id: str
    timestamp: int


class ChatResponse(BaseModel):
    """Response body for the non-streaming chat endpoint."""

    conversation_id: str
    state: str = Field(description="Terminal turn state: done, aborted or failed")
    message: MessageResponse | None = Field(
        default=None, description="The final assistant message, if the turn produced one"
    )
    corrected: bool = Field(
        default=False,
        description="Whether the answer was replaced because it claimed an unperformed web search",
    )
    round_limit_reached: bool = False
    tools_executed: list[ToolExecution] = Field(default_factory=list)
    error: str | None = None


class CancelResponse(BaseModel):
    conversation_id: str
    canceled: bool


# SSE events


class ContentDeltaEvent(BaseModel):
    content: str
    round: int


class ToolStartEvent(BaseModel):
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    round: int


class ToolResultEvent(BaseModel):
    tool_name: str
    ok: bool
    content: str
    round: int


class MessageSavedEvent(BaseModel):
    message: MessageResponse


class FinalEvent(BaseModel):
    content: str
    corrected: bool = False
    round_limit_reached: bool = False
    round: int


class CanceledEvent(BaseModel):
    partial_content: str = ""
    round: int


class ErrorEvent(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class DoneEvent(BaseModel):
    conversation_id: str
    state: str

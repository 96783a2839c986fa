"""Pydantic models for tool endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class ToolDefinitionResponse(BaseModel):
    name: str
    description: str
    risk: str
    scope: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class ToolListResponse(BaseModel):
    tools: list[ToolDefinitionResponse]


class ExecuteToolRequest(BaseModel):
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ExecuteToolResponse(BaseModel):
    ok: bool
    content: str = ""
    error: str | None = None

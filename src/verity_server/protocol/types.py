"""Data types for the tool-calling turn protocol.

This module defines the messages, tool definitions, parsed intents and
dispatch results that flow through a conversational turn, plus the
structured output format of the web search tool.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Union

from pydantic import BaseModel, Field

# Free-form JSON value carried in tool arguments. Each tool validates its own shape.
JSONValue = Union[str, int, float, bool, None, list[Any], dict[str, Any]]
ToolArguments = dict[str, JSONValue]

WEB_SEARCH_TOOL = "web_search"


@dataclass(frozen=True)
class Message:
    """A single conversation message as sent to the model.

    Attributes:
        role: One of "system", "user" or "assistant"
        content: Text content
        timestamp: Unix timestamp in seconds
    """

    role: str
    content: str
    timestamp: int = 0

    def to_ollama(self) -> dict[str, str]:
        """Convert to the Ollama chat message format."""
        return {"role": self.role, "content": self.content}


class ToolRisk(str, Enum):
    """Risk classification of a tool."""

    READ_ONLY = "read_only"
    WRITE = "write"
    NETWORK = "network"
    HIGH = "high"


@dataclass(frozen=True)
class ToolDefinition:
    """Description of a tool the model may request.

    Attributes:
        name: Unique tool name within a turn
        description: Human-readable description shown to the model
        parameters: JSON-schema-shaped parameter description
        risk: Risk classification
        scope: Short description of what the tool can touch
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)
    risk: ToolRisk = ToolRisk.READ_ONLY
    scope: str = ""

    @property
    def writes_content(self) -> bool:
        """Whether this tool writes a model-authored `content` argument somewhere."""
        properties = self.parameters.get("properties") or {}
        return self.risk == ToolRisk.WRITE and "content" in properties


@dataclass(frozen=True)
class ToolRequest:
    """The model asked to run a tool."""

    tool_name: str
    arguments: ToolArguments = field(default_factory=dict)


@dataclass(frozen=True)
class FinalAnswer:
    """The model produced its answer for the user."""

    content: str


ParsedIntent = ToolRequest | FinalAnswer | None


@dataclass
class DispatchResult:
    """Outcome of executing a tool.

    Attributes:
        ok: Whether the tool succeeded
        content: Tool output (may be empty on failure)
        error: Failure description when ok is False
    """

    ok: bool
    content: str = ""
    error: str | None = None


class ToolDispatcher(Protocol):
    """Executes named tools on behalf of the orchestrator.

    Implementations must report every failure through
    ``DispatchResult(ok=False, ...)`` instead of raising.
    """

    async def execute(self, name: str, arguments: ToolArguments) -> DispatchResult: ...


class WebSearchResultItem(BaseModel):
    """A single web search hit."""

    title: str = ""
    snippet: str = ""
    url: str = ""
    page_excerpt: str | None = None


class WebSearchStep(BaseModel):
    """One diagnostic step of a web search."""

    name: str
    ok: bool
    detail: str = ""


class WebSearchOutput(BaseModel):
    """Structured output of the web_search tool (serialized as JSON)."""

    ok: bool = True
    provider: str = ""
    query: str = ""
    status: int = 0
    results: list[WebSearchResultItem] = Field(default_factory=list)
    result_count: int
    error: str | None = None
    steps: list[WebSearchStep] = Field(default_factory=list)

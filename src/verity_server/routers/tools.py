"""Tool listing and direct execution endpoints."""

import logging

from fastapi import APIRouter, Depends, Request

from verity_server.dependencies import get_tool_dispatcher
from verity_server.models.tools import (
    ExecuteToolRequest,
    ExecuteToolResponse,
    ToolDefinitionResponse,
    ToolListResponse,
)
from verity_server.protocol.types import ToolDefinition
from verity_server.tools import BuiltinToolDispatcher, all_tool_definitions, enabled_tool_definitions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


def _to_response(definition: ToolDefinition) -> ToolDefinitionResponse:
    return ToolDefinitionResponse(
        name=definition.name,
        description=definition.description,
        risk=definition.risk.value,
        scope=definition.scope,
        parameters=definition.parameters,
    )


@router.get("", response_model=ToolListResponse)
async def list_tools(request: Request, include_disabled: bool = False) -> ToolListResponse:
    """List tool definitions (only enabled ones unless include_disabled is set)."""
    settings = request.app.state.settings
    definitions = all_tool_definitions() if include_disabled else enabled_tool_definitions(settings)
    return ToolListResponse(tools=[_to_response(d) for d in definitions])


@router.post("/execute", response_model=ExecuteToolResponse)
async def execute_tool(
    request_body: ExecuteToolRequest,
    dispatcher: BuiltinToolDispatcher = Depends(get_tool_dispatcher),
) -> ExecuteToolResponse:
    """Execute an enabled tool directly, outside of a conversational turn."""
    logger.info(f"Direct execution of tool {request_body.name}")
    result = await dispatcher.execute(request_body.name, request_body.arguments)
    return ExecuteToolResponse(ok=result.ok, content=result.content, error=result.error)

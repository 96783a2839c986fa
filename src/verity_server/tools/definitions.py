"""Built-in tool catalog.

Tools are grouped by capability. A group is offered to the model only when
the matching settings enable it.
"""

from verity_server.config import VerityServerSettings
from verity_server.protocol.types import WEB_SEARCH_TOOL, ToolDefinition, ToolRisk


def _path_schema(path_description: str, *, content: bool = False, depth: bool = False) -> dict:
    properties: dict = {"path": {"type": "string", "description": path_description}}
    required = ["path"]
    if content:
        properties["content"] = {"type": "string", "description": "Text content to write"}
        required.append("content")
    if depth:
        properties["depth"] = {"type": "integer", "minimum": 1, "maximum": 3, "default": 1}
    return {
        "type": "object",
        "required": required,
        "properties": properties,
        "additionalProperties": False,
    }


def filesystem_tool_definitions() -> list[ToolDefinition]:
    scope = "Sandboxed to the configured root"
    read_schema = _path_schema("Relative path to file from root")
    read_schema["properties"]["head"] = {
        "type": "integer",
        "minimum": 1,
        "description": "Return only first N lines",
    }
    read_schema["properties"]["tail"] = {
        "type": "integer",
        "minimum": 1,
        "description": "Return only last N lines",
    }
    return [
        ToolDefinition(
            name="read_file",
            description="Read a UTF-8 text file within the configured root. Use a path relative to the root.",
            parameters=read_schema,
            risk=ToolRisk.READ_ONLY,
            scope=scope,
        ),
        ToolDefinition(
            name="write_file",
            description="Write a UTF-8 text file within the configured root. Creates parent directories if needed.",
            parameters=_path_schema("Relative path from root", content=True),
            risk=ToolRisk.WRITE,
            scope=scope,
        ),
        ToolDefinition(
            name="list_dir",
            description="List directory contents (directories end with /) within the configured root.",
            parameters=_path_schema("Relative path to directory from root", depth=True),
            risk=ToolRisk.READ_ONLY,
            scope=scope,
        ),
    ]


def notes_tool_definitions() -> list[ToolDefinition]:
    scope = "Notes vault"
    return [
        ToolDefinition(
            name="notes_read",
            description="Read a Markdown note from the notes vault. Path is vault-relative (e.g. 'Daily/2026-02-10.md').",
            parameters=_path_schema("Vault-relative path"),
            risk=ToolRisk.READ_ONLY,
            scope=scope,
        ),
        ToolDefinition(
            name="notes_write",
            description="Write a Markdown note to the notes vault. Frontmatter in the content is preserved.",
            parameters=_path_schema("Vault-relative path", content=True),
            risk=ToolRisk.WRITE,
            scope=scope,
        ),
        ToolDefinition(
            name="notes_list",
            description="List notes in a vault folder. Path is vault-relative.",
            parameters=_path_schema("Vault-relative path to directory", depth=True),
            risk=ToolRisk.READ_ONLY,
            scope=scope,
        ),
    ]


def web_tool_definitions() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name=WEB_SEARCH_TOOL,
            description="Search the web (DuckDuckGo, Wikipedia fallback). Returns title, snippet, URL and a page excerpt for each result. Cite results.",
            parameters={
                "type": "object",
                "required": ["query"],
                "properties": {
                    "query": {"type": "string", "description": "Search query"},
                    "max_results": {"type": "integer", "minimum": 1, "maximum": 10, "default": 5},
                    "include_page_excerpts": {"type": "boolean", "default": True},
                },
                "additionalProperties": False,
            },
            risk=ToolRisk.NETWORK,
            scope="Internet (opt-in)",
        ),
        ToolDefinition(
            name="fetch_url",
            description="Fetch a URL and return the page content as plain text.",
            parameters={
                "type": "object",
                "required": ["url"],
                "properties": {
                    "url": {"type": "string", "description": "Full URL to fetch"},
                    "max_chars": {
                        "type": "integer",
                        "minimum": 500,
                        "maximum": 20000,
                        "default": 12000,
                    },
                },
                "additionalProperties": False,
            },
            risk=ToolRisk.NETWORK,
            scope="Internet (opt-in)",
        ),
    ]


def terminal_tool_definitions() -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="run_command",
            description="Execute a shell command and return stdout and stderr. One command per call.",
            parameters={
                "type": "object",
                "required": ["command"],
                "properties": {
                    "command": {"type": "string", "description": "Command to execute"},
                    "working_directory": {
                        "type": "string",
                        "description": "Optional absolute working directory (defaults to the user's home)",
                    },
                },
                "additionalProperties": False,
            },
            risk=ToolRisk.HIGH,
            scope="Local system (opt-in)",
        ),
    ]


def all_tool_definitions() -> list[ToolDefinition]:
    return (
        filesystem_tool_definitions()
        + notes_tool_definitions()
        + web_tool_definitions()
        + terminal_tool_definitions()
    )


def enabled_tool_definitions(settings: VerityServerSettings) -> list[ToolDefinition]:
    """Return the definitions of tool groups enabled by the settings.

    Args:
        settings: Server settings

    Returns:
        Enabled tool definitions, empty when no tool group is configured
    """
    enabled: list[ToolDefinition] = []
    if settings.filesystem_root.strip():
        enabled += filesystem_tool_definitions()
    if settings.notes_vault.strip():
        enabled += notes_tool_definitions()
    if settings.web_search_enabled:
        enabled += web_tool_definitions()
    if settings.terminal_enabled:
        enabled += terminal_tool_definitions()
    return enabled

"""System prompt and tool-block construction.

The tool block is appended to the system prompt when at least one tool is
enabled. It enumerates the enabled tools, states the two legal response
shapes, and tells the model explicitly which capabilities are unavailable.
"""

import json

from verity_server.protocol.types import WEB_SEARCH_TOOL, ToolDefinition

DEFAULT_SYSTEM_PROMPT = """You are a local/offline assistant. You do not have access to the internet unless the web_search tool is enabled and you explicitly call it.

TOOL TRUTHFULNESS
- You cannot browse the internet unless the web_search tool is enabled and you use it in this conversation.
- Never claim you "searched the web," "looked it up," "found online," or "after searching" unless you actually called the web_search tool and received results.
- If the user asks you to search the web and web_search is not in the tools list, say that web search is not available in this session and that you can only use your training knowledge and any enabled tools.
- When writing files, be explicit about the source: if you used web_search, cite it and include URLs; if you did not, state that the content is from your training or other tools only.

WHAT YOU CAN DO
- Answer from your training knowledge. Be clear when you are uncertain or when information may be outdated.
- Use only the tools listed below when they are present. Do not claim to have used a tool you did not call.
- When you write a file, a provenance footer (tools used, timestamp, web sources if any) is added automatically. Do not add it yourself.

STYLE
- Be direct, accurate, and concise. Use bullet points when helpful."""

# Capability -> (tool names providing it, guidance when none of them is enabled)
_CAPABILITY_GUIDANCE: dict[str, tuple[tuple[str, ...], str]] = {
    "web search": (
        (WEB_SEARCH_TOOL,),
        "Web search is NOT available. Do NOT claim you searched the web, looked "
        "anything up online, or have current/live data. Say web search is not "
        "available and offer offline alternatives.",
    ),
    "url fetching": (
        ("fetch_url",),
        "Fetching web pages is NOT available. Do not claim to have read a page "
        "the user linked.",
    ),
    "files": (
        ("read_file", "write_file", "list_dir"),
        "File access is NOT available. Do not claim to have read or written files.",
    ),
    "notes": (
        ("notes_read", "notes_write", "notes_list"),
        "Notes vault access is NOT available. Do not claim to have read or saved notes.",
    ),
    "shell commands": (
        ("run_command",),
        "Running shell commands is NOT available. Do not claim to have run commands.",
    ),
}

_ENABLED_GUIDANCE: dict[str, str] = {
    WEB_SEARCH_TOOL: (
        "If the user asks for web or current information, use the web_search tool. "
        "When it returns results, summarize what the pages say and cite URLs."
    ),
    "fetch_url": (
        "When the user gives you a URL or asks about a page, use fetch_url and "
        "answer from the returned text."
    ),
}


def _describe_tool(definition: ToolDefinition) -> str:
    line = f"- {definition.name}: {definition.description}"
    properties = definition.parameters.get("properties")
    if isinstance(properties, dict):
        line += f" (params: {json.dumps(properties, separators=(',', ':'))})"
    return line


def _write_example(definition: ToolDefinition) -> list[str]:
    example = {
        "type": "tool_request",
        "tool_name": definition.name,
        "arguments": {"path": "notes/example.txt", "content": "test test"},
    }
    return [
        "Example (user asked to save a file notes/example.txt with content 'test test'):",
        json.dumps(example, separators=(",", ":")),
        "",
    ]


def build_tool_block(definitions: list[ToolDefinition]) -> str:
    """Build the tool instructions appended to the system prompt.

    Args:
        definitions: Enabled tool definitions for this turn

    Returns:
        The tool block, or an empty string when no tools are enabled
    """
    if not definitions:
        return ""

    names = {definition.name for definition in definitions}
    lines = [
        "",
        "---",
        "TOOLS ARE ENABLED. You MUST respond with ONLY a single JSON object, with no markdown and no extra text.",
        "Request at most one tool per response. Tool results are sent back to you as a message starting with [Tool result from <name>].",
    ]
    for tool_name, guidance in _ENABLED_GUIDANCE.items():
        if tool_name in names:
            lines.append(guidance)
    for capability_tools, unavailable in _CAPABILITY_GUIDANCE.values():
        if not names.intersection(capability_tools):
            lines.append(unavailable)

    lines += [
        "",
        "Choose exactly one:",
        '1) To use a tool: {"type":"tool_request","tool_name":"<name>","arguments":{...}}',
        '2) To answer without a tool: {"type":"final_answer","content":"your reply here"}',
        "",
    ]
    writer = next((d for d in definitions if d.writes_content), None)
    if writer is not None:
        lines += _write_example(writer)

    lines.append("Tools:")
    lines += [_describe_tool(definition) for definition in definitions]
    lines.append("---")
    return "\n".join(lines)


def build_system_content(system_prompt: str | None, definitions: list[ToolDefinition]) -> str:
    """Combine the system prompt with the tool block for enabled tools."""
    base = system_prompt.strip() if system_prompt and system_prompt.strip() else DEFAULT_SYSTEM_PROMPT
    return base + build_tool_block(definitions)

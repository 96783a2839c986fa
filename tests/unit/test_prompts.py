"""Unit tests for system prompt and tool-block construction."""

from verity_server.protocol.prompts import (
    DEFAULT_SYSTEM_PROMPT,
    build_system_content,
    build_tool_block,
)
from verity_server.tools.definitions import (
    filesystem_tool_definitions,
    notes_tool_definitions,
    web_tool_definitions,
)


def test_no_tools_gives_empty_block():
    assert build_tool_block([]) == ""


def test_default_prompt_used_without_override():
    assert build_system_content(None, []) == DEFAULT_SYSTEM_PROMPT
    assert build_system_content("   ", []) == DEFAULT_SYSTEM_PROMPT


def test_custom_prompt_replaces_default():
    content = build_system_content("You are a pirate.", [])

    assert content == "You are a pirate."


def test_block_lists_enabled_tools_and_shapes():
    block = build_tool_block(filesystem_tool_definitions())

    assert "- read_file:" in block
    assert "- write_file:" in block
    assert "- list_dir:" in block
    assert '{"type":"tool_request","tool_name":"<name>","arguments":{...}}' in block
    assert '{"type":"final_answer","content":"your reply here"}' in block
    assert '"path"' in block


def test_block_has_write_example_only_with_writing_tool():
    with_writer = build_tool_block(filesystem_tool_definitions())
    read_only = build_tool_block(web_tool_definitions())

    assert '"tool_name":"write_file"' in with_writer
    assert "Example (" not in read_only


def test_write_example_uses_first_writing_tool():
    block = build_tool_block(notes_tool_definitions())

    assert '"tool_name":"notes_write"' in block


def test_unavailable_capabilities_are_called_out():
    block = build_tool_block(filesystem_tool_definitions())

    assert "Web search is NOT available" in block
    assert "Running shell commands is NOT available" in block
    assert "File access is NOT available" not in block


def test_web_guidance_when_search_enabled():
    block = build_tool_block(web_tool_definitions())

    assert "Web search is NOT available" not in block
    assert "use the web_search tool" in block


def test_system_content_appends_block():
    definitions = filesystem_tool_definitions()

    content = build_system_content(None, definitions)

    assert content.startswith(DEFAULT_SYSTEM_PROMPT)
    assert content.endswith(build_tool_block(definitions))

"""Built-in tools and the dispatcher that executes them.

This package provides sandboxed filesystem and notes tools, web search and
URL fetching, and shell commands, together with their model-facing
definitions.
"""

from verity_server.tools.definitions import all_tool_definitions, enabled_tool_definitions
from verity_server.tools.dispatcher import BuiltinToolDispatcher

__all__ = ["BuiltinToolDispatcher", "all_tool_definitions", "enabled_tool_definitions"]

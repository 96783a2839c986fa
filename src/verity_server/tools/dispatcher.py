"""Built-in tool dispatcher.

BuiltinToolDispatcher executes the tools enabled by the server settings.
It never raises: every failure is reported as ``DispatchResult(ok=False)``.
Dispatch is not idempotent and is never retried.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from verity_server.config import VerityServerSettings
from verity_server.protocol.types import DispatchResult, ToolArguments
from verity_server.tools import filesystem, terminal, web
from verity_server.tools.definitions import enabled_tool_definitions
from verity_server.tools.errors import InvalidArgument, ToolError, UnknownTool

logger = logging.getLogger(__name__)

Handler = Callable[[ToolArguments], Awaitable[str]]


def _str_arg(arguments: ToolArguments, key: str, required: bool = True) -> str | None:
    value = arguments.get(key)
    if value is None:
        if required:
            raise InvalidArgument(f"{key} required")
        return None
    if not isinstance(value, str):
        raise InvalidArgument(f"{key} must be a string")
    return value


def _int_arg(arguments: ToolArguments, key: str) -> int | None:
    value = arguments.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgument(f"{key} must be an integer")
    return int(value)


def _bool_arg(arguments: ToolArguments, key: str, default: bool) -> bool:
    value = arguments.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidArgument(f"{key} must be a boolean")
    return value


class BuiltinToolDispatcher:
    """Executes built-in tools by name.

    Attributes:
        settings: Server settings deciding which tools are enabled and their roots
    """

    def __init__(
        self,
        settings: VerityServerSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self._http_client = http_client or httpx.AsyncClient(
            timeout=settings.web_timeout_seconds, follow_redirects=True
        )
        self._handlers: dict[str, Handler] = {
            "read_file": self._read_file,
            "write_file": self._write_file,
            "list_dir": self._list_dir,
            "notes_read": self._notes_read,
            "notes_write": self._notes_write,
            "notes_list": self._notes_list,
            "web_search": self._web_search,
            "fetch_url": self._fetch_url,
            "run_command": self._run_command,
        }

    def enabled_tool_names(self) -> set[str]:
        return {definition.name for definition in enabled_tool_definitions(self.settings)}

    async def execute(self, name: str, arguments: ToolArguments) -> DispatchResult:
        """Execute a tool.

        Args:
            name: Tool name
            arguments: Free-form tool arguments

        Returns:
            DispatchResult with ok=False and an error message on any failure
        """
        handler = self._handlers.get(name)
        try:
            if handler is None or name not in self.enabled_tool_names():
                raise UnknownTool(name)
            if not isinstance(arguments, dict):
                raise InvalidArgument("arguments must be an object")
            content = await handler(arguments)
        except ToolError as e:
            logger.warning(f"Tool {name} failed: {e}")
            return DispatchResult(ok=False, content=e.content, error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error in tool {name}")
            return DispatchResult(ok=False, error=f"{type(e).__name__}: {e}")

        logger.info(f"Tool {name} succeeded ({len(content)} chars)")
        return DispatchResult(ok=True, content=content)

    async def close(self) -> None:
        await self._http_client.aclose()

    async def _read_file(self, arguments: ToolArguments) -> str:
        return await asyncio.to_thread(
            filesystem.read_file,
            self.settings.filesystem_root,
            _str_arg(arguments, "path"),
            _int_arg(arguments, "head"),
            _int_arg(arguments, "tail"),
        )

    async def _write_file(self, arguments: ToolArguments) -> str:
        return await asyncio.to_thread(
            filesystem.write_file,
            self.settings.filesystem_root,
            _str_arg(arguments, "path"),
            _str_arg(arguments, "content", required=False) or "",
        )

    async def _list_dir(self, arguments: ToolArguments) -> str:
        return await asyncio.to_thread(
            filesystem.list_dir,
            self.settings.filesystem_root,
            _str_arg(arguments, "path", required=False) or ".",
            _int_arg(arguments, "depth"),
        )

    async def _notes_read(self, arguments: ToolArguments) -> str:
        return await asyncio.to_thread(
            filesystem.read_file, self.settings.notes_vault, _str_arg(arguments, "path")
        )

    async def _notes_write(self, arguments: ToolArguments) -> str:
        return await asyncio.to_thread(
            filesystem.write_file,
            self.settings.notes_vault,
            _str_arg(arguments, "path"),
            _str_arg(arguments, "content", required=False) or "",
        )

    async def _notes_list(self, arguments: ToolArguments) -> str:
        return await asyncio.to_thread(
            filesystem.list_dir,
            self.settings.notes_vault,
            _str_arg(arguments, "path", required=False) or ".",
            _int_arg(arguments, "depth"),
        )

    async def _web_search(self, arguments: ToolArguments) -> str:
        return await web.web_search(
            self._http_client,
            _str_arg(arguments, "query"),
            _int_arg(arguments, "max_results"),
            include_page_excerpts=_bool_arg(arguments, "include_page_excerpts", True),
        )

    async def _fetch_url(self, arguments: ToolArguments) -> str:
        return await web.fetch_url(
            self._http_client, _str_arg(arguments, "url"), _int_arg(arguments, "max_chars")
        )

    async def _run_command(self, arguments: ToolArguments) -> str:
        return await terminal.run_command(
            _str_arg(arguments, "command"),
            _str_arg(arguments, "working_directory", required=False),
            timeout=self.settings.command_timeout_seconds,
        )


def describe_arguments(arguments: dict[str, Any], max_chars: int = 80) -> dict[str, Any]:
    """Shorten long string arguments for logs and API summaries."""
    compact: dict[str, Any] = {}
    for key, value in arguments.items():
        if isinstance(value, str) and len(value) > max_chars:
            compact[key] = value[:max_chars] + "…"
        else:
            compact[key] = value
    return compact

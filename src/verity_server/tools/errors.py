"""Errors raised by built-in tool implementations.

The dispatcher turns every one of these into a failed DispatchResult.
"""


class ToolError(Exception):
    """Base class for tool failures.

    Attributes:
        content: Output to report alongside the error (usually empty)
    """

    content: str = ""


class PathNotAllowed(ToolError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Path not allowed: {path}")


class RootNotConfigured(ToolError):
    def __init__(self) -> None:
        super().__init__("Root not configured")


class InvalidArgument(ToolError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid argument: {detail}")


class UnknownTool(ToolError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Tool not found: {name}")


class NetworkError(ToolError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Network: {detail}")


class CommandFailed(ToolError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Command execution failed: {detail}")


class SearchFailed(NetworkError):
    """A failed web search that still carries its structured output.

    Attributes:
        content: JSON-serialized WebSearchOutput with ok=False
    """

    def __init__(self, detail: str, content: str) -> None:
        super().__init__(detail)
        self.content = content

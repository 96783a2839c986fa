"""CLI entry point for verity-server.

Invoked as `verity-server` (via the script entry point) or
`python -m verity_server`.
"""

import argparse
import sys

import uvicorn

from verity_server import __version__, create_app
from verity_server.config import VerityServerSettings


def main() -> None:
    """Parse command-line arguments and start uvicorn with the app."""
    parser = argparse.ArgumentParser(
        prog="verity-server",
        description="Headless FastAPI server for truthful tool-calling conversations via Ollama",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"verity-server {__version__}",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via VERITY_HOST)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via VERITY_PORT)",
    )
    parser.add_argument(
        "--ollama-host",
        type=str,
        default=None,
        help="Ollama server URL (default: http://localhost:11434, can be set via VERITY_OLLAMA_HOST)",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Base directory for conversations (default: ., can be set via VERITY_DATA_DIR)",
    )
    parser.add_argument(
        "--filesystem-root",
        type=str,
        default=None,
        help="Enable file tools sandboxed to this directory (VERITY_FILESYSTEM_ROOT)",
    )
    parser.add_argument(
        "--notes-vault",
        type=str,
        default=None,
        help="Enable notes tools sandboxed to this directory (VERITY_NOTES_VAULT)",
    )
    parser.add_argument(
        "--web-search",
        action="store_true",
        default=None,
        help="Enable web_search and fetch_url (VERITY_WEB_SEARCH_ENABLED)",
    )
    parser.add_argument(
        "--terminal",
        action="store_true",
        default=None,
        help="Enable run_command (VERITY_TERMINAL_ENABLED)",
    )
    parser.add_argument(
        "--max-tool-rounds",
        type=int,
        default=None,
        help="Maximum tool dispatches per turn (default: 8, can be set via VERITY_MAX_TOOL_ROUNDS)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via VERITY_LOG_LEVEL)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development (uvicorn --reload)",
    )

    args = parser.parse_args()

    # CLI args override environment variables
    overrides = {
        "host": args.host,
        "port": args.port,
        "ollama_host": args.ollama_host,
        "data_dir": args.data_dir,
        "filesystem_root": args.filesystem_root,
        "notes_vault": args.notes_vault,
        "web_search_enabled": args.web_search,
        "terminal_enabled": args.terminal,
        "max_tool_rounds": args.max_tool_rounds,
        "log_level": args.log_level,
    }
    settings = VerityServerSettings(**{key: value for key, value in overrides.items() if value is not None})

    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=args.reload,
    )


if __name__ == "__main__":
    sys.exit(main())

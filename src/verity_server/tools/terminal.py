"""Shell command tool."""

import asyncio
import logging
import os
import re
import signal
from pathlib import Path

from verity_server.tools.errors import CommandFailed, InvalidArgument

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 20000

BLOCKED_COMMAND_PATTERNS = (
    r"\brm\s+-[a-z]*r[a-z]*f?\s+/(\s|$)",
    r"\bmkfs(\.\w+)?\b",
    r"\bdd\s+if=.*\bof=/dev/",
    r":\(\)\s*\{\s*:\|:&\s*\};:",
    r"\b(shutdown|reboot|halt|poweroff)\b",
    r"\bformat\s+[a-z]:",
)

_blocked = [re.compile(pattern, re.IGNORECASE) for pattern in BLOCKED_COMMAND_PATTERNS]


def is_command_blocked(command: str) -> bool:
    return any(pattern.search(command) for pattern in _blocked)


def _truncate(text: str) -> str:
    if len(text) > MAX_OUTPUT_CHARS:
        return text[:MAX_OUTPUT_CHARS] + "\n… (truncated)"
    return text


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill the shell and everything it started, then reap it."""
    logger.warning(f"Killing command process group {process.pid}")
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass
    await process.wait()


async def run_command(
    command: str, working_directory: str | None = None, timeout: float = 30.0
) -> str:
    """Run a shell command and return its combined output.

    Args:
        command: Command line to execute
        working_directory: Directory to run in (defaults to the user's home)
        timeout: Seconds before the process is killed

    Returns:
        Exit code, stdout and stderr as text

    Raises:
        InvalidArgument: If the command is empty or the directory is missing
        CommandFailed: If the command is blocked, cannot be started, or times out
    """
    command = (command or "").strip()
    if not command:
        raise InvalidArgument("command required")
    if is_command_blocked(command):
        raise CommandFailed("command is on the safety blocklist")

    cwd = Path(working_directory).expanduser() if working_directory else Path.home()
    if not cwd.is_dir():
        raise InvalidArgument(f"working directory does not exist: {cwd}")

    logger.info(f"Running command in {cwd}: {command}")
    try:
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        raise CommandFailed(str(e))

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        raise CommandFailed(f"timed out after {timeout:g}s")
    finally:
        # Also reached when the calling task is cancelled.
        if process.returncode is None:
            await _kill(process)

    out = stdout.decode("utf-8", errors="replace")
    err = stderr.decode("utf-8", errors="replace")
    parts = [f"Command: {command}", f"Working directory: {cwd}", f"Exit code: {process.returncode}"]
    if out:
        parts.append(f"STDOUT:\n{_truncate(out)}")
    if err:
        parts.append(f"STDERR:\n{_truncate(err)}")
    if not out and not err:
        parts.append("(No output)")
    return "\n".join(parts)

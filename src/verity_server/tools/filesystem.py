"""Sandboxed filesystem tools.

All paths are relative to a configured root. Absolute paths, ".."
components and anything resolving outside the root are rejected.
"""

import logging
from pathlib import Path, PurePosixPath

from verity_server.tools.errors import InvalidArgument, PathNotAllowed, RootNotConfigured

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_BYTES = 512 * 1024
MAX_LIST_DEPTH = 3


def resolve_root(root: str) -> Path:
    if not root or not root.strip():
        raise RootNotConfigured()
    return Path(root).expanduser().resolve()


def validate_path_under_root(root: Path, requested: str) -> Path:
    """Resolve a relative path against root, refusing escapes.

    Args:
        root: Resolved sandbox root
        requested: Relative path supplied by the model

    Returns:
        The resolved absolute path

    Raises:
        PathNotAllowed: If the path is absolute, uses "..", or leaves root
    """
    normalized = requested.strip().replace("\\", "/")
    relative = PurePosixPath(normalized or ".")
    if relative.is_absolute() or ".." in relative.parts or ":" in normalized:
        raise PathNotAllowed(requested)

    resolved = (root / relative).resolve()
    if resolved != root and not resolved.is_relative_to(root):
        raise PathNotAllowed(requested)
    return resolved


def read_file(root: str, path: str, head: int | None = None, tail: int | None = None) -> str:
    base = resolve_root(root)
    target = validate_path_under_root(base, path)
    if not target.is_file():
        raise InvalidArgument(f"not a file: {path}")
    if target.stat().st_size > MAX_FILE_SIZE_BYTES:
        raise InvalidArgument(f"file exceeds {MAX_FILE_SIZE_BYTES} bytes: {path}")

    try:
        text = target.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        raise InvalidArgument(f"not a UTF-8 text file: {path}")

    lines = text.splitlines()
    if head is not None:
        lines = lines[: max(head, 1)]
    elif tail is not None:
        lines = lines[-max(tail, 1) :]
    else:
        return text
    return "\n".join(lines)


def write_file(root: str, path: str, content: str) -> str:
    base = resolve_root(root)
    target = validate_path_under_root(base, path)
    if target == base or target.is_dir():
        raise InvalidArgument(f"not a file path: {path}")

    target.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8")
    target.write_bytes(data)
    logger.info(f"Wrote {len(data)} bytes to {target}")
    return f"Wrote {len(data)} bytes to {path}"


def list_dir(root: str, path: str = ".", depth: int | None = None) -> str:
    base = resolve_root(root)
    target = validate_path_under_root(base, path)
    if not target.is_dir():
        raise InvalidArgument(f"not a directory: {path}")

    max_depth = min(max(depth or 1, 1), MAX_LIST_DEPTH)
    entries: list[str] = []
    _list_into(target, target, max_depth, entries)
    return "\n".join(entries) if entries else "(empty)"


def _list_into(start: Path, current: Path, depth: int, entries: list[str]) -> None:
    for child in sorted(current.iterdir(), key=lambda p: p.name.lower()):
        relative = child.relative_to(start).as_posix()
        if child.is_dir():
            entries.append(relative + "/")
            if depth > 1:
                _list_into(start, child, depth - 1, entries)
        else:
            entries.append(relative)

"""Unit tests for the run_command tool."""

import asyncio
import sys

import pytest

from verity_server.tools import terminal
from verity_server.tools.errors import CommandFailed, InvalidArgument

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell commands")


@pytest.mark.parametrize(
    "command",
    ["rm -rf /", "sudo shutdown now", "mkfs.ext4 /dev/sda1", "dd if=/dev/zero of=/dev/sda"],
)
def test_blocked_commands(command):
    assert terminal.is_command_blocked(command) is True


@pytest.mark.parametrize("command", ["ls -la", "rm -rf ./build", "echo format"])
def test_allowed_commands(command):
    assert terminal.is_command_blocked(command) is False


@pytest.mark.asyncio
async def test_run_command_output(tmp_path):
    result = await terminal.run_command("echo hello", working_directory=str(tmp_path))

    assert f"Working directory: {tmp_path}" in result
    assert "Exit code: 0" in result
    assert "STDOUT:\nhello" in result


@pytest.mark.asyncio
async def test_run_command_stderr_and_exit_code(tmp_path):
    result = await terminal.run_command("echo oops 1>&2; exit 3", working_directory=str(tmp_path))

    assert "Exit code: 3" in result
    assert "STDERR:\noops" in result


@pytest.mark.asyncio
async def test_run_command_no_output(tmp_path):
    result = await terminal.run_command("true", working_directory=str(tmp_path))

    assert result.endswith("(No output)")


@pytest.mark.asyncio
async def test_blocked_command_is_refused(tmp_path):
    with pytest.raises(CommandFailed):
        await terminal.run_command("rm -rf /", working_directory=str(tmp_path))


@pytest.mark.asyncio
async def test_timeout(tmp_path):
    with pytest.raises(CommandFailed, match="timed out"):
        await terminal.run_command("sleep 5", working_directory=str(tmp_path), timeout=0.2)


@pytest.mark.asyncio
async def test_missing_working_directory(tmp_path):
    with pytest.raises(InvalidArgument):
        await terminal.run_command("ls", working_directory=str(tmp_path / "missing"))


@pytest.mark.asyncio
async def test_timeout_kills_background_children(tmp_path):
    marker = tmp_path / "marker"

    with pytest.raises(CommandFailed, match="timed out"):
        await terminal.run_command(
            "(sleep 0.5; touch marker) & wait", working_directory=str(tmp_path), timeout=0.2
        )
    await asyncio.sleep(0.8)

    assert not marker.exists()


@pytest.mark.asyncio
async def test_cancelled_command_is_killed(tmp_path):
    marker = tmp_path / "marker"
    task = asyncio.create_task(
        terminal.run_command("sleep 0.5; touch marker", working_directory=str(tmp_path))
    )
    await asyncio.sleep(0.2)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0.8)

    assert not marker.exists()

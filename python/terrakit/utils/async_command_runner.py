"""
terrakit/utils/async_command_runner.py

Provides an asynchronous command runner with per-stream output policies.

Each of stdout and stderr is handled independently by an OutputPolicy:

  - DISCARD: connected to the null device.
  - PASSTHROUGH: inherits the caller's own stream.
  - PASSTHROUGH_ON_FAILURE: buffered silently; written to the caller's stream
    only if the command exits non-zero.
  - COLLECT: buffered and returned in full once the command exits.

The call returns only after the child has exited and every pipe has been
drained. A non-zero exit raises ProcessError. There is no retry and no timeout.

Usage example:
    from terrakit.utils.async_command_runner import OutputPolicy, run_command

    result = await run_command(
        ["terraform", "version"],
        stdout=OutputPolicy.COLLECT,
        stderr=OutputPolicy.PASSTHROUGH_ON_FAILURE,
    )
    print(result.stdout.decode())
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from enum import Enum
from typing import Dict, List, Optional, TextIO, Tuple

from pydantic import BaseModel

from terrakit.errors import ProcessError
from terrakit.utils.spawn_compat import StreamTarget, spawn_and_wait

logger = logging.getLogger(__name__)


class OutputPolicy(str, Enum):
    """How one output stream of a child process is handled."""

    DISCARD = "discard"
    PASSTHROUGH = "passthrough"
    PASSTHROUGH_ON_FAILURE = "passthrough_on_failure"
    COLLECT = "collect"


_TARGETS = {
    OutputPolicy.DISCARD: StreamTarget.DEVNULL,
    OutputPolicy.PASSTHROUGH: StreamTarget.INHERIT,
    OutputPolicy.PASSTHROUGH_ON_FAILURE: StreamTarget.PIPE,
    OutputPolicy.COLLECT: StreamTarget.PIPE,
}

_NATIVE = {
    StreamTarget.DEVNULL: asyncio.subprocess.DEVNULL,
    StreamTarget.INHERIT: None,
    StreamTarget.PIPE: asyncio.subprocess.PIPE,
}


class CommandResult(BaseModel):
    """The outcome of a successful command.

    Attributes:
        return_code: The exit code (always a successful one).
        stdout: Collected stdout if the stdout policy was COLLECT, else empty.
        stderr: Collected stderr if the stderr policy was COLLECT, else empty.
    """

    return_code: int
    stdout: bytes = b""
    stderr: bytes = b""


def _use_spawn_shim(use_spawn_shim: Optional[bool]) -> bool:
    if use_spawn_shim is not None:
        return use_spawn_shim
    return sys.platform == "darwin"


def _replay(data: bytes, stream: TextIO) -> None:
    """Write buffered child output to one of the caller's streams."""
    if not data:
        return
    stream.flush()
    buffer = getattr(stream, "buffer", None)
    if buffer is not None:
        buffer.write(data)
        buffer.flush()
    else:
        stream.write(data.decode(errors="replace"))
        stream.flush()


async def _run_native(
    command: List[str],
    env: Optional[Dict[str, str]],
    cwd: Optional[str],
    stdout: StreamTarget,
    stderr: StreamTarget,
) -> Tuple[int, bytes, bytes]:
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=None,
            stdout=_NATIVE[stdout],
            stderr=_NATIVE[stderr],
            env=env,
            cwd=cwd,
        )
    except OSError as exc:
        raise ProcessError(f"Failed to start {command[0]}: {exc}") from exc

    # communicate() drains both pipes while waiting for exit.
    stdout_bytes, stderr_bytes = await proc.communicate()
    assert proc.returncode is not None, "process exited without a return code"
    return proc.returncode, stdout_bytes or b"", stderr_bytes or b""


async def run_command(
    command: List[str],
    *,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    stdout: OutputPolicy = OutputPolicy.PASSTHROUGH,
    stderr: OutputPolicy = OutputPolicy.PASSTHROUGH,
    sensitive: bool = True,
    use_spawn_shim: Optional[bool] = None,
) -> CommandResult:
    """
    Executes a local command in a subprocess and waits for it to exit.

    When `sensitive=True`, we omit the command, stdout, and stderr from the final error
    message and from log lines.

    Args:
        command (List[str]):
            The command and arguments to execute.
        env (Optional[Dict[str, str]]):
            Additional environment variables to add or override.
        cwd (Optional[str]):
            Working directory for the command.
        stdout (OutputPolicy):
            How the child's stdout is handled.
        stderr (OutputPolicy):
            How the child's stderr is handled.
        sensitive (bool):
            If True, hides command details in the raised error.
        use_spawn_shim (Optional[bool]):
            Force (True) or forbid (False) the posix_spawn launcher from
            spawn_compat. None uses it on macOS only.

    Returns:
        CommandResult: The exit code plus any collected output.

    Raises:
        ProcessError: If the command cannot be started or exits non-zero.
    """
    if env is None:
        proc_env = None
    else:
        proc_env = os.environ.copy()
        proc_env.update(env)

    if sensitive:
        logger.debug("Running %s in %s", command[0], cwd or os.getcwd())
    else:
        logger.debug("Running %s in %s", " ".join(command), cwd or os.getcwd())

    stdout_target = _TARGETS[stdout]
    stderr_target = _TARGETS[stderr]

    if _use_spawn_shim(use_spawn_shim):
        return_code, stdout_bytes, stderr_bytes = await spawn_and_wait(
            command,
            env=proc_env,
            cwd=cwd,
            stdout=stdout_target,
            stderr=stderr_target,
        )
    else:
        return_code, stdout_bytes, stderr_bytes = await _run_native(
            command, proc_env, cwd, stdout_target, stderr_target
        )

    if return_code != 0:
        if stdout == OutputPolicy.PASSTHROUGH_ON_FAILURE:
            _replay(stdout_bytes, sys.stdout)
        if stderr == OutputPolicy.PASSTHROUGH_ON_FAILURE:
            _replay(stderr_bytes, sys.stderr)

        logger.warning("Command exited with return code %d.", return_code)

        detail = ""
        if not sensitive:
            detail = (
                f"\nCommand: {' '.join(command)}"
                f"\nStdout: {stdout_bytes.decode(errors='replace').strip()}"
                f"\nStderr: {stderr_bytes.decode(errors='replace').strip()}"
            )

        raise ProcessError(
            f"Command failed with return code {return_code}.{detail}",
            return_code,
            stdout_bytes,
            stderr_bytes,
        )

    return CommandResult(
        return_code=return_code,
        stdout=stdout_bytes if stdout == OutputPolicy.COLLECT else b"",
        stderr=stderr_bytes if stderr == OutputPolicy.COLLECT else b"",
    )

"""
terrakit/utils/spawn_compat.py

An os.posix_spawn based launcher used where the platform's regular subprocess
path does not forward an interactive terminal's stdin to the child (macOS).
The external contract matches the regular path in async_command_runner: the
caller awaits until the child has exited and its pipes are drained.

How it works:
  - The executable is checked up front (exists, regular file, executable),
    since posix_spawn may report success even when exec later fails.
  - stdout/stderr are remapped with posix_spawn file actions: /dev/null,
    inherited, or the write end of a fresh pipe.
  - The child's working directory is set by changing the parent's directory
    around the spawn call, serialized by a module lock. The change is
    process-wide: other threads that resolve relative paths while a spawn is
    in progress see the child's directory. Callers that run such threads
    alongside the launcher should pass absolute paths.
  - Exit is detected by a single reaper thread. It is created lazily on
    first use, lives for the rest of the process and is never torn down. It
    polls every registered child with a non-blocking waitpid() and resolves
    each caller's future on that caller's event loop as soon as its own
    child exits.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import stat
import threading
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from terrakit.errors import ProcessError

logger = logging.getLogger(__name__)

_READ_CHUNK = 65536


class StreamTarget(str, Enum):
    """Where a child's output stream is connected."""

    DEVNULL = "devnull"
    INHERIT = "inherit"
    PIPE = "pipe"


_Watch = Tuple[asyncio.AbstractEventLoop, "asyncio.Future[int]"]

_POLL_INTERVAL = 0.05


def _resolve(future: asyncio.Future[int], return_code: int) -> None:
    if not future.cancelled():
        future.set_result(return_code)


def _fail(future: asyncio.Future[int], exc: BaseException) -> None:
    if not future.cancelled():
        future.set_exception(exc)


def _notify(loop: asyncio.AbstractEventLoop, callback: Any, *args: Any) -> None:
    try:
        loop.call_soon_threadsafe(callback, *args)
    except RuntimeError:
        logger.warning("Event loop closed before its child exit could be reported.")


class _ChildReaper(threading.Thread):
    """Polls registered children for exit and wakes their callers.

    Every pending child is checked with a non-blocking waitpid on each pass,
    so a long-running child never delays the report of another one.
    """

    def __init__(self) -> None:
        super().__init__(name="terrakit-child-reaper", daemon=True)
        self._pending: Dict[int, _Watch] = {}
        self._wakeup = threading.Condition()

    def watch(self, pid: int, loop: asyncio.AbstractEventLoop) -> asyncio.Future[int]:
        """Register `pid`; the returned future resolves to its exit code."""
        future: asyncio.Future[int] = loop.create_future()
        with self._wakeup:
            self._pending[pid] = (loop, future)
            self._wakeup.notify()
        return future

    def _poll(self, pid: int, loop: asyncio.AbstractEventLoop, future: Any) -> bool:
        """Report `pid` if it has exited. Returns True once it is no longer pending."""
        try:
            waited, status = os.waitpid(pid, os.WNOHANG)
        except ChildProcessError as exc:
            _notify(loop, _fail, future, exc)
            return True
        if waited == 0:
            return False
        _notify(loop, _resolve, future, os.waitstatus_to_exitcode(status))
        return True

    def run(self) -> None:
        while True:
            with self._wakeup:
                while not self._pending:
                    self._wakeup.wait()
                pending = list(self._pending.items())

            finished = [
                (pid, future)
                for pid, (loop, future) in pending
                if self._poll(pid, loop, future)
            ]

            with self._wakeup:
                for pid, future in finished:
                    if self._pending.get(pid, (None, None))[1] is future:
                        del self._pending[pid]
                if self._pending:
                    self._wakeup.wait(_POLL_INTERVAL)


_reaper: Optional[_ChildReaper] = None
_reaper_lock = threading.Lock()
_spawn_lock = threading.Lock()


def get_reaper() -> _ChildReaper:
    """Return the process-wide reaper thread, starting it on first use."""
    global _reaper
    with _reaper_lock:
        if _reaper is None:
            _reaper = _ChildReaper()
            _reaper.start()
            logger.debug("Started child reaper thread.")
        return _reaper


def resolve_executable(
    program: str, env: Optional[Mapping[str, str]] = None
) -> str:
    """Locate `program` and check it can be executed.

    Raises:
        ProcessError: If the file is missing, not a regular file, or not executable.
    """
    path: Optional[str] = program
    if os.sep not in program:
        search_path = (env or os.environ).get("PATH")
        path = shutil.which(program, path=search_path)
    if path is None:
        raise ProcessError(f"Executable not found: {program}")
    try:
        info = os.stat(path)
    except OSError as exc:
        raise ProcessError(f"Executable not found: {path}") from exc
    if not stat.S_ISREG(info.st_mode):
        raise ProcessError(f"Not a regular file: {path}")
    if not os.access(path, os.X_OK):
        raise ProcessError(f"Not executable: {path}")
    return os.path.abspath(path)


def _drain(fd: Optional[int]) -> bytes:
    if fd is None:
        return b""
    chunks: List[bytes] = []
    try:
        while True:
            chunk = os.read(fd, _READ_CHUNK)
            if not chunk:
                break
            chunks.append(chunk)
    finally:
        os.close(fd)
    return b"".join(chunks)


async def spawn_and_wait(
    command: Sequence[str],
    *,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[str] = None,
    stdout: StreamTarget = StreamTarget.INHERIT,
    stderr: StreamTarget = StreamTarget.INHERIT,
) -> Tuple[int, bytes, bytes]:
    """Spawn `command`, wait for it to exit, and return its exit status and output.

    stdin is inherited from the calling process.

    Args:
        command (Sequence[str]): The program and its arguments.
        env (Optional[Mapping[str, str]]): Full child environment; os.environ if None.
        cwd (Optional[str]): Working directory for the child.
        stdout (StreamTarget): Where the child's stdout goes.
        stderr (StreamTarget): Where the child's stderr goes.

    Returns:
        Tuple[int, bytes, bytes]: Exit code (negative signal number if killed),
        and the bytes read from piped stdout and stderr (empty otherwise).

    Raises:
        ProcessError: If the process cannot be started.
    """
    executable = resolve_executable(command[0], env)

    file_actions: List[Tuple[Any, ...]] = []
    parent_close: List[int] = []
    readers: Dict[int, int] = {}
    devnull: Optional[int] = None

    try:
        for child_fd, target in ((1, stdout), (2, stderr)):
            if target == StreamTarget.DEVNULL:
                if devnull is None:
                    devnull = os.open(os.devnull, os.O_RDWR)
                    parent_close.append(devnull)
                file_actions.append((os.POSIX_SPAWN_DUP2, devnull, child_fd))
            elif target == StreamTarget.PIPE:
                read_fd, write_fd = os.pipe()
                readers[child_fd] = read_fd
                parent_close.append(write_fd)
                file_actions.append((os.POSIX_SPAWN_DUP2, write_fd, child_fd))
                file_actions.append((os.POSIX_SPAWN_CLOSE, read_fd))

        with _spawn_lock:
            previous = os.getcwd()
            if cwd:
                os.chdir(cwd)
            try:
                pid = os.posix_spawn(
                    executable,
                    [executable, *command[1:]],
                    env if env is not None else os.environ,
                    file_actions=file_actions,
                )
            finally:
                os.chdir(previous)
    except OSError as exc:
        for fd in [*parent_close, *readers.values()]:
            os.close(fd)
        raise ProcessError(f"Failed to start {executable}: {exc}") from exc

    for fd in parent_close:
        os.close(fd)

    loop = asyncio.get_running_loop()
    exit_future = get_reaper().watch(pid, loop)
    stdout_bytes, stderr_bytes, return_code = await asyncio.gather(
        asyncio.to_thread(_drain, readers.get(1)),
        asyncio.to_thread(_drain, readers.get(2)),
        exit_future,
    )
    return return_code, stdout_bytes, stderr_bytes

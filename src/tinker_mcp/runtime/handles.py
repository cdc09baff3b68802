"""Process handles.

laravel-tinker-mcp runtime module v0.1.0

A ProcessHandle owns one child process and its pipes. Two variants share the
same interface:

- LocalProcessHandle: the interpreter runs on this machine. Killing targets
  the whole process group so PHP's own children die with it.
- RemoteProcessHandle: the local process is a transport client (docker exec,
  ssh, ...). Killing first asks the client to terminate so it can tear down
  the remote session, then forces it.

``open_process_handle()`` picks the variant; everything downstream only uses
the shared interface.

Key design points (inherited from the subprocess runner):
- POSIX: start_new_session=True to create a new process group
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- stderr is merged into stdout so the emission order is preserved
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import subprocess
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from .errors import InterpreterLaunchError
from .types import Command

__all__ = [
    "ProcessHandle",
    "LocalProcessHandle",
    "RemoteProcessHandle",
    "open_process_handle",
    "OUTPUT_ENCODING",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

OUTPUT_ENCODING = "utf-8"
READ_CHUNK_SIZE = 4096

# Default timeouts
DEFAULT_TERM_TIMEOUT = 1.0  # seconds to wait after SIGTERM (remote only)
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL


def _build_subprocess_kwargs(command: Command) -> dict[str, Any]:
    """Build platform-specific subprocess kwargs.

    Args:
        command: The command to spawn

    Returns:
        Dict of kwargs for asyncio.create_subprocess_exec
    """
    kwargs: dict[str, Any] = {}

    if command.env is not None:
        kwargs["env"] = {**os.environ, **command.env}

    if IS_WINDOWS:
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        # POSIX: start_new_session (equivalent to setsid)
        kwargs["start_new_session"] = True

    return kwargs


class ProcessHandle(ABC):
    """Shared interface over a spawned interpreter process.

    Example:
        handle = await open_process_handle(command)
        handle.attach_listener(router.on_output_chunk)
        await handle.write_input(b"\\x04")
        ...
        await handle.release()
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        command: Command,
        kill_timeout: float = DEFAULT_KILL_TIMEOUT,
    ) -> None:
        self.process = process
        self.command = command
        self.kill_timeout = kill_timeout
        self._listener: asyncio.Task[None] | None = None
        self._released = False
        self._killed = False

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    @property
    def is_terminated(self) -> bool:
        return self.process.returncode is not None

    @property
    def active(self) -> bool:
        """Whether the handle still owns its pipes."""
        return not self._released

    async def write_input(self, data: bytes, *, close: bool = True) -> None:
        """Write to the process's stdin, closing it afterwards by default."""
        stdin = self.process.stdin
        if stdin is None or stdin.is_closing():
            return
        try:
            stdin.write(data)
            await stdin.drain()
            if close:
                stdin.close()
                await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError) as e:
            # The process exited before reading its input.
            logger.debug(f"stdin closed early pid={self.pid}: {e}")

    def attach_listener(self, callback: Callable[[str], None]) -> asyncio.Task[None]:
        """Forward decoded output chunks to ``callback`` as they arrive.

        Returns:
            The reader task; it completes once stdout reaches EOF.
        """
        if self._listener is not None:
            raise RuntimeError("A listener is already attached")
        self._listener = asyncio.create_task(self._read_output(callback))
        return self._listener

    async def _read_output(self, callback: Callable[[str], None]) -> None:
        stdout = self.process.stdout
        if stdout is None:
            return
        decoder = codecs.getincrementaldecoder(OUTPUT_ENCODING)(errors="replace")
        while True:
            chunk = await stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            text = decoder.decode(chunk)
            if text:
                callback(text)
        tail = decoder.decode(b"", final=True)
        if tail:
            callback(tail)

    async def wait_output_flushed(self) -> None:
        """Wait until the listener has delivered everything up to EOF."""
        if self._listener is not None:
            await self._listener

    async def kill(self) -> None:
        """Force the process down. Safe to call on an exited process."""
        if self._killed:
            return
        self._killed = True
        pid = self.pid

        if self.is_terminated:
            await self._kill_leftovers()
            return
        logger.debug(f"Killing subprocess pid={pid}")

        try:
            await self._kill()
            try:
                await asyncio.wait_for(self.process.wait(), timeout=self.kill_timeout)
                logger.debug(
                    f"Subprocess killed pid={pid} returncode={self.process.returncode}"
                )
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")
        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={pid}")
        except Exception as e:
            logger.warning(f"Error killing subprocess pid={pid}: {e}")

    @abstractmethod
    async def _kill(self) -> None:
        """Variant-specific kill strategy."""
        ...

    async def _kill_leftovers(self) -> None:
        """Kill descendants that outlived the process (none by default)."""
        return None

    async def release(self) -> None:
        """Stop the listener and close the pipes. Runs at most once."""
        if self._released:
            return
        self._released = True

        if self._listener is not None and not self._listener.done():
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass

        stdin = self.process.stdin
        if stdin is not None and not stdin.is_closing():
            stdin.close()

        # Reap the process if it already exited or was killed
        if self.is_terminated or self._killed:
            try:
                await asyncio.wait_for(self.process.wait(), timeout=self.kill_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess not reaped pid={self.pid}")

        logger.debug(f"Released subprocess pid={self.pid} returncode={self.returncode}")

    async def _posix_kill(self) -> None:
        """Send SIGKILL to the process group on POSIX systems."""
        try:
            pgid = os.getpgid(self.pid)
            os.killpg(pgid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to kill: {e}")
            self.process.kill()

    async def _windows_kill(self) -> None:
        """Force kill on Windows."""
        try:
            self.process.kill()
            logger.debug(f"Called kill() on pid={self.pid}")
        except ProcessLookupError:
            pass


class LocalProcessHandle(ProcessHandle):
    """Interpreter running on this machine."""

    async def _kill(self) -> None:
        if IS_WINDOWS:
            await self._windows_kill()
        else:
            await self._posix_kill()

    async def _kill_leftovers(self) -> None:
        # The session leader has exited but its group may still hold stdout.
        if IS_WINDOWS:
            return
        try:
            os.killpg(self.pid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to leftover process group pgid={self.pid}")
        except (ProcessLookupError, PermissionError):
            pass


class RemoteProcessHandle(ProcessHandle):
    """Transport client for an interpreter on another host or container.

    Attributes:
        term_timeout: Seconds the client gets to shut down before SIGKILL
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        command: Command,
        kill_timeout: float = DEFAULT_KILL_TIMEOUT,
        term_timeout: float = DEFAULT_TERM_TIMEOUT,
    ) -> None:
        super().__init__(process, command, kill_timeout)
        self.term_timeout = term_timeout

    async def _kill(self) -> None:
        pid = self.pid
        try:
            self.process.terminate()
            logger.debug(f"Sent terminate to transport client pid={pid}")
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(self.process.wait(), timeout=self.term_timeout)
            return
        except asyncio.TimeoutError:
            pass

        logger.debug(f"Transport client ignored terminate, force killing pid={pid}")
        if IS_WINDOWS:
            await self._windows_kill()
        else:
            await self._posix_kill()


async def open_process_handle(
    command: Command,
    *,
    kill_timeout: float = DEFAULT_KILL_TIMEOUT,
) -> ProcessHandle:
    """Spawn ``command`` and wrap it in the matching handle variant.

    Raises:
        InterpreterLaunchError: The executable could not be started, or argv,
            cwd or env hold a value the OS cannot pass (such as a NUL byte)
    """
    kwargs = _build_subprocess_kwargs(command)

    try:
        process = await asyncio.create_subprocess_exec(
            *command.argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=command.cwd,
            **kwargs,
        )
    except (OSError, ValueError) as e:
        reason = getattr(e, "strerror", None) or str(e) or type(e).__name__
        raise InterpreterLaunchError(f"Cannot start {command.argv[0]}: {reason}") from e

    logger.debug(
        f"Started subprocess pid={process.pid} "
        f"argv={command.argv[0]} cwd={command.cwd} remote={command.remote}"
    )

    if command.remote:
        return RemoteProcessHandle(process, command, kill_timeout=kill_timeout)
    return LocalProcessHandle(process, command, kill_timeout=kill_timeout)

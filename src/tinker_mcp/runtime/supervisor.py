"""Process supervisor with cooperative cancellation.

laravel-tinker-mcp runtime module v0.1.0

Lifecycle of one supervised run:

    Created --spawn ok--> Running --exit--------> Terminated (completed)
       |                     |
       |                     +--token cancelled--> Terminated (cancelled)
       +--spawn error--> Failed

- Right after the spawn, EOT (0x04) is written and stdin closed. The
  bootstrap script blocks on stdin until then, so output starts only once
  the listener is attached.
- The run loop wakes at least every ``poll_interval`` seconds to check the
  CancellationToken. Worst-case cancellation latency is one interval.
- Output is delivered by the handle's listener task, never read by the loop.
- The handle is released exactly once on every exit path, including
  exceptions raised while polling and cancellation of the awaiting task.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .errors import InterpreterLaunchError
from .handles import DEFAULT_KILL_TIMEOUT, ProcessHandle, open_process_handle
from .router import SignalRouter
from .types import CancellationToken, Command, RunOutcome

__all__ = [
    "ProcessSupervisor",
    "DEFAULT_POLL_INTERVAL",
    "END_OF_INPUT",
]

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.25  # seconds between liveness/cancellation checks
END_OF_INPUT = b"\x04"


@dataclass
class ProcessSupervisor:
    """Spawns one interpreter process and supervises it to a terminal state.

    Example:
        supervisor = ProcessSupervisor(poll_interval=0.25)
        token = CancellationToken()
        outcome = await supervisor.supervise(command, token, router)

        if outcome.is_cancelled:
            ...
    """

    poll_interval: float = DEFAULT_POLL_INTERVAL
    kill_timeout: float = DEFAULT_KILL_TIMEOUT

    async def supervise(
        self,
        command: Command,
        token: CancellationToken,
        router: SignalRouter,
    ) -> RunOutcome:
        """Run ``command`` until it exits or ``token`` is cancelled.

        Args:
            command: The command to spawn
            token: Cancellation flag polled every interval
            router: Receives start, output and terminate events

        Returns:
            COMPLETED with the exit code, CANCELLED, or FAILED when the
            process could not be spawned (``launch_error`` set) or supervision
            itself broke down
        """
        if token.is_cancelled:
            outcome = RunOutcome.cancelled()
            router.on_terminate(outcome)
            return outcome

        try:
            handle = await open_process_handle(command, kill_timeout=self.kill_timeout)
        except InterpreterLaunchError as e:
            logger.warning(f"Spawn failed: {e.message}")
            outcome = RunOutcome.failed(e.message, launch_error=True)
            router.on_terminate(outcome)
            return outcome

        try:
            router.on_start(handle.pid)
            handle.attach_listener(router.on_output_chunk)
            await handle.write_input(END_OF_INPUT)

            outcome = await self._poll(handle, token)
            if outcome.is_completed:
                outcome = await self._drain(handle, token, outcome)

            if outcome.is_cancelled:
                await handle.kill()
                outcome = RunOutcome.cancelled(handle.returncode)
                logger.info(f"Run cancelled pid={handle.pid}")
            else:
                logger.debug(f"Run finished pid={handle.pid} exit_code={outcome.exit_code}")

            router.on_terminate(outcome)
            return outcome

        except asyncio.CancelledError:
            # The awaiting task was cancelled: same teardown as a token cancel.
            token.cancel()
            await asyncio.shield(handle.kill())
            router.on_terminate(RunOutcome.cancelled(handle.returncode))
            raise

        except Exception as e:
            logger.error(f"Supervision of pid={handle.pid} failed: {e}", exc_info=True)
            await handle.kill()
            outcome = RunOutcome.failed(f"Supervision error: {e}")
            router.on_terminate(outcome)
            return outcome

        finally:
            try:
                await asyncio.shield(self._release(handle))
            except asyncio.CancelledError:
                await self._release(handle)

    async def _poll(self, handle: ProcessHandle, token: CancellationToken) -> RunOutcome:
        """Wait for exit, checking the token once per interval."""
        wait_task = asyncio.create_task(handle.process.wait())
        try:
            while True:
                done, _ = await asyncio.wait({wait_task}, timeout=self.poll_interval)
                if wait_task in done:
                    return RunOutcome.completed(wait_task.result())
                if token.is_cancelled:
                    return RunOutcome.cancelled()
        finally:
            if not wait_task.done():
                wait_task.cancel()
                try:
                    await wait_task
                except asyncio.CancelledError:
                    pass

    async def _drain(
        self,
        handle: ProcessHandle,
        token: CancellationToken,
        outcome: RunOutcome,
    ) -> RunOutcome:
        """Wait for the listener to reach EOF so terminate follows the last chunk.

        A descendant that inherited stdout can keep the pipe open after PHP
        exits; the token is still honored while waiting.
        """
        flushed = asyncio.ensure_future(handle.wait_output_flushed())
        try:
            while True:
                done, _ = await asyncio.wait({flushed}, timeout=self.poll_interval)
                if flushed in done:
                    flushed.result()
                    return outcome
                if token.is_cancelled:
                    return RunOutcome.cancelled(outcome.exit_code)
        finally:
            if not flushed.done():
                flushed.cancel()
                try:
                    await flushed
                except asyncio.CancelledError:
                    pass

    async def _release(self, handle: ProcessHandle) -> None:
        """Kill if still running, then release the handle (idempotent)."""
        if not handle.is_terminated:
            await handle.kill()
        await handle.release()

"""Single tinker invocation.

laravel-tinker-mcp runtime module v0.1.0

Ties the pipeline together for one run:

    resolve -> stage -> build -> supervise -> release

- Configuration errors stop the run before anything is staged or spawned and
  produce exactly one notification.
- Only spawn failures are notified as launch errors. Staging failures and
  supervision errors end as FAILED outcomes carrying the reason, and are
  logged without a notification.
- The staged payload is released on every exit path once it exists,
  including cancellation of the awaiting task.
- Each call creates its own SignalRouter, so invocations never share
  lifecycle state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..settings import SettingsProvider
from .command import CommandBuilder
from .errors import (
    ConfigurationError,
    InvalidRootError,
    MissingDependenciesError,
    NoInterpreterError,
    StagingIOError,
)
from .resolver import RuntimeResolver
from .router import CompletionNotifier, NotificationSink, OutputSink, SignalRouter
from .stager import PayloadStager
from .supervisor import ProcessSupervisor
from .types import (
    CancellationToken,
    Notification,
    NotificationKind,
    Payload,
    RunOutcome,
)

__all__ = ["TinkerInvocation", "InvocationResult", "notification_for"]

logger = logging.getLogger(__name__)


@dataclass
class InvocationResult:
    """Result of one invocation.

    Attributes:
        outcome: Terminal outcome of the run
        notification: The user-facing error emitted, if any
        duration_sec: Wall time from resolve to release
    """

    outcome: RunOutcome
    notification: Notification | None = None
    duration_sec: float = 0.0

    @property
    def exit_code(self) -> int | None:
        return self.outcome.exit_code

    @property
    def success(self) -> bool:
        return self.outcome.is_completed and self.outcome.exit_code == 0


def notification_for(error: ConfigurationError) -> Notification:
    """Map a configuration error onto its user-facing notification."""
    if isinstance(error, NoInterpreterError):
        return Notification(NotificationKind.NO_INTERPRETER)
    if isinstance(error, InvalidRootError):
        return Notification(NotificationKind.INVALID_ROOT, error.path)
    if isinstance(error, MissingDependenciesError):
        return Notification(NotificationKind.MISSING_DEPENDENCIES, error.path)
    return Notification(NotificationKind.INTERPRETER_LAUNCH_ERROR, str(error))


class TinkerInvocation:
    """Runs PHP code inside a Laravel project.

    Example:
        invocation = TinkerInvocation(
            resolver=RuntimeResolver(),
            stager=PayloadStager(),
            builder=CommandBuilder(),
            supervisor=ProcessSupervisor(),
            notification_sink=notifications,
        )
        result = await invocation.run(code, workspace, settings, output, token)
    """

    def __init__(
        self,
        resolver: RuntimeResolver,
        stager: PayloadStager,
        builder: CommandBuilder,
        supervisor: ProcessSupervisor,
        notification_sink: NotificationSink,
    ) -> None:
        self.resolver = resolver
        self.stager = stager
        self.builder = builder
        self.supervisor = supervisor
        self.notification_sink = notification_sink

    async def run(
        self,
        code: str,
        workspace: Path,
        settings: SettingsProvider,
        output_sink: OutputSink,
        token: CancellationToken,
        notifier: CompletionNotifier | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> InvocationResult:
        """Execute ``code`` for ``workspace`` and wait for a terminal state.

        Args:
            code: PHP source to evaluate
            workspace: Directory the run was requested for
            settings: Configuration provider for the project
            output_sink: Receives the process output in order
            token: Cancellation flag for this run
            notifier: Optional receiver of start/terminate events
            options: Per-run options merged over the persisted ones

        Returns:
            The invocation result. Configuration and spawn errors are
            reported through the notification sink and a FAILED outcome,
            staging errors only through the outcome. None are raised.
        """
        start_time = time.time()

        try:
            runtime = self.resolver.resolve(workspace, settings)
        except ConfigurationError as e:
            logger.info(f"Configuration error for {workspace}: {e}")
            return self._fail(notification_for(e), start_time)

        try:
            payload = self.stager.stage(code, {**runtime.extra_options, **(options or {})})
        except StagingIOError as e:
            logger.error(f"Staging failed: {e}")
            return InvocationResult(
                outcome=RunOutcome.failed(f"Could not stage the tinker bootstrap script: {e}"),
                duration_sec=time.time() - start_time,
            )

        try:
            command = self.builder.build(runtime, payload)
            logger.info(
                f"Running tinker in {command.cwd} "
                f"(remote={command.remote}, code_len={len(code)})"
            )

            router = SignalRouter(output_sink, notifier)
            router.reset_output()

            outcome = await self.supervisor.supervise(command, token, router)

            notification = None
            if outcome.is_failed and outcome.launch_error:
                notification = Notification(
                    NotificationKind.INTERPRETER_LAUNCH_ERROR, outcome.reason or ""
                )
                self.notification_sink.notify(notification)
            elif outcome.is_failed:
                logger.error(f"Run failed in {command.cwd}: {outcome.reason}")

            return InvocationResult(
                outcome=outcome,
                notification=notification,
                duration_sec=time.time() - start_time,
            )

        except asyncio.CancelledError:
            logger.warning(f"Invocation cancelled while running in {runtime.working_directory}")
            raise

        finally:
            self._release(payload)

    def _fail(self, notification: Notification, start_time: float) -> InvocationResult:
        self.notification_sink.notify(notification)
        return InvocationResult(
            outcome=RunOutcome.failed(notification.message),
            notification=notification,
            duration_sec=time.time() - start_time,
        )

    @staticmethod
    def _release(payload: Payload) -> None:
        try:
            payload.release()
        except Exception as e:
            logger.warning(f"Releasing payload failed: {e}")
